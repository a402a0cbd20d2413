# db/models/contest_stats.py
from datetime import datetime
from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from backoffice.db.models._base import Base, utcnow

STATS_ROW_ID = 1

class ContestStats(Base):
    __tablename__ = "contest_stats"
    __table_args__ = (
        CheckConstraint("total_gains >= 0", name="ck_stats_gains_non_negative"),
        CheckConstraint("total_places_sold >= 0", name="ck_stats_places_non_negative"),
        CheckConstraint("total_winners >= 0", name="ck_stats_winners_non_negative"),
        CheckConstraint("total_contests >= 0", name="ck_stats_contests_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=STATS_ROW_ID)
    total_gains: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    total_places_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_contests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False, default="system")


class MonthlyContestStats(Base):
    __tablename__ = "monthly_contest_stats"

    month: Mapped[str] = mapped_column(String(7), primary_key=True)  # YYYY-MM
    gains: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    places_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    contests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
