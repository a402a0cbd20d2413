# db/models/contest.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from backoffice.db.models._base import Base, utcnow
from backoffice.db.enums import ContestStatus, ContestType, PrizeType

class Contest(Base):
    __tablename__ = "contest"
    __table_args__ = (
        UniqueConstraint("week_number", "year", name="uq_contest_week"),
        CheckConstraint("draw_date >= end_date", name="ck_contest_draw_after_end"),
        Index("ix_contest_due_draw", "auto_draw_enabled", "draw_completed", "status", "draw_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    type: Mapped[ContestType] = mapped_column(SAEnum(ContestType, name="contest_type"), nullable=False, default=ContestType.GENERAL)
    status: Mapped[ContestStatus] = mapped_column(SAEnum(ContestStatus, name="contest_status"), nullable=False, default=ContestStatus.DRAFT)

    is_weekly_contest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    week_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    draw_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    auto_draw_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    draw_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    draw_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    max_participants: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    rules: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    last_modified_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    prizes: Mapped[List["ContestPrize"]] = relationship(
        back_populates="contest", cascade="all, delete-orphan", passive_deletes=True,
        order_by="ContestPrize.position", lazy="selectin",
    )
    participants: Mapped[List["ContestParticipant"]] = relationship(
        back_populates="contest", cascade="all, delete-orphan", passive_deletes=True,
        order_by="ContestParticipant.joined_at", lazy="selectin",
    )
    winners: Mapped[List["ContestWinner"]] = relationship(
        back_populates="contest", cascade="all, delete-orphan", passive_deletes=True,
        order_by="ContestWinner.position", lazy="selectin",
    )


class ContestPrize(Base):
    __tablename__ = "contest_prize"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contest.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    value: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    type: Mapped[PrizeType] = mapped_column(SAEnum(PrizeType, name="prize_type"), nullable=False, default=PrizeType.OTHER)

    contest: Mapped[Contest] = relationship(back_populates="prizes")


class ContestParticipant(Base):
    __tablename__ = "contest_participant"
    __table_args__ = (UniqueConstraint("contest_id", "user_id", name="uq_contest_participant_user"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contest.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prize: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    contest: Mapped[Contest] = relationship(back_populates="participants")


class ContestWinner(Base):
    __tablename__ = "contest_winner"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contest.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    prize: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    selected_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    selected_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    contest: Mapped[Contest] = relationship(back_populates="winners")
