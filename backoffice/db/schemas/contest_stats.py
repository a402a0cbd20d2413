# db/schemas/contest_stats.py
from datetime import datetime
from typing import Optional
from pydantic import Field
from backoffice.db.schemas._base import OrmModel

class ContestStatsRead(OrmModel):
    total_gains: float = 0
    total_places_sold: int = 0
    total_winners: int = 0
    total_contests: int = 0
    last_updated: datetime
    updated_by: str = "system"

class ContestStatsUpdate(OrmModel):
    total_gains: float
    total_places_sold: int
    total_winners: int

class MonthlyStatsRead(OrmModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    gains: float = 0
    places_sold: int = 0
    winners: int = 0
    contests: int = 0

class StatsDelta(OrmModel):
    """Signed adjustments applied atomically to the ledger."""
    gains: float = 0
    places_sold: int = 0
    winners: int = 0
    contests: int = 0
    month: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.gains or self.places_sold or self.winners or self.contests)

class RecentWinner(OrmModel):
    contest_title: str
    draw_date: datetime
    first_name: str
    last_name: str
    prize: str
    amount: float = 0

class DisplayStats(OrmModel):
    total_gains: float = 0
    total_places_sold: int = 0
    total_winners: int = 0
    recent_winners: list[RecentWinner] = Field(default_factory=list)
