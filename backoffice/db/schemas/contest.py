# db/schemas/contest.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import Field, model_validator
from backoffice.db.schemas._base import OrmModel
from backoffice.db.enums import ContestStatus, ContestType, ParticipantStatus, PrizeType
from backoffice.utils.sentinels import Missing

class ContestPrizeBase(OrmModel):
    position: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    value: float = Field(0, ge=0)
    type: PrizeType = PrizeType.OTHER

class ContestPrizeCreate(ContestPrizeBase): ...
class ContestPrizeRead(ContestPrizeBase):
    id: uuid.UUID


class ContestParticipantRead(OrmModel):
    id: uuid.UUID
    user_id: uuid.UUID
    joined_at: datetime
    is_winner: bool = False
    position: Optional[int] = None
    prize: Optional[str] = None
    notes: Optional[str] = None


class ContestWinnerRead(OrmModel):
    id: uuid.UUID
    user_id: uuid.UUID
    position: int
    prize: str
    amount: float = 0
    selected_at: datetime
    selected_by_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ContestBase(OrmModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    type: ContestType = ContestType.GENERAL
    status: ContestStatus = ContestStatus.DRAFT
    start_date: datetime
    end_date: datetime
    draw_date: datetime
    auto_draw_enabled: bool = False
    max_participants: Optional[int] = Field(None, ge=1)
    max_winners: int = Field(3, ge=1)
    rules: Optional[str] = Field(None, max_length=2000)

class ContestCreate(ContestBase):
    is_weekly_contest: bool = False
    week_number: Optional[int] = None
    year: Optional[int] = None
    prizes: list[ContestPrizeCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_prize_positions(self) -> "ContestCreate":
        seen = [p.position for p in self.prizes]
        if len(seen) != len(set(seen)):
            raise ValueError("Prize positions must be unique.")
        return self

class ContestUpdate(OrmModel):
    id: uuid.UUID
    title: str | Missing = Missing()
    description: str | Missing = Missing()
    type: ContestType | Missing = Missing()
    status: ContestStatus | Missing = Missing()
    start_date: datetime | Missing = Missing()
    end_date: datetime | Missing = Missing()
    draw_date: datetime | Missing = Missing()
    auto_draw_enabled: bool | Missing = Missing()
    max_participants: int | Missing | None = Missing()
    max_winners: int | Missing = Missing()
    rules: str | Missing | None = Missing()

class ContestRead(ContestBase):
    id: uuid.UUID
    is_weekly_contest: bool = False
    week_number: Optional[int] = None
    year: Optional[int] = None
    draw_completed: bool = False
    draw_completed_at: Optional[datetime] = None
    current_participants: int = 0
    created_by_id: Optional[uuid.UUID] = None
    last_modified_by_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    prizes: list[ContestPrizeRead] = Field(default_factory=list)
    participants: list[ContestParticipantRead] = Field(default_factory=list)
    winners: list[ContestWinnerRead] = Field(default_factory=list)


class ContestListItem(ContestBase):
    """Contest row without the embedded collections, for listings."""
    id: uuid.UUID
    is_weekly_contest: bool = False
    week_number: Optional[int] = None
    year: Optional[int] = None
    draw_completed: bool = False
    draw_completed_at: Optional[datetime] = None
    current_participants: int = 0
    created_at: datetime


class ParticipantOverviewRow(OrmModel):
    user_id: uuid.UUID
    user_email: str
    user_full_name: str
    contest_id: uuid.UUID
    contest_title: str
    contest_week: Optional[int] = None
    joined_at: datetime
    status: ParticipantStatus
    winner_position: Optional[int] = None
    winner_prize: Optional[str] = None


class WeeklyContestStats(OrmModel):
    year: int
    total_contests: int = 0
    total_participants: int = 0
    completed_contests: int = 0
    active_contests: int = 0


class ParticipationStatus(OrmModel):
    is_participating: bool
    contest_id: Optional[uuid.UUID] = None
    contest_title: Optional[str] = None
    reason: Optional[str] = None


class DrawOutcome(OrmModel):
    """Result of one committed draw."""
    contest: ContestRead
    winners: list[ContestWinnerRead] = Field(default_factory=list)
