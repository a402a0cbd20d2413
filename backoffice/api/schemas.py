# api/schemas.py
"""Request bodies of the admin API. Patch bodies only carry the fields the client sent."""
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field

from backoffice.db.enums import ContestStatus, ContestType
from backoffice.db.schemas.standalone_winner import StandaloneWinnerCreate


class ApiModel(BaseModel):
    def provided_fields(self, nullable: set[str] = frozenset()) -> dict[str, Any]:
        """Fields the client sent; ``None`` is kept only for nullable columns."""
        return {
            k: v for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in nullable
        }


class ContestPatch(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    type: Optional[ContestType] = None
    status: Optional[ContestStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    draw_date: Optional[datetime] = None
    auto_draw_enabled: Optional[bool] = None
    max_participants: Optional[int] = Field(None, ge=1)
    max_winners: Optional[int] = Field(None, ge=1)
    rules: Optional[str] = Field(None, max_length=2000)


class ParticipantIn(BaseModel):
    user_id: uuid.UUID


class WinnerIn(BaseModel):
    user_id: uuid.UUID
    position: int
    prize: Optional[str] = None
    notes: Optional[str] = None


class BulkWinnersIn(BaseModel):
    user_ids: list[uuid.UUID] = Field(..., min_length=1)
    prizes: Optional[list[Optional[str]]] = None
    notes: Optional[str] = None


class StandaloneWinnersIn(BaseModel):
    winners: list[StandaloneWinnerCreate] = Field(..., min_length=1)
    week_of_year: Optional[str] = None


class StandaloneWinnerPatch(ApiModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=128)
    last_name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    eth_address: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    prize: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[float] = Field(None, ge=0)
    position: Optional[int] = Field(None, ge=1)
    draw_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class GlobalStatsIn(BaseModel):
    total_gains: float
    total_places_sold: int
    total_winners: int


class MonthlyStatsIn(BaseModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    gains: float = 0
    places_sold: int = 0
    winners: int = 0
    contests: int = 0
