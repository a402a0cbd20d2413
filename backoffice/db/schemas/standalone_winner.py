# db/schemas/standalone_winner.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field
from backoffice.db.schemas._base import OrmModel
from backoffice.utils.sentinels import Missing

class StandaloneWinnerBase(OrmModel):
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field(..., min_length=1, max_length=128)
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    eth_address: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    prize: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(0, ge=0)
    notes: str = ""

class StandaloneWinnerCreate(StandaloneWinnerBase):
    position: Optional[int] = Field(None, ge=1)
    draw_date: Optional[datetime] = None

class StandaloneWinnerUpdate(OrmModel):
    id: uuid.UUID
    first_name: str | Missing = Missing()
    last_name: str | Missing = Missing()
    email: EmailStr | Missing | None = Missing()
    username: str | Missing | None = Missing()
    eth_address: str | Missing | None = Missing()
    user_id: uuid.UUID | Missing | None = Missing()
    prize: str | Missing = Missing()
    amount: float | Missing = Missing()
    position: int | Missing = Missing()
    draw_date: datetime | Missing = Missing()
    is_active: bool | Missing = Missing()
    notes: str | Missing = Missing()

class StandaloneWinnerRead(StandaloneWinnerBase):
    id: uuid.UUID
    position: int
    draw_date: datetime
    week_of_year: str
    is_active: bool = True
    created_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class FirstPlaceWinner(OrmModel):
    """Public view of the latest first-place winner; the ETH address is only shown to its owner."""
    id: uuid.UUID
    first_name: str
    last_name: str
    username: Optional[str] = None
    prize: str
    amount: float
    draw_date: datetime
    position: int
    eth_address: Optional[str] = None
    is_current_user: bool = False
