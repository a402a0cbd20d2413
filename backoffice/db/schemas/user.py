# db/schemas/user.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import EmailStr
from backoffice.db.schemas._base import OrmModel
from backoffice.db.enums import UserRole

class UserBase(OrmModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    tg_id: Optional[int] = None
    preferred_language: Optional[str] = None

class UserCreate(UserBase): ...

class UserRead(UserBase):
    id: uuid.UUID
    created_at: datetime

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()
