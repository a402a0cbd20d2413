# services/user.py
from uuid import UUID
from typing import Self, ClassVar, Optional

from backoffice.db.database import DataBase
from backoffice.db.schemas.user import UserRead
from backoffice.domain.errors import UserNotFoundError


class UserService:
	"""User lookups for the contest flow. Users are created and edited elsewhere."""

	_instance: ClassVar[Optional["UserService"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self, database: Optional[DataBase] = None) -> None:
		if getattr(self, "_initialized", False):
			return

		self.database = database or DataBase()
		self._initialized = True

	async def get_user(self, uid: Optional[UUID]) -> Optional[UserRead]:
		return await self.database.get_user_by_id(uid)

	async def require_user(self, uid: UUID) -> UserRead:
		user = await self.database.get_user_by_id(uid)
		if user is None:
			raise UserNotFoundError(f"User {uid} not found.")
		return user
