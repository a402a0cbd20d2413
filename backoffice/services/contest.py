# services/contest.py
from uuid import UUID
from typing import ClassVar, Optional, Self, Sequence

from backoffice.db.database import DataBase
from backoffice.db.enums import ContestStatus
from backoffice.db.schemas.contest import (
	ContestCreate,
	ContestListItem,
	ContestParticipantRead,
	ContestRead,
	ContestUpdate,
	ParticipantOverviewRow,
)
from backoffice.domain.actor import Actor, SYSTEM, actor_user_id
from backoffice.domain.errors import ContestNotFoundError
from backoffice.services.audit_log import instrument_service_class
from backoffice.services.clock import Clock, SystemClock


class ContestService:
	"""
	Singleton service layer for contests, their participants and winners.

	Strict rule: this service does **not** touch SQLAlchemy sessions or models.
	It calls the DataBase facade, which applies the aggregate rules inside one
	transaction, and returns DTOs.
	"""

	_instance: ClassVar[Optional["ContestService"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self, database: Optional[DataBase] = None, clock: Optional[Clock] = None) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database: DataBase = database or DataBase()
		self._clock: Clock = clock or SystemClock()
		self._initialized = True

	# --------------------
	# Contest methods
	# --------------------
	async def create_contest(self, payload: ContestCreate, *, actor: Actor = SYSTEM) -> ContestRead:
		return await self._database.create_contest(payload, created_by=actor_user_id(actor))

	async def get_contest(self, contest_id: UUID) -> Optional[ContestRead]:
		return await self._database.get_contest(contest_id)

	async def require_contest(self, contest_id: UUID) -> ContestRead:
		contest = await self._database.get_contest(contest_id)
		if contest is None:
			raise ContestNotFoundError(f"Contest {contest_id} not found.")
		return contest

	async def list_contests_page(
		self,
		page: int,
		page_size: int,
		*,
		status: Optional[ContestStatus] = None,
		contest_type: Optional[str] = None,
	) -> tuple[list[ContestListItem], int]:
		limit = page_size
		offset = max(page, 0) * page_size
		return await self._database.list_contests(
			limit=limit, offset=offset, status=status, contest_type=contest_type,
		)

	async def update_contest(self, payload: ContestUpdate, *, actor: Actor = SYSTEM) -> ContestRead:
		return await self._database.update_contest(payload, modified_by=actor_user_id(actor))

	async def delete_contest(self, contest_id: UUID, *, actor: Actor = SYSTEM) -> None:
		await self._database.delete_contest(contest_id)

	async def finalize_contest(self, contest_id: UUID, *, actor: Actor = SYSTEM) -> ContestRead:
		return await self._database.finalize_contest(
			contest_id, modified_by=actor_user_id(actor), now=self._clock.now(),
		)

	# --------------------
	# Participants
	# --------------------
	async def add_participant(
		self, contest_id: UUID, user_id: UUID, *, actor: Actor = SYSTEM
	) -> tuple[ContestParticipantRead, bool]:
		return await self._database.add_participant(contest_id, user_id, now=self._clock.now())

	async def remove_participant(self, contest_id: UUID, user_id: UUID, *, actor: Actor = SYSTEM) -> ContestRead:
		return await self._database.remove_participant(
			contest_id, user_id, modified_by=actor_user_id(actor), now=self._clock.now(),
		)

	async def list_all_participants(self, limit: Optional[int] = None) -> list[ParticipantOverviewRow]:
		return await self._database.list_all_participants(limit=limit)

	# --------------------
	# Winners
	# --------------------
	async def select_winner(
		self,
		contest_id: UUID,
		user_id: UUID,
		position: int,
		*,
		prize: Optional[str] = None,
		notes: Optional[str] = None,
		actor: Actor = SYSTEM,
	) -> ContestRead:
		return await self._database.select_winner(
			contest_id,
			user_id,
			position,
			prize=prize,
			notes=notes,
			selected_by=actor,
			now=self._clock.now(),
		)

	async def remove_winner(self, contest_id: UUID, user_id: UUID, *, actor: Actor = SYSTEM) -> ContestRead:
		return await self._database.remove_winner(
			contest_id, user_id, modified_by=actor_user_id(actor), now=self._clock.now(),
		)

	async def select_multiple_winners(
		self,
		contest_id: UUID,
		user_ids: Sequence[UUID],
		*,
		prizes: Optional[Sequence[Optional[str]]] = None,
		notes: Optional[str] = None,
		actor: Actor = SYSTEM,
	) -> ContestRead:
		return await self._database.select_multiple_winners(
			contest_id,
			list(user_ids),
			selected_by=actor,
			now=self._clock.now(),
			prizes=prizes,
			notes=notes,
		)


instrument_service_class(
	ContestService,
	prefix="services.contest",
	exclude={"get_contest", "require_contest", "list_contests_page", "list_all_participants"},
)
