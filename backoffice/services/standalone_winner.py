# services/standalone_winner.py
from uuid import UUID
from typing import ClassVar, Optional, Self, Sequence

from backoffice.db.database import DataBase
from backoffice.db.schemas.standalone_winner import (
	FirstPlaceWinner,
	StandaloneWinnerCreate,
	StandaloneWinnerRead,
	StandaloneWinnerUpdate,
)
from backoffice.domain.actor import Actor, SYSTEM
from backoffice.domain.errors import StandaloneWinnerNotFoundError
from backoffice.domain.weeks import week_label
from backoffice.services.audit_log import instrument_service_class
from backoffice.services.clock import Clock, SystemClock


class StandaloneWinnerService:
	"""
	Winners entered by hand, outside any contest, ranked per ISO week.

	Within a week the active entries always hold positions ``1..N``; inserts,
	moves, (de)activations and deletions reorder the rest of the week in the
	same transaction. Creating and deleting entries adjusts the stats ledger.
	"""

	_instance: ClassVar[Optional["StandaloneWinnerService"]] = None

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

	def current_week(self) -> str:
		return week_label(self._clock.now())

	async def create_winners(
		self,
		items: Sequence[StandaloneWinnerCreate],
		*,
		week_of_year: Optional[str] = None,
		actor: Actor = SYSTEM,
	) -> list[StandaloneWinnerRead]:
		return await self._database.create_standalone_winners(
			list(items), week_of_year=week_of_year, now=self._clock.now(),
		)

	async def get_winner(self, winner_id: UUID) -> StandaloneWinnerRead:
		winner = await self._database.get_standalone_winner(winner_id)
		if winner is None:
			raise StandaloneWinnerNotFoundError(f"Standalone winner {winner_id} not found.")
		return winner

	async def update_winner(self, payload: StandaloneWinnerUpdate, *, actor: Actor = SYSTEM) -> StandaloneWinnerRead:
		return await self._database.update_standalone_winner(payload)

	async def delete_winner(self, winner_id: UUID, *, actor: Actor = SYSTEM) -> StandaloneWinnerRead:
		return await self._database.delete_standalone_winner(winner_id, now=self._clock.now())

	async def clear_week(self, week: str, *, actor: Actor = SYSTEM) -> int:
		return await self._database.clear_week_winners(week)

	async def list_winners(
		self, *, week: Optional[str] = None, active: Optional[bool] = None
	) -> list[StandaloneWinnerRead]:
		return await self._database.list_standalone_winners(week=week, active=active)

	async def current_week_winners(self) -> tuple[str, list[StandaloneWinnerRead]]:
		week = self.current_week()
		return week, await self._database.list_standalone_winners(week=week, active=True)

	async def recent_winners(self, limit: int = 10) -> list[StandaloneWinnerRead]:
		return await self._database.recent_standalone_winners(limit=limit)

	async def first_place_winner(self, viewer_id: Optional[UUID] = None) -> Optional[FirstPlaceWinner]:
		"""Latest first-place entry; the ETH address is only revealed to the linked user."""
		winner = await self._database.first_place_standalone_winner()
		if winner is None:
			return None
		is_owner = viewer_id is not None and winner.user_id is not None and winner.user_id == viewer_id
		return FirstPlaceWinner(
			id=winner.id,
			first_name=winner.first_name,
			last_name=winner.last_name,
			username=winner.username,
			prize=winner.prize,
			amount=winner.amount,
			draw_date=winner.draw_date,
			position=winner.position,
			eth_address=winner.eth_address if is_owner else None,
			is_current_user=is_owner,
		)


instrument_service_class(
	StandaloneWinnerService,
	prefix="services.standalone_winner",
	exclude={"get_winner", "list_winners", "current_week_winners", "recent_winners", "first_place_winner"},
)
