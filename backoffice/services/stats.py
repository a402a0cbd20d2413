# services/stats.py
from typing import ClassVar, Optional, Self

from backoffice.db.database import DataBase
from backoffice.db.schemas.contest_stats import (
	ContestStatsRead,
	ContestStatsUpdate,
	DisplayStats,
	MonthlyStatsRead,
	RecentWinner,
	StatsDelta,
)
from backoffice.domain.actor import Actor, Admin, SYSTEM
from backoffice.domain.errors import NegativeStatsError
from backoffice.i18n import Localizer
from backoffice.services.audit_log import instrument_service_class


def _updated_by(actor: Actor) -> str:
	if isinstance(actor, Admin):
		return str(actor.user_id)
	return "system"


class StatsService:
	"""
	Cumulative contest totals shown on the public winners page.

	Winner changes made by the contest and standalone flows adjust the ledger
	inside their own transactions; this service covers reads, manual admin
	overrides and the monthly breakdown.
	"""

	_instance: ClassVar[Optional["StatsService"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self, database: Optional[DataBase] = None) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = database or DataBase()
		self._initialized = True

	async def get_global_stats(self) -> ContestStatsRead:
		return await self._database.get_global_stats()

	async def set_global_stats(
		self,
		total_gains: float,
		total_places_sold: int,
		total_winners: int,
		*,
		actor: Actor = SYSTEM,
	) -> ContestStatsRead:
		if min(total_gains, total_places_sold, total_winners) < 0:
			raise NegativeStatsError("Stats values must be non-negative.")
		payload = ContestStatsUpdate(
			total_gains=total_gains,
			total_places_sold=total_places_sold,
			total_winners=total_winners,
		)
		return await self._database.set_global_stats(payload, updated_by=_updated_by(actor))

	async def adjust(self, delta: StatsDelta, *, actor: Actor = SYSTEM) -> ContestStatsRead:
		return await self._database.adjust_stats(delta, updated_by=_updated_by(actor))

	async def add_monthly_stats(
		self,
		month: str,
		*,
		gains: float = 0,
		places_sold: int = 0,
		winners: int = 0,
		contests: int = 0,
		actor: Actor = SYSTEM,
	) -> MonthlyStatsRead:
		if min(gains, places_sold, winners, contests) < 0:
			raise NegativeStatsError("Monthly amounts must be non-negative.")
		payload = MonthlyStatsRead(month=month, gains=gains, places_sold=places_sold, winners=winners, contests=contests)
		return await self._database.add_monthly_stats(payload)

	async def list_monthly_stats(self, limit: int = 12) -> list[MonthlyStatsRead]:
		return await self._database.list_monthly_stats(limit=limit)

	async def get_display_stats(self, limit: int = 10) -> DisplayStats:
		"""Totals plus the most recent winners, standalone entries first."""
		stats = await self._database.get_global_stats()

		lz = Localizer()
		recent: list[RecentWinner] = [
			RecentWinner(
				contest_title=lz.get("contests.recent.title", date=w.draw_date.strftime("%d/%m/%Y")),
				draw_date=w.draw_date,
				first_name=w.first_name,
				last_name=w.last_name,
				prize=w.prize,
				amount=w.amount,
			)
			for w in await self._database.recent_standalone_winners(limit=limit)
		]
		if len(recent) < limit:
			recent.extend(await self._database.recent_contest_winners(limit=limit - len(recent)))

		return DisplayStats(
			total_gains=stats.total_gains,
			total_places_sold=stats.total_places_sold,
			total_winners=stats.total_winners,
			recent_winners=recent[:limit],
		)


instrument_service_class(
	StatsService,
	prefix="services.stats",
	exclude={"get_global_stats", "get_display_stats", "list_monthly_stats"},
)
