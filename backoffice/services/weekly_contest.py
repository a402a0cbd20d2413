"""Weekly contest lifecycle: creation on the weekly cadence, enrolment and the automatic draw."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import ClassVar, Optional, Self
from uuid import UUID

from backoffice.config import Settings
from backoffice.db.database import DataBase
from backoffice.db.enums import ContestStatus, ContestType, PrizeType
from backoffice.db.schemas.contest import (
	ContestCreate,
	ContestParticipantRead,
	ContestPrizeCreate,
	ContestRead,
	DrawOutcome,
	ParticipationStatus,
	WeeklyContestStats,
)
from backoffice.domain.actor import Actor, SYSTEM, actor_user_id
from backoffice.domain.errors import ContestNotFoundError, DuplicateWeeklyContestError
from backoffice.domain.weeks import WeekKey, current_week_key, monday_of, weekly_window
from backoffice.i18n import Localizer
from backoffice.services.audit_log import audit_logger, instrument_service_class
from backoffice.services.clock import Clock, SystemClock
from backoffice.services.notifier import WinnerNotifier

logger = logging.getLogger(__name__)

DEFAULT_PRIZE_POSITIONS = 3
DRAW_AUDIT_ACTION = "services.weekly_contest.draw"


class WeeklyContestService:
	"""
	Singleton owning the weekly contest.

	Dependencies default to the process-wide singletons; tests pass their own
	database, clock, notifier and random source.
	"""

	_instance: ClassVar[Optional["WeeklyContestService"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(
		self,
		database: Optional[DataBase] = None,
		clock: Optional[Clock] = None,
		notifier: Optional[WinnerNotifier] = None,
		rng: Optional[random.Random] = None,
		settings: Optional[Settings] = None,
	) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database: DataBase = database or DataBase()
		self._clock: Clock = clock or SystemClock()
		self._notifier: WinnerNotifier = notifier or WinnerNotifier()
		self._rng: random.Random = rng or random.SystemRandom()
		self._settings: Settings = settings or Settings()
		self._initialized = True

	# --------------------
	# Lookup & creation
	# --------------------
	def current_week_key(self, now: Optional[datetime] = None) -> WeekKey:
		return current_week_key(now or self._clock.now())

	async def find_current_weekly_contest(self) -> Optional[ContestRead]:
		key = self.current_week_key()
		return await self._database.get_weekly_contest(key.week_number, key.year)

	async def create_weekly_contest(self, *, actor: Actor = SYSTEM, key: Optional[WeekKey] = None) -> ContestRead:
		"""
		Create the contest of ``key`` (default: the current week).

		Raises:
			DuplicateWeeklyContestError: that week already has a contest.
		"""
		key = key or self.current_week_key()
		contest = await self._database.create_contest(self._weekly_payload(key), created_by=actor_user_id(actor))
		logger.info("Weekly contest %s created for %s", contest.id, key.label)
		return contest

	async def ensure_current_weekly_contest(self) -> Optional[ContestRead]:
		"""Create this week's contest when auto-creation is on and it is missing. Returns the new contest, if any."""
		if not self._settings.auto_create_weekly_contest:
			return None
		key = self.current_week_key()
		if await self._database.get_weekly_contest(key.week_number, key.year) is not None:
			return None
		try:
			return await self.create_weekly_contest(key=key)
		except DuplicateWeeklyContestError:
			logger.info("Weekly contest for %s was created concurrently", key.label)
			return None

	async def schedule_next_weekly_contest(self, *, actor: Actor = SYSTEM) -> Optional[ContestRead]:
		"""Create next week's contest ahead of time. ``None`` when it already exists."""
		next_monday = monday_of(self.current_week_key()) + timedelta(days=7)
		key = current_week_key(next_monday)
		if await self._database.get_weekly_contest(key.week_number, key.year) is not None:
			return None
		try:
			return await self.create_weekly_contest(actor=actor, key=key)
		except DuplicateWeeklyContestError:
			return None

	def _weekly_payload(self, key: WeekKey) -> ContestCreate:
		window = weekly_window(
			key,
			end_hour=self._settings.weekly_contest_end_hour,
			draw_delay_minutes=self._settings.weekly_draw_delay_minutes,
		)
		max_winners = self._settings.contest_max_winners
		lz = Localizer()
		prizes = [
			ContestPrizeCreate(
				position=pos,
				name=lz.get(f"contests.weekly.prize.{pos}"),
				type=PrizeType.FORMATION if pos == 1 else PrizeType.OTHER,
			)
			for pos in range(1, min(max_winners, DEFAULT_PRIZE_POSITIONS) + 1)
		]
		return ContestCreate(
			title=lz.get("contests.weekly.title", week_number=key.week_number, year=key.year),
			description=lz.get("contests.weekly.description"),
			type=ContestType.WEEKLY,
			status=ContestStatus.ACTIVE,
			is_weekly_contest=True,
			week_number=key.week_number,
			year=key.year,
			start_date=window.start,
			end_date=window.end,
			draw_date=window.draw,
			auto_draw_enabled=True,
			max_winners=max_winners,
			rules=lz.get("contests.weekly.rules"),
			prizes=prizes,
		)

	# --------------------
	# Enrolment
	# --------------------
	async def participate(self, user_id: UUID, *, actor: Actor = SYSTEM) -> tuple[ContestParticipantRead, bool]:
		contest = await self.find_current_weekly_contest()
		if contest is None:
			raise ContestNotFoundError("No weekly contest is running this week.")
		return await self._database.add_participant(contest.id, user_id, now=self._clock.now())

	async def check_participation(self, user_id: UUID) -> ParticipationStatus:
		contest = await self.find_current_weekly_contest()
		if contest is None:
			return ParticipationStatus(is_participating=False, reason="no_active_contest")
		joined = any(p.user_id == user_id for p in contest.participants)
		return ParticipationStatus(
			is_participating=joined,
			contest_id=contest.id,
			contest_title=contest.title,
		)

	# --------------------
	# Draw
	# --------------------
	async def perform_auto_draws(self, now: Optional[datetime] = None) -> list[DrawOutcome]:
		"""
		Draw every contest that is due at ``now``.

		A failing contest is logged and skipped so the others still run.
		Winners are notified after their draw is committed.
		"""
		now = now or self._clock.now()
		due = await self._database.list_due_for_draw(now)
		if due:
			logger.info("%d contest(s) due for drawing", len(due))

		outcomes: list[DrawOutcome] = []
		for contest_id in due:
			try:
				outcome = await self._database.perform_contest_draw(contest_id, now=now, rng=self._rng)
			except Exception:
				logger.exception("Automatic draw of contest %s failed", contest_id)
				continue
			if outcome is None:
				continue
			logger.info(
				"Contest %s drawn: %d winner(s) among %d participant(s)",
				outcome.contest.id,
				len(outcome.winners),
				outcome.contest.current_participants,
			)
			outcomes.append(outcome)
			await self._audit_draw(outcome)
			await self._notify_winners(outcome)
		return outcomes

	async def _audit_draw(self, outcome: DrawOutcome) -> None:
		payload = {
			"contest_id": outcome.contest.id,
			"participants": outcome.contest.current_participants,
			"winners": [
				{"user_id": w.user_id, "position": w.position, "prize": w.prize}
				for w in outcome.winners
			],
		}
		try:
			await audit_logger.log_actor_action(action=DRAW_AUDIT_ACTION, actor=SYSTEM, payload=payload)
		except Exception:
			logger.exception("Could not audit the draw of contest %s", outcome.contest.id)

	async def _notify_winners(self, outcome: DrawOutcome) -> None:
		if not outcome.winners:
			return
		try:
			users = await self._database.get_users_by_ids(w.user_id for w in outcome.winners)
		except Exception:
			logger.exception("Could not load winners of contest %s for notification", outcome.contest.id)
			return

		for winner in outcome.winners:
			user = users.get(winner.user_id)
			if user is None or not user.is_active:
				logger.info("Winner %s of contest %s is not reachable, skipping notification", winner.user_id, outcome.contest.id)
				continue
			try:
				self._notifier.notify_winner(user, outcome.contest.title, winner.prize)
			except Exception:
				logger.exception("Could not schedule notification for winner %s", winner.user_id)

	# --------------------
	# Reporting & upkeep
	# --------------------
	async def get_weekly_contest_stats(self, year: Optional[int] = None) -> WeeklyContestStats:
		return await self._database.weekly_contest_stats(year or self.current_week_key().year)

	async def get_weekly_contest_history(self, limit: int = 10) -> list[ContestRead]:
		return await self._database.list_weekly_contests(limit=limit)

	async def cleanup_old_contests(self) -> int:
		cutoff = self._clock.now() - timedelta(days=self._settings.contest_retention_days)
		removed = await self._database.delete_completed_weekly_contests(cutoff)
		if removed:
			logger.info("%d old weekly contest(s) removed", removed)
		return removed


instrument_service_class(
	WeeklyContestService,
	prefix="services.weekly_contest",
	exclude={
		"find_current_weekly_contest",
		"ensure_current_weekly_contest",
		"perform_auto_draws",
		"check_participation",
		"get_weekly_contest_stats",
		"get_weekly_contest_history",
	},
)
