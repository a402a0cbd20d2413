# services/scheduler.py
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Optional, Self

from backoffice.config import Settings
from backoffice.db.schemas.contest import DrawOutcome
from backoffice.services.clock import Clock, SystemClock
from backoffice.services.weekly_contest import WeeklyContestService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SchedulerStatus:
	is_running: bool
	last_check: Optional[datetime]
	passes: int
	failed_passes: int
	interval_seconds: float


class DrawScheduler:
	"""
	Polls for due contests on a fixed interval.

	``start()`` runs one pass immediately and then one every
	``interval_seconds`` until ``stop()``. A pass that raises is logged and
	counted; the loop keeps going. ``stop()`` lets an in-flight pass finish.
	"""

	_instance: ClassVar[Optional["DrawScheduler"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(
		self,
		weekly: Optional[WeeklyContestService] = None,
		interval_seconds: Optional[float] = None,
		clock: Optional[Clock] = None,
		settings: Optional[Settings] = None,
	) -> None:
		if getattr(self, "_initialized", False):
			return

		settings = settings or Settings()
		self._weekly = weekly or WeeklyContestService()
		self._interval = float(interval_seconds if interval_seconds is not None else settings.draw_interval_seconds)
		self._auto_create = settings.auto_create_weekly_contest
		self._clock: Clock = clock or SystemClock()

		self._task: Optional[asyncio.Task] = None
		self._stop_event: Optional[asyncio.Event] = None
		self._last_check: Optional[datetime] = None
		self._passes = 0
		self._failed_passes = 0
		self._initialized = True

	@property
	def is_running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> bool:
		"""Start polling. Returns False (and does nothing) when already running."""
		if self.is_running:
			logger.info("Draw scheduler is already running")
			return False

		self._stop_event = asyncio.Event()
		self._task = asyncio.get_running_loop().create_task(self._loop(self._stop_event), name="draw-scheduler")
		logger.info("Draw scheduler started, interval %.0fs", self._interval)
		return True

	async def stop(self) -> None:
		if self._task is None:
			return
		if self._stop_event is not None:
			self._stop_event.set()
		task, self._task = self._task, None
		await task
		logger.info("Draw scheduler stopped")

	def status(self) -> SchedulerStatus:
		return SchedulerStatus(
			is_running=self.is_running,
			last_check=self._last_check,
			passes=self._passes,
			failed_passes=self._failed_passes,
			interval_seconds=self._interval,
		)

	async def run_pass(self) -> list[DrawOutcome]:
		"""One polling pass: make sure this week's contest exists, then draw what is due."""
		if self._auto_create:
			try:
				await self._weekly.ensure_current_weekly_contest()
			except Exception:
				logger.exception("Could not ensure the current weekly contest")
		return await self._weekly.perform_auto_draws(self._clock.now())

	async def _loop(self, stop_event: asyncio.Event) -> None:
		while True:
			await self._guarded_pass()
			try:
				await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
			except asyncio.TimeoutError:
				continue
			return

	async def _guarded_pass(self) -> None:
		try:
			await self.run_pass()
		except Exception:
			self._failed_passes += 1
			logger.exception("Draw scheduler pass failed")
		finally:
			self._passes += 1
			self._last_check = self._clock.now()
