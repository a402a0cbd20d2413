# tests/test_scheduler.py
import asyncio

from backoffice.config import Settings
from backoffice.services.scheduler import DrawScheduler

from conftest import NOW, FrozenClock


class FlakyWeekly:
    """Fails the first draw pass, then succeeds."""

    def __init__(self, fail_first=1):
        self.fail_first = fail_first
        self.ensure_calls = 0
        self.draw_calls = 0

    async def ensure_current_weekly_contest(self):
        self.ensure_calls += 1
        raise RuntimeError("database unavailable")

    async def perform_auto_draws(self, now=None):
        self.draw_calls += 1
        if self.draw_calls <= self.fail_first:
            raise RuntimeError("draw crashed")
        return []


async def wait_for_passes(scheduler, count, timeout=2.0):
    async def _wait():
        while scheduler.status().passes < count:
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_wait(), timeout)


async def test_start_is_idempotent_and_stop_ends_loop():
    weekly = FlakyWeekly(fail_first=0)
    scheduler = DrawScheduler(weekly=weekly, interval_seconds=0.01, clock=FrozenClock(NOW), settings=Settings())

    assert scheduler.start() is True
    assert scheduler.start() is False
    await wait_for_passes(scheduler, 2)

    await scheduler.stop()
    status = scheduler.status()
    assert not status.is_running
    assert status.last_check == NOW
    assert status.interval_seconds == 0.01
    await scheduler.stop()


async def test_failed_pass_does_not_stop_polling():
    weekly = FlakyWeekly(fail_first=1)
    scheduler = DrawScheduler(weekly=weekly, interval_seconds=0.01, clock=FrozenClock(NOW), settings=Settings())

    scheduler.start()
    await wait_for_passes(scheduler, 3)
    await scheduler.stop()

    status = scheduler.status()
    assert status.failed_passes == 1
    assert status.passes >= 3
    # ensure failures are logged and never stop the draw step
    assert weekly.draw_calls >= 3
    assert weekly.ensure_calls == weekly.draw_calls


async def test_run_pass_skips_creation_when_disabled(monkeypatch):
    monkeypatch.setenv("AUTO_CREATE_WEEKLY_CONTEST", "false")
    weekly = FlakyWeekly(fail_first=0)
    scheduler = DrawScheduler(weekly=weekly, interval_seconds=60, clock=FrozenClock(NOW), settings=Settings())

    assert await scheduler.run_pass() == []
    assert weekly.ensure_calls == 0
    assert weekly.draw_calls == 1
    assert not scheduler.status().is_running
