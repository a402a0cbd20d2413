# tests/conftest.py
import random
from datetime import datetime, timedelta

import pytest

from backoffice.config import Settings
from backoffice.db.database import DataBase
from backoffice.db.enums import UserRole
from backoffice.db.schemas.user import UserCreate
from backoffice.services.audit_log import AuditLogService
from backoffice.services.contest import ContestService
from backoffice.services.notifier import WinnerNotifier
from backoffice.services.scheduler import DrawScheduler
from backoffice.services.standalone_winner import StandaloneWinnerService
from backoffice.services.stats import StatsService
from backoffice.services.user import UserService
from backoffice.services.weekly_contest import WeeklyContestService

# Wednesday of ISO week 11; that week's contest runs 2025-03-10 00:00 .. 2025-03-16 19:00
NOW = datetime(2025, 3, 12, 10, 0)
WEEK_END = datetime(2025, 3, 16, 19, 0)

SINGLETONS = (
    Settings,
    DataBase,
    AuditLogService,
    UserService,
    ContestService,
    WeeklyContestService,
    StandaloneWinnerService,
    StatsService,
    WinnerNotifier,
    DrawScheduler,
)

ENV_DEFAULTS = (
    "CONTEST_MAX_WINNERS",
    "DRAW_INTERVAL_SECONDS",
    "WEEKLY_CONTEST_END_HOUR",
    "WEEKLY_DRAW_DELAY_MINUTES",
    "AUTO_CREATE_WEEKLY_CONTEST",
    "CONTEST_RETENTION_DAYS",
    "DEFAULT_LANGUAGE",
    "SMTP_HOST",
    "BOT_TOKEN",
)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeNotifier:
    """Records winner notifications instead of sending them."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    def notify_winner(self, user, contest_title, prize):
        if self.fail:
            raise RuntimeError("notification channel down")
        self.calls.append((user.id, contest_title, prize))


@pytest.fixture(autouse=True)
def fresh_singletons(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'backoffice.db'}")
    for name in ENV_DEFAULTS:
        monkeypatch.delenv(name, raising=False)
    for cls in SINGLETONS:
        monkeypatch.setattr(cls, "_instance", None)
    yield


@pytest.fixture
async def db():
    database = DataBase()
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def rng():
    return random.Random(20250312)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role: UserRole = UserRole.USER, **fields):
        counter["n"] += 1
        data = {
            "email": f"user{counter['n']}@example.com",
            "first_name": f"First{counter['n']}",
            "last_name": f"Last{counter['n']}",
            "role": role,
        }
        data.update(fields)
        return await db.create_user(UserCreate(**data))

    return _make_user


@pytest.fixture
def weekly(db, clock, notifier, rng):
    return WeeklyContestService(database=db, clock=clock, notifier=notifier, rng=rng)


@pytest.fixture
def contests(db, clock):
    return ContestService(database=db, clock=clock)


@pytest.fixture
def standalone(db, clock):
    return StandaloneWinnerService(database=db, clock=clock)


@pytest.fixture
def stats(db):
    return StatsService(database=db)
