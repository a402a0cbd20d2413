# tests/test_audit_and_users.py
import uuid

import pytest

from backoffice.config import Settings
from backoffice.db.enums import ContestStatus
from backoffice.domain.actor import Admin
from backoffice.domain.errors import ContestNotFoundError, UserNotFoundError
from backoffice.services.audit_log import audit_logger
from backoffice.services.scheduler import DrawScheduler
from backoffice.services.user import UserService
from backoffice.services.weekly_contest import DRAW_AUDIT_ACTION

from conftest import WEEK_END


async def test_user_service(db, make_user):
    users = UserService(database=db)
    ann = await make_user(email="ann@example.com")

    assert (await users.get_user(ann.id)).email == "ann@example.com"
    assert await users.get_user(None) is None
    assert (await users.require_user(ann.id)).id == ann.id
    with pytest.raises(UserNotFoundError):
        await users.require_user(uuid.uuid4())


async def test_service_calls_are_audited(weekly, contests, make_user):
    admin = await make_user()
    contest = await weekly.create_weekly_contest(actor=Admin(admin.id))

    entries, total = await audit_logger.list_entries(action="services.weekly_contest.create_weekly_contest")
    assert total == 1
    entry = entries[0]
    assert entry.actor_id == admin.id
    assert entry.payload["actor"] == {"kind": "admin"}
    assert entry.payload["data"]["result"]["id"] == str(contest.id)
    assert entry.payload["data"]["result"]["status"] == ContestStatus.ACTIVE.value

    with pytest.raises(ContestNotFoundError):
        await contests.finalize_contest(uuid.uuid4())
    failures, _ = await audit_logger.list_entries(action="services.contest.finalize_contest.error")
    assert len(failures) == 1
    assert failures[0].actor_id is None
    assert "ContestNotFoundError" in failures[0].payload["data"]["error"]


async def test_idle_scheduler_passes_leave_no_audit_trail(weekly, make_user, clock):
    await weekly.create_weekly_contest()
    await weekly.participate((await make_user()).id)
    scheduler = DrawScheduler(weekly=weekly, interval_seconds=60, clock=clock, settings=Settings())

    _, before = await audit_logger.list_entries()
    for _ in range(3):
        assert await scheduler.run_pass() == []
    _, after = await audit_logger.list_entries()
    assert after == before

    clock.current = WEEK_END
    (outcome,) = await scheduler.run_pass()
    entries, total = await audit_logger.list_entries(action=DRAW_AUDIT_ACTION)
    assert total == 1
    assert entries[0].actor_id is None
    assert entries[0].payload["actor"] == {"kind": "system"}
    assert entries[0].payload["data"]["contest_id"] == str(outcome.contest.id)
    assert [w["position"] for w in entries[0].payload["data"]["winners"]] == [1]
    _, final = await audit_logger.list_entries()
    assert final == after + 1
