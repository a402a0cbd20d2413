# tests/test_standalone_winners.py
from datetime import datetime

import pytest

from backoffice.db.schemas.standalone_winner import StandaloneWinnerCreate, StandaloneWinnerUpdate
from backoffice.domain.errors import StandaloneWinnerNotFoundError, ValidationError

WEEK = "2025-W11"


def winner(first_name, position=None, amount=100.0, **fields):
    return StandaloneWinnerCreate(
        first_name=first_name,
        last_name="Doe",
        prize="Voucher",
        amount=amount,
        position=position,
        **fields,
    )


async def ranking(standalone, week=WEEK):
    rows = await standalone.list_winners(week=week, active=True)
    return [(w.first_name, w.position) for w in rows]


async def test_create_defaults_to_current_week_and_appends(standalone):
    created = await standalone.create_winners([winner("Ann"), winner("Bob")])
    assert {w.week_of_year for w in created} == {WEEK}
    assert await ranking(standalone) == [("Ann", 1), ("Bob", 2)]


async def test_insert_at_first_place_shifts_others(standalone):
    await standalone.create_winners([winner("Ann"), winner("Bob")], week_of_year=WEEK)
    await standalone.create_winners([winner("Cid", position=1)], week_of_year=WEEK)
    assert await ranking(standalone) == [("Cid", 1), ("Ann", 2), ("Bob", 3)]


async def test_invalid_week_label(standalone):
    with pytest.raises(ValidationError):
        await standalone.create_winners([winner("Ann")], week_of_year="week eleven")


async def test_move_and_delete_keep_positions_dense(standalone, stats):
    ann, bob, cid = await standalone.create_winners([winner("Ann"), winner("Bob"), winner("Cid")])

    await standalone.update_winner(StandaloneWinnerUpdate(id=cid.id, position=1))
    assert await ranking(standalone) == [("Cid", 1), ("Ann", 2), ("Bob", 3)]

    await standalone.update_winner(StandaloneWinnerUpdate(id=cid.id, position=3))
    assert await ranking(standalone) == [("Ann", 1), ("Bob", 2), ("Cid", 3)]

    await standalone.delete_winner(ann.id)
    assert await ranking(standalone) == [("Bob", 1), ("Cid", 2)]

    totals = await stats.get_global_stats()
    assert (totals.total_winners, totals.total_gains) == (2, 200)

    with pytest.raises(StandaloneWinnerNotFoundError):
        await standalone.get_winner(ann.id)


async def test_deactivate_and_reactivate(standalone):
    ann, bob, cid = await standalone.create_winners([winner("Ann"), winner("Bob"), winner("Cid")])

    hidden = await standalone.update_winner(StandaloneWinnerUpdate(id=ann.id, is_active=False))
    assert not hidden.is_active
    assert await ranking(standalone) == [("Bob", 1), ("Cid", 2)]

    await standalone.update_winner(StandaloneWinnerUpdate(id=ann.id, is_active=True))
    assert await ranking(standalone) == [("Ann", 1), ("Bob", 2), ("Cid", 3)]


async def test_moving_draw_date_to_another_week(standalone):
    ann, bob = await standalone.create_winners([winner("Ann"), winner("Bob")])
    await standalone.create_winners([winner("Dan")], week_of_year="2025-W12")

    moved = await standalone.update_winner(
        StandaloneWinnerUpdate(id=ann.id, draw_date=datetime(2025, 3, 18, 12, 0))
    )
    assert moved.week_of_year == "2025-W12"
    assert await ranking(standalone) == [("Bob", 1)]
    assert await ranking(standalone, "2025-W12") == [("Dan", 1), ("Ann", 2)]


async def test_clear_week_reverts_stats(standalone, stats):
    await standalone.create_winners([winner("Ann", amount=50), winner("Bob", amount=25)])
    await standalone.create_winners([winner("Dan")], week_of_year="2025-W12")

    assert await standalone.clear_week(WEEK) == 2
    assert await ranking(standalone) == []

    totals = await stats.get_global_stats()
    assert (totals.total_winners, totals.total_gains) == (1, 100)


async def test_first_place_reveals_address_to_owner_only(standalone, make_user):
    owner = await make_user()
    await standalone.create_winners(
        [winner("Ann", eth_address="0xabc", user_id=owner.id), winner("Bob")]
    )

    public = await standalone.first_place_winner()
    assert public.first_name == "Ann"
    assert public.eth_address is None
    assert not public.is_current_user

    stranger = await standalone.first_place_winner((await make_user()).id)
    assert stranger.eth_address is None

    own = await standalone.first_place_winner(owner.id)
    assert own.eth_address == "0xabc"
    assert own.is_current_user


async def test_current_week_and_recent(standalone):
    await standalone.create_winners([winner("Ann"), winner("Bob")])
    week, rows = await standalone.current_week_winners()
    assert week == WEEK
    assert [w.first_name for w in rows] == ["Ann", "Bob"]
    recent = await standalone.recent_winners(limit=1)
    assert len(recent) == 1
