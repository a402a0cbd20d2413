# tests/test_stats.py
from datetime import datetime

import pytest

from backoffice.db.schemas.contest_stats import StatsDelta
from backoffice.db.schemas.standalone_winner import StandaloneWinnerCreate
from backoffice.domain.actor import Admin
from backoffice.domain.errors import NegativeStatsError

from conftest import WEEK_END


async def test_first_read_creates_zero_row(stats):
    totals = await stats.get_global_stats()
    assert (totals.total_gains, totals.total_places_sold, totals.total_winners, totals.total_contests) == (0, 0, 0, 0)
    assert totals.updated_by == "system"


async def test_set_global_stats(stats, make_user):
    admin = await make_user()
    totals = await stats.set_global_stats(1000.5, 40, 12, actor=Admin(admin.id))
    assert (totals.total_gains, totals.total_places_sold, totals.total_winners) == (1000.5, 40, 12)
    assert totals.updated_by == str(admin.id)

    with pytest.raises(NegativeStatsError):
        await stats.set_global_stats(-1, 0, 0)


async def test_counters_never_go_negative(stats):
    await stats.set_global_stats(10, 1, 1)
    totals = await stats.adjust(StatsDelta(gains=-25, winners=-3, places_sold=-2, month="2025-03"))
    assert (totals.total_gains, totals.total_places_sold, totals.total_winners) == (0, 0, 0)

    (month,) = await stats.list_monthly_stats()
    assert (month.month, month.gains, month.winners) == ("2025-03", 0, 0)


async def test_monthly_stats_accumulate(stats):
    await stats.add_monthly_stats("2025-02", gains=10, winners=1)
    month = await stats.add_monthly_stats("2025-02", gains=5, places_sold=3, contests=1)
    assert (month.gains, month.places_sold, month.winners, month.contests) == (15, 3, 1, 1)

    await stats.add_monthly_stats("2025-03", winners=2)
    assert [m.month for m in await stats.list_monthly_stats()] == ["2025-03", "2025-02"]

    with pytest.raises(NegativeStatsError):
        await stats.add_monthly_stats("2025-03", winners=-1)


async def test_display_stats_lists_standalone_winners_first(stats, standalone, weekly, make_user, clock):
    await weekly.create_weekly_contest()
    await weekly.participate((await make_user()).id)
    clock.current = WEEK_END
    await weekly.perform_auto_draws()

    await standalone.create_winners(
        [StandaloneWinnerCreate(first_name="Ann", last_name="Doe", prize="Voucher", amount=40,
                                draw_date=datetime(2025, 3, 14, 18, 0))]
    )

    display = await stats.get_display_stats(limit=5)
    assert display.total_winners == 2
    assert display.total_gains == 40
    assert [w.first_name for w in display.recent_winners] == ["Ann", "First1"]
    assert display.recent_winners[0].contest_title == "Draw of 14/03/2025"
    assert display.recent_winners[1].contest_title == "Weekly contest - week 11 2025"
