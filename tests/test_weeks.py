# tests/test_weeks.py
from datetime import date, datetime

import pytest

from backoffice.domain.weeks import (
    WeekKey,
    current_week_key,
    month_key,
    parse_week_label,
    week_label,
    weekly_window,
)


def test_iso_week_at_year_boundary():
    # 2024-12-30 is the Monday of ISO week 1 of 2025
    assert current_week_key(date(2024, 12, 30)) == WeekKey(week_number=1, year=2025)
    assert week_label(datetime(2021, 1, 3, 12, 0)) == "2020-W53"


def test_parse_week_label_round_trips_and_normalises():
    assert parse_week_label("2025-w07") == WeekKey(7, 2025)
    assert parse_week_label(" 2025-W11 ").label == "2025-W11"


@pytest.mark.parametrize("label", ["2025-11", "W11-2025", "", "2025-Wxx", "2025-W53"])
def test_parse_week_label_rejects_malformed(label):
    with pytest.raises(ValueError):
        parse_week_label(label)


def test_weekly_window():
    window = weekly_window(WeekKey(11, 2025), end_hour=19, draw_delay_minutes=30)
    assert window.start == datetime(2025, 3, 10, 0, 0)
    assert window.end == datetime(2025, 3, 16, 19, 0)
    assert window.draw == datetime(2025, 3, 16, 19, 30)


def test_month_key():
    assert month_key(datetime(2025, 3, 1)) == "2025-03"
