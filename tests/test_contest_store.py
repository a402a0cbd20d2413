# tests/test_contest_store.py
import random
import uuid
from collections import Counter
from datetime import datetime, timedelta

import pytest

from backoffice.db.enums import ContestStatus
from backoffice.db.models.contest import Contest, ContestPrize
from backoffice.domain import contest_store
from backoffice.domain.actor import Admin
from backoffice.domain.errors import (
    AlreadyWinnerError,
    ContestNotFinishedError,
    ContestNotOpenError,
    InvalidDateRangeError,
    InvalidPositionError,
    NotAParticipantError,
    PositionTakenError,
    TooManyWinnersError,
    ValidationError,
)
from backoffice.domain.ranking import is_dense

START = datetime(2025, 3, 10)
END = datetime(2025, 3, 16, 19)


def make_contest(max_winners=3, max_participants=None, status=ContestStatus.ACTIVE):
    return Contest(
        title="Test",
        status=status,
        start_date=START,
        end_date=END,
        draw_date=END,
        auto_draw_enabled=True,
        draw_completed=False,
        max_winners=max_winners,
        max_participants=max_participants,
        current_participants=0,
        prizes=[ContestPrize(position=1, name="Gold", value=100.0)],
        participants=[],
        winners=[],
    )


def enrol(contest, n):
    users = [uuid.uuid4() for _ in range(n)]
    for user_id in users:
        contest_store.add_participant(contest, user_id, now=START + timedelta(days=1))
    return users


def mirrors_match(contest):
    by_user = {w.user_id: w for w in contest.winners}
    for p in contest.participants:
        w = by_user.get(p.user_id)
        if w is None:
            assert not p.is_winner and p.position is None
        else:
            assert p.is_winner and p.position == w.position and p.prize == w.prize
    return True


def test_add_participant_is_idempotent_and_counts():
    contest = make_contest()
    user_id = uuid.uuid4()
    assert contest_store.add_participant(contest, user_id, now=START) is not None
    assert contest_store.add_participant(contest, user_id, now=START) is None
    assert contest.current_participants == 1


def test_add_participant_respects_window_status_and_capacity():
    contest = make_contest(max_participants=1)
    with pytest.raises(ContestNotOpenError):
        contest_store.add_participant(contest, uuid.uuid4(), now=END + timedelta(seconds=1))
    contest_store.add_participant(contest, uuid.uuid4(), now=START)
    with pytest.raises(ContestNotOpenError):
        contest_store.add_participant(contest, uuid.uuid4(), now=START)

    draft = make_contest(status=ContestStatus.DRAFT)
    with pytest.raises(ContestNotOpenError):
        contest_store.add_participant(draft, uuid.uuid4(), now=START)


def test_select_winner_validations():
    contest = make_contest(max_winners=2)
    a, b = enrol(contest, 2)

    with pytest.raises(ContestNotFinishedError):
        contest_store.select_winner(contest, a, 1, now=END - timedelta(minutes=1))
    with pytest.raises(InvalidPositionError):
        contest_store.select_winner(contest, a, 3, now=END)
    with pytest.raises(NotAParticipantError):
        contest_store.select_winner(contest, uuid.uuid4(), 1, now=END)

    change = contest_store.select_winner(contest, a, 1, now=END, selected_by=Admin(uuid.uuid4()))
    assert change.winners_delta == 1
    assert change.gains_delta == 100.0
    assert contest.winners[0].prize == "Gold"

    with pytest.raises(PositionTakenError):
        contest_store.select_winner(contest, b, 1, now=END)
    with pytest.raises(AlreadyWinnerError):
        contest_store.select_winner(contest, a, 2, now=END)
    assert mirrors_match(contest)


def test_remove_winner_clears_mirror():
    contest = make_contest()
    (a,) = enrol(contest, 1)
    contest_store.select_winner(contest, a, 1, now=END)
    change = contest_store.remove_winner(contest, a)
    assert change.winners_delta == -1
    assert contest.winners == []
    assert mirrors_match(contest)
    assert not contest_store.remove_winner(contest, a)


def test_remove_participant_drops_winner_entry():
    contest = make_contest()
    a, b = enrol(contest, 2)
    contest_store.select_winner(contest, a, 1, now=END)
    change = contest_store.remove_participant(contest, a)
    assert change.winners_delta == -1
    assert contest.current_participants == 1
    assert [p.user_id for p in contest.participants] == [b]


def test_select_multiple_winners_replaces_list():
    contest = make_contest()
    a, b, c = enrol(contest, 3)
    contest_store.select_winner(contest, a, 1, now=END)

    change = contest_store.select_multiple_winners(contest, [c, b], now=END, prizes=["Custom"])
    assert [w.user_id for w in sorted(contest.winners, key=lambda w: w.position)] == [c, b]
    assert [w.prize for w in sorted(contest.winners, key=lambda w: w.position)] == ["Custom", "Prize 2"]
    assert change.winners_delta == 1
    assert is_dense(contest.winners)
    assert mirrors_match(contest)


def test_select_multiple_winners_validates_before_mutating():
    contest = make_contest(max_winners=2)
    a, b, c = enrol(contest, 3)
    contest_store.select_winner(contest, a, 1, now=END)

    with pytest.raises(TooManyWinnersError):
        contest_store.select_multiple_winners(contest, [a, b, c], now=END)
    with pytest.raises(ValidationError):
        contest_store.select_multiple_winners(contest, [b, b], now=END)
    with pytest.raises(ValidationError):
        contest_store.select_multiple_winners(contest, [], now=END)
    with pytest.raises(NotAParticipantError):
        contest_store.select_multiple_winners(contest, [b, uuid.uuid4()], now=END)

    assert [w.user_id for w in contest.winners] == [a]
    assert mirrors_match(contest)


def test_draw_winners_is_uniform():
    contest = make_contest(max_winners=1)
    users = enrol(contest, 3)
    rng = random.Random(42)
    counts = Counter(contest_store.draw_winners(contest, rng)[0] for _ in range(6000))
    assert set(counts) == set(users)
    for user_id in users:
        assert 1800 <= counts[user_id] <= 2200


def test_draw_winners_skips_existing_winners_and_caps_count():
    contest = make_contest(max_winners=3)
    a, b = enrol(contest, 2)
    contest_store.select_winner(contest, a, 1, now=END)
    assert contest_store.draw_winners(contest, random.Random(1)) == [b]
    assert contest_store.draw_winners(make_contest(), random.Random(1)) == []


def test_drawn_winners_fill_free_positions_around_existing_ones():
    contest = make_contest(max_winners=3)
    a, b, c, d = enrol(contest, 4)
    contest_store.select_winner(contest, a, 2, now=END)

    picked = contest_store.draw_winners(contest, random.Random(3))
    assert len(picked) == 2
    assert a not in picked

    change = contest_store.add_drawn_winners(contest, picked, now=END)
    assert change.removed == []
    assert [w.position for w in change.added] == [1, 3]
    assert change.added[0].prize == "Gold"
    assert contest_store.find_winner(contest, a).position == 2
    assert is_dense(contest.winners)
    assert contest_store.free_winner_slots(contest) == 0
    assert contest_store.draw_winners(contest, random.Random(3)) == []
    mirrors_match(contest)

    with pytest.raises(AlreadyWinnerError):
        contest_store.add_drawn_winners(contest, [a], now=END)


def test_is_draw_due():
    contest = make_contest()
    assert not contest_store.is_draw_due(contest, END - timedelta(seconds=1))
    assert contest_store.is_draw_due(contest, END)
    contest_store.mark_completed(contest, END)
    assert contest.status == ContestStatus.COMPLETED
    assert not contest_store.is_draw_due(contest, END)


def test_validate_schedule():
    contest_store.validate_schedule(START, END, END)
    with pytest.raises(InvalidDateRangeError):
        contest_store.validate_schedule(END, START, END)
    with pytest.raises(InvalidDateRangeError):
        contest_store.validate_schedule(START, END, END - timedelta(minutes=1))
