# domain/contest_store.py
"""Invariant-enforcing operations on the Contest aggregate.

The aggregate is a :class:`~backoffice.db.models.contest.Contest` together with
its ``participants`` and ``winners`` collections. Every mutation of either
collection goes through a function in this module so the mirrored winner
fields on participants (``is_winner``, ``position``, ``prize``) and
``current_participants`` can never drift from the lists they describe.

Functions only touch in-memory objects and never open a session: the caller
loads the aggregate, applies one operation and flushes it in the same
transaction. Each winner mutation returns a :class:`WinnerChange` so the
caller can adjust the stats ledger in that transaction as well.
"""
from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from backoffice.db.enums import ContestStatus
from backoffice.db.models.contest import Contest, ContestParticipant, ContestWinner
from backoffice.domain.actor import Actor, SYSTEM, actor_user_id
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
from backoffice.domain.ranking import fill_free_position, replace_ranking

AUTO_DRAW_NOTE = "Automatic draw"


@dataclass(slots=True)
class WinnerChange:
	"""Winners added to and removed from one contest by a single operation."""
	added: list[ContestWinner] = field(default_factory=list)
	removed: list[ContestWinner] = field(default_factory=list)

	@property
	def winners_delta(self) -> int:
		return len(self.added) - len(self.removed)

	@property
	def gains_delta(self) -> float:
		return sum(float(w.amount or 0) for w in self.added) - sum(float(w.amount or 0) for w in self.removed)

	def __bool__(self) -> bool:
		return bool(self.added or self.removed)


# -----------------
# Read-only checks
# -----------------
def validate_schedule(start: datetime, end: datetime, draw: datetime) -> None:
	if end < start:
		raise InvalidDateRangeError("Contest end date must not precede its start date.")
	if draw < end:
		raise InvalidDateRangeError("Contest draw date must not precede its end date.")


def find_participant(contest: Contest, user_id: uuid.UUID) -> Optional[ContestParticipant]:
	return next((p for p in contest.participants if p.user_id == user_id), None)


def find_winner(contest: Contest, user_id: uuid.UUID) -> Optional[ContestWinner]:
	return next((w for w in contest.winners if w.user_id == user_id), None)


def is_open_for_registration(contest: Contest, now: datetime) -> bool:
	if contest.status != ContestStatus.ACTIVE:
		return False
	if not (contest.start_date <= now <= contest.end_date):
		return False
	return contest.max_participants is None or len(contest.participants) < contest.max_participants


def is_draw_due(contest: Contest, now: datetime) -> bool:
	return (
		contest.status == ContestStatus.ACTIVE
		and bool(contest.auto_draw_enabled)
		and not contest.draw_completed
		and contest.draw_date <= now
	)


def prize_for_position(contest: Contest, position: int) -> tuple[str, float]:
	"""Configured prize name and value for ``position``, with a generic fallback."""
	prize = next((p for p in contest.prizes if p.position == position), None)
	if prize is None:
		return f"Prize {position}", 0.0
	return prize.name, float(prize.value or 0)


def max_winners_of(contest: Contest) -> int:
	return int(contest.max_winners or 1)


# -------------
# Participants
# -------------
def sync_participant_count(contest: Contest) -> int:
	contest.current_participants = len(contest.participants)
	return contest.current_participants


def add_participant(contest: Contest, user_id: uuid.UUID, *, now: datetime) -> Optional[ContestParticipant]:
	"""
	Enrol ``user_id``. Returns the new entry, or ``None`` when already enrolled.

	Raises:
		ContestNotOpenError: contest not active, ``now`` outside the contest
			window, or capacity reached.
	"""
	if find_participant(contest, user_id) is not None:
		return None

	if contest.status != ContestStatus.ACTIVE:
		raise ContestNotOpenError(f"Contest is {contest.status}, registrations are closed.")
	if not (contest.start_date <= now <= contest.end_date):
		raise ContestNotOpenError("Contest is outside its registration window.")
	if contest.max_participants is not None and len(contest.participants) >= contest.max_participants:
		raise ContestNotOpenError("Contest has reached its maximum number of participants.")

	participant = ContestParticipant(
		user_id=user_id,
		joined_at=now,
		is_winner=False,
		position=None,
		prize=None,
		notes=None,
	)
	contest.participants.append(participant)
	sync_participant_count(contest)
	return participant


def remove_participant(contest: Contest, user_id: uuid.UUID) -> WinnerChange:
	"""Drop ``user_id`` (and its winner entry, if any). Absent users are ignored."""
	change = remove_winner(contest, user_id)
	participant = find_participant(contest, user_id)
	if participant is not None:
		contest.participants.remove(participant)
	sync_participant_count(contest)
	return change


# --------
# Winners
# --------
def _mirror_winner(participant: ContestParticipant, winner: ContestWinner) -> None:
	participant.is_winner = True
	participant.position = winner.position
	participant.prize = winner.prize
	participant.notes = winner.notes


def _clear_mirror(participant: ContestParticipant) -> None:
	participant.is_winner = False
	participant.position = None
	participant.prize = None
	participant.notes = None


def select_winner(
	contest: Contest,
	user_id: uuid.UUID,
	position: int,
	prize: Optional[str] = None,
	*,
	selected_by: Actor = SYSTEM,
	now: datetime,
	notes: Optional[str] = None,
	amount: Optional[float] = None,
) -> WinnerChange:
	"""
	Award ``position`` to an enrolled participant.

	Raises:
		InvalidPositionError: ``position`` outside ``1..max_winners``.
		NotAParticipantError: ``user_id`` is not enrolled.
		PositionTakenError: another winner already holds ``position``.
		AlreadyWinnerError: the participant already holds a position.
		ContestNotFinishedError: ``now`` is before the contest end.
	"""
	limit = max_winners_of(contest)
	if not isinstance(position, int) or not (1 <= position <= limit):
		raise InvalidPositionError(position, limit)

	participant = find_participant(contest, user_id)
	if participant is None:
		raise NotAParticipantError(user_id)
	if any(w.position == position for w in contest.winners):
		raise PositionTakenError(position)
	if find_winner(contest, user_id) is not None:
		raise AlreadyWinnerError(f"User {user_id} already holds a winning position.")
	if now < contest.end_date:
		raise ContestNotFinishedError("Contest has not finished yet.")

	default_name, default_value = prize_for_position(contest, position)
	winner = ContestWinner(
		user_id=user_id,
		position=position,
		prize=prize or default_name,
		amount=default_value if amount is None else float(amount),
		selected_at=now,
		selected_by_id=actor_user_id(selected_by),
		notes=notes,
	)
	contest.winners.append(winner)
	_mirror_winner(participant, winner)
	return WinnerChange(added=[winner])


def remove_winner(contest: Contest, user_id: uuid.UUID) -> WinnerChange:
	"""Withdraw the winner entry of ``user_id``. Absent winners are ignored."""
	winner = find_winner(contest, user_id)
	if winner is None:
		return WinnerChange()
	contest.winners.remove(winner)
	participant = find_participant(contest, user_id)
	if participant is not None:
		_clear_mirror(participant)
	return WinnerChange(removed=[winner])


def select_multiple_winners(
	contest: Contest,
	user_ids: Sequence[uuid.UUID],
	*,
	selected_by: Actor = SYSTEM,
	now: datetime,
	prizes: Optional[Sequence[Optional[str]]] = None,
	notes: Optional[str] = None,
) -> WinnerChange:
	"""
	Replace the whole winner list with ``user_ids`` ranked ``1..N`` in order.

	The full request is validated before anything is mutated, so a failure
	leaves the aggregate untouched.

	Raises:
		ValidationError: empty list or duplicated users.
		TooManyWinnersError: more users than ``max_winners``.
		NotAParticipantError: any user is not enrolled.
	"""
	ordered = list(user_ids)
	limit = max_winners_of(contest)
	if not ordered:
		raise ValidationError("At least one winner is required.")
	if len(ordered) > limit:
		raise TooManyWinnersError(len(ordered), limit)
	if len(set(ordered)) != len(ordered):
		raise ValidationError("The same user cannot win twice.")
	by_user = {p.user_id: p for p in contest.participants}
	for user_id in ordered:
		if user_id not in by_user:
			raise NotAParticipantError(user_id)

	for old in contest.winners:
		participant = by_user.get(old.user_id)
		if participant is not None:
			_clear_mirror(participant)

	fresh: list[ContestWinner] = []
	for idx, user_id in enumerate(ordered, start=1):
		default_name, default_value = prize_for_position(contest, idx)
		explicit = prizes[idx - 1] if prizes is not None and idx - 1 < len(prizes) else None
		fresh.append(
			ContestWinner(
				user_id=user_id,
				position=idx,
				prize=explicit or default_name,
				amount=default_value,
				selected_at=now,
				selected_by_id=actor_user_id(selected_by),
				notes=notes,
			)
		)

	removed = replace_ranking(contest.winners, fresh)
	for winner in contest.winners:
		_mirror_winner(by_user[winner.user_id], winner)
	return WinnerChange(added=fresh, removed=removed)


# -----
# Draw
# -----
def eligible_participants(contest: Contest) -> list[ContestParticipant]:
	return [p for p in contest.participants if not p.is_winner]


def free_winner_slots(contest: Contest) -> int:
	return max(0, max_winners_of(contest) - len(contest.winners))


def draw_winners(contest: Contest, rng: random.Random, count: Optional[int] = None) -> list[uuid.UUID]:
	"""
	Uniform sample without replacement among participants who have not won yet.

	Winners already selected keep their seats, so at most the free slots left
	under ``max_winners`` are drawn.
	"""
	pool = [p.user_id for p in eligible_participants(contest)]
	slots = free_winner_slots(contest)
	k = min(slots if count is None else min(count, slots), len(pool))
	if k <= 0:
		return []
	return rng.sample(pool, k)


def add_drawn_winners(
	contest: Contest,
	user_ids: Sequence[uuid.UUID],
	*,
	now: datetime,
	selected_by: Actor = SYSTEM,
	notes: Optional[str] = AUTO_DRAW_NOTE,
) -> WinnerChange:
	"""Seat drawn users at the first free positions, next to existing winners."""
	by_user = {p.user_id: p for p in contest.participants}
	added: list[ContestWinner] = []
	for user_id in user_ids:
		participant = by_user.get(user_id)
		if participant is None:
			raise NotAParticipantError(user_id)
		if find_winner(contest, user_id) is not None:
			raise AlreadyWinnerError(f"User {user_id} already holds a winning position.")
		winner = ContestWinner(user_id=user_id, selected_at=now, selected_by_id=actor_user_id(selected_by), notes=notes)
		position = fill_free_position(contest.winners, winner)
		winner.prize, winner.amount = prize_for_position(contest, position)
		_mirror_winner(participant, winner)
		added.append(winner)
	return WinnerChange(added=added)


def mark_completed(contest: Contest, now: datetime) -> None:
	"""In-memory mirror of the conditional "mark drawn" update."""
	contest.draw_completed = True
	contest.draw_completed_at = now
	contest.status = ContestStatus.COMPLETED


def iter_winner_user_ids(contest: Contest) -> Iterable[uuid.UUID]:
	return (w.user_id for w in sorted(contest.winners, key=lambda w: w.position))


__all__ = [
	"AUTO_DRAW_NOTE",
	"WinnerChange",
	"validate_schedule",
	"find_participant",
	"find_winner",
	"is_open_for_registration",
	"is_draw_due",
	"prize_for_position",
	"max_winners_of",
	"sync_participant_count",
	"add_participant",
	"remove_participant",
	"select_winner",
	"remove_winner",
	"select_multiple_winners",
	"eligible_participants",
	"free_winner_slots",
	"draw_winners",
	"add_drawn_winners",
	"mark_completed",
	"iter_winner_user_ids",
]
