# domain/ranking.py
"""Dense 1-based ranking within a scope.

A *scope* is any mutable list of objects exposing a writable ``position``
attribute: the winners of one contest, or the active standalone winners of one
week. Every operation below leaves the scope with positions exactly
``{1..len(scope)}`` provided it started that way. The functions only mutate
in-memory objects; callers persist the whole scope in one transaction so no
intermediate state is ever written.
"""
from __future__ import annotations

from typing import Iterable, MutableSequence, Protocol, Sequence, TypeVar


class Ranked(Protocol):
	position: int | None


T = TypeVar("T", bound=Ranked)


def positions(scope: Iterable[Ranked]) -> list[int]:
	return sorted(int(e.position) for e in scope if e.position is not None)


def is_dense(scope: Sequence[Ranked]) -> bool:
	"""True when positions are exactly ``1..N`` without duplicates."""
	return positions(scope) == list(range(1, len(scope) + 1))


def clamp_position(target: int | None, upper: int) -> int:
	if target is None:
		return upper
	return max(1, min(int(target), upper))


def insert_at_position(scope: MutableSequence[T], entry: T, target: int | None = None) -> int:
	"""
	Insert ``entry`` into ``scope`` at ``target`` (default: last).

	Entries at ``target`` or below move down one rank first. Targets past the
	end are clamped to ``len(scope) + 1`` so no gap can appear. Returns the
	position actually assigned.
	"""
	pos = clamp_position(target, len(scope) + 1)
	for other in scope:
		if other is entry:
			continue
		if other.position is not None and other.position >= pos:
			other.position += 1
	entry.position = pos
	if not any(other is entry for other in scope):
		scope.append(entry)
	return pos


def first_free_position(scope: Iterable[Ranked]) -> int:
	"""Lowest rank not held by any entry of ``scope``."""
	taken = set(positions(scope))
	pos = 1
	while pos in taken:
		pos += 1
	return pos


def fill_free_position(scope: MutableSequence[T], entry: T) -> int:
	"""
	Append ``entry`` at the first free rank without moving anyone else.

	On a dense scope this is ``len(scope) + 1``; on a scope with gaps the
	lowest gap is filled first.
	"""
	pos = first_free_position(scope)
	entry.position = pos
	scope.append(entry)
	return pos


def move_position(scope: Sequence[T], entry: T, new_position: int) -> int:
	"""
	Move ``entry`` (already in ``scope``) to ``new_position``.

	Moving up shifts ``[new, old)`` down by one, moving down shifts
	``(old, new]`` up by one. Returns the position actually assigned.
	"""
	old = int(entry.position)
	new = clamp_position(new_position, len(scope))
	if new == old:
		return old
	for other in scope:
		if other is entry or other.position is None:
			continue
		if new < old and new <= other.position < old:
			other.position += 1
		elif new > old and old < other.position <= new:
			other.position -= 1
	entry.position = new
	return new


def remove_from_ranking(scope: MutableSequence[T], entry: T) -> None:
	"""Detach ``entry`` and close the gap it leaves."""
	old = entry.position
	for idx, other in enumerate(scope):
		if other is entry:
			del scope[idx]
			break
	if old is None:
		return
	for other in scope:
		if other.position is not None and other.position > old:
			other.position -= 1


def replace_ranking(scope: MutableSequence[T], entries: Iterable[T]) -> list[T]:
	"""Empty ``scope`` and insert ``entries`` at ``1..N`` in the given order."""
	removed = list(scope)
	del scope[:]
	for idx, entry in enumerate(entries, start=1):
		insert_at_position(scope, entry, idx)
	return removed


__all__ = [
	"Ranked",
	"positions",
	"is_dense",
	"clamp_position",
	"insert_at_position",
	"first_free_position",
	"fill_free_position",
	"move_position",
	"remove_from_ranking",
	"replace_ranking",
]
