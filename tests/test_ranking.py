# tests/test_ranking.py
import random
from dataclasses import dataclass
from typing import Optional

from backoffice.domain.ranking import (
    clamp_position,
    fill_free_position,
    insert_at_position,
    is_dense,
    move_position,
    remove_from_ranking,
    replace_ranking,
)


@dataclass(eq=False)
class Entry:
    name: str
    position: Optional[int] = None


def ranked(*names):
    return [Entry(n, i) for i, n in enumerate(names, start=1)]


def order(scope):
    return [e.name for e in sorted(scope, key=lambda e: e.position)]


def test_insert_at_top_shifts_everyone_down():
    scope = ranked("a", "b")
    new = Entry("c")
    assert insert_at_position(scope, new, 1) == 1
    assert order(scope) == ["c", "a", "b"]
    assert [e.position for e in scope if e.name in ("a", "b")] == [2, 3]
    assert is_dense(scope)


def test_insert_without_target_appends():
    scope = ranked("a", "b")
    assert insert_at_position(scope, Entry("c")) == 3
    assert order(scope) == ["a", "b", "c"]


def test_insert_past_the_end_is_clamped():
    scope = ranked("a")
    assert insert_at_position(scope, Entry("b"), 10) == 2
    assert is_dense(scope)


def test_insert_into_empty_scope():
    scope = []
    assert insert_at_position(scope, Entry("a"), 5) == 1
    assert order(scope) == ["a"]


def test_move_up_and_down():
    scope = ranked("a", "b", "c", "d")
    c = scope[2]
    assert move_position(scope, c, 1) == 1
    assert order(scope) == ["c", "a", "b", "d"]

    assert move_position(scope, c, 4) == 4
    assert order(scope) == ["a", "b", "d", "c"]
    assert is_dense(scope)


def test_move_to_same_position_is_a_no_op():
    scope = ranked("a", "b")
    assert move_position(scope, scope[1], 2) == 2
    assert order(scope) == ["a", "b"]


def test_remove_closes_the_gap():
    scope = ranked("a", "b", "c")
    remove_from_ranking(scope, scope[0])
    assert order(scope) == ["b", "c"]
    assert is_dense(scope)


def test_replace_ranking_returns_previous_entries():
    scope = ranked("a", "b")
    removed = replace_ranking(scope, [Entry("x"), Entry("y"), Entry("z")])
    assert [e.name for e in removed] == ["a", "b"]
    assert order(scope) == ["x", "y", "z"]
    assert is_dense(scope)


def test_clamp_position():
    assert clamp_position(None, 4) == 4
    assert clamp_position(0, 4) == 1
    assert clamp_position(9, 4) == 4
    assert clamp_position(2, 4) == 2


def test_is_dense_detects_gaps_and_duplicates():
    assert not is_dense([Entry("a", 1), Entry("b", 3)])
    assert not is_dense([Entry("a", 1), Entry("b", 1)])
    assert is_dense([])


def test_fill_free_position_takes_lowest_gap_without_shifting():
    scope = [Entry("a", 2), Entry("b", 4)]
    assert fill_free_position(scope, Entry("c")) == 1
    assert fill_free_position(scope, Entry("d")) == 3
    assert order(scope) == ["c", "a", "d", "b"]
    assert fill_free_position(scope, Entry("e")) == 5
    assert is_dense(scope)


def test_random_operation_sequences_keep_ranking_dense():
    rng = random.Random(20250312)
    for _ in range(50):
        scope = []
        expected = []
        for step in range(60):
            op = rng.choice(("insert", "insert", "append", "move", "remove"))
            if op in ("move", "remove") and not scope:
                op = "append"

            if op == "insert":
                entry = Entry(f"e{step}")
                target = rng.randint(-1, len(scope) + 3)
                pos = insert_at_position(scope, entry, target)
                expected.insert(pos - 1, entry.name)
            elif op == "append":
                entry = Entry(f"e{step}")
                pos = fill_free_position(scope, entry)
                expected.insert(pos - 1, entry.name)
            elif op == "move":
                entry = rng.choice(scope)
                pos = move_position(scope, entry, rng.randint(-1, len(scope) + 3))
                expected.remove(entry.name)
                expected.insert(pos - 1, entry.name)
            else:
                entry = rng.choice(scope)
                remove_from_ranking(scope, entry)
                expected.remove(entry.name)

            assert is_dense(scope)
            assert order(scope) == expected
