"""
Module: tests/unit/test_sorted_map.py

What:
    Exercise ordering, replacement, stability and freezing of
    :class:`SortedMap`.

Why:
    Every statistics level is a :class:`SortedMap`; presentation code trusts it
    to list the busiest entries first and to hold each key once.

How:
    Build maps with bare integer leaves and with count-bearing nodes and assert
    on ``keys()``, ``items()`` and ``nodes()``.
"""

from dataclasses import dataclass

import pytest

from mailstats.core.sorted_map import SortedMap, by_count_descending, entry_count


@dataclass(frozen=True)
class _Node:
    count: int
    children: object = None


def test_entry_count_prefers_count_attribute():
    assert entry_count(7) == 7
    assert entry_count(_Node(3)) == 3


def test_by_count_descending_sign():
    assert by_count_descending(5, 2) < 0
    assert by_count_descending(2, 5) > 0
    assert by_count_descending(4, 4) == 0


def test_add_keeps_descending_order():
    level = SortedMap()
    level.add(1, "a")
    level.add(5, "b")
    level.add(3, "c")

    assert level.keys() == ["b", "c", "a"]
    assert level.counts() == [5, 3, 1]
    assert list(level) == ["b", "c", "a"]
    assert level.total() == 9


def test_equal_counts_keep_insertion_order():
    """
    What:
        Ties are placed after existing equal entries.

    Why:
        Aggregation inserts keys in ascending scan order, so stable insertion
        makes tied siblings appear alphabetically.
    """

    level = SortedMap()
    for key in ("a", "b", "c"):
        level.add(2, key)
    level.add(4, "d")
    level.add(2, "e")

    assert level.keys() == ["d", "a", "b", "c", "e"]


def test_add_replaces_existing_key():
    level = SortedMap([("a", 1), ("b", 2)])
    level.add(10, "a")

    assert len(level) == 2
    assert level.items() == [("a", 10), ("b", 2)]
    assert level["a"] == 10
    assert level.get("missing", 0) == 0


def test_custom_key_equality():
    level = SortedMap(key_equality=lambda left, right: left.lower() == right.lower())
    level.add(1, "Alice")
    level.add(3, "ALICE")

    assert level.items() == [("ALICE", 3)]
    assert "alice" in level
    assert level.get("alice") == 3


def test_node_values_ordered_by_count():
    level = SortedMap()
    level.add(_Node(2), "x")
    level.add(_Node(9), "y")

    assert level.keys() == ["y", "x"]
    assert level.nodes() == [
        {"name": "y", "count": 9, "children": None},
        {"name": "x", "count": 2, "children": None},
    ]


def test_nodes_recurse_into_children():
    inner = SortedMap([("leaf", 2)]).freeze()
    outer = SortedMap([("root", _Node(2, inner))]).freeze()

    assert outer.nodes() == [
        {"name": "root", "count": 2, "children": [{"name": "leaf", "count": 2, "children": None}]}
    ]


def test_frozen_map_rejects_add():
    level = SortedMap([("a", 1)]).freeze()

    assert level.frozen
    with pytest.raises(TypeError):
        level.add(2, "b")


def test_missing_key_raises_key_error():
    with pytest.raises(KeyError):
        SortedMap()["nope"]


def test_equality_compares_entries_in_order():
    assert SortedMap([("a", 1), ("b", 2)]) == SortedMap([("b", 2), ("a", 1)])
    assert SortedMap([("a", 1)]) != SortedMap([("a", 2)])
