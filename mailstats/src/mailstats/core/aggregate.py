"""Hierarchical frequency statistics computed in one ordered pass over the store.

What:
  Turn stored message records into a tree of counts, one level per pivot field
  (for instance recipient → sender domain → sender address), with every level
  ordered busiest first.

Why:
  The statistics view answers "who fills my inbox?" at a glance. Mailboxes hold
  hundreds of thousands of messages, so the grouping has to be linear in the
  number of records and must not hash every row at every level.

How:
  The store is scanned in the order of a compound index whose fields are the
  pivots of the requested :class:`StatsView`. In that order all rows sharing a
  key prefix are contiguous, so a ``last_seen`` tuple is enough to detect group
  boundaries:

  1. Compare the row's key parts with ``last_seen`` top-down.
  2. At the first differing level open fresh zero buckets for that level and
     every deeper level under the current parent path.
  3. Increment the bucket at every level along the row's path.
  4. Remember the row as ``last_seen``.

  The resulting nested buckets are then wrapped into
  :class:`~mailstats.core.sorted_map.SortedMap` levels in a second pass.

Interfaces:
  :class:`Pivot`, :class:`StatsView`, :data:`BY_RECIPIENT`, :data:`BY_DOMAIN`,
  :class:`AggregationNode`, :func:`generate_stats`,
  :func:`most_frequent_senders`, :func:`unique_domains`.

Invariants & Safety:
  - A node's count equals the sum of its children's counts and the number of
    records sharing its key prefix.
  - Rows with an empty pivot value are skipped at every level.
  - Siblings with equal counts keep scan order, i.e. ascending key order.
  - Working state is O(depth); only the output tree grows with the data.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .sorted_map import SortedMap


class Pivot(str, Enum):
    """A field statistics can be grouped on, mapped to its store field."""

    RECIPIENT = "to"
    DOMAIN = "domain"
    SENDER = "from"
    SUBJECT = "subject"

    @property
    def field(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _PIVOT_LABELS[self]


_PIVOT_LABELS: Dict[Pivot, str] = {
    Pivot.RECIPIENT: "Recipient",
    Pivot.DOMAIN: "Domain",
    Pivot.SENDER: "Sender",
    Pivot.SUBJECT: "Subject",
}


@dataclass(frozen=True)
class StatsView:
    """An ordered pivot sequence backed by a compound store index.

    Attributes:
      name: Identifier used by hosts to pick a view.
      pivots: Grouping levels from the root down.
    """

    name: str
    pivots: Tuple[Pivot, ...]

    @property
    def key_path(self) -> Tuple[str, ...]:
        return tuple(pivot.field for pivot in self.pivots)

    @property
    def depth(self) -> int:
        return len(self.pivots)

    def pivot_at(self, level: int) -> Pivot:
        """Return the pivot rendered at ``level`` (0 is the root level)."""

        return self.pivots[level]


BY_RECIPIENT = StatsView("by_recipient", (Pivot.RECIPIENT, Pivot.DOMAIN, Pivot.SENDER))
BY_DOMAIN = StatsView("by_domain", (Pivot.DOMAIN, Pivot.SENDER, Pivot.SUBJECT))

VIEWS: Dict[str, StatsView] = {view.name: view for view in (BY_RECIPIENT, BY_DOMAIN)}


@dataclass(frozen=True)
class AggregationNode:
    """A non-leaf statistics entry.

    Attributes:
      key: Pivot value (recipient, domain, sender or subject).
      count: Number of records under this key prefix.
      children: Next level down; leaf levels hold bare ``int`` counts.
    """

    key: str
    count: int
    children: SortedMap


class _Bucket:
    __slots__ = ("count", "children")

    def __init__(self, leaf: bool) -> None:
        self.count = 0
        self.children: Optional[Dict[str, "_Bucket"]] = None if leaf else {}


def _count_buckets(rows: Any, depth: int) -> Dict[str, _Bucket]:
    root: Dict[str, _Bucket] = {}
    path: List[Optional[_Bucket]] = [None] * depth
    last_seen: Optional[Tuple[str, ...]] = None
    for row in rows:
        if any(not part for part in row):
            continue
        level = 0
        if last_seen is not None:
            while level < depth and row[level] == last_seen[level]:
                level += 1
        for current in range(level, depth):
            parent = root if current == 0 else path[current - 1].children
            # Rows arrive sorted, so the key is new unless the store breaks its scan order.
            bucket = parent.setdefault(row[current], _Bucket(leaf=current == depth - 1))
            path[current] = bucket
        for bucket in path:
            bucket.count += 1
        last_seen = row
    return root


def _to_sorted_map(buckets: Dict[str, _Bucket]) -> SortedMap:
    level = SortedMap()
    for key, bucket in buckets.items():
        if bucket.children is None:
            level.add(bucket.count, key)
        else:
            level.add(AggregationNode(key, bucket.count, _to_sorted_map(bucket.children)), key)
    return level.freeze()


def generate_stats(store: Any, view: StatsView = BY_RECIPIENT) -> SortedMap:
    """Compute the statistics tree for ``view``.

    What:
      Scan ``store`` once in ``view.key_path`` order and return the root
      :class:`SortedMap`.

    Why:
      This is the sole entry point for presentation code; every call reflects
      the store as it is now because nothing is cached between calls.

    How:
      :func:`_count_buckets` performs the boundary-detecting pass described in
      the module docstring; :func:`_to_sorted_map` wraps the buckets into
      frozen sorted levels.

    Args:
      store: Object exposing ``ordered_scan(key_path)``, normally a
        :class:`~mailstats.store.message_store.MessageStore`.
      view: Pivot sequence to group on.

    Returns:
      Root level; empty when the store is empty.
    """

    buckets = _count_buckets(store.ordered_scan(view.key_path), view.depth)
    return _to_sorted_map(buckets)


def most_frequent_senders(store: Any, limit: int = 5) -> List[Tuple[str, int]]:
    """Return up to ``limit`` ``(sender, count)`` pairs, busiest first.

    Counts contiguous runs of the ``from`` index, so memory is bounded by the
    number of distinct senders rather than the number of messages.
    """

    counts = _count_buckets(store.ordered_scan(("from",)), 1)
    ranked = _to_sorted_map(counts)
    return [(sender, count) for sender, count in ranked.items()[: max(limit, 0)]]


def unique_domains(store: Any) -> List[str]:
    """Return the distinct sender domains in ascending order."""

    return store.unique_keys("domain")
