"""Ordered associative container used as the shape of every statistics level.

What:
  Provide :class:`SortedMap`, a mapping from string keys to values kept in
  descending order of each value's count, and :func:`entry_count`, which
  derives that count.

Why:
  Presentation code walks statistics top-down and always wants the busiest
  recipient, domain or sender first. Returning levels already ordered keeps
  that logic out of every consumer and makes the ordering testable in one
  place.

How:
  Entries live in a Python list ordered by the comparator. :meth:`SortedMap.add`
  removes any entry whose key is equal per ``key_equality`` and inserts the new
  one with :func:`bisect.bisect_right`, so entries that compare equal keep their
  insertion order. A dictionary mirrors the entries for O(1) lookups when the
  default key equality is in use.

Interfaces:
  :func:`entry_count`, :func:`by_count_descending`, :class:`SortedMap`.

Invariants & Safety:
  - Keys are unique under ``key_equality``.
  - Iteration yields non-increasing counts under the default comparator.
  - A frozen map rejects further ``add`` calls; there is no deletion.
"""
from __future__ import annotations

import operator
from bisect import bisect_right
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple


def entry_count(value: Any) -> int:
    """Return ``value.count`` when present, otherwise ``value`` as a bare leaf count."""

    count = getattr(value, "count", None)
    if isinstance(count, int):
        return count
    return int(value)


def by_count_descending(left: Any, right: Any) -> int:
    """Comparator ranking higher counts first."""

    return entry_count(right) - entry_count(left)


class SortedMap:
    """Mapping ordered descending by count.

    What:
      Holds ``(key, value)`` pairs where ``value`` is either a nested node
      exposing ``count`` or a bare integer leaf count.

    Why:
      Aggregation output is built once and then read many times by the
      presentation layer, so paying the ordering cost on insert keeps reads a
      plain list walk.

    How:
      ``comparator(a, b)`` follows the ``cmp`` convention (negative when ``a``
      ranks first) and is adapted for :mod:`bisect` with
      :func:`functools.cmp_to_key`.

    Attributes:
      key_equality: Predicate deciding whether two keys denote the same entry.
      comparator: Ordering over values.
    """

    def __init__(
        self,
        items: Iterable[Tuple[str, Any]] = (),
        key_equality: Callable[[Any, Any], bool] = operator.eq,
        comparator: Callable[[Any, Any], int] = by_count_descending,
    ) -> None:
        self.key_equality = key_equality
        self.comparator = comparator
        self._sort_key = cmp_to_key(comparator)
        self._entries: List[Tuple[Any, Any]] = []
        self._index: Dict[Any, Any] = {}
        self._frozen = False
        for key, value in items:
            self.add(value, key)

    def add(self, value: Any, key: Any) -> None:
        """Insert ``value`` under ``key`` or replace the entry with an equal key.

        Args:
          value: Nested node with a ``count`` attribute, or an ``int`` leaf.
          key: Entry key.

        Raises:
          TypeError: If the map has been frozen.
        """

        if self._frozen:
            raise TypeError("SortedMap is frozen")
        position = self._position_of(key)
        if position is not None:
            existing_key, _ = self._entries.pop(position)
            self._index.pop(existing_key, None)
        sort_key = self._sort_key(value)
        insert_at = bisect_right(self._entries, sort_key, key=lambda entry: self._sort_key(entry[1]))
        self._entries.insert(insert_at, (key, value))
        if self.key_equality is operator.eq:
            self._index[key] = value

    def _position_of(self, key: Any) -> Optional[int]:
        if self.key_equality is operator.eq and key not in self._index:
            return None
        for position, (existing, _) in enumerate(self._entries):
            if self.key_equality(existing, key):
                return position
        return None

    def freeze(self) -> "SortedMap":
        """Make the map immutable and return it."""

        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, key: Any, default: Any = None) -> Any:
        if self.key_equality is operator.eq:
            return self._index.get(key, default)
        position = self._position_of(key)
        return default if position is None else self._entries[position][1]

    def __getitem__(self, key: Any) -> Any:
        position = self._position_of(key)
        if position is None:
            raise KeyError(key)
        return self._entries[position][1]

    def __contains__(self, key: Any) -> bool:
        return self._position_of(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Any]:
        return (key for key, _ in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SortedMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"SortedMap({self._entries!r})"

    def keys(self) -> List[Any]:
        return [key for key, _ in self._entries]

    def values(self) -> List[Any]:
        return [value for _, value in self._entries]

    def items(self) -> List[Tuple[Any, Any]]:
        return list(self._entries)

    def counts(self) -> List[int]:
        return [entry_count(value) for _, value in self._entries]

    def total(self) -> int:
        """Sum of the counts of every entry at this level."""

        return sum(self.counts())

    def nodes(self) -> List[Dict[str, Any]]:
        """Return the ``{name, count, children}`` view used by presentation code.

        Nested maps are converted recursively; leaves carry ``children=None``.
        """

        view = []
        for key, value in self._entries:
            children = getattr(value, "children", None)
            view.append(
                {
                    "name": key,
                    "count": entry_count(value),
                    "children": children.nodes() if isinstance(children, SortedMap) else None,
                }
            )
        return view
