"""Position resolution for the two list orderings.

Both helpers are pure: they never mutate `entries` and hold no state
between calls.
"""

from __future__ import annotations

import bisect
from functools import cmp_to_key
from typing import Any, Callable, Optional, Sequence

from sortedcontainers import SortedKeyList

from .errors import PositionError
from .types import Entry

Comparator = Callable[[Any, Any], int]


def find_index(entries: Sequence[Entry], key: str) -> Optional[int]:
    for i, entry in enumerate(entries):
        if entry.key == key:
            return i
    return None


def sibling_index(entries: Sequence[Entry], after_key: Optional[str]) -> int:
    """Index right after `after_key`, or 0 when there is no previous sibling."""
    if after_key is None:
        return 0
    i = find_index(entries, after_key)
    if i is None:
        raise PositionError(f"previous sibling {after_key!r} not in list", key=after_key)
    return i + 1


def sorted_index(
    entries: Sequence[Entry],
    value: Any,
    comparator: Comparator,
    sort_key: Optional[Callable[[Any], Any]] = None,
) -> int:
    """Insertion point for `value` that keeps `entries` ascending.

    New values land after every existing value the comparator calls equal.
    A `SortedKeyList` is bisected on its own keys; pass the `sort_key` it was
    built with so both sides come from the same wrapper.
    """
    if sort_key is None:
        sort_key = cmp_to_key(comparator)
    if isinstance(entries, SortedKeyList):
        return entries.bisect_key_right(sort_key(value))
    return bisect.bisect_right(entries, sort_key(value), key=lambda e: sort_key(e.value))
