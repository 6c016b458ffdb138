from __future__ import annotations

from functools import cmp_to_key
from typing import Any

from sortedcontainers import SortedKeyList

from .errors import OrderingError
from .resolver import Comparator, sorted_index
from .synced_list import SyncedList
from .types import ChangeNotification, Entry, EventKind, MutationEvent


class SortedKeyedList(SyncedList):
    """List ordered by a comparator over entry values.

    Sibling-key hints are ignored. Changed and moved events both re-derive the
    entry's position; the notification is a move whenever the index changed.
    A comparator that raises on a value is reported as OrderingError and the
    list keeps its previous contents.
    """

    def __init__(self, sources, comparator: Comparator, **observers) -> None:
        self.comparator = comparator
        self._sort_key = cmp_to_key(comparator)
        super().__init__(sources, **observers)

    def _new_storage(self) -> SortedKeyList:
        return SortedKeyList(key=lambda entry: self._sort_key(entry.value))

    def _wants(self, kind: EventKind) -> bool:
        # A changed or moved event may end up as either notification kind.
        if kind in (EventKind.CHANGED, EventKind.MOVED):
            return self.on_child_changed is not None or self.on_child_moved is not None
        return super()._wants(kind)

    def _position_of(self, entry: Entry) -> int:
        return self._entries.index(entry)

    def _insertion_index(self, key: str, value: Any) -> int:
        try:
            return sorted_index(self._entries, value, self.comparator, sort_key=self._sort_key)
        except Exception as exc:
            raise OrderingError(f"cannot order value {value!r}: {exc}", key=key) from exc

    def _apply_added(self, event: MutationEvent) -> ChangeNotification:
        entry = event.entry
        self._require_new(entry.key)
        index = self._insertion_index(entry.key, entry.value)
        self._entries.add(entry)
        self._by_key[entry.key] = entry
        return ChangeNotification.at(index, entry)

    def _apply_removed(self, event: MutationEvent) -> ChangeNotification:
        index = self._index_of_key(event.entry.key)
        removed = self._entries.pop(index)
        del self._by_key[removed.key]
        return ChangeNotification.at(index, removed)

    def _apply_changed(self, event: MutationEvent) -> ChangeNotification:
        entry = event.entry
        old_index = self._index_of_key(entry.key)
        # Bisect while the old entry is still stored; it sits before the
        # insertion point whenever the point lies past it.
        index = self._insertion_index(entry.key, entry.value)
        new_index = index - 1 if index > old_index else index
        current = self._entries.pop(old_index)
        try:
            self._entries.add(entry)
        except Exception as exc:
            self._entries.add(current)
            raise OrderingError(f"cannot order value {entry.value!r}: {exc}", key=entry.key) from exc
        self._by_key[entry.key] = entry
        if new_index == old_index:
            return ChangeNotification.at(old_index, entry)
        return ChangeNotification.move(old_index, new_index, entry)

    _apply_moved = _apply_changed
