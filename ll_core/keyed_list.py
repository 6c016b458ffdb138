from __future__ import annotations

from typing import List

from .errors import PositionError
from .resolver import find_index, sibling_index
from .synced_list import SyncedList
from .types import ChangeNotification, Entry, MutationEvent


class KeyedList(SyncedList):
    """List ordered by the previous-sibling key carried on added/moved events."""

    def _new_storage(self) -> List[Entry]:
        return []

    def _position_of(self, entry: Entry) -> int:
        i = find_index(self._entries, entry.key)
        assert i is not None, f"key index out of sync for {entry.key!r}"
        return i

    def _apply_added(self, event: MutationEvent) -> ChangeNotification:
        entry = event.entry
        self._require_new(entry.key)
        index = sibling_index(self._entries, event.after_key)
        self._entries.insert(index, entry)
        self._by_key[entry.key] = entry
        return ChangeNotification.at(index, entry)

    def _apply_removed(self, event: MutationEvent) -> ChangeNotification:
        index = self._index_of_key(event.entry.key)
        removed = self._entries.pop(index)
        del self._by_key[removed.key]
        return ChangeNotification.at(index, removed)

    def _apply_changed(self, event: MutationEvent) -> ChangeNotification:
        entry = event.entry
        index = self._index_of_key(entry.key)
        self._entries[index] = entry
        self._by_key[entry.key] = entry
        return ChangeNotification.at(index, entry)

    def _apply_moved(self, event: MutationEvent) -> ChangeNotification:
        entry = event.entry
        from_index = self._index_of_key(entry.key)
        current = self._entries.pop(from_index)
        # Destination is resolved against the list without the moving entry.
        try:
            to_index = sibling_index(self._entries, event.after_key)
        except PositionError:
            self._entries.insert(from_index, current)
            raise
        self._entries.insert(to_index, entry)
        self._by_key[entry.key] = entry
        return ChangeNotification.move(from_index, to_index, entry)
