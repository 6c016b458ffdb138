from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import DuplicateKeyError, ListSyncError, NotFoundError
from .event_source import ChildEventSources
from .subscriptions import SubscriptionSet
from .types import ChangeNotification, Entry, EventKind, MutationEvent

IndexObserver = Callable[[int, Entry], None]
MoveObserver = Callable[[int, int, Entry], None]
ValueObserver = Callable[[Any], None]
ErrorObserver = Callable[[BaseException], None]

log = logging.getLogger("ll_core.synced_list")


class SyncedList(Sequence):
    """Ordered, keyed, read-only view of a remote collection.

    The view is driven exclusively by child events delivered on the sources
    bundle. Each event is applied to completion (mutation, then the matching
    observer) before control returns to whoever delivered it. A channel is only
    listened to when an observer that can fire for it was supplied.

    Subclasses decide where entries go; this class owns the event skeleton,
    subscriptions and read access.
    """

    def __init__(
        self,
        sources: ChildEventSources,
        *,
        on_child_added: Optional[IndexObserver] = None,
        on_child_removed: Optional[IndexObserver] = None,
        on_child_changed: Optional[IndexObserver] = None,
        on_child_moved: Optional[MoveObserver] = None,
        on_value: Optional[ValueObserver] = None,
        on_error: Optional[ErrorObserver] = None,
    ) -> None:
        self.sources = sources
        self.on_child_added = on_child_added
        self.on_child_removed = on_child_removed
        self.on_child_changed = on_child_changed
        self.on_child_moved = on_child_moved
        self.on_value = on_value
        self.on_error = on_error
        self.is_loaded: bool = False

        self._entries = self._new_storage()
        self._by_key: Dict[str, Entry] = {}
        self._subscriptions = SubscriptionSet()
        self._listen()

    # -- storage / positioning hooks -------------------------------------

    def _new_storage(self):
        raise NotImplementedError

    def _position_of(self, entry: Entry) -> int:
        raise NotImplementedError

    def _apply_added(self, event: MutationEvent) -> ChangeNotification:
        raise NotImplementedError

    def _apply_removed(self, event: MutationEvent) -> ChangeNotification:
        raise NotImplementedError

    def _apply_changed(self, event: MutationEvent) -> ChangeNotification:
        raise NotImplementedError

    def _apply_moved(self, event: MutationEvent) -> ChangeNotification:
        raise NotImplementedError

    def _wants(self, kind: EventKind) -> bool:
        return self._observer_for(kind) is not None

    # -- subscriptions ---------------------------------------------------

    def _listen(self) -> None:
        on_error = self._on_error if self.on_error is not None else None
        channels = (
            (self.sources.child_added, EventKind.ADDED, self._on_child_added),
            (self.sources.child_removed, EventKind.REMOVED, self._on_child_removed),
            (self.sources.child_changed, EventKind.CHANGED, self._on_child_changed),
            (self.sources.child_moved, EventKind.MOVED, self._on_child_moved),
        )
        for source, kind, handler in channels:
            self._subscriptions.attach(source, handler if self._wants(kind) else None, on_error)
        self._subscriptions.attach(
            self.sources.value,
            self._on_value if self.on_value is not None else None,
            on_error,
        )

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def clear(self) -> None:
        """Detach from every source and drop all entries. Safe to repeat."""
        self._subscriptions.cancel_all()
        self._entries.clear()
        self._by_key.clear()
        self.is_loaded = False

    # -- event handling --------------------------------------------------

    def _on_child_added(self, event: MutationEvent) -> None:
        self._handle(EventKind.ADDED, event)

    def _on_child_removed(self, event: MutationEvent) -> None:
        self._handle(EventKind.REMOVED, event)

    def _on_child_changed(self, event: MutationEvent) -> None:
        self._handle(EventKind.CHANGED, event)

    def _on_child_moved(self, event: MutationEvent) -> None:
        self._handle(EventKind.MOVED, event)

    def _on_value(self, payload: Any) -> None:
        self.is_loaded = True
        if self.on_value is not None:
            self.on_value(payload)

    def _on_error(self, error: BaseException) -> None:
        log.warning("Upstream error on %s: %s", type(self).__name__, error)
        if self.on_error is not None:
            self.on_error(error)

    def _handle(self, channel: EventKind, event: MutationEvent) -> None:
        if event.kind is not channel:
            raise ValueError(f"{event.kind.value} event delivered on {channel.value} channel")
        change = self.apply(event)
        self._notify(channel, change)

    def _observer_for(self, kind: EventKind):
        if kind is EventKind.ADDED:
            return self.on_child_added
        if kind is EventKind.REMOVED:
            return self.on_child_removed
        if kind is EventKind.CHANGED:
            return self.on_child_changed
        return self.on_child_moved

    def _notify(self, kind: EventKind, change: ChangeNotification) -> None:
        if change.is_move:
            if self.on_child_moved is not None:
                self.on_child_moved(change.index, change.index2, change.entry)
            return
        # A move that left the entry in place is reported as a change.
        if kind is EventKind.MOVED:
            kind = EventKind.CHANGED
        observer = self._observer_for(kind)
        if observer is not None:
            observer(change.index, change.entry)

    def apply(self, event: MutationEvent) -> ChangeNotification:
        """Apply one event and return the positional delta it produced.

        Raises a ListSyncError subclass, leaving the list untouched, when the
        event contradicts the current state.
        """
        kind = event.kind
        try:
            if kind is EventKind.ADDED:
                return self._apply_added(event)
            elif kind is EventKind.REMOVED:
                return self._apply_removed(event)
            elif kind is EventKind.CHANGED:
                return self._apply_changed(event)
            elif kind is EventKind.MOVED:
                return self._apply_moved(event)
        except ListSyncError as exc:
            log.warning("Rejected %s event key=%r: %s", kind.value, event.entry.key, exc)
            raise
        raise ValueError(f"Unknown event kind {kind!r}")

    # -- shared helpers --------------------------------------------------

    def _require_new(self, key: str) -> None:
        if key in self._by_key:
            raise DuplicateKeyError(f"key {key!r} already in list", key=key)

    def _index_of_key(self, key: str) -> int:
        entry = self._by_key.get(key)
        if entry is None:
            raise NotFoundError(f"key {key!r} not in list", key=key)
        return self._position_of(entry)

    # -- read access -----------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._entries)!r})"

    def has_key(self, key: str) -> bool:
        return key in self._by_key

    def get(self, key: str) -> Optional[Entry]:
        return self._by_key.get(key)

    def keys(self) -> List[str]:
        return [e.key for e in self._entries]

    def values(self) -> List[Any]:
        return [e.value for e in self._entries]
