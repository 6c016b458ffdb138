from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

DataHandler = Callable[[Any], None]
ErrorHandler = Callable[[BaseException], None]


class Subscription:
    """Handle returned by EventSource.listen(); cancel() detaches it."""

    def __init__(self, source: "EventSource", on_data: DataHandler, on_error: Optional[ErrorHandler]) -> None:
        self.source = source
        self.on_data = on_data
        self.on_error = on_error
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self.source._detach(self)


class EventSource:
    """Single-channel, synchronous broadcast stream.

    Items passed to add() are delivered to every active subscription, in the
    order the subscriptions were made, before add() returns. Exceptions raised
    by a handler propagate to the caller of add().
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self.closed = False
        self._subscriptions: List[Subscription] = []

    @property
    def has_listener(self) -> bool:
        return bool(self._subscriptions)

    def listen(self, on_data: DataHandler, on_error: Optional[ErrorHandler] = None) -> Subscription:
        if self.closed:
            raise RuntimeError(f"EventSource {self.name!r} is closed")
        sub = Subscription(self, on_data, on_error)
        self._subscriptions.append(sub)
        return sub

    def add(self, item: Any) -> None:
        if self.closed:
            raise RuntimeError(f"Cannot add to closed EventSource {self.name!r}")
        for sub in list(self._subscriptions):
            if sub.active:
                sub.on_data(item)

    def add_error(self, error: BaseException) -> None:
        if self.closed:
            raise RuntimeError(f"Cannot add error to closed EventSource {self.name!r}")
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            if sub.on_error is None:
                raise error
            sub.on_error(error)

    def close(self) -> None:
        self.closed = True
        for sub in list(self._subscriptions):
            sub.cancel()

    def _detach(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass


@dataclass
class ChildEventSources:
    """The five upstream channels of one remote collection. Any may be absent."""

    child_added: Optional[EventSource] = None
    child_removed: Optional[EventSource] = None
    child_changed: Optional[EventSource] = None
    child_moved: Optional[EventSource] = None
    value: Optional[EventSource] = None

    def all(self) -> List[EventSource]:
        return [
            s
            for s in (self.child_added, self.child_removed, self.child_changed, self.child_moved, self.value)
            if s is not None
        ]
