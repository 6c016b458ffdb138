from __future__ import annotations

from typing import List, Optional

from .event_source import DataHandler, ErrorHandler, EventSource, Subscription


class SubscriptionSet:
    """Subscriptions acquired independently and released together."""

    def __init__(self) -> None:
        self._subs: List[Subscription] = []

    def attach(
        self,
        source: Optional[EventSource],
        on_data: Optional[DataHandler],
        on_error: Optional[ErrorHandler] = None,
    ) -> Optional[Subscription]:
        # No handler means no listener: an idle upstream channel stays unsubscribed.
        if source is None or on_data is None:
            return None
        sub = source.listen(on_data, on_error)
        self._subs.append(sub)
        return sub

    def cancel_all(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.cancel()

    def __len__(self) -> int:
        return sum(1 for sub in self._subs if sub.active)
