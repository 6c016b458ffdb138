from __future__ import annotations

import logging
from typing import Any, Dict

from ll_core.event_source import ChildEventSources, EventSource

from .codec import decode_message

log = logging.getLogger("ll_feed.feed")


class ChildEventFeed:
    """Routes decoded wire messages onto the five child-event channels."""

    def __init__(self) -> None:
        self.sources = ChildEventSources(
            child_added=EventSource("child_added"),
            child_removed=EventSource("child_removed"),
            child_changed=EventSource("child_changed"),
            child_moved=EventSource("child_moved"),
            value=EventSource("value"),
        )
        self.counts: Dict[str, int] = {}

    def dispatch(self, payload: Dict[str, Any]) -> str:
        """Deliver one message. Errors raised by listeners propagate."""
        channel, item = decode_message(payload)
        self.counts[channel] = self.counts.get(channel, 0) + 1
        getattr(self.sources, channel).add(item)
        return channel

    def fail(self, error: BaseException) -> None:
        for source in self.sources.all():
            if source.has_listener:
                source.add_error(error)

    def close(self) -> None:
        for source in self.sources.all():
            source.close()
        log.debug("Feed closed counts=%s", self.counts)
