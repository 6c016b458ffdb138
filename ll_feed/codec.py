"""Wire format for child events.

One JSON object per message:

    {"event": "child_added", "key": "k1", "value": {...}, "prev": "k0"}
    {"event": "value", ...}

`prev` is the previous-sibling key (null for "first") and is only meaningful
on child_added/child_moved. `value` messages are load-completion signals and
are passed through untouched.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Tuple

from ll_core.types import Entry, EventKind, MutationEvent

VALUE_CHANNEL = "value"


def decode_message(payload: Dict[str, Any]) -> Tuple[str, Any]:
    """Return (channel, item) for one decoded JSON message."""
    if not isinstance(payload, dict):
        raise ValueError(f"message must be an object (got {type(payload).__name__})")
    channel = payload.get("event")
    if channel == VALUE_CHANNEL:
        return channel, payload
    try:
        kind = EventKind(channel)
    except ValueError:
        raise ValueError(f"unknown event type {channel!r}") from None

    key = payload.get("key")
    if not isinstance(key, str) or not key:
        raise ValueError(f"{channel} message missing key")
    prev = payload.get("prev")
    if prev is not None and not isinstance(prev, str):
        raise ValueError(f"{channel} message has non-string prev {prev!r}")
    event = MutationEvent(kind=kind, entry=Entry(key, payload.get("value")), after_key=prev)
    return channel, event


def encode_event(event: MutationEvent) -> Dict[str, Any]:
    return {
        "event": event.kind.value,
        "key": event.entry.key,
        "value": event.entry.value,
        "prev": event.after_key,
    }


def _type_rank(value: Any) -> int:
    if value is None:
        return 0
    if value is False:
        return 1
    if value is True:
        return 2
    if isinstance(value, (int, float)):
        return 3
    if isinstance(value, str):
        return 4
    return 5


def value_order(a: Any, b: Any) -> int:
    """Total order over decoded JSON values.

    null < false < true < numbers < strings < objects and arrays. Objects and
    arrays compare by their canonical JSON text.
    """
    ra, rb = _type_rank(a), _type_rank(b)
    if ra != rb:
        return (ra > rb) - (ra < rb)
    if ra == 5:
        a = json.dumps(a, sort_keys=True, default=str)
        b = json.dumps(b, sort_keys=True, default=str)
    elif ra < 3:
        return 0
    return (a > b) - (a < b)
