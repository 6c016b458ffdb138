"""Transport side: wire codec, websocket feed, replay and runners."""

from .codec import decode_message, encode_event
from .feed import ChildEventFeed
from .replay import ReplayStats, replay_file

__all__ = [
    "ChildEventFeed",
    "ReplayStats",
    "decode_message",
    "encode_event",
    "replay_file",
]
