from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class EventKind(str, Enum):
    ADDED = "child_added"
    REMOVED = "child_removed"
    CHANGED = "child_changed"
    MOVED = "child_moved"


@dataclass(frozen=True)
class Entry:
    key: str
    value: Any = None


@dataclass(frozen=True)
class MutationEvent:
    kind: EventKind
    entry: Entry
    # Key of the entry that should precede this one; None means "first".
    after_key: Optional[str] = None


@dataclass(frozen=True)
class ChangeNotification:
    """Positional delta produced by applying one mutation event.

    `index2` is only set for moves, where `index` is the origin and `index2`
    the destination.
    """

    index: int
    entry: Entry
    index2: Optional[int] = None

    @classmethod
    def at(cls, index: int, entry: Entry) -> "ChangeNotification":
        return cls(index=index, entry=entry)

    @classmethod
    def move(cls, from_index: int, to_index: int, entry: Entry) -> "ChangeNotification":
        return cls(index=from_index, entry=entry, index2=to_index)

    @property
    def is_move(self) -> bool:
        return self.index2 is not None
