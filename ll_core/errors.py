from __future__ import annotations

from typing import Optional


class ListSyncError(Exception):
    """An event violated the upstream ordering contract and was rejected."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class NotFoundError(ListSyncError):
    """A removed/changed/moved event named a key that is not in the list."""


class PositionError(ListSyncError):
    """A sibling-key hint named a key that is not in the list."""


class DuplicateKeyError(ListSyncError):
    """An added event named a key that is already in the list."""


class OrderingError(ListSyncError):
    """The comparator could not place an entry's value."""
