"""Event-driven ordered keyed lists mirroring a remote collection."""

from .errors import DuplicateKeyError, ListSyncError, NotFoundError, OrderingError, PositionError
from .event_source import ChildEventSources, EventSource, Subscription
from .keyed_list import KeyedList
from .sorted_list import SortedKeyedList
from .subscriptions import SubscriptionSet
from .synced_list import SyncedList
from .types import ChangeNotification, Entry, EventKind, MutationEvent

__all__ = [
    "ChangeNotification",
    "ChildEventSources",
    "DuplicateKeyError",
    "Entry",
    "EventKind",
    "EventSource",
    "KeyedList",
    "ListSyncError",
    "MutationEvent",
    "NotFoundError",
    "OrderingError",
    "PositionError",
    "SortedKeyedList",
    "Subscription",
    "SubscriptionSet",
    "SyncedList",
]
