from __future__ import annotations

import pytest

from ll_core.errors import NotFoundError
from ll_core.keyed_list import KeyedList
from ll_feed.feed import ChildEventFeed


def test_dispatch_routes_by_event_type():
    feed = ChildEventFeed()
    loaded = []
    lst = KeyedList(
        feed.sources,
        on_child_added=lambda i, e: None,
        on_child_removed=lambda i, e: None,
        on_value=loaded.append,
    )
    assert feed.dispatch({"event": "child_added", "key": "a", "value": 1}) == "child_added"
    feed.dispatch({"event": "child_added", "key": "b", "value": 2, "prev": "a"})
    feed.dispatch({"event": "child_removed", "key": "a"})
    feed.dispatch({"event": "value"})
    assert lst.keys() == ["b"]
    assert lst.is_loaded
    assert loaded == [{"event": "value"}]
    assert feed.counts == {"child_added": 2, "child_removed": 1, "value": 1}


def test_unlistened_channels_are_dropped():
    feed = ChildEventFeed()
    lst = KeyedList(feed.sources, on_child_added=lambda i, e: None)
    feed.dispatch({"event": "child_added", "key": "a", "value": 1})
    # No removal observer, so no removal listener: the event goes nowhere.
    feed.dispatch({"event": "child_removed", "key": "a"})
    assert lst.keys() == ["a"]


def test_rejected_event_propagates_from_dispatch():
    feed = ChildEventFeed()
    KeyedList(feed.sources, on_child_removed=lambda i, e: None)
    with pytest.raises(NotFoundError):
        feed.dispatch({"event": "child_removed", "key": "ghost"})


def test_fail_and_close():
    feed = ChildEventFeed()
    errors = []
    KeyedList(feed.sources, on_child_added=lambda i, e: None, on_error=errors.append)
    err = RuntimeError("cancelled")
    feed.fail(err)
    assert errors == [err]
    feed.close()
    assert all(s.closed for s in feed.sources.all())
    with pytest.raises(RuntimeError, match="closed"):
        feed.dispatch({"event": "child_added", "key": "a"})
