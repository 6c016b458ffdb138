import asyncio
import json

import ll_feed.ws_stream as ws_mod
from ll_core.keyed_list import KeyedList
from ll_core.sorted_list import SortedKeyedList
from ll_feed.feed import ChildEventFeed


class _FakeWS:
    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []
        self.closed = False
        self.close_code = None
        self.close_reason = None

    async def recv(self):
        if self.messages:
            return self.messages.pop(0)
        return None

    async def send(self, data):
        self.sent.append(data)

    def ping(self, payload: bytes):
        fut = asyncio.get_running_loop().create_future()
        return fut

    async def close(self):
        self.closed = True
        self.close_code = 1000
        self.close_reason = "client_close"


class _FakeConnect:
    def __init__(self, ws: _FakeWS):
        self._ws = ws

    async def __aenter__(self):
        return self._ws

    async def __aexit__(self, exc_type, exc, tb):
        return False


def _stream(feed, on_status, **kwargs):
    params = dict(
        ws_url="wss://example",
        feed=feed,
        on_status=on_status,
        ping_interval_s=0,
        recv_poll_timeout_s=0.01,
        reconnect_backoff_s=0.0,
        reconnect_backoff_max_s=0.0,
    )
    params.update(kwargs)
    return ws_mod.ChildEventWSStream(**params)


def test_messages_flow_into_list(monkeypatch):
    feed = ChildEventFeed()
    lst = KeyedList(feed.sources, on_child_added=lambda i, e: None, on_value=lambda p: None)
    ws = _FakeWS(
        [
            json.dumps({"event": "child_added", "key": "a", "value": 1}),
            json.dumps({"event": "child_added", "key": "b", "value": 2, "prev": "a"}),
            json.dumps({"event": "value"}),
        ]
    )
    events = []
    opened = []

    def on_status(typ, details):
        events.append(typ)
        if typ == "ws_reconnect_wait":
            stream.close()

    monkeypatch.setattr(ws_mod, "ws_connect", lambda *a, **k: _FakeConnect(ws))

    stream = _stream(feed, on_status, on_open=opened.append, subscribe_message={"op": "subscribe"})
    stream.run()

    assert opened == [1]
    assert ws.sent == [json.dumps({"op": "subscribe"})]
    assert lst.keys() == ["a", "b"]
    assert lst.is_loaded
    assert stream.messages == 3
    assert "ws_connect" in events
    assert "ws_reconnect_wait" in events


def test_rejected_and_malformed_messages_do_not_stop_the_loop(monkeypatch):
    feed = ChildEventFeed()
    lst = KeyedList(feed.sources, on_child_added=lambda i, e: None, on_child_removed=lambda i, e: None)
    ws = _FakeWS(
        [
            "{not json",
            json.dumps({"event": "child_removed", "key": "ghost"}),
            json.dumps({"event": "child_added"}),
            json.dumps({"event": "child_added", "key": "a", "value": 1}),
        ]
    )
    events = []

    def on_status(typ, details):
        events.append((typ, details))
        if typ == "ws_reconnect_wait":
            stream.close()

    monkeypatch.setattr(ws_mod, "ws_connect", lambda *a, **k: _FakeConnect(ws))
    stream = _stream(feed, on_status)
    stream.run()

    assert lst.keys() == ["a"]
    assert stream.rejected == 1
    types = [t for t, _ in events]
    assert types.count("bad_message") == 2
    apply_errors = [d for t, d in events if t == "apply_error"]
    assert apply_errors[0]["key"] == "ghost"
    assert apply_errors[0]["type"] == "NotFoundError"


def test_ws_session_expiry_emits_status(monkeypatch):
    events = []

    class _IdleWS(_FakeWS):
        async def recv(self):
            await asyncio.sleep(1.0)
            return None

    ws = _IdleWS([])

    def on_status(typ, details):
        events.append(typ)
        if typ == "ws_session_expired":
            stream.close()

    t = {"v": 0.0}

    def fake_monotonic():
        t["v"] += 0.2
        return t["v"]

    monkeypatch.setattr(ws_mod, "ws_connect", lambda *a, **k: _FakeConnect(ws))
    monkeypatch.setattr(ws_mod.time, "monotonic", fake_monotonic)

    stream = _stream(ChildEventFeed(), on_status, max_session_s=0.1)
    stream.run()

    assert "ws_session_expired" in events


def test_ws_ping_timeout_emits_status(monkeypatch):
    events = []
    ws = _FakeWS([])

    def fail_ping(payload: bytes):
        stream._stop = True
        raise RuntimeError("boom")

    ws.ping = fail_ping

    def on_status(typ, details):
        events.append(typ)

    async def fast_sleep(_):
        return None

    monkeypatch.setattr(ws_mod.asyncio, "sleep", fast_sleep)

    stream = _stream(ChildEventFeed(), on_status, ping_interval_s=1, ping_timeout_s=1)
    stream._ws = ws
    asyncio.run(stream._ping_loop())

    assert "ws_ping_timeout" in events
    assert ws.closed


def test_unorderable_value_is_rejected_and_loop_continues(monkeypatch):
    feed = ChildEventFeed()

    def numbers_only(a, b):
        return (a > b) - (a < b)

    lst = SortedKeyedList(feed.sources, numbers_only, on_child_added=lambda i, e: None)
    ws = _FakeWS(
        [
            json.dumps({"event": "child_added", "key": "a", "value": 2}),
            json.dumps({"event": "child_added", "key": "b", "value": "text"}),
            json.dumps({"event": "child_added", "key": "c", "value": 1}),
        ]
    )
    events = []

    def on_status(typ, details):
        events.append((typ, details))
        if typ == "ws_reconnect_wait":
            stream.close()

    monkeypatch.setattr(ws_mod, "ws_connect", lambda *a, **k: _FakeConnect(ws))
    stream = _stream(feed, on_status)
    stream.run()

    assert lst.keys() == ["c", "a"]
    assert stream.rejected == 1
    apply_errors = [d for t, d in events if t == "apply_error"]
    assert len(apply_errors) == 1
    assert apply_errors[0]["key"] == "b"
    assert apply_errors[0]["type"] == "OrderingError"
    assert "ws_run_exception" not in [t for t, _ in events]


def test_transport_error_reaches_list_on_error(monkeypatch):
    feed = ChildEventFeed()
    errors = []
    lst = KeyedList(feed.sources, on_child_added=lambda i, e: None, on_error=errors.append)
    boom = RuntimeError("connection reset")

    class _BrokenWS(_FakeWS):
        async def recv(self):
            if self.messages:
                return self.messages.pop(0)
            raise boom

    ws = _BrokenWS([json.dumps({"event": "child_added", "key": "a", "value": 1})])
    events = []

    def on_status(typ, details):
        events.append(typ)
        if typ == "ws_reconnect_wait":
            stream.close()

    monkeypatch.setattr(ws_mod, "ws_connect", lambda *a, **k: _FakeConnect(ws))
    stream = _stream(feed, on_status)
    stream.run()

    assert lst.keys() == ["a"]
    assert "ws_error" in events
    assert errors and all(e is boom for e in errors)


def test_transport_error_without_on_error_does_not_stop_the_loop(monkeypatch):
    feed = ChildEventFeed()
    KeyedList(feed.sources, on_child_added=lambda i, e: None)
    attempts = []

    def failing_connect(*a, **k):
        attempts.append(1)
        raise OSError("refused")

    events = []

    def on_status(typ, details):
        events.append(typ)
        if typ == "ws_reconnect_wait" and len(attempts) >= 2:
            stream.close()

    monkeypatch.setattr(ws_mod, "ws_connect", failing_connect)
    stream = _stream(feed, on_status)
    stream.run()

    assert len(attempts) == 2
    assert events.count("ws_run_exception") == 2
