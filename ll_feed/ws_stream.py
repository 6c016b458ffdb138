import asyncio
import contextlib
import json
import logging
import os
import random
import ssl
import time
from typing import Any, Callable, Optional

from websockets.asyncio.client import connect as ws_connect  # type: ignore
from websockets.exceptions import ConnectionClosed  # type: ignore

from ll_core.errors import ListSyncError

from .feed import ChildEventFeed


class ChildEventWSStream:
    """Async websocket client that feeds child-event messages into a ChildEventFeed.

    Every (re)connect is expected to replay the collection from scratch, so
    on_open receives the attempt number and the caller is responsible for
    rebuilding whatever list listens on the feed.
    """

    def __init__(
        self,
        ws_url: str,
        feed: ChildEventFeed,
        on_open: Optional[Callable[[int], None]] = None,
        on_status: Optional[Callable[[str, dict], None]] = None,
        subscribe_message: Optional[dict] = None,
        insecure_tls: bool = False,
        ping_interval_s: int = 20,
        ping_timeout_s: int = 60,
        reconnect_backoff_s: float = 1.0,
        reconnect_backoff_max_s: float = 30.0,
        max_session_s: float = 23 * 3600 + 50 * 60,
        open_timeout_s: float = 10.0,
        recv_poll_timeout_s: float = 5.0,
        max_queue: int = 256,
    ):
        self.ws_url = ws_url
        self.feed = feed
        self.on_open_cb = on_open
        self.on_status_cb = on_status
        self.subscribe_message = subscribe_message
        self.insecure_tls = insecure_tls

        self.ping_interval_s = max(0, int(ping_interval_s))
        self.ping_timeout_s = max(1, int(ping_timeout_s))
        self.reconnect_backoff_s = max(0.0, float(reconnect_backoff_s))
        self.reconnect_backoff_max_s = max(self.reconnect_backoff_s, float(reconnect_backoff_max_s))
        self.max_session_s = max(0.0, float(max_session_s))
        self.open_timeout_s = max(1.0, float(open_timeout_s))
        self.recv_poll_timeout_s = max(0.01, float(recv_poll_timeout_s))
        self.max_queue = max(1, int(max_queue))

        self.messages = 0
        self.rejected = 0

        self._ws = None
        self._stop = False
        self._log = logging.getLogger("ll_feed.websocket")
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _emit_status(self, typ: str, details: dict) -> None:
        try:
            if self.on_status_cb:
                self.on_status_cb(typ, details)
        except Exception:
            self._log.exception("Status callback error (type=%s)", typ)

    async def _ping_loop(self) -> None:
        if self.ping_interval_s <= 0 or self._ws is None:
            return
        while not self._stop:
            await asyncio.sleep(self.ping_interval_s)
            if self._stop or self._ws is None:
                return
            try:
                payload = os.urandom(4)
                pong_waiter = self._ws.ping(payload)
                self._emit_status("ws_ping", {"nbytes": len(payload)})
                await asyncio.wait_for(pong_waiter, timeout=self.ping_timeout_s)
                self._emit_status("ws_pong", {"nbytes": len(payload)})
            except Exception as exc:
                self._emit_status("ws_ping_timeout", {"error": str(exc)})
                with contextlib.suppress(Exception):
                    await self._ws.close()
                return

    def handle_message(self, msg: Any) -> Optional[str]:
        """Decode and dispatch one raw frame. Returns the channel, or None if dropped."""
        try:
            payload = json.loads(msg)
        except (TypeError, ValueError):
            self._log.exception("Failed to parse WS message")
            self._emit_status("bad_message", {"error": "invalid_json"})
            return None

        self.messages += 1
        try:
            return self.feed.dispatch(payload)
        except ListSyncError as exc:
            self.rejected += 1
            self._log.exception("Rejected child event key=%s", exc.key)
            self._emit_status("apply_error", {"error": str(exc), "key": exc.key, "type": type(exc).__name__})
        except ValueError as exc:
            self._log.warning("Malformed child event: %s", exc)
            self._emit_status("bad_message", {"error": str(exc)})
        return None

    def _forward_error(self, exc: BaseException) -> None:
        """Hand a transport failure to every list listening on the feed."""
        try:
            self.feed.fail(exc)
        except Exception:
            self._log.exception("Unhandled feed error (no on_error listener)")

    async def _read_loop(self, session_deadline: float) -> None:
        assert self._ws is not None
        while not self._stop:
            if time.monotonic() >= session_deadline:
                self._emit_status("ws_session_expired", {"max_session_s": self.max_session_s})
                return

            try:
                msg = await asyncio.wait_for(self._ws.recv(), timeout=self.recv_poll_timeout_s)
            except asyncio.TimeoutError:
                continue
            except ConnectionClosed as exc:
                self._emit_status("ws_close", {"code": getattr(exc, "code", None), "msg": str(exc)})
                self._forward_error(exc)
                return
            except Exception as exc:
                self._emit_status("ws_error", {"error": str(exc)})
                self._forward_error(exc)
                return

            if msg is None:
                return

            self.handle_message(msg)

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.insecure_tls:
            return None
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    async def _run_async(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop = False
        attempt = 0

        while not self._stop:
            attempt += 1
            session_deadline = time.monotonic() + self.max_session_s
            ssl_ctx = self._ssl_context()
            try:
                connect_kwargs = {
                    "ping_interval": None,
                    "ping_timeout": None,
                    "open_timeout": self.open_timeout_s,
                    "close_timeout": 5,
                    "max_queue": self.max_queue,
                }
                if ssl_ctx is not None:
                    connect_kwargs["ssl"] = ssl_ctx
                async with ws_connect(self.ws_url, **connect_kwargs) as ws:
                    self._ws = ws
                    if self.on_open_cb:
                        self.on_open_cb(attempt)
                    if self.subscribe_message is not None:
                        await ws.send(json.dumps(self.subscribe_message))
                    self._emit_status("ws_connect", {"attempt": attempt})

                    ping_task = asyncio.create_task(self._ping_loop())
                    try:
                        await self._read_loop(session_deadline=session_deadline)
                    finally:
                        ping_task.cancel()
                        with contextlib.suppress(BaseException):
                            await ping_task
                    close_code = getattr(ws, "close_code", None)
                    close_reason = getattr(ws, "close_reason", None)
                    if close_code is not None or close_reason is not None:
                        self._emit_status("ws_close", {"code": close_code, "msg": close_reason})
            except Exception as exc:
                self._emit_status("ws_run_exception", {"error": str(exc)})
                self._log.exception("WebSocket run exception")
                self._forward_error(exc)
            finally:
                self._ws = None

            if self._stop:
                break

            # Exponential backoff with jitter.
            base = self.reconnect_backoff_s
            cap = self.reconnect_backoff_max_s
            if base <= 0.0 or cap <= 0.0:
                backoff = 0.0
            else:
                backoff = min(cap, base * (2 ** max(0, attempt - 1)))
                backoff = backoff * (0.7 + 0.6 * random.random())
            self._emit_status("ws_reconnect_wait", {"sleep_s": float(backoff), "attempt": attempt})
            await asyncio.sleep(backoff)

    def run(self) -> None:
        """Run the websocket loop with auto-reconnect."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            raise RuntimeError("ChildEventWSStream.run() cannot be called from an active event loop.")
        asyncio.run(self._run_async())

    def close(self) -> None:
        self._stop = True
        ws = self._ws
        if ws is None:
            return
        try:
            loop = asyncio.get_running_loop()
            loop.create_task(ws.close())
            return
        except RuntimeError:
            loop = self._loop
        if loop and loop.is_running():
            asyncio.run_coroutine_threadsafe(ws.close(), loop)
