# ll_feed/runner.py
from __future__ import annotations

import argparse
import logging

import yaml

from ll_core.keyed_list import KeyedList
from ll_core.sorted_list import SortedKeyedList
from ll_core.synced_list import SyncedList
from ll_core.types import Entry

from .codec import value_order
from .feed import ChildEventFeed
from .logging_config import setup_logging
from .settings import (
    INSECURE_TLS,
    LOG_CORE_LEVEL,
    LOG_DIR,
    WS_MAX_SESSION_S,
    WS_OPEN_TIMEOUT_S,
    WS_PING_INTERVAL_S,
    WS_PING_TIMEOUT_S,
    WS_RECONNECT_BACKOFF_MAX_S,
    WS_RECONNECT_BACKOFF_S,
    WS_RECV_POLL_TIMEOUT_S,
)
from .ws_stream import ChildEventWSStream


def load_config(path: str) -> dict:
    with open(path, "r") as f:
        return yaml.safe_load(f)


class LiveList:
    """Holds the current list and swaps in a fresh one on every reconnect."""

    def __init__(self, feed: ChildEventFeed, order_by_value: bool = False) -> None:
        self.feed = feed
        self.order_by_value = order_by_value
        self.log = logging.getLogger("runner")
        self.list: SyncedList | None = None

    def _on_added(self, index: int, entry: Entry) -> None:
        self.log.info("added index=%d key=%s", index, entry.key)

    def _on_removed(self, index: int, entry: Entry) -> None:
        self.log.info("removed index=%d key=%s", index, entry.key)

    def _on_changed(self, index: int, entry: Entry) -> None:
        self.log.info("changed index=%d key=%s", index, entry.key)

    def _on_moved(self, from_index: int, to_index: int, entry: Entry) -> None:
        self.log.info("moved from=%d to=%d key=%s", from_index, to_index, entry.key)

    def _on_value(self, payload) -> None:
        self.log.info("initial load complete entries=%d", len(self.list) if self.list is not None else 0)

    def _on_error(self, error: BaseException) -> None:
        self.log.error("upstream error: %s", error)

    def rebuild(self, attempt: int = 1) -> SyncedList:
        if self.list is not None:
            self.list.clear()
        observers = dict(
            on_child_added=self._on_added,
            on_child_removed=self._on_removed,
            on_child_changed=self._on_changed,
            on_child_moved=self._on_moved,
            on_value=self._on_value,
            on_error=self._on_error,
        )
        if self.order_by_value:
            self.list = SortedKeyedList(self.feed.sources, value_order, **observers)
        else:
            self.list = KeyedList(self.feed.sources, **observers)
        self.log.info("list rebuilt (attempt=%d)", attempt)
        return self.list


def main():
    parser = argparse.ArgumentParser(description="Mirror a remote collection from a websocket child-event feed")
    parser.add_argument("--config", default="config/livelist.example.yaml")
    args = parser.parse_args()

    cfg_raw = load_config(args.config)
    setup_logging(cfg_raw.get("log_level", "INFO"), component="runner", subdir=cfg_raw.get("name", "default"),
                  base_dir=cfg_raw.get("log_dir", LOG_DIR), core_level=cfg_raw.get("log_core_level", LOG_CORE_LEVEL))
    log = logging.getLogger("runner")

    feed = ChildEventFeed()
    live = LiveList(feed, order_by_value=bool(cfg_raw.get("order_by_value", False)))

    def on_status(typ: str, details: dict) -> None:
        log.info("status %s %s", typ, details)

    stream = ChildEventWSStream(
        ws_url=cfg_raw["ws_url"],
        feed=feed,
        on_open=live.rebuild,
        on_status=on_status,
        subscribe_message=cfg_raw.get("subscribe"),
        insecure_tls=INSECURE_TLS,
        ping_interval_s=WS_PING_INTERVAL_S,
        ping_timeout_s=WS_PING_TIMEOUT_S,
        reconnect_backoff_s=WS_RECONNECT_BACKOFF_S,
        reconnect_backoff_max_s=WS_RECONNECT_BACKOFF_MAX_S,
        max_session_s=WS_MAX_SESSION_S,
        open_timeout_s=WS_OPEN_TIMEOUT_S,
        recv_poll_timeout_s=WS_RECV_POLL_TIMEOUT_S,
    )

    log.info("Starting live list feed url=%s", cfg_raw["ws_url"])
    try:
        stream.run()
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        stream.close()
        if live.list is not None:
            live.list.clear()
        feed.close()


if __name__ == "__main__":
    main()
