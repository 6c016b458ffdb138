from __future__ import annotations

import argparse
import gzip
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

import yaml

from ll_core.errors import ListSyncError
from ll_core.keyed_list import KeyedList
from ll_core.sorted_list import SortedKeyedList
from ll_core.synced_list import SyncedList
from ll_core.types import Entry

from .codec import value_order
from .feed import ChildEventFeed
from .logging_config import setup_logging
from .settings import LOG_CORE_LEVEL, LOG_DIR, REPLAY_STRICT

log = logging.getLogger("ll_feed.replay")


@dataclass
class ReplayStats:
    messages: int = 0
    added: int = 0
    removed: int = 0
    changed: int = 0
    moved: int = 0
    loads: int = 0
    rejected: int = 0
    malformed: int = 0
    errors: list = field(default_factory=list)


def iter_messages(path: Path) -> Iterator[Dict[str, Any]]:
    """Yield one decoded JSON object per non-empty line of an .ndjson(.gz) file."""
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rt", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({exc.msg})") from None


def build_list(feed: ChildEventFeed, stats: ReplayStats, order_by_value: bool = False) -> SyncedList:
    def on_added(index: int, entry: Entry) -> None:
        stats.added += 1

    def on_removed(index: int, entry: Entry) -> None:
        stats.removed += 1

    def on_changed(index: int, entry: Entry) -> None:
        stats.changed += 1

    def on_moved(from_index: int, to_index: int, entry: Entry) -> None:
        stats.moved += 1

    def on_value(payload: Any) -> None:
        stats.loads += 1

    observers = dict(
        on_child_added=on_added,
        on_child_removed=on_removed,
        on_child_changed=on_changed,
        on_child_moved=on_moved,
        on_value=on_value,
    )
    if order_by_value:
        return SortedKeyedList(feed.sources, value_order, **observers)
    return KeyedList(feed.sources, **observers)


def replay_file(
    path: Path,
    order_by_value: bool = False,
    strict: bool = False,
) -> Tuple[SyncedList, ReplayStats]:
    """Rebuild a list from a recorded child-event log.

    Rejected events leave the list untouched; in strict mode the first one is
    re-raised, otherwise it is counted and the replay continues.
    """
    stats = ReplayStats()
    feed = ChildEventFeed()
    lst = build_list(feed, stats, order_by_value=order_by_value)

    for payload in iter_messages(path):
        stats.messages += 1
        try:
            feed.dispatch(payload)
        except ListSyncError as exc:
            if strict:
                raise
            stats.rejected += 1
            stats.errors.append(f"message {stats.messages}: {exc}")
            log.warning("Skipping rejected event #%d: %s", stats.messages, exc)
        except ValueError as exc:
            if strict:
                raise
            stats.malformed += 1
            stats.errors.append(f"message {stats.messages}: {exc}")
            log.warning("Skipping malformed message #%d: %s", stats.messages, exc)
    return lst, stats


def load_config(path: Optional[str]) -> dict:
    if not path:
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild a keyed list from a recorded child-event log")
    parser.add_argument("--path", required=True, help="Path to events .ndjson or .ndjson.gz")
    parser.add_argument("--order-by-value", action="store_true", help="Order entries by value instead of sibling keys")
    parser.add_argument("--strict", action="store_true", help="Abort on the first rejected event")
    parser.add_argument("--config", default=None, help="Optional YAML config")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    cfg = load_config(args.config)
    setup_logging(
        args.log_level or cfg.get("log_level", "INFO"),
        component="replay",
        subdir=Path(args.path).name.split(".")[0],
        base_dir=cfg.get("log_dir", LOG_DIR),
        core_level=cfg.get("log_core_level", LOG_CORE_LEVEL),
    )

    path = Path(args.path)
    if not path.exists():
        raise SystemExit(f"events file not found: {path}")

    order_by_value = args.order_by_value or bool(cfg.get("order_by_value", False))
    strict = args.strict or bool(cfg.get("strict", REPLAY_STRICT))
    try:
        lst, stats = replay_file(path, order_by_value=order_by_value, strict=strict)
    except (ListSyncError, ValueError) as exc:
        log.error("Replay aborted: %s", exc)
        return 1

    for entry in lst:
        print(json.dumps({"key": entry.key, "value": entry.value}, default=str))
    print(
        f"messages={stats.messages} entries={len(lst)} added={stats.added} removed={stats.removed} "
        f"changed={stats.changed} moved={stats.moved} loads={stats.loads} "
        f"rejected={stats.rejected} malformed={stats.malformed}"
    )
    return 1 if (stats.rejected or stats.malformed) else 0


if __name__ == "__main__":
    raise SystemExit(main())
