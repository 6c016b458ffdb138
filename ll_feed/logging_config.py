import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# Marks handlers installed here so a second call replaces only those.
_OWNED = "_livelist_handler"


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def log_file_path(base_dir: str | Path, component: str, subdir: str, tz: str = "UTC") -> Path:
    """<base_dir>/<component>/<subdir>/YYYY-MM-DD.log, dated in `tz`."""
    date_str = datetime.now(ZoneInfo(tz)).strftime("%Y-%m-%d")
    return Path(base_dir) / component / subdir / f"{date_str}.log"


def setup_logging(
    level: str = "INFO",
    component: str = "app",
    subdir: str = "default",
    base_dir: str | Path = "logs",
    tz: str = "UTC",
    core_level: Optional[str] = None,
) -> Path:
    """Send records to stderr and to the component's daily log file.

    `core_level` overrides the level of the `ll_core` loggers, which warn once
    per rejected event; a long replay may want those at ERROR.
    Returns the log file path.
    """
    log_path = log_file_path(base_dir, component, subdir, tz)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(_level(level))
    for h in list(root.handlers):
        if getattr(h, _OWNED, False):
            root.removeHandler(h)
            h.close()

    fmt = logging.Formatter(LOG_FORMAT)
    for handler in (logging.FileHandler(log_path, encoding="utf-8"), logging.StreamHandler()):
        handler.setFormatter(fmt)
        setattr(handler, _OWNED, True)
        root.addHandler(handler)

    logging.getLogger("ll_core").setLevel(_level(core_level) if core_level else logging.NOTSET)
    return log_path
