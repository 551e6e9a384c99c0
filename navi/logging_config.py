"""Navi logging configuration.

The dashboard owns the terminal, so logs go to `~/.navi/navi.log` rather than
stderr. Level comes from the argument or `NAVI_LOG_LEVEL` (default INFO).
Third-party loggers stay at WARNING unless `NAVI_THIRD_PARTY_LOG_LEVEL` says
otherwise.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from navi.paths import LOG_PATH

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_THIRD_PARTY = ("asyncio", "textual")


def setup_logging(level: Optional[str] = None, log_path: Optional[Path] = None) -> None:
    """Configure Navi logging.

    Args:
        level: Optional override for `NAVI_LOG_LEVEL`.
        log_path: Optional override for the log file location.
    """
    if level:
        os.environ["NAVI_LOG_LEVEL"] = level

    resolved = os.getenv("NAVI_LOG_LEVEL", "INFO").upper()
    path = log_path or LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("navi")
    root.handlers.clear()
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, resolved, logging.INFO))
    root.propagate = False

    third_party = os.getenv("NAVI_THIRD_PARTY_LOG_LEVEL", "WARNING").upper()
    for name in _THIRD_PARTY:
        logging.getLogger(name).setLevel(getattr(logging, third_party, logging.WARNING))
