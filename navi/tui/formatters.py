"""Formatting utilities for TUI display."""

from __future__ import annotations

import re
import time

# Matches /Users/<user>/... (macOS) or /home/<user>/... (Linux)
_HOME_PATH_PATTERN = re.compile(r"^(/(?:Users|home)/[^/]+)")


def format_age(timestamp: float, now: float | None = None) -> str:
    """Unix timestamp to a compact age like '45s', '2m', '1h', '3d'."""
    if not timestamp:
        return ""
    seconds = int((time.time() if now is None else now) - timestamp)
    if seconds < 0:
        return "now"
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def format_duration(seconds: int) -> str:
    """Seconds to '1h 5m', '3m 20s' or '12s'."""
    hours, remainder = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_bytes(count: int) -> str:
    value = float(count)
    for unit in ("B", "K", "M", "G"):
        if value < 1024 or unit == "G":
            return f"{value:.0f}{unit}" if unit in ("B", "K") else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}G"


def format_tokens(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}k"
    return str(count)


def shorten_path(path: str | None, max_len: int = 40) -> str:
    """Shorten a file path for display.

    Replaces home directory with ~ and truncates from the left.
    """
    if not path:
        return ""
    shortened = _HOME_PATH_PATTERN.sub("~", path)
    if len(shortened) <= max_len:
        return shortened
    return "..." + shortened[-(max_len - 3) :]


def truncate_text(text: str | None, max_len: int = 60) -> str:
    """Truncate text with ellipsis if too long."""
    if not text:
        return ""
    text = " ".join(text.split())
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"
