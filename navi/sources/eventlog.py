"""Briefing event log.

Events are kept as JSON lines under ~/.navi/pm/events.jsonl. Every append
first drops events older than the retention window, so the file holds about
one day of history.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Sequence

from navi.constants import PM_EVENT_RETENTION
from navi.core.pm import PMEvent
from navi.paths import PM_EVENT_LOG_PATH

logger = logging.getLogger(__name__)


class EventLog:
    def __init__(
        self,
        path: Path = PM_EVENT_LOG_PATH,
        retention: float = PM_EVENT_RETENTION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.retention = retention
        self._clock = clock

    def read(self) -> list[PMEvent]:
        """Return every readable event; malformed lines are skipped."""
        if not self.path.exists():
            return []
        events: list[PMEvent] = []
        with self.path.open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(PMEvent.from_dict(json.loads(line)))
                except ValueError as e:
                    logger.debug("Skipping event log line: %s", e)
        return events

    def append(self, events: Sequence[PMEvent]) -> list[PMEvent]:
        """Prune expired events, append `events` and return what the log now holds.

        Raises:
            OSError: if the log cannot be read or written.
        """
        cutoff = self._clock() - self.retention
        retained = [event for event in self.read() if event.timestamp >= cutoff]
        retained.extend(events)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            for event in retained:
                f.write(json.dumps(event.to_dict()) + "\n")
        tmp_path.replace(self.path)
        return retained
