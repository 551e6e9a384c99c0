"""Status monitoring while the user is attached to a session.

The dashboard is suspended during an attach, so a background task keeps
polling and notifying. On return the task is cancelled and its last-seen
statuses are handed back to the dashboard's tracker, so a transition is
neither notified twice nor lost across the handoff.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from navi.constants import ATTACH_MONITOR_INTERVAL
from navi.core.collaborators import Notifier
from navi.core.models import SessionInfo, SessionStatus
from navi.core.status_tracker import StatusKey, StatusTracker

logger = logging.getLogger(__name__)


class AttachMonitor:
    def __init__(
        self,
        list_sessions: Callable[[], Awaitable[list[SessionInfo]]],
        notify: Notifier,
        initial_states: dict[StatusKey, SessionStatus],
        interval: float = ATTACH_MONITOR_INTERVAL,
    ) -> None:
        self._list_sessions = list_sessions
        self._notify = notify
        self._interval = interval
        self._tracker = StatusTracker()
        self._tracker.restore(initial_states)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="attach-monitor")

    async def stop(self) -> dict[StatusKey, SessionStatus]:
        """Cancel the monitor and return the last statuses it observed."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self._tracker.states

    async def poll_once(self) -> None:
        try:
            sessions = await self._list_sessions()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.debug("Attach monitor poll failed: %s", e)
            return
        for change in self._tracker.observe(sessions):
            self._notify(change.identity, change.new)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.poll_once()
