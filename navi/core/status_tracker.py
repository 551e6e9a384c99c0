"""Status-change detection for notifications.

The first observation only seeds the tracker so startup state never fires a
notification. After that, a change is reported when a session (or an agent
inside a session) that was already known moves to a different status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, TypeAlias

from navi.core.models import SessionInfo, SessionStatus

# (origin, session name, agent name or None for the session itself)
StatusKey: TypeAlias = tuple[Optional[str], str, Optional[str]]


@dataclass(frozen=True)
class StatusChange:
    key: StatusKey
    old: SessionStatus
    new: SessionStatus

    @property
    def identity(self) -> str:
        """Display identity: `name` or `name:agent`."""
        _, name, agent = self.key
        return f"{name}:{agent}" if agent else name

    @property
    def origin(self) -> str | None:
        return self.key[0]


def snapshot(sessions: Iterable[SessionInfo]) -> dict[StatusKey, SessionStatus]:
    states: dict[StatusKey, SessionStatus] = {}
    for session in sessions:
        states[(session.origin, session.name, None)] = session.status
        for agent in session.agents:
            states[(session.origin, session.name, agent.name)] = agent.status
    return states


class StatusTracker:
    def __init__(self) -> None:
        self._states: dict[StatusKey, SessionStatus] = {}
        self._seeded = False

    @property
    def seeded(self) -> bool:
        return self._seeded

    @property
    def states(self) -> dict[StatusKey, SessionStatus]:
        return dict(self._states)

    def observe(self, sessions: Iterable[SessionInfo]) -> list[StatusChange]:
        """Record the current statuses and return transitions since last call."""
        current = snapshot(sessions)
        if not self._seeded:
            self._states = current
            self._seeded = True
            return []

        changes = [
            StatusChange(key, self._states[key], status)
            for key, status in current.items()
            if key in self._states and self._states[key] != status
        ]
        self._states = current
        return changes

    def restore(self, states: dict[StatusKey, SessionStatus]) -> None:
        """Adopt states observed elsewhere (the attach monitor's handoff)."""
        self._states = dict(states)
        self._seeded = True
