"""Typed result messages produced by pollers and consumed by the engine.

Background workers never touch dashboard state; they only put one of these
onto the engine's result queue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TypeAlias, Union

from navi.core.models import (
    GitInfo,
    PRDetail,
    ResourceUsage,
    SessionInfo,
    SessionKey,
    SessionStatus,
    TaskGroup,
    TaskProviderConfig,
)
from navi.core.pm import PMEvent, ProjectSnapshot

# Git metadata is keyed by (origin, working directory).
GitKey: TypeAlias = tuple[Optional[str], str]


@dataclass(frozen=True)
class LocalSessionsLoaded:
    sessions: tuple[SessionInfo, ...]


@dataclass(frozen=True)
class RemoteSessionsLoaded:
    """One poll cycle for one remote host. `error` set means keep previous."""

    host: str
    sessions: tuple[SessionInfo, ...] = ()
    error: Exception | None = None


@dataclass(frozen=True)
class GitInfoLoaded:
    infos: dict[GitKey, GitInfo] = field(default_factory=dict)
    errors: dict[GitKey, Exception] = field(default_factory=dict)
    origin: str | None = None


@dataclass(frozen=True)
class ResourceUsageLoaded:
    usage: dict[SessionKey, ResourceUsage] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskConfigsDiscovered:
    configs: dict[str, TaskProviderConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class TasksLoaded:
    groups_by_project: dict[str, tuple[TaskGroup, ...]] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)


@dataclass(frozen=True)
class PreviewCaptured:
    key: SessionKey
    content: str = ""
    error: Exception | None = None


@dataclass(frozen=True)
class PRDetailLoaded:
    key: GitKey
    detail: PRDetail | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class ContentLoaded:
    """Text for the full-screen content overlay (diff, log...)."""

    title: str
    lines: tuple[str, ...] = ()
    error: Exception | None = None


@dataclass(frozen=True)
class ActionCompleted:
    action: str
    key: SessionKey
    error: Exception | None = None
    new_name: str | None = None


@dataclass(frozen=True)
class AttachFinished:
    """The attach monitor was stopped; carries its last-observed states."""

    key: SessionKey
    states: dict[tuple[Optional[str], str, Optional[str]], SessionStatus] = field(default_factory=dict)


@dataclass(frozen=True)
class PMSnapshotTaken:
    """One briefing cycle.

    `history` is the event log after this cycle's events were appended, or
    None when there is no log or it could not be written (`error`).
    """

    snapshots: tuple[ProjectSnapshot, ...] = ()
    events: tuple[PMEvent, ...] = ()
    history: tuple[PMEvent, ...] | None = None
    error: Exception | None = None
    taken_at: float = 0.0


ResultMessage: TypeAlias = Union[
    LocalSessionsLoaded,
    RemoteSessionsLoaded,
    GitInfoLoaded,
    ResourceUsageLoaded,
    TaskConfigsDiscovered,
    TasksLoaded,
    PreviewCaptured,
    PRDetailLoaded,
    ContentLoaded,
    ActionCompleted,
    AttachFinished,
    PMSnapshotTaken,
]
