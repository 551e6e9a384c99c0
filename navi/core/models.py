"""Typed models for sessions, metadata, and task providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TypeAlias

# Origin None means the local session store; otherwise the remote host name.
SessionKey: TypeAlias = tuple[Optional[str], str]


class SessionStatus(str, Enum):
    """Lifecycle status reported by a session's hooks."""

    WORKING = "working"
    WAITING = "waiting"
    PERMISSION = "permission"
    IDLE = "idle"
    STOPPED = "stopped"
    DONE = "done"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "SessionStatus":
        if isinstance(value, SessionStatus):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


ATTENTION_STATUSES = frozenset({SessionStatus.WAITING, SessionStatus.PERMISSION})


class OriginFilter(str, Enum):
    ALL = "all"
    LOCAL = "local"
    REMOTE = "remote"

    def next(self) -> "OriginFilter":
        order = list(OriginFilter)
        return order[(order.index(self) + 1) % len(order)]


class SortMode(str, Enum):
    PRIORITY = "priority"
    NAME = "name"
    AGE = "age"
    STATUS = "status"
    DIRECTORY = "directory"

    def next(self) -> "SortMode":
        order = list(SortMode)
        return order[(order.index(self) + 1) % len(order)]


class TaskSortMode(str, Enum):
    SOURCE = "source"
    STATUS = "status"
    NAME = "name"
    PROGRESS = "progress"

    def next(self) -> "TaskSortMode":
        order = list(TaskSortMode)
        return order[(order.index(self) + 1) % len(order)]


class TaskFilterMode(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INCOMPLETE = "incomplete"

    def next(self) -> "TaskFilterMode":
        order = list(TaskFilterMode)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class GitInfo:
    branch: str = ""
    dirty: bool = False
    ahead: int = 0
    behind: int = 0
    last_commit: str = ""
    remote: str = ""
    pr_num: int | None = None
    fetched_at: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "GitInfo":
        pr_num = data.get("pr_num")
        return cls(
            branch=str(data.get("branch") or ""),
            dirty=bool(data.get("dirty", False)),
            ahead=_as_int(data.get("ahead")),
            behind=_as_int(data.get("behind")),
            last_commit=str(data.get("last_commit") or ""),
            remote=str(data.get("remote") or ""),
            pr_num=_as_int(pr_num) or None,
            fetched_at=float(_as_int(data.get("fetched_at"))),
        )


@dataclass(frozen=True)
class PRCheck:
    name: str
    status: str  # "pending" | "success" | "failure" | "skipped"

    @property
    def is_pending(self) -> bool:
        return self.status in ("pending", "queued", "in_progress")


@dataclass(frozen=True)
class PRDetail:
    number: int
    title: str = ""
    state: str = ""
    url: str = ""
    checks: tuple[PRCheck, ...] = ()

    @property
    def has_pending_checks(self) -> bool:
        return any(check.is_pending for check in self.checks)


@dataclass(frozen=True)
class ResourceUsage:
    rss_bytes: int = 0


@dataclass(frozen=True)
class TokenMetrics:
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass(frozen=True)
class SessionMetrics:
    tokens: TokenMetrics | None = None
    total_seconds: int = 0
    working_seconds: int = 0
    waiting_seconds: int = 0
    tool_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "SessionMetrics":
        tokens_raw = data.get("tokens")
        time_raw = data.get("time") if isinstance(data.get("time"), dict) else {}
        tools_raw = data.get("tools") if isinstance(data.get("tools"), dict) else {}
        tokens = None
        if isinstance(tokens_raw, dict):
            tokens = TokenMetrics(input=_as_int(tokens_raw.get("input")), output=_as_int(tokens_raw.get("output")))
        counts = tools_raw.get("counts") if isinstance(tools_raw, dict) else None  # type: ignore[union-attr]
        return cls(
            tokens=tokens,
            total_seconds=_as_int(time_raw.get("total_seconds")),  # type: ignore[union-attr]
            working_seconds=_as_int(time_raw.get("working_seconds")),  # type: ignore[union-attr]
            waiting_seconds=_as_int(time_raw.get("waiting_seconds")),  # type: ignore[union-attr]
            tool_counts={str(k): _as_int(v) for k, v in counts.items()} if isinstance(counts, dict) else {},
        )


@dataclass(frozen=True)
class AgentInfo:
    """A teammate or external agent running inside a session."""

    name: str
    status: SessionStatus
    timestamp: float = 0.0


@dataclass(frozen=True)
class SessionInfo:
    """One monitored session.

    Identity is `(origin, name)`. Optional metadata (git, resource, metrics)
    is None until a fetch has produced it.
    """

    name: str
    status: SessionStatus = SessionStatus.UNKNOWN
    cwd: str = ""
    origin: str | None = None
    timestamp: float = 0.0
    message: str = ""
    git: GitInfo | None = None
    resource: ResourceUsage | None = None
    metrics: SessionMetrics | None = None
    team: str | None = None
    agents: tuple[AgentInfo, ...] = ()

    @property
    def key(self) -> SessionKey:
        return (self.origin, self.name)

    @property
    def is_remote(self) -> bool:
        return self.origin is not None

    @property
    def needs_attention(self) -> bool:
        if self.status in ATTENTION_STATUSES:
            return True
        return any(agent.status in ATTENTION_STATUSES for agent in self.agents)

    @classmethod
    def from_dict(cls, data: dict[str, object], origin: str | None = None) -> "SessionInfo":
        """Build a session from a status-file JSON object.

        `origin` overrides the object's own `remote` field; remote pollers
        stamp the host they fetched from.
        """
        git_raw = data.get("git")
        metrics_raw = data.get("metrics")
        team_raw = data.get("team")
        agents: list[AgentInfo] = []
        team_name = None
        if isinstance(team_raw, dict):
            team_name = str(team_raw.get("name") or "") or None
            for agent in team_raw.get("agents") or []:
                if isinstance(agent, dict) and agent.get("name"):
                    agents.append(
                        AgentInfo(
                            name=str(agent["name"]),
                            status=SessionStatus.parse(agent.get("status")),
                            timestamp=float(_as_int(agent.get("timestamp"))),
                        )
                    )
        external = data.get("agents")
        if isinstance(external, dict):
            for agent_name in sorted(external):
                entry = external[agent_name]
                if isinstance(entry, dict):
                    agents.append(
                        AgentInfo(
                            name=str(agent_name),
                            status=SessionStatus.parse(entry.get("status")),
                            timestamp=float(_as_int(entry.get("timestamp"))),
                        )
                    )
        raw_origin = data.get("remote")
        return cls(
            name=str(data.get("tmux_session") or data.get("name") or ""),
            status=SessionStatus.parse(data.get("status")),
            cwd=str(data.get("cwd") or ""),
            origin=origin if origin is not None else (str(raw_origin) if raw_origin else None),
            timestamp=float(_as_int(data.get("timestamp"))),
            message=str(data.get("message") or ""),
            git=GitInfo.from_dict(git_raw) if isinstance(git_raw, dict) else None,
            metrics=SessionMetrics.from_dict(metrics_raw) if isinstance(metrics_raw, dict) else None,
            team=team_name,
            agents=tuple(agents),
        )


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: str = ""
    url: str | None = None


@dataclass(frozen=True)
class TaskGroup:
    id: str
    title: str
    status: str = ""
    url: str | None = None
    tasks: tuple[Task, ...] = ()


@dataclass(frozen=True)
class ProviderResult:
    """Normalized output of a task provider run."""

    groups: tuple[TaskGroup, ...] = ()


@dataclass(frozen=True)
class TaskProviderConfig:
    """Effective provider settings for one project directory."""

    project_dir: str
    provider: str
    args: dict[str, str] = field(default_factory=dict)
    interval: float = 60.0
    status_map: dict[str, str] = field(default_factory=dict)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0
