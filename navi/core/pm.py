"""Project briefing: per-project snapshots and the events between them.

Each cycle groups local sessions by project, captures one snapshot per project
from data the dashboard already holds (git metadata, task groups, session
statuses) and diffs it against the previous cycle's snapshot. The resulting
events feed the briefing view and the on-disk event log.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Sequence

from navi.core.models import SessionInfo, SessionStatus, TaskGroup
from navi.core.pipeline import project_for_cwd, status_category, status_rank
from navi.utils import last_path_component

logger = logging.getLogger(__name__)


class PMEventType(str, Enum):
    TASK_COMPLETED = "task_completed"
    TASK_STARTED = "task_started"
    COMMIT = "commit"
    SESSION_STATUS_CHANGE = "session_status_change"
    GROUP_COMPLETED = "group_completed"
    BRANCH_CHANGED = "branch_changed"
    PR_CREATED = "pr_created"


@dataclass(frozen=True)
class TaskCounts:
    total: int = 0
    done: int = 0
    in_progress: int = 0


@dataclass(frozen=True)
class ProjectSnapshot:
    """State of one project directory at one briefing cycle."""

    project_dir: str
    session_count: int = 0
    branch: str = ""
    last_commit: str = ""
    ahead: int = 0
    dirty: bool = False
    pr_num: int | None = None
    current_group_id: str = ""
    current_group_title: str = ""
    tasks: TaskCounts = field(default_factory=TaskCounts)
    session_status: SessionStatus | None = None
    last_activity: float = 0.0

    @property
    def name(self) -> str:
        return last_path_component(self.project_dir)


@dataclass(frozen=True)
class PMEvent:
    type: PMEventType
    project_dir: str
    timestamp: float
    payload: dict[str, str] = field(default_factory=dict)

    @property
    def project_name(self) -> str:
        return last_path_component(self.project_dir)

    def describe(self) -> str:
        """One-line human summary for the briefing."""
        p = self.payload
        if self.type is PMEventType.COMMIT:
            return f"new commit {p.get('new_commit', '')}"
        if self.type is PMEventType.TASK_COMPLETED:
            return f"tasks done {p.get('old_done')} → {p.get('new_done')}"
        if self.type is PMEventType.TASK_STARTED:
            return f"tasks in progress {p.get('old_in_progress')} → {p.get('new_in_progress')}"
        if self.type is PMEventType.SESSION_STATUS_CHANGE:
            return f"sessions {p.get('old_status')} → {p.get('new_status')}"
        if self.type is PMEventType.GROUP_COMPLETED:
            return f"completed {p.get('group_id')} {p.get('group_title', '')}".rstrip()
        if self.type is PMEventType.BRANCH_CHANGED:
            return f"branch {p.get('old_branch')} → {p.get('new_branch')}"
        return f"opened PR #{p.get('pr_number')}"

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "project_dir": self.project_dir,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: object) -> "PMEvent":
        """Parse one event log record.

        Raises:
            ValueError: if the record is not an event object.
        """
        if not isinstance(data, dict):
            raise ValueError(f"event must be an object, got {type(data).__name__}")
        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("event payload must be an object")
        try:
            return cls(
                type=PMEventType(data["type"]),
                project_dir=str(data["project_dir"]),
                timestamp=float(data["timestamp"]),
                payload={str(k): str(v) for k, v in payload.items()},
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed event: {e}") from e


@dataclass(frozen=True)
class PMOutput:
    snapshots: tuple[ProjectSnapshot, ...] = ()
    events: tuple[PMEvent, ...] = ()
    taken_at: float = 0.0


# ===== Snapshots =====


def discover_projects(sessions: Iterable[SessionInfo], project_dirs: Sequence[str] = ()) -> dict[str, list[SessionInfo]]:
    """Group local sessions by project.

    A session belongs to the deepest configured project containing its working
    directory, or to its working directory when none does.
    """
    projects: dict[str, list[SessionInfo]] = {}
    for session in sessions:
        if session.is_remote or not session.cwd.strip():
            continue
        project = project_for_cwd(project_dirs, session.cwd) or session.cwd
        projects.setdefault(project, []).append(session)
    return projects


def count_tasks(groups: Iterable[TaskGroup]) -> TaskCounts:
    total = done = in_progress = 0
    for group in groups:
        for task in group.tasks:
            total += 1
            category = status_category(task.status)
            if category == "done":
                done += 1
            elif category == "active":
                in_progress += 1
    return TaskCounts(total=total, done=done, in_progress=in_progress)


def capture_snapshot(
    project_dir: str, sessions: Sequence[SessionInfo], groups: Sequence[TaskGroup] = ()
) -> ProjectSnapshot:
    git = next((s.git for s in sessions if s.git is not None), None)
    current = next((g for g in groups if status_category(g.status) == "active"), None)
    return ProjectSnapshot(
        project_dir=project_dir,
        session_count=len(sessions),
        branch=git.branch if git else "",
        last_commit=git.last_commit if git else "",
        ahead=git.ahead if git else 0,
        dirty=git.dirty if git else False,
        pr_num=git.pr_num if git else None,
        current_group_id=current.id if current else "",
        current_group_title=current.title if current else "",
        tasks=count_tasks(groups),
        # Most urgent status wins.
        session_status=min((s.status for s in sessions), key=status_rank, default=None),
        last_activity=max((s.timestamp for s in sessions), default=0.0),
    )


def diff_snapshots(old: ProjectSnapshot, new: ProjectSnapshot, now: float) -> list[PMEvent]:
    """Events describing what changed in one project between two cycles."""
    events: list[PMEvent] = []

    def add(kind: PMEventType, payload: dict[str, str]) -> None:
        events.append(PMEvent(kind, new.project_dir, now, payload))

    if old.last_commit and new.last_commit and old.last_commit != new.last_commit:
        add(PMEventType.COMMIT, {"old_commit": old.last_commit, "new_commit": new.last_commit})
    if new.tasks.done > old.tasks.done:
        add(PMEventType.TASK_COMPLETED, {"old_done": str(old.tasks.done), "new_done": str(new.tasks.done)})
    if new.tasks.in_progress > old.tasks.in_progress:
        add(
            PMEventType.TASK_STARTED,
            {"old_in_progress": str(old.tasks.in_progress), "new_in_progress": str(new.tasks.in_progress)},
        )
    if old.session_status and new.session_status and old.session_status != new.session_status:
        add(
            PMEventType.SESSION_STATUS_CHANGE,
            {"old_status": old.session_status.value, "new_status": new.session_status.value},
        )
    if (
        new.current_group_id
        and new.current_group_id == old.current_group_id
        and new.tasks.total > 0
        and new.tasks.done == new.tasks.total
        and old.tasks.done < old.tasks.total
    ):
        add(PMEventType.GROUP_COMPLETED, {"group_id": new.current_group_id, "group_title": new.current_group_title})
    if old.branch and old.branch != new.branch:
        add(PMEventType.BRANCH_CHANGED, {"old_branch": old.branch, "new_branch": new.branch})
    if not old.pr_num and new.pr_num:
        add(PMEventType.PR_CREATED, {"pr_number": str(new.pr_num)})
    return events


class PMEngine:
    """Keeps the previous cycle's snapshots so each run yields only new events.

    A project seen for the first time only establishes its baseline.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._previous: dict[str, ProjectSnapshot] = {}
        self._clock = clock

    def run(
        self,
        sessions: Iterable[SessionInfo],
        groups_by_project: Mapping[str, Sequence[TaskGroup]],
        project_dirs: Iterable[str] = (),
    ) -> PMOutput:
        known = sorted(set(project_dirs) | set(groups_by_project))
        projects = discover_projects(sessions, known)
        now = self._clock()
        snapshots: list[ProjectSnapshot] = []
        events: list[PMEvent] = []
        current: dict[str, ProjectSnapshot] = {}
        for project_dir in sorted(projects):
            snapshot = capture_snapshot(project_dir, projects[project_dir], groups_by_project.get(project_dir, ()))
            previous = self._previous.get(project_dir)
            if previous is not None:
                events.extend(diff_snapshots(previous, snapshot, now))
            snapshots.append(snapshot)
            current[project_dir] = snapshot
        self._previous = current
        if events:
            logger.debug("Briefing cycle produced %d event(s)", len(events))
        return PMOutput(tuple(snapshots), tuple(events), now)
