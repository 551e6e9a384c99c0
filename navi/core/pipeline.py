"""Filter, search and sort pipeline.

Pure functions from the entity list (or task groups) plus view settings to
what is displayed. Session stages always run in the same order:

    origin -> status -> hide done -> scope -> sort

Search never removes items; it only yields the indices of matching rows in
the displayed list for match navigation and highlighting. Sessions and tasks
both follow that rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from navi.core.models import (
    OriginFilter,
    SessionInfo,
    SessionStatus,
    SortMode,
    Task,
    TaskFilterMode,
    TaskGroup,
    TaskSortMode,
)
from navi.utils import is_within

# ===== Matching =====


def fuzzy_match(query: str, candidate: str) -> bool:
    """Case-insensitive subsequence match.

    Every query character must appear in `candidate` in order, not
    necessarily contiguous. An empty query matches nothing.
    """
    if not query:
        return False
    remaining = iter(candidate.lower())
    return all(char in remaining for char in query.lower())


def exact_match(query: str, candidate: str) -> bool:
    """Case-insensitive substring match. An empty query matches nothing."""
    if not query:
        return False
    return query.lower() in candidate.lower()


# ===== Sessions =====


@dataclass
class SessionFilters:
    """Active filter and sort configuration for the session list."""

    origin: OriginFilter = OriginFilter.ALL
    status: SessionStatus | None = None
    hide_done: bool = False
    scope: str | None = None
    sort: SortMode = SortMode.PRIORITY


_STATUS_SORT_ORDER = {
    SessionStatus.PERMISSION: 0,
    SessionStatus.WAITING: 1,
    SessionStatus.WORKING: 2,
    SessionStatus.DONE: 3,
    SessionStatus.ERROR: 4,
}


def status_rank(status: SessionStatus) -> int:
    return _STATUS_SORT_ORDER.get(status, len(_STATUS_SORT_ORDER))


def priority_key(session: SessionInfo) -> tuple[int, float, str, str]:
    """Canonical order: attention needed first, then newest, then identity.

    The identity tie-break makes the order total, so merging sources in any
    order yields the same list.
    """
    return (0 if session.needs_attention else 1, -session.timestamp, session.origin or "", session.name)


def sort_by_priority(sessions: Iterable[SessionInfo]) -> list[SessionInfo]:
    return sorted(sessions, key=priority_key)


def sort_sessions(sessions: Sequence[SessionInfo], mode: SortMode) -> list[SessionInfo]:
    """Stable sort of `sessions` by `mode`. Ties keep their input order."""
    if mode == SortMode.PRIORITY:
        return sorted(sessions, key=lambda s: (0 if s.needs_attention else 1, -s.timestamp))
    if mode == SortMode.NAME:
        return sorted(sessions, key=lambda s: s.name.lower())
    if mode == SortMode.AGE:
        return sorted(sessions, key=lambda s: -s.timestamp)
    if mode == SortMode.STATUS:
        return sorted(sessions, key=lambda s: (status_rank(s.status), -s.timestamp))
    if mode == SortMode.DIRECTORY:
        return sorted(sessions, key=lambda s: (s.cwd.lower(), s.name.lower()))
    return list(sessions)


def filter_by_origin(sessions: Iterable[SessionInfo], origin: OriginFilter) -> list[SessionInfo]:
    if origin == OriginFilter.LOCAL:
        return [s for s in sessions if not s.is_remote]
    if origin == OriginFilter.REMOTE:
        return [s for s in sessions if s.is_remote]
    return list(sessions)


def filter_by_status(sessions: Iterable[SessionInfo], status: SessionStatus | None) -> list[SessionInfo]:
    if status is None:
        return list(sessions)
    return [s for s in sessions if s.status == status]


def filter_hide_done(sessions: Iterable[SessionInfo], hide_done: bool) -> list[SessionInfo]:
    if not hide_done:
        return list(sessions)
    return [s for s in sessions if s.status != SessionStatus.DONE]


def filter_by_scope(sessions: Iterable[SessionInfo], scope: str | None) -> list[SessionInfo]:
    if not scope:
        return list(sessions)
    return [s for s in sessions if is_within(s.cwd, scope)]


def project_for_cwd(project_dirs: Iterable[str], cwd: str) -> str | None:
    """Deepest configured project directory containing `cwd`."""
    best: str | None = None
    for project_dir in project_dirs:
        if is_within(cwd, project_dir) and (best is None or len(project_dir) > len(best)):
            best = project_dir
    return best


def apply_session_pipeline(sessions: Sequence[SessionInfo], filters: SessionFilters) -> list[SessionInfo]:
    """Derive the displayed session list."""
    result = filter_by_origin(sessions, filters.origin)
    result = filter_by_status(result, filters.status)
    result = filter_hide_done(result, filters.hide_done)
    result = filter_by_scope(result, filters.scope)
    return sort_sessions(result, filters.sort)


def find_session_matches(displayed: Sequence[SessionInfo], query: str) -> list[int]:
    """Indices of displayed sessions whose name, cwd or message fuzzy-match."""
    if not query:
        return []
    return [
        index
        for index, session in enumerate(displayed)
        if fuzzy_match(query, session.name) or fuzzy_match(query, session.cwd) or fuzzy_match(query, session.message)
    ]


# ===== Tasks =====

_DONE_STATUSES = frozenset({"done", "closed", "completed", "complete", "resolved", "merged"})
_ACTIVE_STATUSES = frozenset({"active", "in_progress", "inprogress", "in-progress", "working", "started", "doing"})
_REVIEW_STATUSES = frozenset({"review", "inreview", "in_review", "in-review"})
_BLOCKED_STATUSES = frozenset({"blocked", "on_hold", "waiting"})
_CATEGORY_PRIORITY = {"active": 0, "review": 1, "blocked": 2, "todo": 3, "done": 4}


def status_category(status: str) -> str:
    """Collapse a free-form task status into active/review/blocked/todo/done."""
    value = "_".join(status.lower().split())
    if value in _DONE_STATUSES:
        return "done"
    if value in _ACTIVE_STATUSES:
        return "active"
    if value in _REVIEW_STATUSES:
        return "review"
    if value in _BLOCKED_STATUSES:
        return "blocked"
    return "todo"


def status_priority(status: str) -> int:
    return _CATEGORY_PRIORITY.get(status_category(status), 5)


def group_progress(group: TaskGroup) -> tuple[int, int]:
    """Return (done, total) task counts for a group."""
    done = sum(1 for task in group.tasks if status_category(task.status) == "done")
    return done, len(group.tasks)


def filter_task_groups(groups: Sequence[TaskGroup], mode: TaskFilterMode) -> list[TaskGroup]:
    if mode == TaskFilterMode.ACTIVE:
        return [g for g in groups if status_category(g.status) in ("active", "review", "blocked")]
    if mode == TaskFilterMode.INCOMPLETE:
        return [g for g in groups if status_category(g.status) != "done"]
    return list(groups)


def _progress_ratio(group: TaskGroup) -> float:
    done, total = group_progress(group)
    return done / total if total else 0.0


def sort_task_groups(groups: Sequence[TaskGroup], mode: TaskSortMode, reverse: bool = False) -> list[TaskGroup]:
    """Stable sort of groups; source order is the tie-break for every mode."""
    if mode == TaskSortMode.STATUS:
        result = sorted(groups, key=lambda g: status_priority(g.status))
    elif mode == TaskSortMode.NAME:
        result = sorted(groups, key=lambda g: g.title.lower())
    elif mode == TaskSortMode.PROGRESS:
        result = sorted(groups, key=_progress_ratio)
    else:
        result = list(groups)
    if reverse:
        result.reverse()
    return result


@dataclass(frozen=True)
class TaskRow:
    """One row of the task panel: a group header or a task inside it."""

    group: TaskGroup
    task: Task | None = None

    @property
    def is_header(self) -> bool:
        return self.task is None

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.group.id, self.task.id if self.task else None)


def task_row_matches(row: TaskRow, query: str) -> bool:
    if row.task is None:
        return exact_match(query, row.group.title) or exact_match(query, row.group.id)
    return exact_match(query, row.task.title) or exact_match(query, row.task.id)


def _group_has_task_match(group: TaskGroup, query: str) -> bool:
    return any(exact_match(query, t.title) or exact_match(query, t.id) for t in group.tasks)


def visible_task_rows(groups: Sequence[TaskGroup], expanded: set[str], query: str = "") -> list[TaskRow]:
    """Flatten groups into rows. Tasks show under expanded groups.

    With a query active, any group containing a matching task is expanded so
    its matches are reachable.
    """
    rows: list[TaskRow] = []
    for group in groups:
        rows.append(TaskRow(group))
        if group.id in expanded or (query and _group_has_task_match(group, query)):
            rows.extend(TaskRow(group, task) for task in group.tasks)
    return rows


def find_task_matches(rows: Sequence[TaskRow], query: str) -> list[int]:
    if not query:
        return []
    return [index for index, row in enumerate(rows) if task_row_matches(row, query)]


def derive_task_groups(
    groups: Sequence[TaskGroup], mode: TaskFilterMode, sort: TaskSortMode, reverse: bool
) -> list[TaskGroup]:
    """Filter then sort task groups."""
    return sort_task_groups(filter_task_groups(groups, mode), sort, reverse)
