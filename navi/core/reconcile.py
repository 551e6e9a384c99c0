"""Merge fetch results into the dashboard state.

Each `apply_*` function takes one result message, updates the entity list
and caches in place, and returns an `Outcome`: status changes to notify
about plus follow-up fetches for the engine to schedule.

Merges are commutative per origin. A local result replaces only local
sessions, a remote result replaces only that host's sessions, and the
combined list is always re-sorted into the same total order, so arrival
order does not change the final list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable

from navi.constants import GIT_CACHE_MAX_AGE, PM_EVENT_LIMIT, RESOURCE_CACHE_MAX_AGE, TASK_CACHE_MAX_AGE
from navi.core.cache import MetadataCache
from navi.core.errors import ConfigAbsentError
from navi.core.focus import FocusMode
from navi.core.messages import (
    ActionCompleted,
    AttachFinished,
    ContentLoaded,
    GitInfoLoaded,
    GitKey,
    LocalSessionsLoaded,
    PMSnapshotTaken,
    PRDetailLoaded,
    PreviewCaptured,
    RemoteSessionsLoaded,
    ResourceUsageLoaded,
    ResultMessage,
    TaskConfigsDiscovered,
    TasksLoaded,
)
from navi.core.models import GitInfo, ProviderResult, ResourceUsage, SessionInfo, SessionKey
from navi.core.pipeline import sort_by_priority
from navi.core.state import (
    DashboardState,
    Intent,
    IntentType,
    Notice,
    reduce_state,
    refresh_sessions,
    refresh_tasks,
    sync_task_project,
)
from navi.core.status_tracker import StatusChange

logger = logging.getLogger(__name__)


class FollowUpKind(str, Enum):
    POLL_SESSIONS = "poll_sessions"
    POLL_REMOTE = "poll_remote"
    POLL_GIT = "poll_git"
    POLL_REMOTE_GIT = "poll_remote_git"
    DISCOVER_TASK_CONFIGS = "discover_task_configs"
    RUN_TASKS = "run_tasks"


@dataclass(frozen=True)
class FollowUp:
    kind: FollowUpKind
    host: str | None = None
    keys: tuple[str, ...] = ()


@dataclass
class Outcome:
    changes: list[StatusChange] = field(default_factory=list)
    follow_ups: list[FollowUp] = field(default_factory=list)


class Caches:
    """The per-kind caches the engine reconciles against."""

    def __init__(
        self,
        git: MetadataCache[GitKey, GitInfo] | None = None,
        tasks: MetadataCache[str, ProviderResult] | None = None,
        resources: MetadataCache[SessionKey, ResourceUsage] | None = None,
    ) -> None:
        self.git = git if git is not None else MetadataCache("git", GIT_CACHE_MAX_AGE)
        self.tasks = tasks if tasks is not None else MetadataCache("tasks", TASK_CACHE_MAX_AGE)
        self.resources = resources if resources is not None else MetadataCache("resources", RESOURCE_CACHE_MAX_AGE)


def git_key(session: SessionInfo) -> GitKey:
    return (session.origin, session.cwd)


def _with_cached_metadata(sessions: Iterable[SessionInfo], caches: Caches) -> list[SessionInfo]:
    """Re-attach cached git and resource data so a list refresh never blanks it."""
    merged: list[SessionInfo] = []
    for session in sessions:
        updates: dict[str, object] = {}
        if session.cwd:
            cached_git = caches.git.get(git_key(session))
            if cached_git.value is not None:
                updates["git"] = cached_git.value
        cached_usage = caches.resources.get(session.key)
        if cached_usage.value is not None:
            updates["resource"] = cached_usage.value
        merged.append(replace(session, **updates) if updates else session)  # type: ignore[arg-type]
    return merged


def _merge(sessions: Iterable[SessionInfo], caches: Caches) -> list[SessionInfo]:
    return sort_by_priority(_with_cached_metadata(sessions, caches))


def _local_cwds(sessions: Iterable[SessionInfo]) -> set[str]:
    return {s.cwd for s in sessions if not s.is_remote and s.cwd}


def stale_git_keys(state: DashboardState, caches: Caches, origin: str | None) -> list[GitKey]:
    """Git keys for one origin whose cache entry is missing or stale."""
    keys = list(dict.fromkeys(git_key(s) for s in state.sessions if s.origin == origin and s.cwd))
    return caches.git.stale_keys(keys)


def _cold_start_tasks(state: DashboardState, caches: Caches) -> list[FollowUp]:
    """Run the provider now if the focused project has a config but no groups yet."""
    project = state.tasks.project
    if not project or project not in state.task_configs:
        return []
    if state.groups_by_project.get(project) or project in state.task_errors:
        return []
    if caches.tasks.get(project).fresh:
        return []
    return [FollowUp(FollowUpKind.RUN_TASKS, keys=(project,))]


# ===== Session lists =====


def apply_local_sessions(state: DashboardState, caches: Caches, msg: LocalSessionsLoaded) -> Outcome:
    outcome = Outcome()
    previous_cwds = _local_cwds(state.sessions)
    local = [replace(s, origin=None) if s.origin is not None else s for s in msg.sessions]
    remote = [s for s in state.sessions if s.is_remote]
    state.sessions = _merge([*local, *remote], caches)

    restore = state.pending_restore
    state.pending_restore = None
    if restore is not None and not refresh_sessions(state, restore=restore):
        logger.debug("Pending selection %s not found, clamping cursor", restore)
    elif restore is None:
        refresh_sessions(state)

    current_cwds = _local_cwds(state.sessions)
    if current_cwds and len(caches.git) == 0:
        outcome.follow_ups.append(FollowUp(FollowUpKind.POLL_GIT))
    if current_cwds != previous_cwds or not state.local_loaded:
        outcome.follow_ups.append(FollowUp(FollowUpKind.DISCOVER_TASK_CONFIGS, keys=tuple(sorted(current_cwds))))
    state.local_loaded = True

    outcome.changes = state.tracker.observe(state.sessions)
    return outcome


def apply_remote_sessions(state: DashboardState, caches: Caches, msg: RemoteSessionsLoaded) -> Outcome:
    outcome = Outcome()
    if msg.error is not None:
        # Keep this host's previous sessions; retry next tick.
        logger.debug("Remote poll for %s failed: %s", msg.host, msg.error)
        state.host_errors[msg.host] = str(msg.error)
        return outcome

    state.host_errors.pop(msg.host, None)
    incoming = [replace(s, origin=msg.host) if s.origin != msg.host else s for s in msg.sessions]
    for session in incoming:
        # Seed the cache from git data embedded in the status file, keeping its
        # own fetch time so old snapshots are refetched.
        key = git_key(session)
        if session.git is not None and session.cwd and key not in caches.git:
            caches.git.set(key, session.git, fetched_at=session.git.fetched_at)

    others = [s for s in state.sessions if s.origin != msg.host]
    state.sessions = _merge([*others, *incoming], caches)
    refresh_sessions(state)

    stale = stale_git_keys(state, caches, msg.host)
    if stale:
        outcome.follow_ups.append(
            FollowUp(FollowUpKind.POLL_REMOTE_GIT, host=msg.host, keys=tuple(cwd for _, cwd in stale))
        )
    outcome.changes = state.tracker.observe(state.sessions)
    return outcome


# ===== Per-entity metadata =====


def apply_git_info(state: DashboardState, caches: Caches, msg: GitInfoLoaded) -> Outcome:
    shown = {git_key(s) for s in state.sessions if s.cwd and s.git is not None}
    for key, error in msg.errors.items():
        logger.debug("Git info for %s failed: %s", key, error)
        if key in shown or caches.git.get(key).value is not None:
            # Previous value stays; the next tick retries.
            continue
        # Nothing to show: remember the failure so the window applies before
        # the next attempt (e.g. a directory that is not a repository).
        caches.git.set(key, error=error)
    if not msg.infos:
        return Outcome()
    for key, info in msg.infos.items():
        caches.git.set(key, info)
    state.sessions = [
        replace(s, git=msg.infos[git_key(s)]) if git_key(s) in msg.infos else s for s in state.sessions
    ]
    refresh_sessions(state)
    return Outcome()


def apply_resource_usage(state: DashboardState, caches: Caches, msg: ResourceUsageLoaded) -> Outcome:
    if not msg.usage:
        return Outcome()
    for key, usage in msg.usage.items():
        caches.resources.set(key, usage)
    state.sessions = [replace(s, resource=msg.usage[s.key]) if s.key in msg.usage else s for s in state.sessions]
    refresh_sessions(state)
    return Outcome()


# ===== Tasks =====


def apply_task_configs(state: DashboardState, caches: Caches, msg: TaskConfigsDiscovered) -> Outcome:
    state.task_configs = dict(msg.configs)
    sync_task_project(state)
    due = tuple(project for project in sorted(msg.configs) if not caches.tasks.get(project).fresh)
    outcome = Outcome()
    if due:
        outcome.follow_ups.append(FollowUp(FollowUpKind.RUN_TASKS, keys=due))
    else:
        outcome.follow_ups.extend(_cold_start_tasks(state, caches))
    return outcome


def apply_tasks(state: DashboardState, caches: Caches, msg: TasksLoaded) -> Outcome:
    for project, groups in msg.groups_by_project.items():
        caches.tasks.set(project, ProviderResult(groups=tuple(groups)))
        state.groups_by_project[project] = list(groups)
        state.task_errors.pop(project, None)
    for project, error in msg.errors.items():
        caches.tasks.set(project, error=error)
        state.task_errors[project] = error
        if isinstance(error, ConfigAbsentError):
            state.groups_by_project.pop(project, None)
        else:
            logger.info("Task provider for %s failed: %s", project, error)
    refresh_tasks(state)
    return Outcome(follow_ups=_cold_start_tasks(state, caches))


# ===== One-shot results =====


def apply_preview(state: DashboardState, msg: PreviewCaptured) -> Outcome:
    preview = state.preview
    if msg.error is not None:
        preview.key = msg.key
        preview.error = str(msg.error)
        return Outcome()
    preview.key = msg.key
    preview.error = None
    preview.lines = msg.content.splitlines()
    preview.view.update_length(len(preview.lines))
    return Outcome()


def apply_pr_detail(state: DashboardState, msg: PRDetailLoaded) -> Outcome:
    if state.focus.mode is not FocusMode.GIT_DETAIL:
        return Outcome()
    target = state.dialog.target
    session = next((s for s in state.sessions if s.key == target), None)
    if session is None or git_key(session) != msg.key:
        return Outcome()
    if msg.error is not None:
        state.dialog.pr_error = str(msg.error)
    else:
        state.dialog.pr = msg.detail
        state.dialog.pr_error = None
    return Outcome()


def apply_content(state: DashboardState, msg: ContentLoaded) -> Outcome:
    state.content.loading = False
    if msg.error is not None:
        state.notice = Notice(f"{msg.title}: {msg.error}", "error")
        return Outcome()
    return_to = state.focus.mode.value if state.focus.dialog_open else None
    reduce_state(
        state,
        Intent(IntentType.OPEN_CONTENT, {"title": msg.title, "lines": list(msg.lines), "return_to": return_to}),
    )
    return Outcome()


def apply_action(state: DashboardState, msg: ActionCompleted) -> Outcome:
    outcome = Outcome()
    origin, name = msg.key
    dialog_open = state.focus.dialog_open and state.dialog.target == msg.key
    if msg.error is not None:
        if dialog_open:
            # Stays open until the user acknowledges the error.
            state.dialog.error = str(msg.error)
            state.dialog.busy = False
        else:
            state.notice = Notice(str(msg.error), "error")
        return outcome

    if msg.action == "rename" and msg.new_name:
        state.pending_restore = (origin, msg.new_name)
    if dialog_open:
        reduce_state(state, Intent(IntentType.CLOSE_DIALOG))
    if msg.action != "attach":
        state.notice = Notice(f"{msg.action} {name}: ok")
    if origin is None:
        outcome.follow_ups.append(FollowUp(FollowUpKind.POLL_SESSIONS))
    else:
        outcome.follow_ups.append(FollowUp(FollowUpKind.POLL_REMOTE, host=origin))
    return outcome


def apply_attach_finished(state: DashboardState, msg: AttachFinished) -> Outcome:
    """Take back the statuses the attach monitor saw while we were away."""
    if msg.states:
        state.tracker.restore(msg.states)
    state.attached = None
    return Outcome(follow_ups=[FollowUp(FollowUpKind.POLL_SESSIONS)])


def apply_pm_snapshot(state: DashboardState, msg: PMSnapshotTaken) -> Outcome:
    pm = state.pm
    pm.snapshots = list(msg.snapshots)
    pm.updated_at = msg.taken_at
    if msg.history is not None:
        pm.events = list(msg.history)
    else:
        pm.events.extend(msg.events)
    del pm.events[:-PM_EVENT_LIMIT]
    if msg.error is not None:
        logger.warning("Briefing event log update failed: %s", msg.error)
        pm.error = str(msg.error)
    else:
        pm.error = None
    return Outcome()


def reconcile(state: DashboardState, caches: Caches, message: ResultMessage) -> Outcome:
    """Route one result message to its merge function."""
    if isinstance(message, LocalSessionsLoaded):
        return apply_local_sessions(state, caches, message)
    if isinstance(message, RemoteSessionsLoaded):
        return apply_remote_sessions(state, caches, message)
    if isinstance(message, GitInfoLoaded):
        return apply_git_info(state, caches, message)
    if isinstance(message, ResourceUsageLoaded):
        return apply_resource_usage(state, caches, message)
    if isinstance(message, TaskConfigsDiscovered):
        return apply_task_configs(state, caches, message)
    if isinstance(message, TasksLoaded):
        return apply_tasks(state, caches, message)
    if isinstance(message, PreviewCaptured):
        return apply_preview(state, message)
    if isinstance(message, PRDetailLoaded):
        return apply_pr_detail(state, message)
    if isinstance(message, ContentLoaded):
        return apply_content(state, message)
    if isinstance(message, ActionCompleted):
        return apply_action(state, message)
    if isinstance(message, AttachFinished):
        return apply_attach_finished(state, message)
    if isinstance(message, PMSnapshotTaken):
        return apply_pm_snapshot(state, message)
    logger.warning("Unknown result message %s", type(message).__name__)
    return Outcome()
