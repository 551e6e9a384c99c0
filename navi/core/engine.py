"""Dashboard engine: owns the state and is its only writer.

Pollers and one-shot fetches put result messages on a queue; `handle_result`
consumes them in arrival order on the event loop and reconciles them into
`DashboardState`. Key presses go through `handle_key`, which routes by focus
mode (dialog, PM view, task panel, preview, search, main list) and turns
them into reducer intents or fetches.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from navi.constants import (
    GIT_POLL_INTERVAL,
    PM_POLL_INTERVAL,
    PR_REFRESH_INTERVAL,
    PREVIEW_CAPTURE_LINES,
    PREVIEW_DEBOUNCE,
    REMOTE_POLL_INTERVAL,
    RESOURCE_POLL_INTERVAL,
    SESSION_POLL_INTERVAL,
    STATUS_FILTER_KEYS,
    TASK_PROVIDER_TIMEOUT,
    TASK_REFRESH_INTERVAL,
)
from navi.core.collaborators import (
    GitSource,
    Notifier,
    PMEventStore,
    RemoteSource,
    SessionActions,
    SessionSource,
    TaskSource,
)
from navi.core.errors import ActionError
from navi.core.focus import FocusMode
from navi.core.messages import (
    ActionCompleted,
    AttachFinished,
    ContentLoaded,
    GitInfoLoaded,
    LocalSessionsLoaded,
    PreviewCaptured,
    PRDetailLoaded,
    PMSnapshotTaken,
    RemoteSessionsLoaded,
    ResourceUsageLoaded,
    ResultMessage,
    TaskConfigsDiscovered,
    TasksLoaded,
)
from navi.core.models import SessionInfo, SessionKey, SortMode
from navi.core.monitor import AttachMonitor
from navi.core.pm import PMEngine
from navi.core.pollers import Debouncer, HostGate, PeriodicPoller, fan_out, run_background, run_once
from navi.core.reconcile import Caches, FollowUp, FollowUpKind, git_key, reconcile, stale_git_keys
from navi.core.state import (
    DashboardState,
    Intent,
    IntentPayload,
    IntentType,
    reduce_state,
    selected_session,
)

logger = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    session_interval: float = SESSION_POLL_INTERVAL
    remote_interval: float = REMOTE_POLL_INTERVAL
    git_interval: float = GIT_POLL_INTERVAL
    resource_interval: float = RESOURCE_POLL_INTERVAL
    task_interval: float = TASK_REFRESH_INTERVAL
    task_timeout: float = TASK_PROVIDER_TIMEOUT
    pr_interval: float = PR_REFRESH_INTERVAL
    preview_debounce: float = PREVIEW_DEBOUNCE
    preview_lines: int = PREVIEW_CAPTURE_LINES
    pm_interval: float = PM_POLL_INTERVAL


@dataclass
class Collaborators:
    sessions: SessionSource
    actions: SessionActions
    git: GitSource
    tasks: TaskSource
    remote: RemoteSource | None = None
    notify: Notifier | None = None
    events: PMEventStore | None = None


@dataclass
class EngineHooks:
    """Callbacks into the UI layer."""

    on_change: Callable[[], None] = lambda: None
    on_quit: Callable[[], None] = lambda: None
    on_attach: Callable[[SessionKey], None] = lambda key: None


@dataclass
class _Pollers:
    sessions: PeriodicPoller
    git: PeriodicPoller
    resources: PeriodicPoller
    tasks: PeriodicPoller
    pr: PeriodicPoller
    pm: PeriodicPoller
    preview: Debouncer[SessionKey]
    remote: dict[str, PeriodicPoller] = field(default_factory=dict)

    def all(self) -> list[PeriodicPoller]:
        return [self.sessions, self.git, self.resources, self.tasks, self.pr, self.pm, *self.remote.values()]


class DashboardEngine:
    """Single consumer of fetch results and key events."""

    def __init__(
        self,
        collaborators: Collaborators,
        settings: EngineSettings | None = None,
        state: DashboardState | None = None,
        caches: Caches | None = None,
        hooks: EngineHooks | None = None,
    ) -> None:
        self.sources = collaborators
        self.settings = settings or EngineSettings()
        self.state = state or DashboardState()
        self.caches = caches or Caches()
        self.hooks = hooks or EngineHooks()
        self.gate = HostGate()
        self.queue: asyncio.Queue[ResultMessage] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._monitor: AttachMonitor | None = None
        self.pm = PMEngine()
        self.pollers = self._build_pollers()

    # ==================== Lifecycle ====================

    def _build_pollers(self) -> _Pollers:
        s = self.settings
        remote = {}
        if self.sources.remote is not None:
            for host in self.sources.remote.hosts:
                remote[host] = PeriodicPoller(
                    f"remote:{host}", s.remote_interval, self._remote_fetcher(self.sources.remote, host), self.emit
                )
        return _Pollers(
            sessions=PeriodicPoller("sessions", s.session_interval, self._fetch_local, self.emit),
            git=PeriodicPoller("git", s.git_interval, self._fetch_git, self.emit, immediate=False),
            resources=PeriodicPoller("resources", s.resource_interval, self._fetch_resources, self.emit),
            tasks=PeriodicPoller("tasks", s.task_interval, self._fetch_due_tasks, self.emit, immediate=False),
            pr=PeriodicPoller(
                "pr", s.pr_interval, self._fetch_pr, self.emit, condition=self._pr_refresh_needed, immediate=False
            ),
            pm=PeriodicPoller("pm", s.pm_interval, self._fetch_pm, self.emit, immediate=False),
            preview=Debouncer("preview", s.preview_debounce, self._fetch_preview, self.emit),
            remote=remote,
        )

    def start(self) -> None:
        for poller in self.pollers.all():
            if poller is not self.pollers.pr:
                poller.start()
        self._consumer = asyncio.create_task(self._consume(), name="engine-consumer")

    async def stop(self) -> None:
        for poller in self.pollers.all():
            poller.stop()
        self.pollers.preview.cancel()
        if self._monitor is not None:
            await self._monitor.stop()
            self._monitor = None
        tasks = [t for t in self._tasks if not t.done()]
        if self._consumer is not None:
            tasks.append(self._consumer)
            self._consumer = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def emit(self, message: ResultMessage) -> None:
        self.queue.put_nowait(message)

    async def _consume(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                self.handle_result(message)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Failed to reconcile %s", type(message).__name__)

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ==================== Results ====================

    def handle_result(self, message: ResultMessage) -> None:
        outcome = reconcile(self.state, self.caches, message)
        notify = self.sources.notify
        # While attached the monitor is the only notifier; it hands its
        # statuses back when the attach ends.
        if notify is not None and self.state.attached is None:
            for change in outcome.changes:
                notify(change.identity, change.new)
        for follow_up in outcome.follow_ups:
            self._schedule(follow_up)
        if isinstance(message, PRDetailLoaded) and self._pr_refresh_needed():
            self.pollers.pr.start()
        if isinstance(message, (LocalSessionsLoaded, RemoteSessionsLoaded)):
            self.request_preview()
        self.hooks.on_change()

    def _schedule(self, follow_up: FollowUp) -> None:
        kind = follow_up.kind
        if kind is FollowUpKind.POLL_SESSIONS:
            self.pollers.sessions.trigger()
        elif kind is FollowUpKind.POLL_REMOTE and follow_up.host in self.pollers.remote:
            self.pollers.remote[follow_up.host].trigger()
        elif kind is FollowUpKind.POLL_GIT:
            self.pollers.git.trigger()
        elif kind is FollowUpKind.POLL_REMOTE_GIT and follow_up.host:
            host, cwds = follow_up.host, list(follow_up.keys)
            if self.gate.busy(host):
                # The host is mid-fetch; the next remote poll asks again.
                logger.debug("Skipping remote git batch for %s: host busy", host)
                return
            self._track(run_background(f"remote-git:{host}", lambda: self._fetch_remote_git(host, cwds), self.emit))
        elif kind is FollowUpKind.DISCOVER_TASK_CONFIGS:
            cwds = list(follow_up.keys)
            self._track(run_background("discover-tasks", lambda: self._discover(cwds), self.emit))
        elif kind is FollowUpKind.RUN_TASKS:
            projects = list(follow_up.keys)
            self._track(run_background("tasks", lambda: self._run_tasks(projects), self.emit))

    # ==================== Fetchers ====================

    async def _fetch_local(self) -> ResultMessage:
        sessions = await self.sources.sessions.list_local()
        return LocalSessionsLoaded(tuple(sessions))

    def _remote_fetcher(self, remote: RemoteSource, host: str) -> Callable[[], Awaitable[Optional[ResultMessage]]]:
        async def fetch() -> ResultMessage:
            try:
                sessions = await self.gate.run(host, lambda: remote.list_sessions(host))
            except asyncio.CancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                return RemoteSessionsLoaded(host, error=e)
            return RemoteSessionsLoaded(host, tuple(sessions))

        return fetch

    async def _fetch_git(self) -> ResultMessage | None:
        cwds = [cwd for _, cwd in stale_git_keys(self.state, self.caches, None)]
        if not cwds:
            return None
        results, errors = await fan_out(cwds, self.sources.git.git_info)
        return GitInfoLoaded(
            infos={(None, cwd): info for cwd, info in results.items()},
            errors={(None, cwd): error for cwd, error in errors.items()},
        )

    async def _fetch_remote_git(self, host: str, cwds: list[str]) -> ResultMessage | None:
        remote = self.sources.remote
        if remote is None or not cwds:
            return None

        async def batch() -> tuple[dict, dict]:
            return await fan_out(cwds, lambda cwd: remote.git_info(host, cwd))

        results, errors = await self.gate.run(host, batch)
        return GitInfoLoaded(
            infos={(host, cwd): info for cwd, info in results.items()},
            errors={(host, cwd): error for cwd, error in errors.items()},
            origin=host,
        )

    async def _fetch_resources(self) -> ResultMessage | None:
        names = [s.name for s in self.state.sessions if not s.is_remote]
        if not names:
            return None
        usage = await self.sources.sessions.resource_usage(names)
        return ResourceUsageLoaded({(None, name): value for name, value in usage.items()})

    async def _discover(self, cwds: list[str]) -> ResultMessage:
        configs = await self.sources.tasks.discover(cwds)
        return TaskConfigsDiscovered(configs)

    async def _run_tasks(self, projects: list[str]) -> ResultMessage | None:
        configs = {p: self.state.task_configs[p] for p in projects if p in self.state.task_configs}
        due = [p for p in configs if not self.caches.tasks.get(p, configs[p].interval).fresh]
        if not due:
            return None
        timeout = self.settings.task_timeout
        results, errors = await fan_out(due, lambda p: self.sources.tasks.run(configs[p], timeout))
        return TasksLoaded(
            groups_by_project={p: result.groups for p, result in results.items()},
            errors=errors,
        )

    async def _fetch_due_tasks(self) -> ResultMessage | None:
        return await self._run_tasks(list(self.state.task_configs))

    async def _fetch_pm(self) -> ResultMessage:
        sessions = [s for s in self.state.sessions if not s.is_remote]
        groups = {project: result.groups for project, result in self.caches.tasks.values()}
        output = self.pm.run(sessions, groups, list(self.state.task_configs))
        store = self.sources.events
        if store is None:
            return PMSnapshotTaken(output.snapshots, output.events, taken_at=output.taken_at)
        try:
            history = await asyncio.to_thread(store.append, output.events)
        except OSError as e:
            return PMSnapshotTaken(output.snapshots, output.events, error=e, taken_at=output.taken_at)
        return PMSnapshotTaken(output.snapshots, output.events, tuple(history), taken_at=output.taken_at)

    async def _fetch_preview(self, key: SessionKey) -> ResultMessage:
        origin, name = key
        lines = self.settings.preview_lines
        try:
            if origin is None:
                content = await self.sources.sessions.capture_preview(name, lines)
            else:
                remote = self.sources.remote
                if remote is None:
                    raise ActionError("preview", name, f"no remote configured for {origin}")
                content = await self.gate.run(origin, lambda: remote.capture_preview(origin, name, lines))
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            return PreviewCaptured(key, error=e)
        return PreviewCaptured(key, content)

    def _dialog_session(self) -> SessionInfo | None:
        target = self.state.dialog.target
        return next((s for s in self.state.sessions if s.key == target), None)

    def _pr_refresh_needed(self) -> bool:
        if self.state.focus.mode is not FocusMode.GIT_DETAIL:
            return False
        pr = self.state.dialog.pr
        return pr is not None and pr.has_pending_checks

    async def _fetch_pr(self) -> ResultMessage | None:
        session = self._dialog_session()
        if session is None or session.is_remote:
            return None
        detail = await self.sources.git.pr_detail(session.cwd)
        return PRDetailLoaded(git_key(session), detail)

    # ==================== One-shot fetches and actions ====================

    def open_git_detail(self) -> None:
        reduce_state(self.state, Intent(IntentType.OPEN_DIALOG, {"dialog": FocusMode.GIT_DETAIL.value}))
        session = self._dialog_session()
        if session is None or session.is_remote or not session.cwd:
            return
        key = git_key(session)
        self._track(
            run_once(
                "pr-detail",
                lambda: self.sources.git.pr_detail(session.cwd),
                self.emit,
                lambda detail, error: PRDetailLoaded(key, detail, error),
            )
        )

    def open_diff(self) -> None:
        """Load the working-tree diff of the dialog's session, or the selected one."""
        session = self._dialog_session() if self.state.focus.dialog_open else selected_session(self.state)
        if session is None or session.is_remote or not session.cwd:
            return
        self.state.content.loading = True
        title = f"diff: {session.name}"

        async def fetch() -> str:
            return await self.sources.git.diff(session.cwd)

        self._track(
            run_once(
                "diff",
                fetch,
                self.emit,
                lambda text, error: ContentLoaded(title, tuple((text or "").splitlines()), error),
            )
        )

    def _run_action(self, action: str, key: SessionKey, call: Callable[[], Awaitable[None]], new_name: str | None = None) -> None:
        origin = key[0]

        async def fetch() -> None:
            if origin is None:
                await call()
            else:
                await self.gate.run(origin, call)

        if self.state.focus.dialog_open:
            self.state.dialog.busy = True
        self._track(
            run_once(
                action,
                fetch,
                self.emit,
                lambda _, error: ActionCompleted(action, key, error, new_name),
            )
        )

    def kill_target(self) -> None:
        key = self.state.dialog.target
        if key is None:
            return
        self._run_action("kill", key, lambda: self.sources.actions.kill(key[0], key[1]))

    def rename_target(self) -> None:
        key = self.state.dialog.target
        new_name = self.state.dialog.input.strip()
        if key is None:
            return
        if not new_name or new_name == key[1]:
            self.state.dialog.error = "enter a new name"
            return
        self._run_action("rename", key, lambda: self.sources.actions.rename(key[0], key[1], new_name), new_name)

    def create_session(self) -> None:
        name = self.state.dialog.input.strip()
        if not name:
            self.state.dialog.error = "enter a session name"
            return
        selected = selected_session(self.state)
        cwd = selected.cwd if selected and not selected.is_remote and selected.cwd else os.getcwd()
        key: SessionKey = (None, name)
        self.state.dialog.target = key
        self._run_action("create", key, lambda: self.sources.actions.create(name, cwd))

    def dismiss_selected(self) -> None:
        session = selected_session(self.state)
        if session is None:
            return
        self._run_action("dismiss", session.key, lambda: self.sources.actions.dismiss(session.origin, session.name))

    def manual_refresh(self) -> None:
        """Drop cached metadata for the focused scope and refetch now."""
        session = selected_session(self.state)
        if session is not None and session.cwd:
            self.caches.git.invalidate(git_key(session))
        project = self.state.tasks.project
        if project:
            self.caches.tasks.invalidate(project)
            self._schedule(FollowUp(FollowUpKind.RUN_TASKS, keys=(project,)))
        self.pollers.sessions.trigger()
        self.pollers.git.trigger()
        for poller in self.pollers.remote.values():
            poller.trigger()

    def request_preview(self) -> None:
        session = selected_session(self.state)
        if session is None or not self.state.preview.visible:
            return
        if session.key != self.state.preview.key:
            self.state.preview.view.follow_tail = True
        self.pollers.preview.request(session.key)

    # ==================== Attach ====================

    async def attach(self, key: SessionKey) -> None:
        """Attach to a session; statuses keep being watched until it returns."""
        origin, name = key
        self.state.attached = key
        remote_snapshot = [s for s in self.state.sessions if s.is_remote]

        async def list_sessions() -> list[SessionInfo]:
            local = await self.sources.sessions.list_local()
            return [*local, *remote_snapshot]

        notify = self.sources.notify or (lambda identity, status: None)
        self._monitor = AttachMonitor(list_sessions, notify, self.state.tracker.states)
        self._monitor.start()
        error: Exception | None = None
        try:
            await self.sources.actions.attach(origin, name)
        except Exception as e:  # pylint: disable=broad-exception-caught
            error = e
        finally:
            monitor, self._monitor = self._monitor, None
            states = await monitor.stop() if monitor is not None else {}
            self.handle_result(AttachFinished(key, states))
        if error is not None:
            self.handle_result(ActionCompleted("attach", key, error))

    # ==================== Keys ====================

    def dispatch(self, intent_type: IntentType, payload: IntentPayload | None = None) -> None:
        reduce_state(self.state, Intent(intent_type, payload or {}))

    def handle_key(self, key: str, character: str | None = None) -> bool:
        """Route one key press. Returns True if it was consumed."""
        mode = self.state.focus.mode
        if key == "ctrl+c":
            self.hooks.on_quit()
            return True
        if mode.is_dialog:
            handled = self._dialog_key(mode, key, character)
        elif mode is FocusMode.PM:
            handled = self._pm_key(key)
        elif mode is FocusMode.TASKS and self.state.tasks.search.editing:
            handled = self._search_key("tasks", key, character)
        elif mode is FocusMode.TASKS:
            handled = self._task_key(key)
        elif mode is FocusMode.PREVIEW:
            handled = self._preview_key(key)
        elif self.state.view.search.editing:
            handled = self._search_key("sessions", key, character)
        else:
            handled = self._main_key(key)
        if handled:
            self.hooks.on_change()
        return handled

    def _dialog_key(self, mode: FocusMode, key: str, character: str | None) -> bool:
        dialog = self.state.dialog
        if dialog.error is not None and key in ("escape", "enter"):
            dialog.error = None
            return True
        if dialog.busy:
            return True

        if mode is FocusMode.CONTENT_VIEWER:
            return self._content_key(key)
        if key == "escape":
            self.dispatch(IntentType.CLOSE_DIALOG)
            return True
        if mode is FocusMode.KILL_CONFIRM:
            if key in ("y", "enter"):
                self.kill_target()
            elif key == "n":
                self.dispatch(IntentType.CLOSE_DIALOG)
            return True
        if mode in (FocusMode.RENAME, FocusMode.NEW_SESSION):
            if key == "enter":
                if mode is FocusMode.RENAME:
                    self.rename_target()
                else:
                    self.create_session()
            elif key == "backspace":
                self.dispatch(IntentType.SET_DIALOG_INPUT, {"text": dialog.input[:-1]})
            elif character and character.isprintable():
                self.dispatch(IntentType.SET_DIALOG_INPUT, {"text": dialog.input + character})
            return True
        if mode is FocusMode.GIT_DETAIL:
            if key == "q":
                self.dispatch(IntentType.CLOSE_DIALOG)
            elif key == "d":
                self.open_diff()
            elif key == "r":
                self.refresh_git_detail()
            return True
        if mode is FocusMode.PICKER:
            return self._picker_key(key)
        if key == "q":
            self.dispatch(IntentType.CLOSE_DIALOG)
        return True

    def refresh_git_detail(self) -> None:
        session = self._dialog_session()
        if session is None or session.is_remote:
            return
        self.caches.git.invalidate(git_key(session))
        key = git_key(session)
        self._track(
            run_once(
                "pr-detail",
                lambda: self.sources.git.pr_detail(session.cwd),
                self.emit,
                lambda detail, error: PRDetailLoaded(key, detail, error),
            )
        )
        self.pollers.git.trigger()

    def _content_key(self, key: str) -> bool:
        height = max(self.state.content.view.viewport.height, 1)
        scroll = {"j": 1, "down": 1, "k": -1, "up": -1, "pagedown": height, "space": height, "pageup": -height}
        if key in ("escape", "q"):
            self.dispatch(IntentType.CLOSE_DIALOG)
        elif key in scroll:
            self.dispatch(IntentType.SCROLL_CONTENT, {"delta": scroll[key]})
        elif key in ("g", "home"):
            self.dispatch(IntentType.SCROLL_CONTENT, {"edge": "top"})
        elif key in ("G", "end"):
            self.dispatch(IntentType.SCROLL_CONTENT, {"edge": "bottom"})
        else:
            return False
        return True

    def _picker_key(self, key: str) -> bool:
        modes = list(SortMode)
        current = int(self.state.dialog.input or modes.index(self.state.view.filters.sort))
        if key in ("j", "down"):
            self.state.dialog.input = str((current + 1) % len(modes))
        elif key in ("k", "up"):
            self.state.dialog.input = str((current - 1) % len(modes))
        elif key == "enter":
            chosen = modes[current]
            while self.state.view.filters.sort is not chosen:
                self.dispatch(IntentType.CYCLE_SORT)
            self.dispatch(IntentType.CLOSE_DIALOG)
        elif key == "q":
            self.dispatch(IntentType.CLOSE_DIALOG)
        return True

    def _pm_key(self, key: str) -> bool:
        if key in ("escape", "P"):
            self.dispatch(IntentType.FOCUS_PANEL, {"focus": FocusMode.PM.value})
            return True
        if key == "q":
            self.hooks.on_quit()
            return True
        return False

    def _search_key(self, panel: str, key: str, character: str | None) -> bool:
        search = self.state.tasks.search if panel == "tasks" else self.state.view.search
        if key == "escape":
            self.dispatch(IntentType.CLEAR_SEARCH, {"panel": panel})
        elif key == "enter":
            self.dispatch(IntentType.COMMIT_SEARCH, {"panel": panel})
        elif key == "backspace":
            self.dispatch(IntentType.SET_QUERY, {"panel": panel, "query": search.query[:-1]})
        elif character and character.isprintable():
            self.dispatch(IntentType.SET_QUERY, {"panel": panel, "query": search.query + character})
        else:
            return False
        if panel == "sessions":
            self.request_preview()
        return True

    def _task_key(self, key: str) -> bool:
        simple = {
            "j": (IntentType.MOVE_CURSOR, {"delta": 1}),
            "down": (IntentType.MOVE_CURSOR, {"delta": 1}),
            "k": (IntentType.MOVE_CURSOR, {"delta": -1}),
            "up": (IntentType.MOVE_CURSOR, {"delta": -1}),
            "enter": (IntentType.TOGGLE_GROUP, {}),
            "space": (IntentType.TOGGLE_GROUP, {}),
            "J": (IntentType.NEXT_GROUP, {}),
            "]": (IntentType.NEXT_GROUP, {}),
            "K": (IntentType.PREV_GROUP, {}),
            "[": (IntentType.PREV_GROUP, {}),
            "e": (IntentType.EXPAND_ALL_GROUPS, {}),
            "c": (IntentType.COLLAPSE_ALL_GROUPS, {}),
            "a": (IntentType.TOGGLE_ACCORDION, {}),
            "s": (IntentType.CYCLE_TASK_SORT, {}),
            "r": (IntentType.TOGGLE_TASK_REVERSE, {}),
            "f": (IntentType.CYCLE_TASK_FILTER, {}),
            "/": (IntentType.START_SEARCH, {}),
            "n": (IntentType.NEXT_MATCH, {}),
            "N": (IntentType.PREV_MATCH, {}),
            "tab": (IntentType.FOCUS_PANEL, {"focus": FocusMode.PREVIEW.value}),
            "escape": (IntentType.FOCUS_PANEL, {"focus": FocusMode.TASKS.value}),
            "T": (IntentType.FOCUS_PANEL, {"focus": FocusMode.TASKS.value}),
        }
        if key == "q":
            self.hooks.on_quit()
            return True
        if key == "escape" and self.state.tasks.search.query:
            self.dispatch(IntentType.CLEAR_SEARCH, {"panel": "tasks"})
            return True
        if key == "R":
            self.manual_refresh()
            return True
        if key in simple:
            intent_type, payload = simple[key]
            self.dispatch(intent_type, {"panel": "tasks", **payload})  # type: ignore[typeddict-item]
            return True
        return False

    def _preview_key(self, key: str) -> bool:
        height = max(self.state.preview.view.viewport.height, 1)
        scroll = {"j": 1, "down": 1, "k": -1, "up": -1, "pagedown": height, "pageup": -height}
        if key == "q":
            self.hooks.on_quit()
        elif key in scroll:
            self.dispatch(IntentType.SCROLL_PREVIEW, {"delta": scroll[key]})
        elif key in ("g", "home"):
            self.state.preview.view.home()
        elif key in ("G", "end"):
            self.state.preview.view.end(len(self.state.preview.lines))
        elif key in ("tab", "escape"):
            self.dispatch(IntentType.FOCUS_PANEL, {"focus": FocusMode.PREVIEW.value})
        else:
            return False
        return True

    def _main_key(self, key: str) -> bool:
        state = self.state
        moves = {"j": 1, "down": 1, "k": -1, "up": -1}
        if key == "q":
            self.hooks.on_quit()
        elif key in moves:
            self.dispatch(IntentType.MOVE_CURSOR, {"panel": "sessions", "delta": moves[key]})
            self.request_preview()
        elif key in ("pagedown", "pageup"):
            self.dispatch(IntentType.PAGE, {"panel": "sessions", "delta": 1 if key == "pagedown" else -1})
            self.request_preview()
        elif key in ("g", "home", "G", "end"):
            edge = "top" if key in ("g", "home") else "bottom"
            self.dispatch(IntentType.JUMP_EDGE, {"panel": "sessions", "edge": edge})
            self.request_preview()
        elif key in STATUS_FILTER_KEYS:
            self.dispatch(IntentType.SET_STATUS_FILTER, {"status": STATUS_FILTER_KEYS[key]})
        elif key == "0":
            self.dispatch(IntentType.SET_STATUS_FILTER, {"status": None})
        elif key == "f":
            self.dispatch(IntentType.CYCLE_ORIGIN_FILTER)
        elif key == "h":
            self.dispatch(IntentType.TOGGLE_HIDE_DONE)
        elif key == "s":
            self.dispatch(IntentType.CYCLE_SORT)
        elif key == "S":
            state.dialog.input = ""
            self.dispatch(IntentType.OPEN_DIALOG, {"dialog": FocusMode.PICKER.value})
        elif key == "D":
            session = selected_session(state)
            scope = None if state.view.filters.scope else (state.tasks.project or (session.cwd if session else None))
            self.dispatch(IntentType.SET_SCOPE, {"scope": scope})
        elif key == "/":
            self.dispatch(IntentType.START_SEARCH, {"panel": "sessions"})
        elif key in ("n", "N") and state.view.search.query:
            self.dispatch(IntentType.NEXT_MATCH if key == "n" else IntentType.PREV_MATCH, {"panel": "sessions"})
            self.request_preview()
        elif key == "n":
            self.dispatch(IntentType.OPEN_DIALOG, {"dialog": FocusMode.NEW_SESSION.value})
        elif key == "escape":
            if state.view.search.query:
                self.dispatch(IntentType.CLEAR_SEARCH, {"panel": "sessions"})
            else:
                self.dispatch(IntentType.DISMISS_NOTICE)
        elif key == "enter":
            session = selected_session(state)
            if session is not None:
                self.hooks.on_attach(session.key)
        elif key == "x":
            if selected_session(state) is not None:
                self.dispatch(IntentType.OPEN_DIALOG, {"dialog": FocusMode.KILL_CONFIRM.value})
        elif key == "r":
            if selected_session(state) is not None:
                self.dispatch(IntentType.OPEN_DIALOG, {"dialog": FocusMode.RENAME.value})
        elif key == "d":
            self.dismiss_selected()
        elif key == "i":
            if selected_session(state) is not None:
                self.open_git_detail()
        elif key == "m":
            if selected_session(state) is not None:
                self.dispatch(IntentType.OPEN_DIALOG, {"dialog": FocusMode.METRICS_DETAIL.value})
        elif key == "p":
            self.dispatch(IntentType.TOGGLE_PREVIEW)
            self.request_preview()
        elif key == "v":
            self.open_diff()
        elif key == "P":
            self.dispatch(IntentType.FOCUS_PANEL, {"focus": FocusMode.PM.value})
            # Fresh snapshot on entry instead of waiting for the next cycle.
            self.pollers.pm.trigger()
        elif key == "t":
            self.dispatch(IntentType.TOGGLE_TASK_PANEL)
        elif key in ("T", "tab"):
            self.dispatch(IntentType.FOCUS_PANEL, {"focus": FocusMode.TASKS.value})
        elif key == "R" or key == "ctrl+r":
            self.manual_refresh()
        else:
            return False
        return True

