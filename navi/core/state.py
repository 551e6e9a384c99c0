"""Dashboard state model and reducer.

All state lives in one `DashboardState` owned by the engine. User intents go
through `reduce_state`; fetch results go through `navi.core.reconcile`. Both
mutate in place on the event loop and nothing else ever touches the state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, TypedDict, cast

from navi.core.focus import FocusMode, FocusState
from navi.core.models import (
    PRDetail,
    SessionInfo,
    SessionKey,
    SessionStatus,
    TaskFilterMode,
    TaskGroup,
    TaskProviderConfig,
    TaskSortMode,
)
from navi.core.pipeline import (
    SessionFilters,
    TaskRow,
    apply_session_pipeline,
    derive_task_groups,
    find_session_matches,
    find_task_matches,
    project_for_cwd,
    visible_task_rows,
)
from navi.core.pm import PMEvent, ProjectSnapshot
from navi.core.status_tracker import StatusTracker
from navi.core.viewport import ListPanel, TextView

logger = logging.getLogger(__name__)


@dataclass
class SearchState:
    """Free-text search over one panel. Matches index the displayed rows."""

    query: str = ""
    editing: bool = False
    matches: list[int] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return bool(self.query)


@dataclass
class SessionViewState:
    panel: ListPanel = field(default_factory=ListPanel)
    filters: SessionFilters = field(default_factory=SessionFilters)
    search: SearchState = field(default_factory=SearchState)
    displayed: list[SessionInfo] = field(default_factory=list)


@dataclass
class TaskViewState:
    panel: ListPanel = field(default_factory=ListPanel)
    search: SearchState = field(default_factory=SearchState)
    expanded: set[str] = field(default_factory=set)
    accordion: bool = False
    sort: TaskSortMode = TaskSortMode.SOURCE
    reverse: bool = False
    filter: TaskFilterMode = TaskFilterMode.ALL
    project: str | None = None
    groups: list[TaskGroup] = field(default_factory=list)
    rows: list[TaskRow] = field(default_factory=list)
    visible: bool = True


@dataclass
class PreviewState:
    key: SessionKey | None = None
    lines: list[str] = field(default_factory=list)
    view: TextView = field(default_factory=TextView)
    visible: bool = False
    error: str | None = None


@dataclass
class ContentState:
    """Full-screen text overlay (diffs, logs)."""

    title: str = ""
    lines: list[str] = field(default_factory=list)
    view: TextView = field(default_factory=lambda: TextView(follow_tail=False))
    loading: bool = False


@dataclass
class DialogState:
    target: SessionKey | None = None
    input: str = ""
    error: str | None = None
    busy: bool = False
    pr: PRDetail | None = None
    pr_error: str | None = None

    def reset(self) -> None:
        self.target = None
        self.input = ""
        self.error = None
        self.busy = False
        self.pr = None
        self.pr_error = None


@dataclass
class PMState:
    """Briefing data: latest project snapshots and recent events, oldest first."""

    snapshots: list[ProjectSnapshot] = field(default_factory=list)
    events: list[PMEvent] = field(default_factory=list)
    updated_at: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class Notice:
    """Transient, dismissible message (one-shot fetch errors, action results)."""

    text: str
    level: str = "info"  # "info" | "error"
    created_at: float = field(default_factory=time.time)


@dataclass
class DashboardState:
    """Everything the dashboard renders from."""

    sessions: list[SessionInfo] = field(default_factory=list)
    view: SessionViewState = field(default_factory=SessionViewState)
    tasks: TaskViewState = field(default_factory=TaskViewState)
    preview: PreviewState = field(default_factory=PreviewState)
    content: ContentState = field(default_factory=ContentState)
    focus: FocusState = field(default_factory=FocusState)
    dialog: DialogState = field(default_factory=DialogState)
    groups_by_project: dict[str, list[TaskGroup]] = field(default_factory=dict)
    task_errors: dict[str, Exception] = field(default_factory=dict)
    task_configs: dict[str, TaskProviderConfig] = field(default_factory=dict)
    host_errors: dict[str, str] = field(default_factory=dict)
    pending_restore: SessionKey | None = None
    notice: Notice | None = None
    local_loaded: bool = False
    attached: SessionKey | None = None
    tracker: StatusTracker = field(default_factory=StatusTracker)
    pm: PMState = field(default_factory=PMState)


# ===== Derivations =====


def selected_session(state: DashboardState) -> SessionInfo | None:
    displayed = state.view.displayed
    if not displayed:
        return None
    return displayed[min(state.view.panel.cursor, len(displayed) - 1)]


def selected_task_row(state: DashboardState) -> TaskRow | None:
    rows = state.tasks.rows
    if not rows:
        return None
    return rows[min(state.tasks.panel.cursor, len(rows) - 1)]


def _index_of(sessions: Sequence[SessionInfo], key: SessionKey | None) -> int | None:
    if key is None:
        return None
    for index, session in enumerate(sessions):
        if session.key == key:
            return index
    return None


def refresh_sessions(state: DashboardState, restore: SessionKey | None = None) -> bool:
    """Recompute the displayed list and keep the selection on the same session.

    Args:
        state: Dashboard state to update in place.
        restore: Identity to select; defaults to the current selection.

    Returns:
        True if the target identity was found in the new displayed list.
    """
    previous = selected_session(state)
    target = restore if restore is not None else (previous.key if previous else None)

    view = state.view
    view.displayed = apply_session_pipeline(state.sessions, view.filters)
    found_at = _index_of(view.displayed, target)
    if found_at is not None:
        view.panel.cursor = found_at
    view.panel.clamp(len(view.displayed))
    view.search.matches = find_session_matches(view.displayed, view.search.query)
    sync_task_project(state)
    return found_at is not None


def sync_task_project(state: DashboardState) -> None:
    """Point the task panel at the project of the selected session."""
    session = selected_session(state)
    project = project_for_cwd(state.task_configs, session.cwd) if session and not session.is_remote else None
    if project is None and state.tasks.project in state.task_configs:
        # Keep showing the last project when the selection has none.
        project = state.tasks.project
    if project != state.tasks.project:
        state.tasks.project = project
        state.tasks.panel.cursor = 0
        state.tasks.panel.viewport.offset = 0
    refresh_tasks(state)


def refresh_tasks(state: DashboardState) -> None:
    """Recompute task rows for the focused project, keeping the cursor row."""
    tasks = state.tasks
    previous = selected_task_row(state)
    raw = state.groups_by_project.get(tasks.project, []) if tasks.project else []
    tasks.groups = derive_task_groups(raw, tasks.filter, tasks.sort, tasks.reverse)
    tasks.rows = visible_task_rows(tasks.groups, tasks.expanded, tasks.search.query)
    if previous is not None:
        for index, row in enumerate(tasks.rows):
            if row.key == previous.key:
                tasks.panel.cursor = index
                break
    tasks.panel.clamp(len(tasks.rows))
    tasks.search.matches = find_task_matches(tasks.rows, tasks.search.query)


def _next_match(matches: list[int], cursor: int, direction: int) -> int | None:
    """Next (or previous) match index from the cursor, wrapping around."""
    if not matches:
        return None
    if direction > 0:
        return next((m for m in matches if m > cursor), matches[0])
    return next((m for m in reversed(matches) if m < cursor), matches[-1])


# ===== Intents =====


class IntentType(str, Enum):
    """Intent identifiers for reducer-driven state updates."""

    MOVE_CURSOR = "move_cursor"
    SELECT_INDEX = "select_index"
    PAGE = "page"
    JUMP_EDGE = "jump_edge"
    CYCLE_ORIGIN_FILTER = "cycle_origin_filter"
    SET_STATUS_FILTER = "set_status_filter"
    TOGGLE_HIDE_DONE = "toggle_hide_done"
    SET_SCOPE = "set_scope"
    CYCLE_SORT = "cycle_sort"
    START_SEARCH = "start_search"
    SET_QUERY = "set_query"
    COMMIT_SEARCH = "commit_search"
    CLEAR_SEARCH = "clear_search"
    NEXT_MATCH = "next_match"
    PREV_MATCH = "prev_match"
    FOCUS_PANEL = "focus_panel"
    OPEN_DIALOG = "open_dialog"
    CLOSE_DIALOG = "close_dialog"
    SET_DIALOG_INPUT = "set_dialog_input"
    TOGGLE_GROUP = "toggle_group"
    EXPAND_ALL_GROUPS = "expand_all_groups"
    COLLAPSE_ALL_GROUPS = "collapse_all_groups"
    NEXT_GROUP = "next_group"
    PREV_GROUP = "prev_group"
    TOGGLE_ACCORDION = "toggle_accordion"
    CYCLE_TASK_SORT = "cycle_task_sort"
    TOGGLE_TASK_REVERSE = "toggle_task_reverse"
    CYCLE_TASK_FILTER = "cycle_task_filter"
    TOGGLE_TASK_PANEL = "toggle_task_panel"
    TOGGLE_PREVIEW = "toggle_preview"
    SCROLL_PREVIEW = "scroll_preview"
    SCROLL_CONTENT = "scroll_content"
    OPEN_CONTENT = "open_content"
    SET_VIEWPORT_HEIGHTS = "set_viewport_heights"
    SET_NOTICE = "set_notice"
    DISMISS_NOTICE = "dismiss_notice"


class IntentPayload(TypedDict, total=False):
    panel: str  # "sessions" | "tasks"
    delta: int
    index: int
    edge: str  # "top" | "bottom"
    status: str | None
    scope: str | None
    query: str
    focus: str
    dialog: str
    return_to: str | None
    target: SessionKey | None
    text: str
    level: str
    title: str
    lines: list[str]
    group_id: str
    heights: dict[str, int]


@dataclass(frozen=True)
class Intent:
    """State transition request."""

    type: IntentType
    payload: IntentPayload = field(default_factory=lambda: cast(IntentPayload, {}))


def _panel_name(state: DashboardState, p: IntentPayload) -> str:
    if "panel" in p:
        return p["panel"]
    return "tasks" if state.focus.mode is FocusMode.TASKS else "sessions"


def _list_for(state: DashboardState, panel: str) -> tuple[ListPanel, SearchState, int]:
    if panel == "tasks":
        return state.tasks.panel, state.tasks.search, len(state.tasks.rows)
    return state.view.panel, state.view.search, len(state.view.displayed)


def _after_session_cursor_move(state: DashboardState, panel: str) -> None:
    if panel == "sessions":
        sync_task_project(state)


def _toggle_group(state: DashboardState, group_id: str) -> None:
    tasks = state.tasks
    if group_id in tasks.expanded:
        tasks.expanded.discard(group_id)
    elif tasks.accordion:
        tasks.expanded = {group_id}
    else:
        tasks.expanded.add(group_id)


def _group_header_indices(rows: Sequence[TaskRow]) -> list[int]:
    return [index for index, row in enumerate(rows) if row.is_header]


def reduce_state(state: DashboardState, intent: Intent) -> None:
    """Apply intent to state (pure state mutation only)."""
    t = intent.type
    p = intent.payload

    if t is IntentType.MOVE_CURSOR or t is IntentType.PAGE or t is IntentType.SELECT_INDEX:
        panel_name = _panel_name(state, p)
        panel, _, total = _list_for(state, panel_name)
        if t is IntentType.SELECT_INDEX:
            panel.select(p.get("index", 0), total)
        elif t is IntentType.PAGE:
            panel.page(p.get("delta", 1), total)
        else:
            # Task cursor wraps around; the session list stops at the edges.
            panel.move(p.get("delta", 1), total, wrap=panel_name == "tasks")
        _after_session_cursor_move(state, panel_name)
        return

    if t is IntentType.JUMP_EDGE:
        panel_name = _panel_name(state, p)
        panel, _, total = _list_for(state, panel_name)
        panel.select(0 if p.get("edge") == "top" else total - 1, total)
        _after_session_cursor_move(state, panel_name)
        return

    if t is IntentType.CYCLE_ORIGIN_FILTER:
        state.view.filters.origin = state.view.filters.origin.next()
        refresh_sessions(state)
        return

    if t is IntentType.SET_STATUS_FILTER:
        raw = p.get("status")
        status = SessionStatus.parse(raw) if raw else None
        # Selecting the active status again clears it.
        state.view.filters.status = None if status == state.view.filters.status else status
        refresh_sessions(state)
        return

    if t is IntentType.TOGGLE_HIDE_DONE:
        state.view.filters.hide_done = not state.view.filters.hide_done
        refresh_sessions(state)
        return

    if t is IntentType.SET_SCOPE:
        state.view.filters.scope = p.get("scope") or None
        refresh_sessions(state)
        return

    if t is IntentType.CYCLE_SORT:
        state.view.filters.sort = state.view.filters.sort.next()
        refresh_sessions(state)
        return

    if t is IntentType.START_SEARCH:
        _, search, _ = _list_for(state, _panel_name(state, p))
        search.editing = True
        return

    if t is IntentType.SET_QUERY:
        panel_name = _panel_name(state, p)
        _, search, _ = _list_for(state, panel_name)
        search.query = p.get("query", "")
        if panel_name == "tasks":
            refresh_tasks(state)
        else:
            state.view.search.matches = find_session_matches(state.view.displayed, search.query)
        panel, search, total = _list_for(state, panel_name)
        if search.matches and panel.cursor not in search.matches:
            panel.select(search.matches[0], total)
            _after_session_cursor_move(state, panel_name)
        return

    if t is IntentType.COMMIT_SEARCH:
        _, search, _ = _list_for(state, _panel_name(state, p))
        search.editing = False
        return

    if t is IntentType.CLEAR_SEARCH:
        panel_name = _panel_name(state, p)
        _, search, _ = _list_for(state, panel_name)
        search.query = ""
        search.editing = False
        search.matches = []
        if panel_name == "tasks":
            refresh_tasks(state)
        return

    if t is IntentType.NEXT_MATCH or t is IntentType.PREV_MATCH:
        panel_name = _panel_name(state, p)
        panel, search, total = _list_for(state, panel_name)
        target = _next_match(search.matches, panel.cursor, 1 if t is IntentType.NEXT_MATCH else -1)
        if target is not None:
            panel.select(target, total)
            _after_session_cursor_move(state, panel_name)
        return

    if t is IntentType.FOCUS_PANEL:
        panel_mode = FocusMode(p.get("focus", FocusMode.SESSIONS.value))
        state.focus.toggle_panel(panel_mode)
        if state.focus.mode is FocusMode.PREVIEW:
            state.preview.visible = True
        if state.focus.mode is FocusMode.TASKS:
            state.tasks.visible = True
        return

    if t is IntentType.OPEN_DIALOG:
        dialog = FocusMode(p["dialog"])
        return_to = p.get("return_to")
        # Returning to a dialog keeps that dialog's target/input intact.
        if return_to is None:
            state.dialog.reset()
            target = p.get("target")
            if target is None:
                session = selected_session(state)
                target = session.key if session else None
            state.dialog.target = target
            if dialog is FocusMode.RENAME and target is not None:
                state.dialog.input = target[1]
        state.focus.open_dialog(dialog, FocusMode(return_to) if return_to else None)
        return

    if t is IntentType.CLOSE_DIALOG:
        closing = state.focus.mode
        now = state.focus.close_dialog()
        if closing is FocusMode.CONTENT_VIEWER:
            state.content = ContentState()
        if not now.is_dialog:
            state.dialog.reset()
        return

    if t is IntentType.SET_DIALOG_INPUT:
        state.dialog.input = p.get("text", "")
        state.dialog.error = None
        return

    if t is IntentType.TOGGLE_GROUP:
        group_id = p.get("group_id")
        if group_id is None:
            row = selected_task_row(state)
            group_id = row.group.id if row else None
        if group_id is not None:
            _toggle_group(state, group_id)
            refresh_tasks(state)
            # Collapsing from inside the group leaves the cursor on its header.
            for index, row in enumerate(state.tasks.rows):
                if row.is_header and row.group.id == group_id:
                    if group_id not in state.tasks.expanded:
                        state.tasks.panel.select(index, len(state.tasks.rows))
                    break
        return

    if t is IntentType.EXPAND_ALL_GROUPS:
        state.tasks.expanded = {group.id for group in state.tasks.groups}
        refresh_tasks(state)
        return

    if t is IntentType.COLLAPSE_ALL_GROUPS:
        row = selected_task_row(state)
        state.tasks.expanded = set()
        refresh_tasks(state)
        if row is not None:
            for index, candidate in enumerate(state.tasks.rows):
                if candidate.is_header and candidate.group.id == row.group.id:
                    state.tasks.panel.select(index, len(state.tasks.rows))
                    break
        return

    if t is IntentType.NEXT_GROUP or t is IntentType.PREV_GROUP:
        headers = _group_header_indices(state.tasks.rows)
        target = _next_match(headers, state.tasks.panel.cursor, 1 if t is IntentType.NEXT_GROUP else -1)
        if target is not None:
            state.tasks.panel.select(target, len(state.tasks.rows))
        return

    if t is IntentType.TOGGLE_ACCORDION:
        state.tasks.accordion = not state.tasks.accordion
        if state.tasks.accordion and len(state.tasks.expanded) > 1:
            row = selected_task_row(state)
            keep = row.group.id if row and row.group.id in state.tasks.expanded else None
            state.tasks.expanded = {keep} if keep else set()
            refresh_tasks(state)
        return

    if t is IntentType.CYCLE_TASK_SORT:
        state.tasks.sort = state.tasks.sort.next()
        refresh_tasks(state)
        return

    if t is IntentType.TOGGLE_TASK_REVERSE:
        state.tasks.reverse = not state.tasks.reverse
        refresh_tasks(state)
        return

    if t is IntentType.CYCLE_TASK_FILTER:
        state.tasks.filter = state.tasks.filter.next()
        refresh_tasks(state)
        return

    if t is IntentType.TOGGLE_TASK_PANEL:
        state.tasks.visible = not state.tasks.visible
        if not state.tasks.visible and state.focus.mode is FocusMode.TASKS:
            state.focus.focus_panel(FocusMode.SESSIONS)
        return

    if t is IntentType.TOGGLE_PREVIEW:
        state.preview.visible = not state.preview.visible
        if not state.preview.visible and state.focus.mode is FocusMode.PREVIEW:
            state.focus.focus_panel(FocusMode.SESSIONS)
        return

    if t is IntentType.SCROLL_PREVIEW:
        state.preview.view.scroll_by(p.get("delta", 0), len(state.preview.lines))
        return

    if t is IntentType.SCROLL_CONTENT:
        total = len(state.content.lines)
        edge = p.get("edge")
        if edge == "top":
            state.content.view.home()
        elif edge == "bottom":
            state.content.view.end(total)
        else:
            state.content.view.scroll_by(p.get("delta", 0), total)
        return

    if t is IntentType.OPEN_CONTENT:
        height = state.content.view.viewport.height
        state.content = ContentState(title=p.get("title", ""), lines=list(p.get("lines", [])), loading=False)
        state.content.view.viewport.height = height
        return_to = p.get("return_to")
        state.focus.open_dialog(FocusMode.CONTENT_VIEWER, FocusMode(return_to) if return_to else None)
        return

    if t is IntentType.SET_VIEWPORT_HEIGHTS:
        heights = p.get("heights", {})
        if "sessions" in heights:
            state.view.panel.viewport.height = heights["sessions"]
            state.view.panel.clamp(len(state.view.displayed))
        if "tasks" in heights:
            state.tasks.panel.viewport.height = heights["tasks"]
            state.tasks.panel.clamp(len(state.tasks.rows))
        if "preview" in heights:
            state.preview.view.viewport.height = heights["preview"]
            state.preview.view.update_length(len(state.preview.lines))
        if "content" in heights:
            state.content.view.viewport.height = heights["content"]
            state.content.view.viewport.clamp(len(state.content.lines))
        return

    if t is IntentType.SET_NOTICE:
        state.notice = Notice(p.get("text", ""), p.get("level", "info"))
        return

    if t is IntentType.DISMISS_NOTICE:
        state.notice = None
        return

    logger.debug("Unhandled intent %s", t)

