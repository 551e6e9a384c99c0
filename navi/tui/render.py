"""Render dashboard state to rich Text, one function per region.

Pure functions of `DashboardState`; the widgets in `navi.tui.widgets` only
decide where the result goes.
"""

from __future__ import annotations

from rich.style import Style
from rich.text import Text

from navi.core.focus import FocusMode
from navi.core.models import SessionInfo, SessionStatus, SortMode
from navi.core.pipeline import TaskRow, group_progress, status_category
from navi.core.state import DashboardState, selected_session
from navi.core.viewport import Indicators
from navi.tui.formatters import (
    format_age,
    format_bytes,
    format_duration,
    format_tokens,
    shorten_path,
    truncate_text,
)

STATUS_ICONS = {
    SessionStatus.WAITING: ("●", "yellow"),
    SessionStatus.PERMISSION: ("!", "bold red"),
    SessionStatus.WORKING: ("◐", "green"),
    SessionStatus.IDLE: ("○", "bright_black"),
    SessionStatus.STOPPED: ("■", "bright_black"),
    SessionStatus.DONE: ("✓", "blue"),
    SessionStatus.ERROR: ("✗", "red"),
    SessionStatus.UNKNOWN: ("?", "bright_black"),
}

CATEGORY_STYLES = {
    "active": "green",
    "review": "magenta",
    "blocked": "red",
    "todo": "",
    "done": "bright_black",
}

SELECTED = Style(reverse=True)
MATCH = Style(underline=True)
DIM = Style(dim=True)
RECENT_EVENTS = 10


def _indicator_line(text: str) -> Text:
    return Text(f"  {text}", style=DIM)


def status_cell(status: SessionStatus) -> Text:
    icon, style = STATUS_ICONS.get(status, STATUS_ICONS[SessionStatus.UNKNOWN])
    return Text(icon, style=style)


def session_line(session: SessionInfo, width: int, now: float | None = None) -> Text:
    line = Text()
    line.append_text(status_cell(session.status))
    line.append(" ")
    line.append(session.name, style="bold")
    if session.origin:
        line.append(f" @{session.origin}", style="cyan")
    if session.team:
        line.append(f" [{session.team}:{len(session.agents)}]", style="magenta")
    age = format_age(session.timestamp, now)
    if age:
        line.append(f" {age}", style=DIM)
    git = session.git
    if git and git.branch:
        line.append(f"  {git.branch}", style="green")
        if git.dirty:
            line.append("*", style="yellow")
        if git.ahead:
            line.append(f" ↑{git.ahead}", style=DIM)
        if git.behind:
            line.append(f" ↓{git.behind}", style=DIM)
        if git.pr_num:
            line.append(f" PR#{git.pr_num}", style="blue")
    if session.resource and session.resource.rss_bytes:
        line.append(f"  {format_bytes(session.resource.rss_bytes)}", style=DIM)
    if session.message:
        remaining = max(width - line.cell_len - 3, 0)
        if remaining > 8:
            line.append("  ")
            line.append(truncate_text(session.message, remaining), style="italic")
    line.truncate(width, overflow="ellipsis")
    return line


def _with_indicators(rows: list[Text], indicators: Indicators, hidden_above: int, hidden_below: int) -> Text:
    out = Text()
    if indicators.above:
        out.append_text(_indicator_line(f"▲ {hidden_above} more"))
        out.append("\n")
    out.append_text(Text("\n").join(rows))
    if indicators.below:
        out.append("\n")
        out.append_text(_indicator_line(f"▼ {hidden_below} more"))
    return out


def render_sessions(state: DashboardState, width: int, now: float | None = None) -> Text:
    view = state.view
    displayed = view.displayed
    if not displayed:
        if not state.local_loaded:
            return Text("Loading sessions…", style=DIM)
        if state.sessions:
            return Text("No sessions match the current filters (0 clears status, f cycles origin)", style=DIM)
        return Text("No sessions. Press n to start one.", style=DIM)

    viewport = view.panel.viewport
    visible = viewport.visible_range(len(displayed))
    matches = set(view.search.matches)
    rows: list[Text] = []
    for index in visible:
        line = session_line(displayed[index], width - 2, now)
        if index in matches:
            line.stylize(MATCH, 2)
        prefix = Text("▶ " if index == view.panel.cursor else "  ")
        row = prefix + line
        if index == view.panel.cursor and state.focus.mode is FocusMode.SESSIONS:
            row.stylize(SELECTED)
        rows.append(row)
    indicators = viewport.indicator_state(len(displayed))
    return _with_indicators(rows, indicators, visible.start, len(displayed) - visible.stop)


def task_line(row: TaskRow, expanded: bool) -> Text:
    if row.task is None:
        group = row.group
        done, total = group_progress(group)
        line = Text("▾ " if expanded else "▸ ")
        line.append(group.title or group.id, style="bold")
        if group.status:
            line.append(f"  {group.status}", style=CATEGORY_STYLES[status_category(group.status)])
        if total:
            line.append(f"  {done}/{total}", style=DIM)
        return line
    task = row.task
    line = Text("    ")
    line.append(task.id, style=DIM)
    line.append(" ")
    line.append(task.title)
    if task.status:
        line.append(f"  {task.status}", style=CATEGORY_STYLES[status_category(task.status)])
    return line


def render_tasks(state: DashboardState, width: int) -> Text:
    tasks = state.tasks
    header = Text("Tasks", style="bold")
    if tasks.project:
        header.append(f"  {shorten_path(tasks.project, 40)}", style=DIM)
    header.append(f"  sort:{tasks.sort.value}{' ↓' if tasks.reverse else ''} filter:{tasks.filter.value}", style=DIM)
    if tasks.accordion:
        header.append("  accordion", style=DIM)
    if tasks.search.query:
        cursor = "█" if tasks.search.editing else ""
        header.append(f"  /{tasks.search.query}{cursor} ({len(tasks.search.matches)})", style="yellow")

    project = tasks.project
    if project is None:
        return header + Text("\nNo task provider for the selected session (add .navi.yaml)", style=DIM)
    error = state.task_errors.get(project)
    if error is not None and not tasks.rows:
        return header + Text(f"\n{error}", style="red")
    if project not in state.groups_by_project:
        return header + Text("\nLoading tasks…", style=DIM)
    if not tasks.rows:
        return header + Text("\nNo tasks", style=DIM)

    rows = tasks.rows
    viewport = tasks.panel.viewport
    visible = viewport.visible_range(len(rows))
    matches = set(tasks.search.matches)
    lines: list[Text] = []
    for index in visible:
        row = rows[index]
        line = task_line(row, row.group.id in tasks.expanded)
        if index in matches:
            line.stylize(MATCH)
        if index == tasks.panel.cursor and state.focus.mode is FocusMode.TASKS:
            line.stylize(SELECTED)
        line.truncate(width, overflow="ellipsis")
        lines.append(line)
    indicators = viewport.indicator_state(len(rows))
    return header + Text("\n") + _with_indicators(lines, indicators, visible.start, len(rows) - visible.stop)


def render_preview(state: DashboardState) -> Text:
    preview = state.preview
    session = selected_session(state)
    title = Text("Preview", style="bold")
    if session is not None:
        title.append(f"  {session.name}", style=DIM)
    if not preview.view.follow_tail:
        title.append("  (scrolled)", style="yellow")
    if preview.error:
        return title + Text(f"\n{preview.error}", style="red")
    viewport = preview.view.viewport
    visible = viewport.visible_range(len(preview.lines))
    return title + Text("\n") + Text("\n".join(preview.lines[visible.start : visible.stop]))


def render_content(state: DashboardState) -> Text:
    content = state.content
    title = Text(content.title, style="bold")
    title.append("  (j/k scroll, g/G ends, q close)", style=DIM)
    if content.loading:
        return title + Text("\nLoading…", style=DIM)
    visible = content.view.viewport.visible_range(len(content.lines))
    body = Text()
    for line in content.lines[visible.start : visible.stop]:
        style = ""
        if line.startswith("+") and not line.startswith("+++"):
            style = "green"
        elif line.startswith("-") and not line.startswith("---"):
            style = "red"
        elif line.startswith("@@"):
            style = "cyan"
        body.append(line + "\n", style=style)
    return title + Text("\n") + body


def _dialog_target(state: DashboardState) -> SessionInfo | None:
    target = state.dialog.target
    for session in state.sessions:
        if session.key == target:
            return session
    return None


def render_git_detail(state: DashboardState) -> Text:
    session = _dialog_target(state)
    text = Text("Git", style="bold")
    if session is None:
        return text + Text("\nSession is gone", style=DIM)
    git = session.git
    text.append(f"  {session.name}\n", style=DIM)
    if git is None or not git.branch:
        text.append("No git information yet\n", style=DIM)
    else:
        text.append(f"Branch:  {git.branch}{' (dirty)' if git.dirty else ''}\n")
        text.append(f"Ahead:   {git.ahead}  Behind: {git.behind}\n")
        if git.last_commit:
            text.append(f"Commit:  {git.last_commit}\n")
        if git.remote:
            text.append(f"Remote:  {git.remote}\n")
    pr = state.dialog.pr
    if pr is not None:
        text.append(f"\nPR #{pr.number} {pr.title} [{pr.state}]\n", style="bold")
        if pr.url:
            text.append(f"{pr.url}\n", style=DIM)
        for check in pr.checks:
            style = {"success": "green", "failure": "red", "skipped": "bright_black"}.get(check.status, "yellow")
            text.append(f"  {check.status:<8} {check.name}\n", style=style)
    elif state.dialog.pr_error:
        text.append(f"\n{state.dialog.pr_error}\n", style="red")
    text.append("\nd diff  r refresh  q close", style=DIM)
    return text


def render_metrics(state: DashboardState) -> Text:
    session = _dialog_target(state)
    text = Text("Metrics", style="bold")
    if session is None:
        return text + Text("\nSession is gone", style=DIM)
    text.append(f"  {session.name}\n", style=DIM)
    metrics = session.metrics
    if metrics is None:
        text.append("No metrics reported\n", style=DIM)
    else:
        if metrics.tokens is not None:
            tokens = metrics.tokens
            text.append(
                f"Tokens:  {format_tokens(tokens.total)} "
                f"(in {format_tokens(tokens.input)}, out {format_tokens(tokens.output)})\n"
            )
        text.append(f"Time:    {format_duration(metrics.total_seconds)} total, ")
        text.append(f"{format_duration(metrics.working_seconds)} working, ")
        text.append(f"{format_duration(metrics.waiting_seconds)} waiting\n")
        for tool, count in sorted(metrics.tool_counts.items(), key=lambda item: (-item[1], item[0])):
            text.append(f"  {count:>5}  {tool}\n")
    for agent in session.agents:
        text.append_text(status_cell(agent.status))
        text.append(f" {agent.name}  {agent.status.value}\n")
    text.append("\nq close", style=DIM)
    return text


def render_dialog(state: DashboardState) -> Text:
    """Body of the active modal dialog (not the content overlay)."""
    mode = state.focus.mode
    dialog = state.dialog
    if mode is FocusMode.GIT_DETAIL:
        text = render_git_detail(state)
    elif mode is FocusMode.METRICS_DETAIL:
        text = render_metrics(state)
    elif mode is FocusMode.KILL_CONFIRM:
        name = dialog.target[1] if dialog.target else ""
        text = Text(f"Kill session {name}?", style="bold")
        text.append("\n\ny confirm  n cancel", style=DIM)
    elif mode in (FocusMode.RENAME, FocusMode.NEW_SESSION):
        title = "Rename session" if mode is FocusMode.RENAME else "New session"
        text = Text(title, style="bold")
        text.append(f"\n\n> {dialog.input}█\n\n")
        text.append("enter confirm  esc cancel", style=DIM)
    elif mode is FocusMode.PICKER:
        modes = list(SortMode)
        current = int(dialog.input) if dialog.input else modes.index(state.view.filters.sort)
        text = Text("Sort by", style="bold")
        for index, sort_mode in enumerate(modes):
            marker = "▶ " if index == current else "  "
            text.append(f"\n{marker}{sort_mode.value}", style="reverse" if index == current else "")
        text.append("\n\nenter select  esc cancel", style=DIM)
    else:
        text = Text(mode.value)

    if dialog.busy:
        text.append("\n\nWorking…", style="yellow")
    if dialog.error:
        text.append(f"\n\nError: {dialog.error}", style="bold red")
        text.append("\nenter/esc to acknowledge", style=DIM)
    return text


def render_pm(state: DashboardState, now: float | None = None) -> Text:
    """Full-screen briefing: attention items, per-project snapshots, recent activity."""
    pm = state.pm
    text = Text("Briefing", style="bold")
    text.append("  (P/esc back)\n\n", style=DIM)
    attention = [s for s in state.sessions if s.needs_attention]
    text.append(f"Needs attention ({len(attention)})\n", style="bold yellow")
    for session in attention:
        text.append("  ")
        text.append_text(status_cell(session.status))
        text.append(f" {session.name}")
        if session.message:
            text.append(f"  {truncate_text(session.message, 60)}", style="italic")
        text.append("\n")

    text.append("\nProjects\n", style="bold")
    if not pm.snapshots:
        text.append("  Collecting project snapshots…\n", style=DIM)
    for snapshot in pm.snapshots:
        text.append("  ")
        if snapshot.session_status is not None:
            text.append_text(status_cell(snapshot.session_status))
            text.append(" ")
        text.append(f"{truncate_text(snapshot.name, 24):<24}")
        if snapshot.branch:
            text.append(f" {snapshot.branch}{'*' if snapshot.dirty else ''}", style="cyan")
        if snapshot.pr_num:
            text.append(f" PR#{snapshot.pr_num}", style="magenta")
        tasks = snapshot.tasks
        if tasks.total:
            text.append(f"  {tasks.done}/{tasks.total} tasks", style=DIM)
        if snapshot.current_group_title:
            text.append(f"  {truncate_text(snapshot.current_group_title, 40)}", style="italic")
        text.append("\n")

    if pm.events:
        text.append("\nRecent activity\n", style="bold")
    for event in reversed(pm.events[-RECENT_EVENTS:]):
        text.append(f"  {format_age(event.timestamp, now):>4} ", style=DIM)
        text.append(f"{event.project_name}  {event.describe()}\n")
    if pm.error:
        text.append(f"\nEvent log: {pm.error}", style="red")
    for host, error in sorted(state.host_errors.items()):
        text.append(f"\n{host}: {error}", style="red")
    return text


def render_status_line(state: DashboardState) -> Text:
    filters = state.view.filters
    line = Text(" navi ", style="bold reverse")
    line.append(f"  {len(state.view.displayed)}/{len(state.sessions)}")
    line.append(f"  origin:{filters.origin.value}  sort:{filters.sort.value}", style=DIM)
    if filters.status is not None:
        line.append(f"  status:{filters.status.value}", style="yellow")
    if filters.hide_done:
        line.append("  hide-done", style="yellow")
    if filters.scope:
        line.append(f"  scope:{shorten_path(filters.scope, 30)}", style="yellow")
    if state.host_errors:
        line.append(f"  {len(state.host_errors)} remote error(s)", style="red")
    return line


def render_footer(state: DashboardState) -> Text:
    search = state.view.search
    if search.editing or search.query:
        footer = Text(f"/{search.query}", style="yellow")
        if search.editing:
            footer.append("█")
        footer.append(f"  {len(search.matches)} match(es)", style=DIM)
        return footer
    notice = state.notice
    if notice is not None:
        return Text(notice.text, style="red" if notice.level == "error" else "green")
    return Text(
        "enter attach  / search  1-5 status  f origin  s sort  h hide done  "
        "p preview  t tasks  i git  v diff  m metrics  x kill  r rename  n new  P brief  q quit",
        style=DIM,
    )
