"""Unit tests for rendering dashboard state to text."""

from navi.core.focus import FocusMode
from navi.core.models import (
    GitInfo,
    PRCheck,
    PRDetail,
    SessionInfo,
    SessionMetrics,
    SessionStatus,
    TokenMetrics,
)
from navi.core.pm import PMEvent, PMEventType, ProjectSnapshot, TaskCounts
from navi.core.pipeline import sort_by_priority
from navi.core.state import DashboardState, Intent, IntentType, Notice, reduce_state, refresh_sessions
from navi.tui.render import (
    render_dialog,
    render_footer,
    render_pm,
    render_sessions,
    render_status_line,
    render_tasks,
    session_line,
)


def _session(name, status=SessionStatus.WORKING, **kwargs):
    return SessionInfo(name=name, status=status, **kwargs)


def _state(*sessions, loaded=True):
    state = DashboardState()
    state.sessions = sort_by_priority(sessions)
    state.local_loaded = loaded
    refresh_sessions(state)
    return state


def _dispatch(state, intent_type, payload=None):
    reduce_state(state, Intent(intent_type, payload or {}))


# ==================== Session List Tests ====================


def test_sessions_loading_message():
    assert render_sessions(_state(loaded=False), 80).plain == "Loading sessions…"


def test_sessions_empty_message():
    assert render_sessions(_state(), 80).plain == "No sessions. Press n to start one."


def test_sessions_filtered_out_message():
    state = _state(_session("api"))
    _dispatch(state, IntentType.SET_STATUS_FILTER, {"status": "error"})

    assert render_sessions(state, 80).plain.startswith("No sessions match the current filters")


def test_sessions_render_cursor_and_more_below_indicator():
    state = _state(*[_session(f"s{i}", timestamp=0) for i in range(5)])
    _dispatch(state, IntentType.SET_VIEWPORT_HEIGHTS, {"heights": {"sessions": 3}})

    lines = render_sessions(state, 80).plain.splitlines()

    assert lines[0].startswith("▶ ◐ s0")
    assert lines[1].startswith("  ◐ s1")
    assert lines[2] == "  ▼ 3 more"


def test_sessions_render_more_above_indicator_at_bottom():
    state = _state(*[_session(f"s{i}", timestamp=0) for i in range(5)])
    _dispatch(state, IntentType.SET_VIEWPORT_HEIGHTS, {"heights": {"sessions": 3}})
    _dispatch(state, IntentType.SELECT_INDEX, {"panel": "sessions", "index": 4})

    lines = render_sessions(state, 80).plain.splitlines()

    assert lines[0] == "  ▲ 3 more"
    assert lines[-1].startswith("▶ ◐ s4")


def test_session_line_shows_git_and_origin():
    session = _session(
        "api",
        SessionStatus.WAITING,
        origin="box",
        git=GitInfo(branch="main", dirty=True, ahead=2, pr_num=7),
        message="Need approval",
    )

    line = session_line(session, 120).plain

    assert line.startswith("● api @box")
    assert "main* ↑2 PR#7" in line
    assert line.endswith("Need approval")


def test_session_line_fits_width():
    session = _session("a-very-long-session-name", message="x" * 200)

    assert session_line(session, 20).cell_len <= 20


# ==================== Status & Footer Tests ====================


def test_status_line_shows_counts_and_filters():
    state = _state(_session("a", SessionStatus.WAITING), _session("b"))
    _dispatch(state, IntentType.SET_STATUS_FILTER, {"status": "waiting"})
    state.host_errors = {"box": "timeout"}

    line = render_status_line(state).plain

    assert "1/2" in line
    assert "status:waiting" in line
    assert "1 remote error(s)" in line


def test_footer_shows_help_by_default():
    assert "enter attach" in render_footer(_state()).plain


def test_footer_shows_search_query():
    state = _state(_session("api"), _session("web"))
    _dispatch(state, IntentType.START_SEARCH, {"panel": "sessions"})
    _dispatch(state, IntentType.SET_QUERY, {"panel": "sessions", "query": "ap"})

    assert render_footer(state).plain == "/ap█  1 match(es)"


def test_footer_shows_notice():
    state = _state()
    state.notice = Notice("kill api: ok")

    assert render_footer(state).plain == "kill api: ok"


# ==================== Dialog Tests ====================


def test_kill_dialog_names_target():
    state = _state(_session("api"))
    _dispatch(state, IntentType.OPEN_DIALOG, {"dialog": FocusMode.KILL_CONFIRM.value})

    text = render_dialog(state).plain

    assert text.startswith("Kill session api?")


def test_dialog_shows_error_and_busy():
    state = _state(_session("api"))
    _dispatch(state, IntentType.OPEN_DIALOG, {"dialog": FocusMode.RENAME.value})
    state.dialog.busy = True
    state.dialog.error = "duplicate session: web"

    text = render_dialog(state).plain

    assert "> api█" in text
    assert "Working…" in text
    assert "Error: duplicate session: web" in text


def test_git_detail_lists_checks():
    state = _state(_session("api", git=GitInfo(branch="main", behind=1)))
    _dispatch(state, IntentType.OPEN_DIALOG, {"dialog": FocusMode.GIT_DETAIL.value})
    state.dialog.pr = PRDetail(7, "Add search", "OPEN", checks=(PRCheck("test", "failure"),))

    text = render_dialog(state).plain

    assert "Branch:  main" in text
    assert "Behind: 1" in text
    assert "PR #7 Add search [OPEN]" in text
    assert "failure  test" in text


def test_metrics_dialog_shows_tokens_and_tools():
    metrics = SessionMetrics(
        tokens=TokenMetrics(input=1000, output=500),
        total_seconds=3900,
        tool_counts={"Read": 3, "Bash": 12},
    )
    state = _state(_session("api", metrics=metrics))
    _dispatch(state, IntentType.OPEN_DIALOG, {"dialog": FocusMode.METRICS_DETAIL.value})

    text = render_dialog(state).plain

    assert "Tokens:  1.5k (in 1.0k, out 500)" in text
    assert "1h 5m total" in text
    assert text.index("Bash") < text.index("Read")


def test_dialog_for_vanished_session():
    state = _state(_session("api"))
    _dispatch(state, IntentType.OPEN_DIALOG, {"dialog": FocusMode.METRICS_DETAIL.value})
    state.sessions = []

    assert "Session is gone" in render_dialog(state).plain


# ==================== Task & Briefing Tests ====================


def test_tasks_without_provider():
    state = _state(_session("api", cwd="/work/api"))

    assert "No task provider" in render_tasks(state, 80).plain


def test_briefing_lists_attention_and_host_errors():
    state = _state(_session("api", SessionStatus.PERMISSION, message="Allow rm?"), _session("web"))
    state.host_errors = {"box": "connection refused"}

    text = render_pm(state).plain

    assert "Needs attention (1)" in text
    assert "api  Allow rm?" in text
    assert "box: connection refused" in text
    assert "Collecting project snapshots" in text


def test_briefing_shows_project_snapshots():
    state = _state(_session("api"))
    state.pm.snapshots = [
        ProjectSnapshot(
            "/work/api",
            session_count=2,
            branch="feature",
            dirty=True,
            pr_num=12,
            current_group_title="Search",
            tasks=TaskCounts(total=4, done=1, in_progress=1),
            session_status=SessionStatus.WORKING,
        )
    ]

    text = render_pm(state).plain

    assert "Collecting" not in text
    assert "feature* PR#12  1/4 tasks  Search" in text


def test_briefing_lists_recent_events_newest_first():
    state = _state()
    state.pm.events = [
        PMEvent(PMEventType.COMMIT, "/work/api", 940.0, {"new_commit": "abc123"}),
        PMEvent(PMEventType.PR_CREATED, "/work/web", 990.0, {"pr_number": "7"}),
    ]
    state.pm.error = "Permission denied"

    lines = render_pm(state, now=1000.0).plain.splitlines()

    start = lines.index("Recent activity")
    assert lines[start + 1].split() == ["10s", "web", "opened", "PR", "#7"]
    assert lines[start + 2].split() == ["1m", "api", "new", "commit", "abc123"]
    assert "Event log: Permission denied" in lines


def test_footer_lists_diff_and_briefing_keys():
    text = render_footer(_state()).plain

    assert "v diff" in text
    assert "P brief" in text
