"""Unit tests for DashboardEngine key routing, actions and result handling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from navi.core.engine import Collaborators, DashboardEngine, EngineHooks, EngineSettings
from navi.core.errors import ActionError
from navi.core.focus import FocusMode
from navi.core.messages import LocalSessionsLoaded
from navi.core.models import (
    GitInfo,
    PRDetail,
    ProviderResult,
    SessionInfo,
    SessionStatus,
    SortMode,
    Task,
    TaskGroup,
)
from navi.core.reconcile import FollowUp, FollowUpKind
from navi.core.state import selected_session


def _collaborators(sessions):
    source = MagicMock()
    source.list_local = AsyncMock(return_value=list(sessions))
    source.capture_preview = AsyncMock(return_value="$ make test\nok")
    source.resource_usage = AsyncMock(return_value={})

    actions = MagicMock()
    for name in ("attach", "kill", "rename", "dismiss", "create"):
        setattr(actions, name, AsyncMock(return_value=None))

    git = MagicMock()
    git.git_info = AsyncMock(return_value=GitInfo(branch="main"))
    git.pr_detail = AsyncMock(return_value=PRDetail(number=3, title="Add search"))
    git.diff = AsyncMock(return_value="+added\n-removed")

    tasks = MagicMock()
    tasks.discover = AsyncMock(return_value={})
    tasks.run = AsyncMock()

    return Collaborators(sessions=source, actions=actions, git=git, tasks=tasks, notify=MagicMock())


def _engine(*sessions, settings=None):
    collaborators = _collaborators(sessions)
    hooks = EngineHooks(on_change=MagicMock(), on_quit=MagicMock(), on_attach=MagicMock())
    engine = DashboardEngine(collaborators, settings, hooks=hooks)
    engine.handle_result(LocalSessionsLoaded(tuple(sessions)))
    return engine


async def _drain(engine):
    """Let background tasks finish and reconcile everything they emitted."""
    for _ in range(3):
        await asyncio.sleep(0.01)
        while not engine.queue.empty():
            engine.handle_result(engine.queue.get_nowait())


def _session(name, status=SessionStatus.WORKING, timestamp=100.0, cwd="/work/api"):
    return SessionInfo(name=name, status=status, timestamp=timestamp, cwd=cwd)


# ==================== Navigation Tests ====================


@pytest.mark.asyncio
async def test_quit_key_calls_hook():
    engine = _engine(_session("api"))

    assert engine.handle_key("q", "q") is True

    engine.hooks.on_quit.assert_called_once()
    await engine.stop()


@pytest.mark.asyncio
async def test_cursor_keys_move_selection():
    engine = _engine(_session("a", timestamp=2), _session("b", timestamp=1))

    engine.handle_key("j", "j")
    assert selected_session(engine.state).name == "b"

    engine.handle_key("k", "k")
    assert selected_session(engine.state).name == "a"
    engine.hooks.on_change.assert_called()
    await engine.stop()


@pytest.mark.asyncio
async def test_unknown_key_is_not_consumed():
    engine = _engine(_session("api"))

    assert engine.handle_key("F12") is False
    await engine.stop()


@pytest.mark.asyncio
async def test_enter_requests_attach():
    engine = _engine(_session("api"))

    engine.handle_key("enter")

    engine.hooks.on_attach.assert_called_once_with((None, "api"))
    await engine.stop()


@pytest.mark.asyncio
async def test_status_filter_keys():
    engine = _engine(_session("a", SessionStatus.WAITING), _session("b"))

    engine.handle_key("1", "1")
    assert [s.name for s in engine.state.view.displayed] == ["a"]

    engine.handle_key("0", "0")
    assert len(engine.state.view.displayed) == 2
    await engine.stop()


@pytest.mark.asyncio
async def test_search_typing_and_escape():
    engine = _engine(_session("alpha", timestamp=2), _session("beta", timestamp=1))

    engine.handle_key("/", "/")
    engine.handle_key("b", "b")
    engine.handle_key("t", "t")

    assert engine.state.view.search.query == "bt"
    assert selected_session(engine.state).name == "beta"

    engine.handle_key("escape")
    assert engine.state.view.search.query == ""
    assert len(engine.state.view.displayed) == 2
    await engine.stop()


@pytest.mark.asyncio
async def test_sort_picker_selects_mode():
    engine = _engine(_session("zed", timestamp=2), _session("alpha", timestamp=1))

    engine.handle_key("S", "S")
    assert engine.state.focus.mode is FocusMode.PICKER

    engine.handle_key("j", "j")
    engine.handle_key("enter")

    assert engine.state.focus.mode is FocusMode.SESSIONS
    assert engine.state.view.filters.sort is SortMode.NAME
    assert [s.name for s in engine.state.view.displayed] == ["alpha", "zed"]
    await engine.stop()


# ==================== Dialog Tests ====================


@pytest.mark.asyncio
async def test_dialog_captures_navigation_keys():
    engine = _engine(_session("a", timestamp=2), _session("b", timestamp=1))

    engine.handle_key("x", "x")
    engine.handle_key("j", "j")

    assert engine.state.focus.mode is FocusMode.KILL_CONFIRM
    assert engine.state.view.panel.cursor == 0
    await engine.stop()


@pytest.mark.asyncio
async def test_kill_confirm_runs_action_and_closes():
    engine = _engine(_session("api"))

    engine.handle_key("x", "x")
    engine.handle_key("y", "y")
    assert engine.state.dialog.busy is True
    await _drain(engine)

    engine.sources.actions.kill.assert_awaited_once_with(None, "api")
    assert engine.state.focus.mode is FocusMode.SESSIONS
    assert engine.state.notice.text == "kill api: ok"
    await engine.stop()


@pytest.mark.asyncio
async def test_kill_decline_closes_without_action():
    engine = _engine(_session("api"))

    engine.handle_key("x", "x")
    engine.handle_key("n", "n")
    await _drain(engine)

    engine.sources.actions.kill.assert_not_awaited()
    assert engine.state.focus.mode is FocusMode.SESSIONS
    await engine.stop()


@pytest.mark.asyncio
async def test_failed_action_keeps_dialog_until_acknowledged():
    engine = _engine(_session("api"))
    engine.sources.actions.kill.side_effect = ActionError("kill", "api", "session not found")

    engine.handle_key("x", "x")
    engine.handle_key("y", "y")
    await _drain(engine)

    assert engine.state.focus.mode is FocusMode.KILL_CONFIRM
    assert "session not found" in engine.state.dialog.error

    engine.handle_key("enter")
    assert engine.state.dialog.error is None
    assert engine.state.focus.mode is FocusMode.KILL_CONFIRM
    await engine.stop()


@pytest.mark.asyncio
async def test_rename_edits_input_and_submits():
    engine = _engine(_session("api"))

    engine.handle_key("r", "r")
    for _ in range(3):
        engine.handle_key("backspace")
    for char in "web":
        engine.handle_key(char, char)
    engine.handle_key("enter")
    await _drain(engine)

    engine.sources.actions.rename.assert_awaited_once_with(None, "api", "web")
    assert engine.state.notice.text == "rename api: ok"
    await engine.stop()


@pytest.mark.asyncio
async def test_rename_to_same_name_is_rejected():
    engine = _engine(_session("api"))

    engine.handle_key("r", "r")
    engine.handle_key("enter")

    assert engine.state.dialog.error == "enter a new name"
    engine.sources.actions.rename.assert_not_called()
    await engine.stop()


@pytest.mark.asyncio
async def test_new_session_uses_selected_cwd():
    engine = _engine(_session("api", cwd="/work/api"))

    engine.handle_key("n", "n")
    assert engine.state.focus.mode is FocusMode.NEW_SESSION
    for char in "docs":
        engine.handle_key(char, char)
    engine.handle_key("enter")
    await _drain(engine)

    engine.sources.actions.create.assert_awaited_once_with("docs", "/work/api")
    await engine.stop()


@pytest.mark.asyncio
async def test_git_detail_loads_pr_and_diff_returns_to_dialog():
    engine = _engine(_session("api"))

    engine.handle_key("i", "i")
    await _drain(engine)

    assert engine.state.focus.mode is FocusMode.GIT_DETAIL
    assert engine.state.dialog.pr.number == 3

    engine.handle_key("d", "d")
    await _drain(engine)
    assert engine.state.focus.mode is FocusMode.CONTENT_VIEWER
    assert engine.state.content.lines == ["+added", "-removed"]

    engine.handle_key("escape")
    assert engine.state.focus.mode is FocusMode.GIT_DETAIL
    await engine.stop()


@pytest.mark.asyncio
async def test_diff_from_session_list_returns_to_list():
    engine = _engine(_session("api"))

    engine.handle_key("v", "v")
    await _drain(engine)

    engine.sources.git.diff.assert_awaited_once_with("/work/api")
    assert engine.state.focus.mode is FocusMode.CONTENT_VIEWER
    assert engine.state.content.title == "diff: api"

    engine.handle_key("escape")
    assert engine.state.focus.mode is FocusMode.SESSIONS
    await engine.stop()


@pytest.mark.asyncio
async def test_dismiss_routes_to_actions():
    engine = _engine(_session("api", SessionStatus.WAITING))

    engine.handle_key("d", "d")
    await _drain(engine)

    engine.sources.actions.dismiss.assert_awaited_once_with(None, "api")
    assert engine.state.dialog.busy is False
    await engine.stop()


# ==================== Results & Refresh Tests ====================


@pytest.mark.asyncio
async def test_status_change_triggers_notification():
    engine = _engine(_session("api"))

    engine.handle_result(LocalSessionsLoaded((_session("api", SessionStatus.PERMISSION),)))

    engine.sources.notify.assert_called_once_with("api", SessionStatus.PERMISSION)
    await engine.stop()


@pytest.mark.asyncio
async def test_first_load_fetches_git_info():
    engine = _engine(_session("api", cwd="/work/api"))

    await _drain(engine)

    engine.sources.git.git_info.assert_awaited_with("/work/api")
    assert engine.state.sessions[0].git.branch == "main"
    await engine.stop()


@pytest.mark.asyncio
async def test_manual_refresh_refetches_git():
    engine = _engine(_session("api", cwd="/work/api"))
    await _drain(engine)
    before = engine.sources.git.git_info.await_count

    engine.handle_key("R", "R")
    await _drain(engine)

    assert engine.sources.git.git_info.await_count > before
    await engine.stop()


@pytest.mark.asyncio
async def test_preview_requested_when_visible():
    engine = _engine(_session("api"), settings=EngineSettings(preview_debounce=0.001))

    engine.handle_key("p", "p")
    await _drain(engine)

    assert engine.state.preview.visible is True
    assert engine.state.preview.lines == ["$ make test", "ok"]
    await engine.stop()


@pytest.mark.asyncio
async def test_remote_git_batch_skipped_while_host_busy():
    engine = _engine(_session("api"))
    engine.sources.remote = MagicMock()
    engine.sources.remote.git_info = AsyncMock(return_value=GitInfo(branch="dev"))
    follow_up = FollowUp(FollowUpKind.POLL_REMOTE_GIT, host="box", keys=("/srv/api",))

    async with engine.gate.lock("box"):
        engine._schedule(follow_up)
        await asyncio.sleep(0.01)
    engine.sources.remote.git_info.assert_not_awaited()

    engine._schedule(follow_up)
    await _drain(engine)
    engine.sources.remote.git_info.assert_awaited_once_with("box", "/srv/api")
    await engine.stop()


@pytest.mark.asyncio
async def test_remote_poller_merges_host_sessions_and_records_errors():
    collaborators = _collaborators([])
    collaborators.remote = MagicMock()
    collaborators.remote.hosts = ["box"]
    collaborators.remote.list_sessions = AsyncMock(return_value=[SessionInfo(name="web", cwd="")])
    engine = DashboardEngine(collaborators, hooks=EngineHooks(on_change=MagicMock()))

    engine.pollers.remote["box"].trigger()
    await _drain(engine)

    assert {s.key for s in engine.state.sessions} == {("box", "web")}
    collaborators.remote.list_sessions.assert_awaited_once_with("box")

    collaborators.remote.list_sessions.side_effect = ConnectionError("connection refused")
    engine.pollers.remote["box"].trigger()
    await _drain(engine)

    assert engine.state.host_errors == {"box": "connection refused"}
    assert [s.key for s in engine.state.sessions] == [("box", "web")]
    await engine.stop()


# ==================== Attach Tests ====================


@pytest.mark.asyncio
async def test_attach_hands_statuses_back():
    engine = _engine(_session("api"))

    await engine.attach((None, "api"))

    engine.sources.actions.attach.assert_awaited_once_with(None, "api")
    assert engine.state.attached is None
    assert engine.state.tracker.seeded is True
    await engine.stop()


@pytest.mark.asyncio
async def test_attach_failure_becomes_notice():
    engine = _engine(_session("api"))
    engine.sources.actions.attach.side_effect = ActionError("attach", "api", "tmux exited with 1")

    await engine.attach((None, "api"))

    assert engine.state.notice.level == "error"
    assert "tmux exited with 1" in engine.state.notice.text
    await engine.stop()


@pytest.mark.asyncio
async def test_status_change_during_attach_is_notified_once():
    engine = _engine(_session("api"))
    waiting = _session("api", SessionStatus.WAITING)
    engine.sources.sessions.list_local.return_value = [waiting]

    async def attached(origin, name):
        # Both the session poller and the attach monitor see the change.
        engine.handle_result(LocalSessionsLoaded((waiting,)))
        await engine._monitor.poll_once()

    engine.sources.actions.attach.side_effect = attached

    await engine.attach((None, "api"))
    engine.handle_result(LocalSessionsLoaded((waiting,)))

    engine.sources.notify.assert_called_once_with("api", SessionStatus.WAITING)
    await engine.stop()


@pytest.mark.asyncio
async def test_notifications_resume_after_attach():
    engine = _engine(_session("api"))

    await engine.attach((None, "api"))
    engine.handle_result(LocalSessionsLoaded((_session("api", SessionStatus.DONE),)))

    engine.sources.notify.assert_called_once_with("api", SessionStatus.DONE)
    await engine.stop()


# ==================== Briefing Tests ====================


@pytest.mark.asyncio
async def test_briefing_key_takes_snapshot_and_logs_events():
    engine = _engine(_session("api", SessionStatus.WAITING, cwd="/work/api"))
    engine.sources.events = MagicMock()
    engine.sources.events.append = MagicMock(return_value=[])
    group = TaskGroup(id="1", title="Search", status="active", tasks=(Task(id="1.1", title="Index", status="done"),))
    engine.caches.tasks.set("/work/api", ProviderResult(groups=(group,)))

    engine.handle_key("P", "P")
    await _drain(engine)

    assert engine.state.focus.mode is FocusMode.PM
    assert [s.project_dir for s in engine.state.pm.snapshots] == ["/work/api"]
    assert engine.state.pm.snapshots[0].session_status is SessionStatus.WAITING
    engine.sources.events.append.assert_called_once_with(())
    assert engine.state.pm.snapshots[0].current_group_title == "Search"
    assert engine.state.pm.snapshots[0].tasks.done == 1
    await engine.stop()


@pytest.mark.asyncio
async def test_briefing_log_failure_is_recorded():
    engine = _engine(_session("api", cwd="/work/api"))
    engine.sources.events = MagicMock()
    engine.sources.events.append = MagicMock(side_effect=PermissionError("read-only"))

    engine.handle_key("P", "P")
    await _drain(engine)

    assert engine.state.pm.error == "read-only"
    assert len(engine.state.pm.snapshots) == 1
    await engine.stop()
