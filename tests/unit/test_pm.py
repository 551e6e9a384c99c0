"""Unit tests for project briefing snapshots and events."""

from dataclasses import replace

import pytest

from navi.core.models import GitInfo, SessionInfo, SessionStatus, Task, TaskGroup
from navi.core.pm import (
    PMEngine,
    PMEvent,
    PMEventType,
    ProjectSnapshot,
    TaskCounts,
    capture_snapshot,
    count_tasks,
    diff_snapshots,
    discover_projects,
)


def _session(name, cwd="/work/api", status=SessionStatus.WORKING, timestamp=100.0, origin=None, git=None):
    return SessionInfo(name=name, status=status, timestamp=timestamp, origin=origin, cwd=cwd, git=git)


def _group(group_id, status, *task_statuses):
    tasks = tuple(Task(id=f"{group_id}-{i}", title=f"task {i}", status=s) for i, s in enumerate(task_statuses))
    return TaskGroup(id=group_id, title=f"Group {group_id}", status=status, tasks=tasks)


def _snapshot(**kwargs):
    return ProjectSnapshot("/work/api", **kwargs)


def _types(events):
    return [e.type for e in events]


# ==================== Discovery Tests ====================


def test_discover_groups_sessions_by_deepest_project():
    sessions = [
        _session("a", cwd="/work/api/server"),
        _session("b", cwd="/work/api"),
        _session("c", cwd="/work/api/docs/site"),
        _session("d", cwd="/tmp/scratch"),
    ]

    projects = discover_projects(sessions, ["/work", "/work/api", "/work/api/docs"])

    assert {k: [s.name for s in v] for k, v in projects.items()} == {
        "/work/api": ["a", "b"],
        "/work/api/docs": ["c"],
        "/tmp/scratch": ["d"],
    }


def test_discover_skips_remote_and_cwd_less_sessions():
    sessions = [_session("remote", origin="box"), _session("blank", cwd="  "), _session("api")]

    assert list(discover_projects(sessions)) == ["/work/api"]


# ==================== Snapshot Tests ====================


def test_count_tasks_by_category():
    groups = [_group("1", "active", "done", "in progress", "todo"), _group("2", "todo", "merged")]

    assert count_tasks(groups) == TaskCounts(total=4, done=2, in_progress=1)


def test_capture_snapshot_collects_git_tasks_and_status():
    git = GitInfo(branch="feature", last_commit="abc123", ahead=2, dirty=True, pr_num=9)
    sessions = [
        _session("a", status=SessionStatus.DONE, timestamp=50.0),
        _session("b", status=SessionStatus.PERMISSION, timestamp=80.0, git=git),
        _session("c", status=SessionStatus.WORKING, timestamp=20.0),
    ]
    groups = [_group("1", "done", "done"), _group("2", "in_progress", "todo")]

    snapshot = capture_snapshot("/work/api", sessions, groups)

    assert snapshot.session_count == 3
    assert (snapshot.branch, snapshot.last_commit, snapshot.ahead, snapshot.dirty) == ("feature", "abc123", 2, True)
    assert snapshot.pr_num == 9
    assert (snapshot.current_group_id, snapshot.current_group_title) == ("2", "Group 2")
    assert snapshot.tasks == TaskCounts(total=2, done=1, in_progress=0)
    assert snapshot.session_status is SessionStatus.PERMISSION
    assert snapshot.last_activity == 80.0
    assert snapshot.name == "api"


def test_capture_snapshot_without_git_or_groups():
    snapshot = capture_snapshot("/work/api", [_session("a")])

    assert snapshot.branch == ""
    assert snapshot.pr_num is None
    assert snapshot.current_group_id == ""
    assert snapshot.tasks == TaskCounts()


# ==================== Diff Tests ====================


def test_identical_snapshots_yield_no_events():
    snapshot = _snapshot(branch="main", last_commit="abc", session_status=SessionStatus.WORKING)

    assert diff_snapshots(snapshot, snapshot, 10.0) == []


def test_new_commit_event():
    events = diff_snapshots(_snapshot(last_commit="abc"), _snapshot(last_commit="def"), 10.0)

    assert _types(events) == [PMEventType.COMMIT]
    assert events[0].payload == {"old_commit": "abc", "new_commit": "def"}
    assert events[0].timestamp == 10.0


def test_first_commit_seen_is_not_an_event():
    assert diff_snapshots(_snapshot(), _snapshot(last_commit="abc"), 10.0) == []


def test_task_progress_events():
    old = _snapshot(tasks=TaskCounts(total=3, done=0, in_progress=1))
    new = _snapshot(tasks=TaskCounts(total=3, done=1, in_progress=2))

    events = diff_snapshots(old, new, 10.0)

    assert _types(events) == [PMEventType.TASK_COMPLETED, PMEventType.TASK_STARTED]
    assert events[0].payload == {"old_done": "0", "new_done": "1"}
    assert events[1].payload == {"old_in_progress": "1", "new_in_progress": "2"}


def test_session_status_change_event():
    old = _snapshot(session_status=SessionStatus.WORKING)
    new = _snapshot(session_status=SessionStatus.WAITING)

    events = diff_snapshots(old, new, 10.0)

    assert _types(events) == [PMEventType.SESSION_STATUS_CHANGE]
    assert events[0].describe() == "sessions working → waiting"


def test_group_completed_event():
    old = _snapshot(current_group_id="g1", current_group_title="Search", tasks=TaskCounts(total=2, done=1))
    new = replace(old, tasks=TaskCounts(total=2, done=2))

    events = diff_snapshots(old, new, 10.0)

    assert _types(events) == [PMEventType.TASK_COMPLETED, PMEventType.GROUP_COMPLETED]
    assert events[1].payload == {"group_id": "g1", "group_title": "Search"}


def test_group_switch_is_not_completion():
    old = _snapshot(current_group_id="g1", tasks=TaskCounts(total=2, done=1))
    new = _snapshot(current_group_id="g2", tasks=TaskCounts(total=2, done=2))

    assert PMEventType.GROUP_COMPLETED not in _types(diff_snapshots(old, new, 10.0))


def test_branch_change_and_pr_created_events():
    old = _snapshot(branch="main")
    new = _snapshot(branch="feature", pr_num=4)

    events = diff_snapshots(old, new, 10.0)

    assert _types(events) == [PMEventType.BRANCH_CHANGED, PMEventType.PR_CREATED]
    assert events[1].describe() == "opened PR #4"


# ==================== Engine Tests ====================


def test_engine_first_cycle_sets_baseline():
    engine = PMEngine(clock=lambda: 500.0)
    git = GitInfo(branch="main", last_commit="abc")

    output = engine.run([_session("api", git=git)], {})

    assert [s.project_dir for s in output.snapshots] == ["/work/api"]
    assert output.events == ()
    assert output.taken_at == 500.0


def test_engine_reports_changes_between_cycles():
    engine = PMEngine(clock=lambda: 500.0)
    engine.run([_session("api", git=GitInfo(last_commit="abc"))], {"/work/api": [_group("1", "active", "todo")]})

    output = engine.run(
        [_session("api", cwd="/work/api/src", git=GitInfo(last_commit="def"))],
        {"/work/api": [_group("1", "active", "done")]},
    )

    assert _types(output.events) == [PMEventType.COMMIT, PMEventType.TASK_COMPLETED, PMEventType.GROUP_COMPLETED]
    assert {e.project_dir for e in output.events} == {"/work/api"}


def test_engine_project_that_reappears_starts_a_new_baseline():
    engine = PMEngine()
    engine.run([_session("api", git=GitInfo(last_commit="abc"))], {})
    engine.run([], {})

    output = engine.run([_session("api", git=GitInfo(last_commit="def"))], {})

    assert output.events == ()


# ==================== Event Record Tests ====================


def test_event_record_round_trip():
    event = PMEvent(PMEventType.PR_CREATED, "/work/api", 12.5, {"pr_number": "4"})

    assert PMEvent.from_dict(event.to_dict()) == event


@pytest.mark.parametrize(
    "record",
    [
        ["not", "an", "object"],
        {"type": "unknown", "project_dir": "/w", "timestamp": 1},
        {"type": "commit", "timestamp": 1},
        {"type": "commit", "project_dir": "/w", "timestamp": 1, "payload": "x"},
    ],
)
def test_malformed_event_record_rejected(record):
    with pytest.raises(ValueError):
        PMEvent.from_dict(record)
