"""Unit tests for the filter, search and sort pipeline."""

from navi.core.models import (
    AgentInfo,
    OriginFilter,
    SessionInfo,
    SessionStatus,
    SortMode,
    Task,
    TaskFilterMode,
    TaskGroup,
    TaskSortMode,
)
from navi.core.pipeline import (
    SessionFilters,
    TaskRow,
    apply_session_pipeline,
    derive_task_groups,
    exact_match,
    filter_task_groups,
    find_session_matches,
    find_task_matches,
    fuzzy_match,
    group_progress,
    priority_key,
    sort_by_priority,
    sort_sessions,
    sort_task_groups,
    status_category,
    visible_task_rows,
)


def _session(name, status=SessionStatus.WORKING, timestamp=100.0, origin=None, cwd="", message=""):
    return SessionInfo(
        name=name,
        status=status,
        timestamp=timestamp,
        origin=origin,
        cwd=cwd,
        message=message,
    )


def _group(group_id, title=None, status="todo", tasks=()):
    return TaskGroup(id=group_id, title=title or group_id, status=status, tasks=tuple(tasks))


# ==================== Matching Tests ====================


def test_fuzzy_match_subsequence():
    """Test query characters only need to appear in order."""
    assert fuzzy_match("fzy", "Implement fuzzy search") is True
    assert fuzzy_match("fzy", "Add rate limiting") is False


def test_fuzzy_match_is_case_insensitive():
    assert fuzzy_match("API", "rapid iteration") is True


def test_fuzzy_match_respects_order():
    assert fuzzy_match("yzf", "fuzzy") is False


def test_empty_query_matches_nothing():
    assert fuzzy_match("", "anything") is False
    assert exact_match("", "anything") is False


def test_exact_match_is_substring():
    assert exact_match("Fuzzy", "implement fuzzy search") is True
    assert exact_match("fzy", "implement fuzzy search") is False


# ==================== Session Pipeline Tests ====================


def test_default_sort_puts_attention_first():
    sessions = [
        _session("a", SessionStatus.WORKING),
        _session("b", SessionStatus.WAITING),
        _session("c", SessionStatus.DONE),
    ]

    displayed = apply_session_pipeline(sessions, SessionFilters())

    assert [s.status for s in displayed] == [SessionStatus.WAITING, SessionStatus.WORKING, SessionStatus.DONE]


def test_status_filter_then_clear_restores_order():
    sessions = sort_by_priority(
        [
            _session("a", SessionStatus.WAITING),
            _session("b", SessionStatus.WORKING),
            _session("c", SessionStatus.DONE),
        ]
    )
    filters = SessionFilters()
    original = apply_session_pipeline(sessions, filters)

    filters.status = SessionStatus.WORKING
    assert [s.name for s in apply_session_pipeline(sessions, filters)] == ["b"]

    filters.status = None
    restored = apply_session_pipeline(sessions, filters)
    assert restored == original
    assert len(restored) == 3


def test_pipeline_does_not_mutate_input():
    sessions = [_session("b", timestamp=1), _session("a", timestamp=2)]
    snapshot = list(sessions)

    apply_session_pipeline(sessions, SessionFilters(sort=SortMode.NAME, hide_done=True))

    assert sessions == snapshot


def test_origin_filter():
    sessions = [_session("local"), _session("remote", origin="box")]

    local = apply_session_pipeline(sessions, SessionFilters(origin=OriginFilter.LOCAL))
    remote = apply_session_pipeline(sessions, SessionFilters(origin=OriginFilter.REMOTE))

    assert [s.name for s in local] == ["local"]
    assert [s.name for s in remote] == ["remote"]


def test_origin_filter_cycles_back_to_all():
    assert OriginFilter.ALL.next() is OriginFilter.LOCAL
    assert OriginFilter.REMOTE.next() is OriginFilter.ALL


def test_hide_done():
    sessions = [_session("a", SessionStatus.DONE), _session("b", SessionStatus.WORKING)]

    displayed = apply_session_pipeline(sessions, SessionFilters(hide_done=True))

    assert [s.name for s in displayed] == ["b"]


def test_scope_uses_path_prefix_not_string_prefix():
    """Test /work/api-v2 is not inside the /work/api scope."""
    sessions = [
        _session("root", cwd="/work/api"),
        _session("nested", cwd="/work/api/services"),
        _session("sibling", cwd="/work/api-v2"),
    ]

    displayed = apply_session_pipeline(sessions, SessionFilters(scope="/work/api", sort=SortMode.NAME))

    assert [s.name for s in displayed] == ["nested", "root"]


def test_priority_key_total_order_tie_breaks_on_identity():
    a = _session("alpha", timestamp=5)
    b = _session("beta", timestamp=5)
    remote = _session("alpha", timestamp=5, origin="box")

    assert sort_by_priority([remote, b, a]) == [a, b, remote]
    assert priority_key(a) < priority_key(remote)


def test_agent_needing_attention_promotes_session():
    team = SessionInfo(
        name="team",
        status=SessionStatus.WORKING,
        timestamp=1,
        agents=(AgentInfo("worker-1", SessionStatus.PERMISSION),),
    )
    newer = _session("solo", SessionStatus.WORKING, timestamp=50)

    assert sort_by_priority([newer, team]) == [team, newer]


def test_sort_modes():
    sessions = [
        _session("bravo", SessionStatus.DONE, timestamp=3, cwd="/b"),
        _session("Alpha", SessionStatus.WORKING, timestamp=1, cwd="/c"),
        _session("charlie", SessionStatus.PERMISSION, timestamp=2, cwd="/a"),
    ]

    assert [s.name for s in sort_sessions(sessions, SortMode.NAME)] == ["Alpha", "bravo", "charlie"]
    assert [s.name for s in sort_sessions(sessions, SortMode.AGE)] == ["bravo", "charlie", "Alpha"]
    assert [s.name for s in sort_sessions(sessions, SortMode.STATUS)] == ["charlie", "Alpha", "bravo"]
    assert [s.name for s in sort_sessions(sessions, SortMode.DIRECTORY)] == ["charlie", "bravo", "Alpha"]
    assert [s.name for s in sort_sessions(sessions, SortMode.PRIORITY)] == ["charlie", "bravo", "Alpha"]


def test_sort_is_stable_for_ties():
    sessions = [_session("second", timestamp=1), _session("first", timestamp=1)]

    assert [s.name for s in sort_sessions(sessions, SortMode.AGE)] == ["second", "first"]


def test_sort_mode_cycle_wraps():
    assert SortMode.DIRECTORY.next() is SortMode.PRIORITY


# ==================== Session Search Tests ====================


def test_search_marks_matches_without_filtering():
    displayed = [
        _session("api-server", cwd="/work/api"),
        _session("docs", cwd="/work/docs", message="rate limiting"),
        _session("frontend", cwd="/work/web"),
    ]

    assert find_session_matches(displayed, "api") == [0]
    assert find_session_matches(displayed, "rtlm") == [1]
    assert find_session_matches(displayed, "") == []
    assert len(displayed) == 3


# ==================== Task Tests ====================


def test_status_category_buckets():
    assert status_category("In Progress") == "active"
    assert status_category("in-progress") == "active"
    assert status_category("InReview") == "review"
    assert status_category("On Hold") == "blocked"
    assert status_category("closed") == "done"
    assert status_category("MERGED") == "done"
    assert status_category("proposed") == "todo"
    assert status_category("") == "todo"


def test_group_progress_counts_done_tasks():
    group = _group("g", tasks=[Task("1", "a", "done"), Task("2", "b", "open"), Task("3", "c", "closed")])

    assert group_progress(group) == (2, 3)


def test_filter_task_groups():
    groups = [
        _group("a", status="in_progress"),
        _group("b", status="review"),
        _group("c", status="todo"),
        _group("d", status="done"),
    ]

    assert [g.id for g in filter_task_groups(groups, TaskFilterMode.ALL)] == ["a", "b", "c", "d"]
    assert [g.id for g in filter_task_groups(groups, TaskFilterMode.ACTIVE)] == ["a", "b"]
    assert [g.id for g in filter_task_groups(groups, TaskFilterMode.INCOMPLETE)] == ["a", "b", "c"]


def test_sort_task_groups_modes():
    groups = [
        _group("one", title="Zeta", status="done", tasks=[Task("1", "x", "done")]),
        _group("two", title="alpha", status="todo", tasks=[Task("2", "y", "open")]),
        _group("three", title="Mid", status="active", tasks=[Task("3", "z", "done"), Task("4", "w", "open")]),
    ]

    assert [g.id for g in sort_task_groups(groups, TaskSortMode.SOURCE)] == ["one", "two", "three"]
    assert [g.id for g in sort_task_groups(groups, TaskSortMode.STATUS)] == ["three", "two", "one"]
    assert [g.id for g in sort_task_groups(groups, TaskSortMode.NAME)] == ["two", "three", "one"]
    assert [g.id for g in sort_task_groups(groups, TaskSortMode.PROGRESS)] == ["two", "three", "one"]
    assert [g.id for g in sort_task_groups(groups, TaskSortMode.SOURCE, reverse=True)] == ["three", "two", "one"]


def test_derive_task_groups_filters_before_sorting():
    groups = [_group("b", title="B", status="done"), _group("a", title="A", status="todo")]

    result = derive_task_groups(groups, TaskFilterMode.INCOMPLETE, TaskSortMode.NAME, False)

    assert [g.id for g in result] == ["a"]


def test_visible_task_rows_only_expands_requested_groups():
    groups = [
        _group("g1", tasks=[Task("1", "first")]),
        _group("g2", tasks=[Task("2", "second")]),
    ]

    rows = visible_task_rows(groups, expanded={"g2"})

    assert rows == [TaskRow(groups[0]), TaskRow(groups[1]), TaskRow(groups[1], groups[1].tasks[0])]
    assert rows[0].is_header is True
    assert rows[2].key == ("g2", "2")


def test_task_search_expands_groups_with_matching_tasks():
    groups = [
        _group("g1", title="Search", tasks=[Task("1", "Implement fuzzy search")]),
        _group("g2", title="Limits", tasks=[Task("2", "Add rate limiting")]),
    ]

    rows = visible_task_rows(groups, expanded=set(), query="rate")
    matches = find_task_matches(rows, "rate")

    assert len(rows) == 3
    assert [rows[i].key for i in matches] == [("g2", "2")]


def test_task_search_matches_group_titles():
    groups = [_group("g1", title="Payments"), _group("g2", title="Search")]
    rows = visible_task_rows(groups, expanded=set(), query="pay")

    assert find_task_matches(rows, "pay") == [0]
