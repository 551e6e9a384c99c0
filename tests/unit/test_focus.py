"""Unit tests for focus modes and dialog return targets."""

import pytest

from navi.core.focus import FocusMode, FocusState


def test_default_mode_is_session_list():
    focus = FocusState()

    assert focus.mode is FocusMode.SESSIONS
    assert focus.dialog_open is False


def test_dialog_closes_back_to_session_list_by_default():
    focus = FocusState()
    focus.open_dialog(FocusMode.KILL_CONFIRM)

    assert focus.dialog_open is True
    assert focus.close_dialog() is FocusMode.SESSIONS


def test_content_viewer_returns_to_opening_dialog():
    """Test an overlay opened from the git detail dialog returns to it."""
    focus = FocusState()
    focus.open_dialog(FocusMode.GIT_DETAIL)
    focus.open_dialog(FocusMode.CONTENT_VIEWER, return_to=FocusMode.GIT_DETAIL)

    assert focus.close_dialog() is FocusMode.GIT_DETAIL
    assert focus.return_to is None
    assert focus.close_dialog() is FocusMode.SESSIONS


def test_opening_dialog_clears_panel_focus():
    focus = FocusState()
    focus.focus_panel(FocusMode.TASKS)

    focus.open_dialog(FocusMode.RENAME)

    assert focus.mode is FocusMode.RENAME
    assert focus.close_dialog() is FocusMode.SESSIONS


def test_panel_focus_ignored_while_dialog_open():
    focus = FocusState()
    focus.open_dialog(FocusMode.NEW_SESSION)

    focus.focus_panel(FocusMode.PREVIEW)

    assert focus.mode is FocusMode.NEW_SESSION


def test_toggle_panel_returns_to_session_list():
    focus = FocusState()

    focus.toggle_panel(FocusMode.PREVIEW)
    assert focus.mode is FocusMode.PREVIEW

    focus.toggle_panel(FocusMode.PREVIEW)
    assert focus.mode is FocusMode.SESSIONS


def test_close_dialog_without_dialog_is_noop():
    focus = FocusState()
    focus.focus_panel(FocusMode.TASKS)

    assert focus.close_dialog() is FocusMode.TASKS


def test_open_dialog_rejects_panel_mode():
    with pytest.raises(ValueError):
        FocusState().open_dialog(FocusMode.TASKS)


def test_open_dialog_rejects_panel_return_target():
    with pytest.raises(ValueError):
        FocusState().open_dialog(FocusMode.CONTENT_VIEWER, return_to=FocusMode.TASKS)


def test_focus_panel_rejects_dialog_mode():
    with pytest.raises(ValueError):
        FocusState().focus_panel(FocusMode.PICKER)
