"""Input-routing modes: panel focus and modal dialogs.

Exactly one mode is active. Dialogs capture every key until they close,
returning to the mode recorded when they opened (default: the session list).
Opening a dialog drops any panel focus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class FocusMode(str, Enum):
    # Panel focus (non-modal)
    SESSIONS = "sessions"
    TASKS = "tasks"
    PREVIEW = "preview"
    PM = "pm"
    # Modal dialogs
    NEW_SESSION = "new_session"
    KILL_CONFIRM = "kill_confirm"
    RENAME = "rename"
    GIT_DETAIL = "git_detail"
    METRICS_DETAIL = "metrics_detail"
    CONTENT_VIEWER = "content_viewer"
    PICKER = "picker"

    @property
    def is_dialog(self) -> bool:
        return self not in _PANEL_MODES


_PANEL_MODES = frozenset({FocusMode.SESSIONS, FocusMode.TASKS, FocusMode.PREVIEW, FocusMode.PM})

# Keys accepted identically in every non-modal mode.
GLOBAL_KEYS = frozenset({"q", "ctrl+c"})


@dataclass
class FocusState:
    mode: FocusMode = FocusMode.SESSIONS
    return_to: FocusMode | None = None

    @property
    def dialog_open(self) -> bool:
        return self.mode.is_dialog

    def open_dialog(self, dialog: FocusMode, return_to: FocusMode | None = None) -> None:
        """Enter a modal dialog.

        Args:
            dialog: Dialog mode to enter.
            return_to: Dialog to come back to on close. Only dialogs are
                valid targets; panel focus is always cleared.
        """
        if not dialog.is_dialog:
            raise ValueError(f"{dialog.value} is not a dialog mode")
        if return_to is not None and not return_to.is_dialog:
            raise ValueError(f"cannot return to non-dialog mode {return_to.value}")
        logger.debug("Dialog %s -> %s (return to %s)", self.mode.value, dialog.value, return_to)
        self.mode = dialog
        self.return_to = return_to

    def close_dialog(self) -> FocusMode:
        """Leave the current dialog and return the mode now active."""
        if not self.mode.is_dialog:
            return self.mode
        target = self.return_to or FocusMode.SESSIONS
        self.mode = target
        self.return_to = None
        return target

    def focus_panel(self, panel: FocusMode) -> None:
        """Switch panel focus. Ignored while a dialog is open."""
        if panel.is_dialog:
            raise ValueError(f"{panel.value} is a dialog mode")
        if self.mode.is_dialog:
            return
        self.mode = panel

    def toggle_panel(self, panel: FocusMode) -> None:
        """Focus `panel`, or go back to the session list if already focused."""
        self.focus_panel(FocusMode.SESSIONS if self.mode == panel else panel)
