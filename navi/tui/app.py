"""Textual application hosting the dashboard engine.

The engine owns all state and routing; this module only lays out the regions,
forwards key presses, redraws on change and suspends the terminal while a
session is attached.
"""

from __future__ import annotations

import logging
import sys
import time

from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key, Resize

from navi.constants import NOTICE_TTL
from navi.core.engine import Collaborators, DashboardEngine, EngineHooks, EngineSettings
from navi.core.focus import FocusMode
from navi.core.models import SessionKey, SessionStatus
from navi.core.state import IntentType
from navi.tui.widgets import (
    BriefingView,
    ContentView,
    DialogBox,
    FooterBar,
    PreviewPane,
    SessionList,
    StatePanel,
    StatusLine,
    TaskPanel,
)

logger = logging.getLogger(__name__)

NOTIFY_STATUSES = frozenset(
    {SessionStatus.WAITING, SessionStatus.PERMISSION, SessionStatus.DONE, SessionStatus.ERROR}
)


def key_name(event: Key) -> str:
    """Engine key name: the character for printable keys, else Textual's name."""
    if event.character and event.is_printable and event.character != " ":
        return event.character
    return event.key


class NaviApp(App[None]):
    """Dashboard over local and remote agent sessions."""

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", priority=True, show=False),
    ]

    CSS = """
    Screen {
        layers: base overlay;
    }
    #main {
        height: 1fr;
    }
    #left {
        width: 1fr;
    }
    #dialog-layer {
        layer: overlay;
        width: 100%;
        height: 100%;
        align: center middle;
        background: $background 40%;
    }
    #fullscreen-layer {
        layer: overlay;
        width: 100%;
        height: 100%;
    }
    """

    def __init__(
        self,
        collaborators: Collaborators,
        settings: EngineSettings | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        if collaborators.notify is None:
            collaborators.notify = self.notify_status
        self.engine = DashboardEngine(
            collaborators,
            settings,
            hooks=EngineHooks(on_change=self.refresh_view, on_quit=self.exit, on_attach=self.start_attach),
        )
        self.state = self.engine.state
        self._attach_suspended = False
        self._view_ready = False

    def compose(self) -> ComposeResult:
        yield StatusLine(self.state)
        with Horizontal(id="main"):
            with Vertical(id="left"):
                yield SessionList(self.state, clock=time.time)
                yield TaskPanel(self.state)
            yield PreviewPane(self.state)
        yield FooterBar(self.state)
        with Container(id="dialog-layer"):
            yield DialogBox(self.state)
        with Container(id="fullscreen-layer"):
            yield ContentView(self.state)
            yield BriefingView(self.state)

    def on_mount(self) -> None:
        self._view_ready = True
        self.engine.start()
        self.set_interval(1.0, self._expire_notice)
        self.refresh_view()

    async def on_unmount(self) -> None:
        await self.engine.stop()

    def on_resize(self, _event: Resize) -> None:
        self.call_after_refresh(self._sync_heights)

    async def on_key(self, event: Key) -> None:
        if self.engine.handle_key(key_name(event), event.character):
            event.stop()
            event.prevent_default()

    # ==================== Rendering ====================

    def refresh_view(self) -> None:
        """Show the regions the current focus needs and redraw them."""
        if self._attach_suspended or not self._view_ready:
            return
        mode = self.state.focus.mode
        self.query_one(TaskPanel).display = self.state.tasks.visible
        self.query_one(PreviewPane).display = self.state.preview.visible
        self.query_one("#dialog-layer").display = mode.is_dialog and mode is not FocusMode.CONTENT_VIEWER
        self.query_one(ContentView).display = mode is FocusMode.CONTENT_VIEWER
        self.query_one(BriefingView).display = mode is FocusMode.PM
        self.query_one("#fullscreen-layer").display = mode in (FocusMode.CONTENT_VIEWER, FocusMode.PM)
        for panel in self.query(StatePanel):
            panel.refresh(layout=isinstance(panel, DialogBox))
        self.call_after_refresh(self._sync_heights)

    def _sync_heights(self) -> None:
        """Push widget heights into the viewports when the layout changed."""
        heights = {
            "sessions": self.query_one(SessionList).body_height,
            "tasks": self.query_one(TaskPanel).body_height,
            "preview": self.query_one(PreviewPane).body_height,
            "content": self.query_one(ContentView).body_height,
        }
        current = {
            "sessions": self.state.view.panel.viewport.height,
            "tasks": self.state.tasks.panel.viewport.height,
            "preview": self.state.preview.view.viewport.height,
            "content": self.state.content.view.viewport.height,
        }
        changed = {name: height for name, height in heights.items() if height and height != current[name]}
        if changed:
            self.engine.dispatch(IntentType.SET_VIEWPORT_HEIGHTS, {"heights": changed})
            for panel in self.query(StatePanel):
                panel.refresh()

    def _expire_notice(self) -> None:
        notice = self.state.notice
        if notice is not None and time.time() - notice.created_at > NOTICE_TTL:
            self.engine.dispatch(IntentType.DISMISS_NOTICE)
        self.refresh_view()

    # ==================== Attach & notifications ====================

    def start_attach(self, key: SessionKey) -> None:
        self.run_worker(self._run_attached(key), group="attach", exclusive=True)

    async def _run_attached(self, key: SessionKey) -> None:
        try:
            with self.suspend():
                self._attach_suspended = True
                try:
                    await self.engine.attach(key)
                finally:
                    self._attach_suspended = False
        except SuspendNotSupported:
            self.engine.dispatch(IntentType.SET_NOTICE, {"text": "Attach is not supported here", "level": "error"})
        self.refresh_view()

    def notify_status(self, identity: str, status: SessionStatus) -> None:
        if status not in NOTIFY_STATUSES:
            return
        logger.info("Session %s is now %s", identity, status.value)
        if self._attach_suspended:
            # Terminal belongs to the attached session; a bell still reaches it.
            sys.stdout.write("\a")
            sys.stdout.flush()
            return
        self.bell()
        self.notify(f"{identity}: {status.value}", severity="error" if status is SessionStatus.ERROR else "warning")
