"""Dashboard regions. Each widget renders one slice of the shared state."""

from __future__ import annotations

from typing import Callable

from rich.text import Text
from textual.widget import Widget

from navi.core.state import DashboardState
from navi.tui import render


class StatePanel(Widget):
    """Widget whose content is a pure function of `DashboardState`.

    `header_rows` is how many rendered lines sit above the scrollable body,
    so `body_height` is what the viewport can use.
    """

    header_rows = 0

    def __init__(self, state: DashboardState, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.state = state

    @property
    def body_height(self) -> int:
        return max(self.size.height - self.header_rows, 0)

    def render_text(self, width: int) -> Text:
        raise NotImplementedError

    def render(self) -> Text:
        return self.render_text(self.size.width)


class StatusLine(StatePanel):
    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        width: 100%;
    }
    """

    def render_text(self, width: int) -> Text:
        return render.render_status_line(self.state)


class SessionList(StatePanel):
    DEFAULT_CSS = """
    SessionList {
        height: 1fr;
        width: 100%;
    }
    """

    def __init__(self, state: DashboardState, clock: Callable[[], float] | None = None, **kwargs: object) -> None:
        super().__init__(state, **kwargs)
        self.time_source = clock

    def render_text(self, width: int) -> Text:
        return render.render_sessions(self.state, width, self.time_source() if self.time_source else None)


class TaskPanel(StatePanel):
    DEFAULT_CSS = """
    TaskPanel {
        height: 40%;
        width: 100%;
        border-top: solid $primary-darken-2;
    }
    """
    header_rows = 1

    def render_text(self, width: int) -> Text:
        return render.render_tasks(self.state, width)


class PreviewPane(StatePanel):
    DEFAULT_CSS = """
    PreviewPane {
        width: 50%;
        height: 100%;
        border-left: solid $primary-darken-2;
        padding-left: 1;
    }
    """
    header_rows = 1

    def render_text(self, width: int) -> Text:
        return render.render_preview(self.state)


class FooterBar(StatePanel):
    DEFAULT_CSS = """
    FooterBar {
        height: 1;
        width: 100%;
    }
    """

    def render_text(self, width: int) -> Text:
        return render.render_footer(self.state)


class DialogBox(StatePanel):
    DEFAULT_CSS = """
    DialogBox {
        width: 72;
        height: auto;
        max-height: 80%;
        border: round $accent;
        background: $panel;
        padding: 0 1;
    }
    """

    def render_text(self, width: int) -> Text:
        return render.render_dialog(self.state)


class ContentView(StatePanel):
    DEFAULT_CSS = """
    ContentView {
        width: 100%;
        height: 100%;
        background: $surface;
    }
    """
    header_rows = 1

    def render_text(self, width: int) -> Text:
        return render.render_content(self.state)


class BriefingView(StatePanel):
    DEFAULT_CSS = """
    BriefingView {
        width: 100%;
        height: 100%;
        background: $surface;
        padding: 0 1;
    }
    """

    def render_text(self, width: int) -> Text:
        return render.render_pm(self.state)
