"""Scroll offset, cursor clamping and more-above/below indicators.

One implementation shared by every scrollable region. List panels (sessions,
tasks) reserve a line for each active indicator; free-text regions (preview,
content overlay) scroll by offset only and do not.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def max_scroll(total: int, height: int, indicators: bool = True) -> int:
    """Largest valid scroll offset.

    With indicators, the last page is one row shorter because the top
    indicator takes a line once scrolled from the top.
    """
    if height <= 0 or total <= height:
        return 0
    return total - height + 1 if indicators else total - height


def content_rows(offset: int, total: int, height: int, indicators: bool = True) -> int:
    """Rows available for items at `offset`, after indicator lines."""
    if height <= 0:
        return 0
    if not indicators:
        return height
    rows = height
    if offset > 0:
        rows -= 1
    if offset + rows < total:
        rows -= 1
    return max(rows, 1)


def ensure_visible(cursor: int, offset: int, total: int, height: int, indicators: bool = True) -> int:
    """Return a scroll offset that keeps `cursor` on screen.

    First pass assumes the whole height holds items. Second pass accounts for
    indicator lines, repeating while an indicator that just appeared pushes
    the cursor back out of view.
    """
    if total <= 0 or height <= 0:
        return 0
    cursor = _clamp(cursor, 0, total - 1)

    if cursor < offset:
        offset = cursor
    elif cursor >= offset + height:
        offset = cursor - height + 1

    if indicators:
        for _ in range(3):
            rows = content_rows(offset, total, height)
            if cursor < offset + rows:
                break
            offset = cursor - rows + 1

    return _clamp(offset, 0, max_scroll(total, height, indicators))


@dataclass(frozen=True)
class Indicators:
    above: bool
    below: bool


@dataclass
class Viewport:
    """Visible window (offset + height) into a list or block of text."""

    height: int = 0
    offset: int = 0
    indicators: bool = True

    def max_scroll(self, total: int) -> int:
        return max_scroll(total, self.height, self.indicators)

    def clamp(self, total: int) -> None:
        self.offset = _clamp(self.offset, 0, self.max_scroll(total))

    def ensure_visible(self, cursor: int, total: int) -> None:
        self.offset = ensure_visible(cursor, self.offset, total, self.height, self.indicators)

    def scroll_by(self, delta: int, total: int) -> None:
        self.offset += delta
        self.clamp(total)

    def scroll_to_end(self, total: int) -> None:
        self.offset = self.max_scroll(total)

    def at_end(self, total: int) -> bool:
        return self.offset >= self.max_scroll(total)

    def indicator_state(self, total: int) -> Indicators:
        if self.height <= 0:
            return Indicators(False, False)
        above = self.offset > 0
        rows = self.height - (1 if above and self.indicators else 0)
        return Indicators(above=above, below=self.offset + rows < total)

    def visible_range(self, total: int) -> range:
        rows = content_rows(self.offset, total, self.height, self.indicators)
        return range(self.offset, min(self.offset + rows, total))


@dataclass
class ListPanel:
    """Cursor plus viewport for one list panel.

    The cursor indexes the displayed list, never the raw entity list.
    """

    cursor: int = 0
    viewport: Viewport = field(default_factory=Viewport)

    def clamp(self, total: int) -> None:
        """Keep the cursor in [0, total-1] (0 when empty) and on screen."""
        self.cursor = _clamp(self.cursor, 0, max(total - 1, 0))
        self.viewport.ensure_visible(self.cursor, total)

    def select(self, index: int, total: int) -> None:
        self.cursor = index
        self.clamp(total)

    def move(self, delta: int, total: int, wrap: bool = False) -> None:
        if total <= 0:
            self.cursor = 0
            self.viewport.offset = 0
            return
        target = self.cursor + delta
        if wrap:
            target %= total
        self.select(target, total)

    def page(self, direction: int, total: int) -> None:
        self.move(direction * max(self.viewport.height - 1, 1), total)


@dataclass
class TextView:
    """Offset-only viewport for free text, optionally following the tail."""

    viewport: Viewport = field(default_factory=lambda: Viewport(indicators=False))
    follow_tail: bool = True

    def update_length(self, total: int) -> None:
        if self.follow_tail:
            self.viewport.scroll_to_end(total)
        else:
            self.viewport.clamp(total)

    def scroll_by(self, delta: int, total: int) -> None:
        self.viewport.scroll_by(delta, total)
        self.follow_tail = self.viewport.at_end(total)

    def home(self) -> None:
        self.viewport.offset = 0
        self.follow_tail = False

    def end(self, total: int) -> None:
        self.viewport.scroll_to_end(total)
        self.follow_tail = True
