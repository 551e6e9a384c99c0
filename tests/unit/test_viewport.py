"""Unit tests for viewport scrolling and cursor clamping."""

from navi.core.viewport import ListPanel, TextView, Viewport, content_rows, ensure_visible, max_scroll

# ==================== Indicator Tests ====================


def test_top_of_list_shows_only_more_below():
    viewport = Viewport(height=7, offset=0)

    indicators = viewport.indicator_state(18)

    assert indicators.above is False
    assert indicators.below is True


def test_bottom_of_list_shows_only_more_above():
    viewport = Viewport(height=7)
    viewport.offset = viewport.max_scroll(18)

    indicators = viewport.indicator_state(18)

    assert viewport.offset == 12
    assert indicators.above is True
    assert indicators.below is False


def test_no_indicators_when_everything_fits():
    viewport = Viewport(height=7)

    indicators = viewport.indicator_state(5)

    assert (indicators.above, indicators.below) == (False, False)
    assert viewport.max_scroll(5) == 0


def test_visible_range_leaves_room_for_indicators():
    viewport = Viewport(height=7, offset=3)

    assert viewport.visible_range(18) == range(3, 8)


# ==================== Scroll Math Tests ====================


def test_max_scroll_with_and_without_indicators():
    assert max_scroll(18, 7) == 12
    assert max_scroll(18, 7, indicators=False) == 11
    assert max_scroll(3, 7) == 0
    assert max_scroll(18, 0) == 0


def test_content_rows():
    assert content_rows(0, 18, 7) == 6
    assert content_rows(5, 18, 7) == 5
    assert content_rows(12, 18, 7) == 6
    assert content_rows(0, 18, 7, indicators=False) == 7


def test_ensure_visible_scrolls_down_past_indicator():
    """Test the cursor is never hidden behind a newly shown top indicator."""
    offset = ensure_visible(cursor=7, offset=0, total=18, height=7)

    rows = content_rows(offset, 18, 7)
    assert offset <= 7 < offset + rows


def test_ensure_visible_at_last_item():
    assert ensure_visible(cursor=17, offset=0, total=18, height=7) == 12


def test_ensure_visible_scrolls_up():
    assert ensure_visible(cursor=2, offset=10, total=18, height=7) == 2


def test_ensure_visible_with_zero_height_or_empty_list():
    assert ensure_visible(cursor=5, offset=3, total=18, height=0) == 0
    assert ensure_visible(cursor=0, offset=3, total=0, height=7) == 0


# ==================== ListPanel Tests ====================


def test_cursor_stays_visible_while_moving_down():
    panel = ListPanel(viewport=Viewport(height=7))

    for _ in range(17):
        panel.move(1, 18)
        rows = content_rows(panel.viewport.offset, 18, 7)
        assert panel.viewport.offset <= panel.cursor < panel.viewport.offset + rows

    assert panel.cursor == 17


def test_move_clamps_at_edges_without_wrap():
    panel = ListPanel(viewport=Viewport(height=7))

    panel.move(-1, 5)
    assert panel.cursor == 0

    panel.select(4, 5)
    panel.move(1, 5)
    assert panel.cursor == 4


def test_move_wraps_when_requested():
    panel = ListPanel(viewport=Viewport(height=7))

    panel.move(-1, 5, wrap=True)

    assert panel.cursor == 4


def test_clamp_after_list_shrinks():
    panel = ListPanel(cursor=10, viewport=Viewport(height=7, offset=8))

    panel.clamp(3)

    assert panel.cursor == 2
    assert panel.viewport.offset == 0


def test_clamp_on_empty_list():
    panel = ListPanel(cursor=4)

    panel.clamp(0)

    assert panel.cursor == 0


def test_page_moves_by_height_minus_one():
    panel = ListPanel(viewport=Viewport(height=7))

    panel.page(1, 18)

    assert panel.cursor == 6


# ==================== TextView Tests ====================


def test_text_view_follows_tail_on_growth():
    view = TextView(viewport=Viewport(height=5, indicators=False))

    view.update_length(20)

    assert view.viewport.offset == 15


def test_text_view_scrolling_up_stops_following():
    view = TextView(viewport=Viewport(height=5, indicators=False))
    view.update_length(20)

    view.scroll_by(-3, 20)
    view.update_length(30)

    assert view.follow_tail is False
    assert view.viewport.offset == 12


def test_text_view_scrolling_back_to_end_resumes_following():
    view = TextView(viewport=Viewport(height=5, indicators=False))
    view.update_length(20)
    view.scroll_by(-3, 20)

    view.scroll_by(10, 20)

    assert view.follow_tail is True
    assert view.viewport.offset == 15


def test_text_view_home_and_end():
    view = TextView(viewport=Viewport(height=5, indicators=False))
    view.update_length(20)

    view.home()
    assert view.viewport.offset == 0
    assert view.follow_tail is False

    view.end(20)
    assert view.viewport.offset == 15
    assert view.follow_tail is True
