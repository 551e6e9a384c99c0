"""Unit tests for status monitoring during an attach."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from navi.core.models import SessionInfo, SessionStatus
from navi.core.monitor import AttachMonitor


def _session(name, status):
    return SessionInfo(name=name, status=status)


@pytest.mark.asyncio
async def test_poll_notifies_transition_from_initial_state():
    notify = MagicMock()
    list_sessions = AsyncMock(return_value=[_session("api", SessionStatus.WAITING)])
    monitor = AttachMonitor(list_sessions, notify, {(None, "api", None): SessionStatus.WORKING})

    await monitor.poll_once()

    notify.assert_called_once_with("api", SessionStatus.WAITING)


@pytest.mark.asyncio
async def test_poll_failure_is_swallowed():
    notify = MagicMock()
    list_sessions = AsyncMock(side_effect=RuntimeError("tmux gone"))
    monitor = AttachMonitor(list_sessions, notify, {})

    await monitor.poll_once()

    notify.assert_not_called()


@pytest.mark.asyncio
async def test_stop_returns_last_observed_states():
    notify = MagicMock()
    list_sessions = AsyncMock(return_value=[_session("api", SessionStatus.DONE)])
    monitor = AttachMonitor(list_sessions, notify, {(None, "api", None): SessionStatus.WORKING}, interval=0.01)

    monitor.start()
    assert monitor.running is True
    await asyncio.sleep(0.05)
    states = await monitor.stop()

    assert states == {(None, "api", None): SessionStatus.DONE}
    assert monitor.running is False
    notify.assert_called_once_with("api", SessionStatus.DONE)


@pytest.mark.asyncio
async def test_stop_without_start_returns_initial_states():
    monitor = AttachMonitor(AsyncMock(return_value=[]), MagicMock(), {(None, "api", None): SessionStatus.IDLE})

    assert await monitor.stop() == {(None, "api", None): SessionStatus.IDLE}
