"""Local sessions: tmux plus the status files written by agent hooks.

Each session has `<status_dir>/<name>.json`, written by hooks as the agent
changes state. Files whose tmux session no longer exists are removed on poll.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from pathlib import Path

from navi.constants import SESSION_STATUS_DIR, TMUX_COMMAND_TIMEOUT
from navi.core.errors import ActionError, FetchError
from navi.core.models import ResourceUsage, SessionInfo, SessionStatus
from navi.sources.process import CommandTimeout, run_command, run_interactive, strip_ansi
from navi.utils import expand_path

logger = logging.getLogger(__name__)


def read_status_files(status_dir: Path) -> list[SessionInfo]:
    """Parse every `*.json` status file; unreadable or malformed files are skipped."""
    if not status_dir.is_dir():
        return []
    sessions: list[SessionInfo] = []
    for path in sorted(status_dir.glob("*.json")):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Skipping status file %s: %s", path, e)
            continue
        if not isinstance(data, dict):
            continue
        session = SessionInfo.from_dict(data, origin=None)
        if session.name:
            sessions.append(session)
    return sessions


def remove_stale_status_files(status_dir: Path, live: set[str]) -> None:
    if not status_dir.is_dir():
        return
    for path in status_dir.glob("*.json"):
        if path.stem not in live:
            path.unlink(missing_ok=True)


def _write_status(path: Path, data: dict[str, object]) -> None:
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
    os.replace(tmp, path)


class LocalSessionStore:
    """Local SessionSource and SessionActions backed by tmux."""

    def __init__(self, status_dir: str = SESSION_STATUS_DIR, agent_command: str = "claude") -> None:
        self.status_dir = Path(expand_path(status_dir))
        self.agent_command = agent_command

    async def _tmux(self, *args: str) -> str:
        try:
            result = await run_command("tmux", *args, timeout=TMUX_COMMAND_TIMEOUT)
        except (FileNotFoundError, CommandTimeout) as e:
            raise FetchError("tmux", args[0], str(e)) from e
        if not result.ok:
            raise FetchError("tmux", args[0], result.stderr.strip() or f"exit {result.returncode}")
        return result.stdout

    async def live_sessions(self) -> set[str]:
        """Names of running tmux sessions; empty when no server is running."""
        try:
            output = await self._tmux("list-sessions", "-F", "#{session_name}")
        except FetchError:
            return set()
        return {line.strip() for line in output.splitlines() if line.strip()}

    async def list_local(self) -> list[SessionInfo]:
        live = await self.live_sessions()
        await asyncio.to_thread(remove_stale_status_files, self.status_dir, live)
        return await asyncio.to_thread(read_status_files, self.status_dir)

    async def capture_preview(self, name: str, lines: int) -> str:
        output = await self._tmux("capture-pane", "-t", name, "-p", "-S", f"-{lines}")
        return strip_ansi(output).rstrip()

    async def resource_usage(self, names: list[str]) -> dict[str, ResourceUsage]:
        """Resident memory of each session's pane process trees."""
        try:
            panes = await self._tmux("list-panes", "-a", "-F", "#{session_name} #{pane_pid}")
            ps = await run_command("ps", "-A", "-o", "pid=,ppid=,rss=", timeout=TMUX_COMMAND_TIMEOUT)
        except (FetchError, FileNotFoundError, CommandTimeout) as e:
            raise FetchError("resources", "ps", str(e)) from e

        children: dict[int, list[int]] = {}
        rss_kb: dict[int, int] = {}
        for line in ps.stdout.splitlines():
            parts = line.split()
            if len(parts) != 3 or not all(p.isdigit() for p in parts):
                continue
            pid, ppid, rss = (int(p) for p in parts)
            children.setdefault(ppid, []).append(pid)
            rss_kb[pid] = rss

        def tree_rss(pid: int) -> int:
            total, stack, seen = 0, [pid], set()
            while stack:
                current = stack.pop()
                if current in seen:
                    continue
                seen.add(current)
                total += rss_kb.get(current, 0)
                stack.extend(children.get(current, []))
            return total * 1024

        wanted = set(names)
        usage: dict[str, ResourceUsage] = {}
        for line in panes.splitlines():
            session_name, _, pid = line.rpartition(" ")
            if session_name in wanted and pid.isdigit():
                previous = usage.get(session_name, ResourceUsage()).rss_bytes
                usage[session_name] = ResourceUsage(rss_bytes=previous + tree_rss(int(pid)))
        return usage

    # ==================== Actions ====================

    async def _action(self, action: str, name: str, *args: str) -> None:
        try:
            await self._tmux(*args)
        except FetchError as e:
            raise ActionError(action, name, str(e)) from e

    async def attach(self, name: str) -> None:
        command = ["tmux", "switch-client" if os.environ.get("TMUX") else "attach-session", "-t", name]
        code = await run_interactive(*command)
        if code != 0:
            raise ActionError("attach", name, f"tmux exited with {code}")

    async def kill(self, name: str) -> None:
        await self._action("kill", name, "kill-session", "-t", name)
        (self.status_dir / f"{name}.json").unlink(missing_ok=True)

    async def rename(self, name: str, new_name: str) -> None:
        await self._action("rename", name, "rename-session", "-t", name, new_name)
        old_path = self.status_dir / f"{name}.json"
        try:
            data = json.loads(old_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return
        data["tmux_session"] = new_name
        _write_status(self.status_dir / f"{new_name}.json", data)
        old_path.unlink(missing_ok=True)

    async def dismiss(self, name: str) -> None:
        """Mark a session as acknowledged: status working, message cleared."""
        path = self.status_dir / f"{name}.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ActionError("dismiss", name, str(e)) from e
        data.update({"status": SessionStatus.WORKING.value, "message": "", "timestamp": int(time.time())})
        _write_status(path, data)

    async def create(self, name: str, cwd: str) -> None:
        await self._action("create", name, "new-session", "-d", "-s", name, "-c", cwd)
        try:
            await self._tmux("send-keys", "-t", name, self.agent_command, "Enter")
        except FetchError as e:
            logger.warning("Session %s created but agent did not start: %s", name, e)
        self.status_dir.mkdir(parents=True, exist_ok=True)
        _write_status(
            self.status_dir / f"{name}.json",
            {
                "tmux_session": name,
                "status": SessionStatus.WORKING.value,
                "message": "",
                "cwd": cwd,
                "timestamp": int(time.time()),
            },
        )

