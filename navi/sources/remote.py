"""Remote hosts reached over ssh.

Every host gets a multiplexed master connection (ControlMaster) so repeated
polls reuse one authenticated channel. Commands are plain shell strings run
with BatchMode so a missing key fails instead of prompting.
"""

from __future__ import annotations

import json
import logging
import shlex
import time
from pathlib import Path
from typing import Iterable

from navi.config.schema import RemoteHostConfig
from navi.constants import REMOTE_COMMAND_TIMEOUT
from navi.core.errors import ActionError, FetchError
from navi.core.models import GitInfo, SessionInfo
from navi.paths import NAVI_HOME
from navi.sources.process import CommandTimeout, run_command, run_interactive, strip_ansi

logger = logging.getLogger(__name__)

_GIT_LABELS = ("BRANCH:", "DIRTY:", "REMOTE:", "LASTCOMMIT:", "AHEADBEHIND:")


def parse_session_output(output: str, host: str) -> list[SessionInfo]:
    """Decode the concatenated status-file objects printed by `cat *.json`.

    Decoding stops at the first malformed object; everything before it is kept.
    """
    decoder = json.JSONDecoder()
    sessions: list[SessionInfo] = []
    index, end = 0, len(output)
    while True:
        while index < end and output[index].isspace():
            index += 1
        if index >= end:
            break
        try:
            data, index = decoder.raw_decode(output, index)
        except ValueError as e:
            logger.debug("remote[%s]: stopping at malformed JSON: %s", host, e)
            break
        if isinstance(data, dict):
            session = SessionInfo.from_dict(data, origin=host)
            if session.name:
                sessions.append(session)
    return sessions


def build_git_command(cwd: str) -> str:
    return (
        f"cd {shlex.quote(cwd)} && "
        'echo "BRANCH:$(git rev-parse --abbrev-ref HEAD 2>/dev/null)" && '
        'echo "DIRTY:$(git status --porcelain 2>/dev/null | head -1)" && '
        'echo "REMOTE:$(git remote get-url origin 2>/dev/null)" && '
        "echo \"LASTCOMMIT:$(git log -1 --format='%h %s' 2>/dev/null)\" && "
        'echo "AHEADBEHIND:$(git rev-list --left-right --count @{u}...HEAD 2>/dev/null)"'
    )


def parse_git_output(output: str, fetched_at: float | None = None) -> GitInfo | None:
    """Parse labelled lines from `build_git_command`. None when not a repository."""
    values: dict[str, str] = {}
    for line in output.strip().splitlines():
        for label in _GIT_LABELS:
            if line.startswith(label):
                values[label] = line[len(label) :]
                break

    branch = values.get("BRANCH:", "").strip()
    if not branch:
        return None

    ahead = behind = 0
    counts = values.get("AHEADBEHIND:", "").split()
    if len(counts) == 2 and all(c.isdigit() for c in counts):
        behind, ahead = int(counts[0]), int(counts[1])

    return GitInfo(
        branch=branch,
        dirty=bool(values.get("DIRTY:", "").strip()),
        ahead=ahead,
        behind=behind,
        last_commit=values.get("LASTCOMMIT:", "").strip(),
        remote=values.get("REMOTE:", "").strip(),
        fetched_at=time.time() if fetched_at is None else fetched_at,
    )


def _remote_dir(sessions_dir: str) -> str:
    """Shell form of a sessions dir; `~/` becomes "$HOME" so it expands remotely."""
    if sessions_dir.startswith("~/"):
        return '"$HOME"/' + shlex.quote(sessions_dir[2:])
    return shlex.quote(sessions_dir)


def build_list_command(sessions_dir: str) -> str:
    return f"cat {_remote_dir(sessions_dir)}/*.json 2>/dev/null || true"


def build_kill_command(name: str, sessions_dir: str) -> str:
    status_file = f"{_remote_dir(sessions_dir)}/{shlex.quote(name + '.json')}"
    return f"tmux kill-session -t {shlex.quote(name)} ; rm -f {status_file}"


def build_rename_command(name: str, new_name: str, sessions_dir: str) -> str:
    directory = _remote_dir(sessions_dir)
    old_file = f"{directory}/{shlex.quote(name + '.json')}"
    new_file = f"{directory}/{shlex.quote(new_name + '.json')}"
    replacement = new_name.replace("\\", "\\\\").replace("/", "\\/").replace("&", "\\&")
    sed_expr = f's/"tmux_session"[[:space:]]*:[[:space:]]*"[^"]*"/"tmux_session": "{replacement}"/'
    return (
        f"tmux rename-session -t {shlex.quote(name)} {shlex.quote(new_name)} && "
        f"sed -i {shlex.quote(sed_expr)} {old_file} && mv {old_file} {new_file}"
    )


def build_dismiss_command(name: str, sessions_dir: str) -> str:
    status_file = f"{_remote_dir(sessions_dir)}/{shlex.quote(name + '.json')}"
    status_expr = 's/"status"[[:space:]]*:[[:space:]]*"[^"]*"/"status": "working"/'
    message_expr = 's/"message"[[:space:]]*:[[:space:]]*"[^"]*"/"message": ""/'
    return (
        f"sed -i -e {shlex.quote(status_expr)} -e {shlex.quote(message_expr)} "
        f'-e "s/\\"timestamp\\"[[:space:]]*:[[:space:]]*[0-9]*/\\"timestamp\\": $(date +%s)/" '
        f"{status_file}"
    )


class RemoteHosts:
    """RemoteSource plus remote session actions for the configured hosts."""

    def __init__(
        self,
        remotes: Iterable[RemoteHostConfig],
        control_dir: Path | None = None,
        timeout: float = REMOTE_COMMAND_TIMEOUT,
    ) -> None:
        self._remotes = {remote.name: remote for remote in remotes}
        self.control_dir = control_dir or NAVI_HOME / "ssh"
        self.timeout = timeout

    @property
    def hosts(self) -> list[str]:
        return list(self._remotes)

    def config(self, host: str) -> RemoteHostConfig:
        try:
            return self._remotes[host]
        except KeyError:
            raise FetchError("remote", host, "unknown remote") from None

    def ssh_args(self, host: str, tty: bool = False) -> list[str]:
        remote = self.config(host)
        self.control_dir.mkdir(parents=True, exist_ok=True)
        args = [
            "ssh",
            "-i",
            remote.key,
            "-o",
            "BatchMode=yes",
            "-o",
            "ConnectTimeout=10",
            "-o",
            "ControlMaster=auto",
            "-o",
            f"ControlPath={self.control_dir}/%C",
            "-o",
            "ControlPersist=60",
        ]
        if remote.jump_host:
            args += ["-J", remote.jump_host]
        if tty:
            args.append("-t")
        args.append(f"{remote.user}@{remote.host}")
        return args

    async def execute(self, host: str, command: str) -> str:
        """Run `command` on `host` and return stdout.

        Raises:
            FetchError: on connection failure, timeout or nonzero exit.
        """
        try:
            result = await run_command(*self.ssh_args(host), command, timeout=self.timeout)
        except (FileNotFoundError, CommandTimeout) as e:
            raise FetchError("remote", host, str(e)) from e
        if not result.ok:
            raise FetchError("remote", host, result.stderr.strip() or f"ssh exited with {result.returncode}")
        return result.stdout

    async def list_sessions(self, host: str) -> list[SessionInfo]:
        output = await self.execute(host, build_list_command(self.config(host).sessions_dir))
        sessions = parse_session_output(output, host)
        logger.debug("remote[%s]: parsed %d sessions", host, len(sessions))
        return sessions

    async def git_info(self, host: str, cwd: str) -> GitInfo:
        output = await self.execute(host, build_git_command(cwd))
        info = parse_git_output(output)
        if info is None:
            raise FetchError("git", f"{host}:{cwd}", "not a git repository")
        return info

    async def capture_preview(self, host: str, name: str, lines: int) -> str:
        output = await self.execute(host, f"tmux capture-pane -t {shlex.quote(name)} -p -S -{int(lines)}")
        return strip_ansi(output).rstrip()

    # ==================== Actions ====================

    async def _action(self, action: str, host: str, name: str, command: str) -> None:
        try:
            await self.execute(host, command)
        except FetchError as e:
            raise ActionError(action, f"{host}:{name}", e.detail) from e

    async def kill(self, host: str, name: str) -> None:
        await self._action("kill", host, name, build_kill_command(name, self.config(host).sessions_dir))

    async def rename(self, host: str, name: str, new_name: str) -> None:
        command = build_rename_command(name, new_name, self.config(host).sessions_dir)
        await self._action("rename", host, name, command)

    async def dismiss(self, host: str, name: str) -> None:
        await self._action("dismiss", host, name, build_dismiss_command(name, self.config(host).sessions_dir))

    async def attach(self, host: str, name: str) -> None:
        code = await run_interactive(*self.ssh_args(host, tty=True), f"tmux attach-session -t {shlex.quote(name)}")
        if code != 0:
            raise ActionError("attach", f"{host}:{name}", f"ssh exited with {code}")
