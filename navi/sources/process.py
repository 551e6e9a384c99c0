"""Async subprocess helpers shared by the concrete sources."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*(\x07|\x1b\\)")


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandTimeout(Exception):
    """The command did not finish in time and was killed."""


async def run_command(
    *args: str,
    timeout: float,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """Run a command, capturing output.

    Raises:
        FileNotFoundError: if the executable does not exist.
        CommandTimeout: if it runs past `timeout` seconds.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        logger.debug("Command timed out after %.1fs: %s", timeout, args[0])
        raise CommandTimeout(f"{args[0]} timed out after {timeout:.0f}s") from e
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_interactive(*args: str) -> int:
    """Run a command attached to the current terminal and wait for it."""
    proc = await asyncio.create_subprocess_exec(*args)
    return await proc.wait()


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)
