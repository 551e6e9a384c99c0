"""Local git and GitHub metadata via the `git` and `gh` CLIs."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any

from navi.constants import DIFF_MAX_LINES, GIT_COMMAND_TIMEOUT
from navi.core.errors import FetchError
from navi.core.models import GitInfo, PRCheck, PRDetail
from navi.sources.process import CommandResult, CommandTimeout, run_command
from navi.utils import expand_path

logger = logging.getLogger(__name__)

_PR_FIELDS = "number,title,state,url,statusCheckRollup"
_FAILED_CONCLUSIONS = {"FAILURE", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED", "ERROR"}
_SKIPPED_CONCLUSIONS = {"SKIPPED", "NEUTRAL"}


def check_status(entry: dict[str, Any]) -> PRCheck:
    """Normalise one statusCheckRollup entry to pending/success/failure/skipped.

    CheckRun entries carry status+conclusion; StatusContext entries carry a
    single state and use `context` as their name.
    """
    if entry.get("__typename") == "StatusContext":
        name = str(entry.get("context") or "")
        state = str(entry.get("state") or "").upper()
        if state == "SUCCESS":
            return PRCheck(name=name, status="success")
        if state in _FAILED_CONCLUSIONS:
            return PRCheck(name=name, status="failure")
        return PRCheck(name=name, status="pending")

    name = str(entry.get("name") or "")
    status = str(entry.get("status") or "").upper()
    conclusion = str(entry.get("conclusion") or "").upper()
    if status != "COMPLETED":
        return PRCheck(name=name, status="queued" if status == "QUEUED" else "pending")
    if conclusion == "SUCCESS":
        return PRCheck(name=name, status="success")
    if conclusion in _SKIPPED_CONCLUSIONS:
        return PRCheck(name=name, status="skipped")
    if conclusion in _FAILED_CONCLUSIONS:
        return PRCheck(name=name, status="failure")
    return PRCheck(name=name, status="pending")


def parse_pr_detail(raw: str) -> PRDetail | None:
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict) or not data.get("number"):
        return None
    rollup = data.get("statusCheckRollup") or []
    return PRDetail(
        number=int(data["number"]),
        title=str(data.get("title") or ""),
        state=str(data.get("state") or ""),
        url=str(data.get("url") or ""),
        checks=tuple(check_status(entry) for entry in rollup if isinstance(entry, dict)),
    )


def parse_ahead_behind(output: str) -> tuple[int, int]:
    """`git rev-list --left-right --count @{u}...HEAD` prints "behind ahead"."""
    parts = output.split()
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return 0, 0
    return int(parts[1]), int(parts[0])


class LocalGit:
    """GitSource for directories on this machine."""

    def __init__(self, timeout: float = GIT_COMMAND_TIMEOUT, use_gh: bool = True) -> None:
        self.timeout = timeout
        self.use_gh = use_gh

    async def _run(self, cwd: str, *args: str) -> CommandResult:
        try:
            return await run_command(*args, cwd=cwd, timeout=self.timeout)
        except (FileNotFoundError, NotADirectoryError, CommandTimeout) as e:
            raise FetchError("git", cwd, str(e)) from e

    async def _git(self, cwd: str, *args: str) -> str:
        result = await self._run(cwd, "git", *args)
        return result.stdout.strip() if result.ok else ""

    async def _pr_number(self, cwd: str) -> int | None:
        if not self.use_gh:
            return None
        try:
            result = await self._run(cwd, "gh", "pr", "view", "--json", "number", "--jq", ".number")
        except FetchError as e:
            logger.debug("gh unavailable for %s: %s", cwd, e)
            return None
        value = result.stdout.strip()
        return int(value) if result.ok and value.isdigit() else None

    async def git_info(self, cwd: str) -> GitInfo:
        """Branch, dirty flag, ahead/behind, last commit, remote and PR number.

        Raises:
            FetchError: if `cwd` is missing or not inside a repository.
        """
        cwd = expand_path(cwd)
        if not os.path.isdir(cwd):
            raise FetchError("git", cwd, "directory does not exist")
        repo = await self._run(cwd, "git", "rev-parse", "--git-dir")
        if not repo.ok:
            raise FetchError("git", cwd, "not a git repository")

        branch, status, counts, last_commit, remote, pr_num = await asyncio.gather(
            self._git(cwd, "rev-parse", "--abbrev-ref", "HEAD"),
            self._git(cwd, "status", "--porcelain"),
            self._git(cwd, "rev-list", "--left-right", "--count", "@{u}...HEAD"),
            self._git(cwd, "log", "-1", "--format=%h %s"),
            self._git(cwd, "remote", "get-url", "origin"),
            self._pr_number(cwd),
        )
        ahead, behind = parse_ahead_behind(counts)
        return GitInfo(
            branch=branch,
            dirty=bool(status),
            ahead=ahead,
            behind=behind,
            last_commit=last_commit,
            remote=remote,
            pr_num=pr_num,
            fetched_at=time.time(),
        )

    async def pr_detail(self, cwd: str) -> PRDetail | None:
        """PR for the current branch, or None when there is none.

        Raises:
            FetchError: if `gh` is missing or times out.
        """
        result = await self._run(expand_path(cwd), "gh", "pr", "view", "--json", _PR_FIELDS)
        if not result.ok:
            logger.debug("No PR for %s: %s", cwd, result.stderr.strip())
            return None
        return parse_pr_detail(result.stdout)

    async def diff(self, cwd: str) -> str:
        result = await self._run(expand_path(cwd), "git", "diff")
        if not result.ok:
            raise FetchError("git", cwd, result.stderr.strip() or "git diff failed")
        lines = result.stdout.rstrip().splitlines()
        if len(lines) > DIFF_MAX_LINES:
            return "\n".join(lines[:DIFF_MAX_LINES]) + "\n... (diff truncated)"
        return "\n".join(lines)
