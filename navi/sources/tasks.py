"""Task providers: external commands that print a project's tasks as JSON.

A provider is a built-in name, an absolute path, or a path relative to the
project directory. Arguments from `.navi.yaml` reach it as
`NAVI_TASK_ARG_<KEY>` environment variables; it runs with the project
directory as its working directory.

Output is either `{"groups": [{id, title, status, url, tasks: [...]}]}` or a
flat `{"tasks": [...]}`, which becomes a single group named after the project.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any, Iterable

from navi.config.loader import discover_task_configs
from navi.config.schema import GlobalConfig
from navi.constants import BUILTIN_PROVIDERS, PROJECT_CONFIG_FILENAME, TASK_ARG_ENV_PREFIX
from navi.core.errors import ConfigAbsentError, ProviderError, ProviderErrorKind
from navi.core.models import ProviderResult, Task, TaskGroup, TaskProviderConfig
from navi.sources.process import CommandTimeout, run_command
from navi.utils import last_path_component

logger = logging.getLogger(__name__)


def resolve_provider(provider: str, project_dir: str) -> list[str]:
    """Command line for `provider`.

    Raises:
        ProviderError: NOT_FOUND when a script path does not exist.
    """
    module = BUILTIN_PROVIDERS.get(provider)
    if module is not None:
        return [sys.executable, "-m", module]
    path = provider if os.path.isabs(provider) else os.path.join(project_dir, provider)
    path = os.path.abspath(path)
    if not os.path.isfile(path):
        raise ProviderError(ProviderErrorKind.NOT_FOUND, provider, f"provider script not found: {path}")
    return [path]


def build_env(args: dict[str, str], base: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    for key, value in args.items():
        env[TASK_ARG_ENV_PREFIX + key.upper()] = value
    return env


def _task(data: dict[str, Any], status_map: dict[str, str]) -> Task:
    status = str(data.get("status") or "")
    return Task(
        id=str(data.get("id") or ""),
        title=str(data.get("title") or ""),
        status=status_map.get(status, status),
        url=data.get("url") or None,
    )


def _tasks(items: Iterable[Any], status_map: dict[str, str]) -> tuple[Task, ...]:
    return tuple(_task(item, status_map) for item in items if isinstance(item, dict))


def normalize_result(data: Any, status_map: dict[str, str], project_dir: str) -> ProviderResult:
    """Provider JSON to a ProviderResult, applying `status_map` to every status.

    Raises:
        ValueError: if `data` is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ValueError("provider output must be a JSON object")

    groups: list[TaskGroup] = []
    for raw in data.get("groups") or []:
        if not isinstance(raw, dict):
            continue
        status = str(raw.get("status") or "")
        groups.append(
            TaskGroup(
                id=str(raw.get("id") or ""),
                title=str(raw.get("title") or raw.get("id") or ""),
                status=status_map.get(status, status),
                url=raw.get("url") or None,
                tasks=_tasks(raw.get("tasks") or [], status_map),
            )
        )

    if not groups and data.get("tasks"):
        name = last_path_component(project_dir)
        groups.append(TaskGroup(id=name, title=name, tasks=_tasks(data["tasks"], status_map)))

    return ProviderResult(groups=tuple(groups))


class TaskProviderRunner:
    """TaskSource that discovers `.navi.yaml` files and runs their providers."""

    def __init__(self, global_config: GlobalConfig) -> None:
        self.global_config = global_config

    async def discover(self, cwds: list[str]) -> dict[str, TaskProviderConfig]:
        return await asyncio.to_thread(discover_task_configs, cwds, self.global_config)

    async def run(self, config: TaskProviderConfig, timeout: float) -> ProviderResult:
        """Run the provider for one project.

        Raises:
            ConfigAbsentError: if the project's `.navi.yaml` has been removed.
            ProviderError: on a missing script, timeout, nonzero exit or bad JSON.
        """
        if not os.path.isfile(os.path.join(config.project_dir, PROJECT_CONFIG_FILENAME)):
            raise ConfigAbsentError(config.project_dir)

        command = resolve_provider(config.provider, config.project_dir)
        logger.debug("Running task provider %s for %s", config.provider, config.project_dir)
        try:
            result = await run_command(
                *command,
                cwd=config.project_dir,
                env=build_env(config.args),
                timeout=timeout,
            )
        except CommandTimeout as e:
            raise ProviderError(ProviderErrorKind.TIMEOUT, config.provider, str(e)) from e
        except (FileNotFoundError, PermissionError) as e:
            raise ProviderError(ProviderErrorKind.NOT_FOUND, config.provider, str(e)) from e

        if not result.ok:
            stderr = result.stderr.strip()
            message = f"exited with {result.returncode}" + (f": {stderr}" if stderr else "")
            raise ProviderError(ProviderErrorKind.EXEC, config.provider, message)

        try:
            return normalize_result(json.loads(result.stdout), config.status_map, config.project_dir)
        except ValueError as e:
            raise ProviderError(ProviderErrorKind.PARSE, config.provider, f"invalid output: {e}") from e
