"""Persisted configuration: global settings, remote hosts, per-project task providers."""

from navi.config.loader import (
    discover_task_configs,
    find_project_config,
    load_config,
    load_global_config,
    load_remotes,
    merge_provider_config,
)
from navi.config.schema import GlobalConfig, ProjectConfig, RemoteHostConfig

__all__ = [
    "GlobalConfig",
    "ProjectConfig",
    "RemoteHostConfig",
    "discover_task_configs",
    "find_project_config",
    "load_config",
    "load_global_config",
    "load_remotes",
    "merge_provider_config",
]
