import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from navi.config.schema import GlobalConfig, ProjectConfig, RemoteHostConfig, RemotesFile
from navi.constants import PROJECT_CONFIG_FILENAME
from navi.core.errors import RemoteConfigError
from navi.core.models import TaskProviderConfig
from navi.paths import GLOBAL_CONFIG_PATH, REMOTES_CONFIG_PATH
from navi.utils import expand_env_vars

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)
        elif isinstance(field_value, list):
            for index, value in enumerate(field_value):
                if isinstance(value, BaseModel):
                    _warn_unknown_keys(value, f"{path}.{field_name}[{index}]", config_path)


def load_config(path: Path, model_class: Type[T]) -> T:
    """Load and validate configuration from a YAML file.

    A missing or unreadable file yields the model's defaults. Invalid values
    raise pydantic's ValidationError.
    """
    if not path.exists():
        return model_class()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read config file %s: %s", path, e)
        return model_class()

    model = model_class.model_validate(expand_env_vars(raw))
    _warn_unknown_keys(model, "root", path)
    return model


def load_global_config(path: Optional[Path] = None) -> GlobalConfig:
    return load_config(path or GLOBAL_CONFIG_PATH, GlobalConfig)


def load_remotes(global_config: GlobalConfig, path: Optional[Path] = None) -> list[RemoteHostConfig]:
    """Remote hosts from config.yaml plus the optional remotes.yaml.

    Raises:
        RemoteConfigError: if an entry is invalid or a name repeats.
    """
    try:
        extra = load_config(path or REMOTES_CONFIG_PATH, RemotesFile).remotes
    except ValidationError as e:
        raise RemoteConfigError(f"invalid remote configuration: {e}") from e

    remotes = list(global_config.remotes)
    names = {r.name for r in remotes}
    for remote in extra:
        if remote.name in names:
            raise RemoteConfigError(f"duplicate remote name: {remote.name}")
        names.add(remote.name)
        remotes.append(remote)
    return remotes


def find_project_config(start_dir: str) -> Optional[tuple[str, ProjectConfig]]:
    """Walk up from `start_dir` to the nearest `.navi.yaml`.

    Returns:
        (project_dir, config) or None when no ancestor has one.
    """
    directory = Path(os.path.abspath(start_dir))
    while True:
        candidate = directory / PROJECT_CONFIG_FILENAME
        if candidate.is_file():
            return str(directory), load_config(candidate, ProjectConfig)
        if directory.parent == directory:
            return None
        directory = directory.parent


def merge_provider_config(
    project_dir: str, project: ProjectConfig, global_config: GlobalConfig
) -> Optional[TaskProviderConfig]:
    """Project settings over global defaults. None when no provider is set."""
    provider = project.tasks.provider or global_config.tasks.default_provider
    if not provider:
        return None
    status_map = {**global_config.tasks.status_map, **project.tasks.status_map}
    return TaskProviderConfig(
        project_dir=project_dir,
        provider=provider,
        args=dict(project.tasks.args),
        interval=project.tasks.interval or global_config.tasks.interval,
        status_map=status_map,
    )


def discover_task_configs(cwds: Iterable[str], global_config: GlobalConfig) -> dict[str, TaskProviderConfig]:
    """Effective provider config per project directory found above `cwds`.

    Sessions in the same project collapse to one entry.
    """
    configs: dict[str, TaskProviderConfig] = {}
    seen: set[str] = set()
    for cwd in cwds:
        if not cwd:
            continue
        try:
            found = find_project_config(cwd)
        except ValidationError as e:
            logger.warning("Invalid %s above %s: %s", PROJECT_CONFIG_FILENAME, cwd, e)
            continue
        if found is None:
            continue
        project_dir, project = found
        if project_dir in seen:
            continue
        seen.add(project_dir)
        merged = merge_provider_config(project_dir, project, global_config)
        if merged is not None:
            configs[project_dir] = merged
    return configs
