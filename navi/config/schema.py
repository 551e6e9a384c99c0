import re
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from navi.constants import (
    DEFAULT_REMOTE_SESSIONS_DIR,
    GIT_POLL_INTERVAL,
    PM_POLL_INTERVAL,
    REMOTE_POLL_INTERVAL,
    RESOURCE_POLL_INTERVAL,
    SESSION_POLL_INTERVAL,
    TASK_PROVIDER_TIMEOUT,
    TASK_REFRESH_INTERVAL,
)
from navi.utils import expand_path

_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float, None]) -> Optional[float]:
    """Parse `30`, `30s`, `500ms`, `5m` or `1h` into seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", value)
    if not match:
        raise ValueError(f"Invalid duration: {value}. Expected e.g. '30s', '500ms', '5m'")
    return float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]


class RemoteHostConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    host: str
    user: str
    key: str
    sessions_dir: str = DEFAULT_REMOTE_SESSIONS_DIR
    jump_host: Optional[str] = None

    @field_validator("name", "host", "user", "key")
    @classmethod
    def require_value(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("key")
    @classmethod
    def expand_key(cls, v: str) -> str:
        return expand_path(v)

    @field_validator("sessions_dir")
    @classmethod
    def default_sessions_dir(cls, v: str) -> str:
        return v or DEFAULT_REMOTE_SESSIONS_DIR


def _check_unique_names(remotes: List[RemoteHostConfig]) -> None:
    seen: set[str] = set()
    for remote in remotes:
        if remote.name in seen:
            raise ValueError(f"Duplicate remote name: {remote.name}")
        seen.add(remote.name)


class RemotesFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    remotes: List[RemoteHostConfig] = []

    @model_validator(mode="after")
    def unique_names(self) -> "RemotesFile":
        _check_unique_names(self.remotes)
        return self


class TasksDefaults(BaseModel):
    model_config = ConfigDict(extra="allow")

    default_provider: Optional[str] = None
    interval: float = TASK_REFRESH_INTERVAL
    timeout: float = TASK_PROVIDER_TIMEOUT
    status_map: Dict[str, str] = {}

    @field_validator("interval", "timeout", mode="before")
    @classmethod
    def parse_seconds(cls, v: Union[str, int, float, None]) -> Optional[float]:
        return parse_duration(v)


class RefreshConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    sessions: float = SESSION_POLL_INTERVAL
    remote: float = REMOTE_POLL_INTERVAL
    git: float = GIT_POLL_INTERVAL
    resources: float = RESOURCE_POLL_INTERVAL
    pm: float = PM_POLL_INTERVAL

    @field_validator("sessions", "remote", "git", "resources", "pm", mode="before")
    @classmethod
    def parse_seconds(cls, v: Union[str, int, float, None]) -> Optional[float]:
        seconds = parse_duration(v)
        if seconds is not None and seconds <= 0:
            raise ValueError("refresh interval must be positive")
        return seconds


class GlobalConfig(BaseModel):
    """~/.navi/config.yaml"""

    model_config = ConfigDict(extra="allow")

    tasks: TasksDefaults = Field(default_factory=TasksDefaults)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    remotes: List[RemoteHostConfig] = []

    @model_validator(mode="after")
    def unique_remote_names(self) -> "GlobalConfig":
        _check_unique_names(self.remotes)
        return self


class ProjectTasksConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    provider: Optional[str] = None
    args: Dict[str, str] = {}
    interval: Optional[float] = None
    status_map: Dict[str, str] = {}

    @field_validator("interval", mode="before")
    @classmethod
    def parse_seconds(cls, v: Union[str, int, float, None]) -> Optional[float]:
        return parse_duration(v)

    @field_validator("args", mode="before")
    @classmethod
    def stringify_args(cls, v: object) -> object:
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v


class ProjectConfig(BaseModel):
    """.navi.yaml in a project directory."""

    model_config = ConfigDict(extra="allow")

    tasks: ProjectTasksConfig = Field(default_factory=ProjectTasksConfig)
