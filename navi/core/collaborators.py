"""Capabilities the engine consumes from the outside world.

Concrete implementations live in `navi.sources`; tests substitute mocks.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from navi.core.models import (
    GitInfo,
    PRDetail,
    ProviderResult,
    ResourceUsage,
    SessionInfo,
    SessionStatus,
    TaskProviderConfig,
)
from navi.core.pm import PMEvent


class SessionSource(Protocol):
    async def list_local(self) -> list[SessionInfo]: ...

    async def capture_preview(self, name: str, lines: int) -> str: ...

    async def resource_usage(self, names: list[str]) -> dict[str, ResourceUsage]: ...


class RemoteSource(Protocol):
    @property
    def hosts(self) -> list[str]: ...

    async def list_sessions(self, host: str) -> list[SessionInfo]: ...

    async def git_info(self, host: str, cwd: str) -> GitInfo: ...

    async def capture_preview(self, host: str, name: str, lines: int) -> str: ...


class GitSource(Protocol):
    async def git_info(self, cwd: str) -> GitInfo: ...

    async def pr_detail(self, cwd: str) -> PRDetail | None: ...

    async def diff(self, cwd: str) -> str: ...


class TaskSource(Protocol):
    async def discover(self, cwds: list[str]) -> dict[str, TaskProviderConfig]: ...

    async def run(self, config: TaskProviderConfig, timeout: float) -> ProviderResult: ...


class SessionActions(Protocol):
    """Mutations on a session, routed locally or via its host."""

    async def attach(self, origin: str | None, name: str) -> None: ...

    async def kill(self, origin: str | None, name: str) -> None: ...

    async def rename(self, origin: str | None, name: str, new_name: str) -> None: ...

    async def dismiss(self, origin: str | None, name: str) -> None: ...

    async def create(self, name: str, cwd: str) -> None: ...


class PMEventStore(Protocol):
    def append(self, events: Sequence[PMEvent]) -> list[PMEvent]: ...


class Notifier(Protocol):
    def __call__(self, identity: str, status: SessionStatus) -> None: ...
