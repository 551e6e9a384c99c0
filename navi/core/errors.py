"""Error taxonomy for Navi.

Background fetch failures are logged and retried on the next tick; only
one-shot fetches and user actions surface their errors to the UI.
"""

from __future__ import annotations

from enum import Enum


class NaviError(Exception):
    """Base class for Navi errors."""


class FetchError(NaviError):
    """A transient process or network failure while fetching data."""

    def __init__(self, source: str, key: str, message: str) -> None:
        super().__init__(f"{source} fetch failed for {key}: {message}")
        self.source = source
        self.key = key
        self.detail = message


class ConfigAbsentError(NaviError):
    """No task provider is configured for a project.

    Cached like a result so the provider is not retried every tick; shown as
    guidance rather than as a failure.
    """

    def __init__(self, project_dir: str) -> None:
        super().__init__(f"no task provider configured for {project_dir}")
        self.project_dir = project_dir


class ActionError(NaviError):
    """A user-initiated action (kill, rename, create...) failed."""

    def __init__(self, action: str, target: str, message: str) -> None:
        super().__init__(f"{action} {target} failed: {message}")
        self.action = action
        self.target = target
        self.detail = message


class ProviderErrorKind(str, Enum):
    TIMEOUT = "timeout"
    PARSE = "parse"
    EXEC = "exec"
    NOT_FOUND = "not_found"


class ProviderError(NaviError):
    """A task provider script failed."""

    def __init__(self, kind: ProviderErrorKind, provider: str, message: str) -> None:
        super().__init__(f"provider {provider} {kind.value}: {message}")
        self.kind = kind
        self.provider = provider


class RemoteConfigError(NaviError):
    """Invalid remote host configuration."""
