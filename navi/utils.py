"""Small shared helpers."""

import os
import re
from pathlib import Path


def expand_path(path: str) -> str:
    """Expand a leading ~ and environment variables in a path string."""
    if not path:
        return path
    return os.path.expandvars(os.path.expanduser(path))


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ${VAR} patterns with environment variable values. Unknown
    variables are left as-is.
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def is_within(path: str, root: str) -> bool:
    """True if `path` equals `root` or lives beneath it.

    Comparison is on absolute paths with a separator-aware prefix, so
    `/a/bc` is not within `/a/b`.
    """
    if not path or not root:
        return False
    abs_path = os.path.abspath(path)
    abs_root = os.path.abspath(root)
    if abs_path == abs_root:
        return True
    prefix = abs_root if abs_root.endswith(os.sep) else abs_root + os.sep
    return abs_path.startswith(prefix)


def last_path_component(path: str) -> str:
    """Return the final component of a path, ignoring trailing separators."""
    return Path(path.rstrip(os.sep) or path).name or path
