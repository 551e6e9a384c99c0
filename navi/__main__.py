"""Entry point: `navi` / `python -m navi`."""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from navi import __version__
from navi.config import load_global_config, load_remotes
from navi.config.schema import GlobalConfig
from navi.constants import SESSION_STATUS_DIR
from navi.core.engine import Collaborators, EngineSettings
from navi.core.errors import RemoteConfigError
from navi.logging_config import setup_logging
from navi.paths import NAVI_HOME
from navi.sources.actions import SessionActionRouter
from navi.sources.eventlog import EventLog
from navi.sources.git import LocalGit
from navi.sources.local import LocalSessionStore
from navi.sources.remote import RemoteHosts
from navi.sources.tasks import TaskProviderRunner

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="navi", description="Dashboard for local and remote agent sessions")
    parser.add_argument("--version", action="version", version=f"navi {__version__}")
    parser.add_argument("--log-level", default=None, help="Override NAVI_LOG_LEVEL")
    parser.add_argument("--status-dir", default=SESSION_STATUS_DIR, help="Local session status directory")
    parser.add_argument("--agent", default="claude", help="Command started in new sessions")
    parser.add_argument("--no-remotes", action="store_true", help="Ignore configured remote hosts")
    return parser.parse_args(argv)


def build_settings(config: GlobalConfig) -> EngineSettings:
    refresh = config.refresh
    return EngineSettings(
        session_interval=refresh.sessions,
        remote_interval=refresh.remote,
        git_interval=refresh.git,
        resource_interval=refresh.resources,
        pm_interval=refresh.pm,
        task_interval=config.tasks.interval,
        task_timeout=config.tasks.timeout,
    )


def build_collaborators(config: GlobalConfig, args: argparse.Namespace) -> Collaborators:
    """Concrete sources wired together.

    Raises:
        RemoteConfigError: if remote host configuration is invalid.
    """
    local = LocalSessionStore(args.status_dir, agent_command=args.agent)
    remote = None
    if not args.no_remotes:
        remotes = load_remotes(config)
        if remotes:
            remote = RemoteHosts(remotes)
            logger.info("Watching %d remote host(s): %s", len(remotes), ", ".join(remote.hosts))
    return Collaborators(
        sessions=local,
        actions=SessionActionRouter(local, remote),
        git=LocalGit(),
        tasks=TaskProviderRunner(config),
        remote=remote,
        events=EventLog(),
    )


def _main_impl(argv: list[str] | None) -> None:
    args = _parse_args(argv)
    load_dotenv(NAVI_HOME / ".env")
    setup_logging(args.log_level)

    try:
        config = load_global_config()
        collaborators = build_collaborators(config, args)
    except (ValidationError, RemoteConfigError) as e:
        sys.stderr.write(f"navi: invalid configuration: {e}\n")
        sys.exit(2)

    # Imported late so `--help` does not pay for Textual.
    from navi.tui.app import NaviApp

    logger.info("Starting navi %s", __version__)
    NaviApp(collaborators, build_settings(config)).run()


def main(argv: list[str] | None = None) -> None:
    try:
        _main_impl(argv)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
