"""Unit tests for the command-line entry point and logging setup."""

import argparse
import logging

import pytest

import navi
from navi.__main__ import _parse_args, build_collaborators, build_settings
from navi.config.schema import GlobalConfig
from navi.logging_config import setup_logging
from navi.sources.actions import SessionActionRouter
from navi.sources.eventlog import EventLog
from navi.sources.remote import RemoteHosts


@pytest.fixture
def restore_navi_logger(monkeypatch):
    monkeypatch.setenv("NAVI_LOG_LEVEL", "INFO")
    logger = logging.getLogger("navi")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_parse_args_defaults():
    args = _parse_args([])

    assert args.agent == "claude"
    assert args.no_remotes is False
    assert args.log_level is None


def test_build_settings_uses_refresh_config():
    config = GlobalConfig.model_validate(
        {"refresh": {"sessions": "1s", "git": "20s", "pm": "2m"}, "tasks": {"timeout": "10s"}}
    )

    settings = build_settings(config)

    assert settings.session_interval == 1.0
    assert settings.git_interval == 20.0
    assert settings.pm_interval == 120.0
    assert settings.task_timeout == 10.0


def test_build_collaborators_wires_remotes(tmp_path, monkeypatch):
    monkeypatch.setattr("navi.config.loader.REMOTES_CONFIG_PATH", tmp_path / "remotes.yaml")
    config = GlobalConfig.model_validate(
        {"remotes": [{"name": "box", "host": "box.example.com", "user": "dev", "key": "/keys/id"}]}
    )
    args = argparse.Namespace(status_dir=str(tmp_path), agent="claude", no_remotes=False)

    collaborators = build_collaborators(config, args)

    assert isinstance(collaborators.remote, RemoteHosts)
    assert collaborators.remote.hosts == ["box"]
    assert isinstance(collaborators.actions, SessionActionRouter)
    assert collaborators.actions.remote is collaborators.remote


def test_build_collaborators_without_remotes(tmp_path):
    config = GlobalConfig.model_validate(
        {"remotes": [{"name": "box", "host": "box.example.com", "user": "dev", "key": "/keys/id"}]}
    )
    args = argparse.Namespace(status_dir=str(tmp_path), agent="claude", no_remotes=True)

    collaborators = build_collaborators(config, args)

    assert collaborators.remote is None
    assert isinstance(collaborators.events, EventLog)


def test_setup_logging_writes_to_file(tmp_path, restore_navi_logger):
    log_path = tmp_path / "logs" / "navi.log"

    setup_logging("debug", log_path=log_path)
    logging.getLogger("navi.core.engine").debug("engine started")
    for handler in restore_navi_logger.handlers:
        handler.flush()

    assert restore_navi_logger.level == logging.DEBUG
    assert restore_navi_logger.propagate is False
    assert "DEBUG navi.core.engine: engine started" in log_path.read_text(encoding="utf-8")


def test_package_version_is_resolved():
    assert navi.__version__
    assert navi.__version__ == "0.0.0+local" or navi.__version__[0].isdigit()
