from __future__ import annotations

from pathlib import Path

NAVI_HOME = Path("~/.navi").expanduser()
GLOBAL_CONFIG_PATH = NAVI_HOME / "config.yaml"
REMOTES_CONFIG_PATH = NAVI_HOME / "remotes.yaml"
LOG_PATH = NAVI_HOME / "navi.log"
PM_EVENT_LOG_PATH = NAVI_HOME / "pm" / "events.jsonl"
