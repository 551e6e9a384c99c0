"""Constants used across Navi.

Poll intervals and staleness windows are in seconds.
"""

# Poll intervals (defaults, overridable via ~/.navi/config.yaml `refresh:`)
SESSION_POLL_INTERVAL = 0.5
REMOTE_POLL_INTERVAL = 2.0
GIT_POLL_INTERVAL = 5.0
RESOURCE_POLL_INTERVAL = 30.0
TASK_REFRESH_INTERVAL = 60.0
PR_REFRESH_INTERVAL = 30.0  # Only while git detail is open with pending checks
ATTACH_MONITOR_INTERVAL = 1.0

# Staleness windows
GIT_CACHE_MAX_AGE = 10.0
TASK_CACHE_MAX_AGE = TASK_REFRESH_INTERVAL
RESOURCE_CACHE_MAX_AGE = RESOURCE_POLL_INTERVAL

# Timeouts
TASK_PROVIDER_TIMEOUT = 30.0
GIT_COMMAND_TIMEOUT = 5.0
REMOTE_COMMAND_TIMEOUT = 10.0
TMUX_COMMAND_TIMEOUT = 5.0

# Preview
PREVIEW_DEBOUNCE = 0.15
PREVIEW_CAPTURE_LINES = 200

# Diff viewer
DIFF_MAX_LINES = 2000

# Remote defaults
DEFAULT_REMOTE_SESSIONS_DIR = "~/.claude-sessions"

# Local session store
SESSION_STATUS_DIR = "~/.claude-sessions"

# Project config filename discovered by walking up from session cwd
PROJECT_CONFIG_FILENAME = ".navi.yaml"

# Env var prefix for task provider script arguments
TASK_ARG_ENV_PREFIX = "NAVI_TASK_ARG_"

# Built-in task providers (run as `python -m <module>`)
BUILTIN_PROVIDERS = {
    "github-issues": "navi.sources.providers.github_issues",
    "markdown-tasks": "navi.sources.providers.markdown_tasks",
}

# Status filter keys -> session status value
STATUS_FILTER_KEYS = {
    "1": "waiting",
    "2": "permission",
    "3": "working",
    "4": "done",
    "5": "error",
}

# Notice lifetime for transient, dismissible messages
NOTICE_TTL = 5.0

# Project briefing
PM_POLL_INTERVAL = 60.0
PM_EVENT_RETENTION = 24 * 3600.0
PM_EVENT_LIMIT = 50  # Events kept in memory for the briefing view
