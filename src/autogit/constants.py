import os
from pathlib import Path

"""Global constants and default path definitions for Autogit.

This module defines the state directory layout (adhering to XDG standards where
applicable), application identifiers, and the fixed limits used by the commit
pipeline.
"""

# --- Identity ---
APP_NAME = "autogit"
"""str: The human-readable application name."""

VERSION = "1.0.0"
"""str: The application version reported by the CLI."""

DAEMON_COMMAND = "start-daemon"
"""str: The internal subcommand a spawned child runs to become the daemon."""

# --- Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

HOME_ENV_VAR = "AUTOGIT_HOME"
"""str: Environment variable overriding the state directory location."""

DEFAULT_STATE_DIR = _BASE_CONFIG / APP_NAME
"""Path: The default directory holding config, daemon descriptor and logs."""

CONFIG_FILE_NAME = "config.json"
"""str: File name of the persisted configuration record."""

DAEMON_FILE_NAME = "daemon.json"
"""str: File name of the daemon descriptor."""

LOGS_DIR_NAME = "logs"
"""str: Sub-directory holding one append-only log per monitored repository."""

# --- Daemon ---
STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_ERROR = "error"

DAEMON_STATUSES = (STATUS_RUNNING, STATUS_PAUSED, STATUS_ERROR)
"""tuple[str, ...]: Every status a daemon descriptor may record."""

DEFAULT_CHECK_INTERVAL_MINUTES = 10
"""int: Poll interval used when none (or a non-positive one) is configured."""

# --- Commit Pipeline ---
MAX_DIFF_CHARS = 100_000
"""int: Diff payloads longer than this are cut before leaving the machine."""

TRUNCATION_MARKER = "\n... (truncated)"
"""str: Appended to a cut diff so the backend knows content is missing."""

REQUEST_TIMEOUT = 30
"""int: Seconds before an outbound text-generation request is abandoned."""

SYSTEM_PROMPT = (
    "You are a git automation bot. Analyze the provided code diff. "
    "Respond ONLY with a concise, Conventional Commit message "
    "(e.g., 'fix(ui): adjust button padding'). Do not add quotes or markdown."
)
"""str: Fixed instruction sent ahead of every diff."""

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
