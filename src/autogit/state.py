import contextlib
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DAEMON_FILE_NAME,
    DAEMON_STATUSES,
    DEFAULT_CHECK_INTERVAL_MINUTES,
    DEFAULT_STATE_DIR,
    HOME_ENV_VAR,
    LOGS_DIR_NAME,
    STATUS_RUNNING,
)
from .errors import ConfigurationError

logger = logging.getLogger(APP_NAME)

ENV_PREFIX = "AUTOGIT_"


@dataclass
class Config:
    """User configuration shared by the CLI and the daemon.

    Attributes:
        ai_provider (str): Identifier of the text-generation backend.
        api_key (str): Credential for the selected backend.
        base_url (str): Optional endpoint override (empty means provider default).
        check_interval_minutes (int): Minutes between change checks.
        root_path (str): The repository root last passed to `init`.
    """

    ai_provider: str = "gemini"
    api_key: str = ""
    base_url: str = ""
    check_interval_minutes: int = DEFAULT_CHECK_INTERVAL_MINUTES
    root_path: str = ""

    @property
    def check_interval(self) -> int:
        """The effective poll interval in seconds, never zero or negative."""
        if self.check_interval_minutes <= 0:
            return DEFAULT_CHECK_INTERVAL_MINUTES * 60
        return self.check_interval_minutes * 60

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Builds a Config from raw JSON data, warning on unknown or bad keys."""
        defaults = cls()
        valid = {f.name: f for f in fields(cls)}

        invalid_keys = set(data) - set(valid)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        updates: dict[str, Any] = {}
        for key, value in data.items():
            if key not in valid:
                continue
            expected = type(getattr(defaults, key))
            # bool is an int subclass; an interval of `true` is still a typo.
            if isinstance(value, bool) or not isinstance(value, expected):
                logger.warning(
                    f"Config error in '{key}': expected {expected.__name__}, "
                    f"got {value!r}. Falling back to default."
                )
                continue
            updates[key] = value

        return replace(defaults, **updates)

    def apply_env(self, environ: dict[str, str] | None = None) -> "Config":
        """Returns a copy with AUTOGIT_* environment overrides applied."""
        env = os.environ if environ is None else environ
        updates: dict[str, Any] = {}
        for f in fields(self):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name == "check_interval_minutes":
                try:
                    updates[f.name] = int(raw)
                except ValueError:
                    logger.warning(
                        f"Ignoring non-integer {ENV_PREFIX}{f.name.upper()}"
                    )
            else:
                updates[f.name] = raw
        return replace(self, **updates)


@dataclass
class DaemonInfo:
    """Descriptor of a spawned daemon, shared between processes via disk.

    Attributes:
        pid (int): Process id of the daemon.
        repo_path (str): Absolute git root the daemon monitors.
        status (str): One of 'running', 'paused' or 'error'.
    """

    pid: int
    repo_path: str
    status: str = STATUS_RUNNING

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DaemonInfo":
        try:
            pid = data["pid"]
            repo_path = data["repo_path"]
        except KeyError as e:
            raise ConfigurationError(f"Daemon descriptor is missing {e}") from e
        if isinstance(pid, bool) or not isinstance(pid, int):
            raise ConfigurationError(f"Daemon descriptor has invalid pid {pid!r}")

        status = data.get("status", STATUS_RUNNING)
        if status not in DAEMON_STATUSES:
            raise ConfigurationError(
                f"Daemon descriptor has unknown status {status!r}"
            )
        return cls(pid=pid, repo_path=str(repo_path), status=status)


class StateStore:
    """Reads and writes the persisted records under a single state directory.

    The store is constructed once per process and handed to every component
    that needs it. There is no cross-process locking: each write replaces the
    whole file atomically and the last writer wins.

    Attributes:
        root (Path): The state directory.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    @classmethod
    def default(cls) -> "StateStore":
        """Resolves the state directory from AUTOGIT_HOME or the XDG default."""
        override = os.environ.get(HOME_ENV_VAR)
        return cls(Path(override).expanduser() if override else DEFAULT_STATE_DIR)

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE_NAME

    @property
    def daemon_path(self) -> Path:
        return self.root / DAEMON_FILE_NAME

    @property
    def logs_dir(self) -> Path:
        return self.root / LOGS_DIR_NAME

    def log_path(self, repo_name: str) -> Path:
        """Returns the append-only log file for a repository base name."""
        return self.logs_dir / f"{repo_name}.log"

    def ensure(self) -> None:
        """Creates the state and log directories if they are missing.

        Raises:
            ConfigurationError: If the directories cannot be created.
        """
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create {self.logs_dir}: {e}") from e

    # --- Configuration ---

    def load_config(self, with_env: bool = True) -> Config:
        """Loads the configuration, creating it with defaults on first read.

        A malformed or unreadable file is reported and replaced in memory by
        defaults; it is never fatal on the read path.

        Args:
            with_env (bool, optional): Apply AUTOGIT_* environment overrides.
                Pass False when the result will be saved back. Defaults to True.

        Returns:
            Config: The loaded configuration.
        """
        if not self.config_path.exists():
            config = Config()
            self.save_config(config)
            return config.apply_env() if with_env else config

        try:
            data = self._read_json(self.config_path)
            if not isinstance(data, dict):
                raise ConfigurationError(f"{self.config_path} is not a JSON object")
            config = Config.from_dict(data)
        except ConfigurationError as e:
            logger.error(f"{e}. Using defaults.")
            config = Config()

        return config.apply_env() if with_env else config

    def save_config(self, config: Config) -> None:
        """Persists the configuration.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        self._write_json(self.config_path, asdict(config))

    # --- Daemon descriptor ---

    def load_daemon_info(self) -> DaemonInfo | None:
        """Loads the daemon descriptor.

        Returns:
            DaemonInfo | None: The descriptor, or None when no daemon is recorded.

        Raises:
            ConfigurationError: If a descriptor exists but cannot be parsed.
        """
        if not self.daemon_path.exists():
            return None
        data = self._read_json(self.daemon_path)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.daemon_path} is not a JSON object")
        return DaemonInfo.from_dict(data)

    def save_daemon_info(self, info: DaemonInfo) -> None:
        self._write_json(self.daemon_path, asdict(info))

    def delete_daemon_info(self) -> bool:
        """Removes the descriptor. Returns False if there was none."""
        try:
            self.daemon_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ConfigurationError(f"Cannot remove {self.daemon_path}: {e}") from e

    def update_daemon_status(self, pid: int, status: str) -> None:
        """Rewrites the descriptor's status if it still belongs to `pid`."""
        try:
            info = self.load_daemon_info()
        except ConfigurationError as e:
            logger.warning(f"Could not update daemon status: {e}")
            return
        if info is None or info.pid != pid:
            return
        self.save_daemon_info(replace(info, status=status))

    # --- Helpers ---

    @staticmethod
    def _read_json(path: Path) -> Any:
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to read {path}: {e}") from e

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        """Writes JSON atomically (temp file + rename)."""
        self.ensure()
        tmp_file = path.with_suffix(".tmp")
        try:
            with open(tmp_file, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_file, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_file.unlink()
            raise ConfigurationError(f"Failed to write {path}: {e}") from e
