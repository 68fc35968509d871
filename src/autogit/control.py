import logging
from dataclasses import dataclass, replace
from pathlib import Path

from .constants import APP_NAME
from .errors import (
    ConfigurationError,
    NotRunningError,
    SpawnError,
    ValidationError,
)
from .git_wrapper import find_root
from .providers import parse_provider, validate_api_key
from .state import Config, DaemonInfo, StateStore
from .supervisor import ProcessSupervisor

logger = logging.getLogger(APP_NAME)

STATE_NOT_RUNNING = "not_running"
STATE_CRASHED = "crashed"


@dataclass
class DaemonStatus:
    """A snapshot of what the state directory says about the daemon.

    Attributes:
        state (str): 'not_running', 'crashed', or the descriptor's own status
            ('running', 'paused', 'error').
        pid (int | None): The recorded process id, if any.
        repo_path (str | None): The recorded repository root, if any.
    """

    state: str
    pid: int | None = None
    repo_path: str | None = None

    @property
    def is_live(self) -> bool:
        return self.state not in (STATE_NOT_RUNNING, STATE_CRASHED)


class ControlSurface:
    """Operations used to drive a daemon from another process.

    Every call re-reads the state directory before acting; the descriptor is a
    snapshot, never a live channel.

    Attributes:
        store (StateStore): The shared state directory.
        supervisor (ProcessSupervisor): Spawns and stops the daemon process.
    """

    def __init__(
        self, store: StateStore, supervisor: ProcessSupervisor | None = None
    ):
        self.store = store
        self.supervisor = supervisor or ProcessSupervisor(store)

    def status(self) -> DaemonStatus:
        """Reports the daemon's state without changing anything on disk."""
        try:
            info = self.store.load_daemon_info()
        except ConfigurationError as e:
            # A half-written descriptor names no process we could reach.
            logger.warning(f"Ignoring unreadable daemon descriptor: {e}")
            return DaemonStatus(STATE_CRASHED)
        if info is None:
            return DaemonStatus(STATE_NOT_RUNNING)
        if not self.supervisor.is_alive(info.pid):
            return DaemonStatus(STATE_CRASHED, info.pid, info.repo_path)
        return DaemonStatus(info.status, info.pid, info.repo_path)

    def pause(self) -> DaemonInfo:
        """Stops the running daemon.

        Returns:
            DaemonInfo: The descriptor of the daemon that was stopped.

        Raises:
            NotRunningError: If no descriptor exists, or it names a dead process
                or cannot be parsed (the stale descriptor is removed first).
        """
        try:
            info = self.store.load_daemon_info()
        except ConfigurationError as e:
            logger.warning(f"Removing unreadable daemon descriptor: {e}")
            self.store.delete_daemon_info()
            raise NotRunningError(
                "Daemon descriptor was unreadable; stale state cleaned up"
            ) from e
        if info is None:
            raise NotRunningError("No daemon is running")

        if not self.supervisor.terminate(info):
            raise NotRunningError(
                f"Daemon process {info.pid} not found (may have crashed); "
                "stale state cleaned up"
            )
        return info

    def reconfigure(
        self,
        ai_provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        check_interval_minutes: int | None = None,
    ) -> Config:
        """Applies and persists configuration changes.

        Only the arguments given are changed. The resulting provider and key
        are validated together before anything is written. A running daemon
        keeps its old settings until restarted.

        Returns:
            Config: The saved configuration.

        Raises:
            ValidationError: If the provider, key or interval is rejected.
        """
        config = self.store.load_config(with_env=False)
        updates: dict = {}

        if ai_provider is not None:
            updates["ai_provider"] = parse_provider(ai_provider).value
        if api_key is not None:
            updates["api_key"] = api_key.strip()
        if base_url is not None:
            updates["base_url"] = base_url.strip()
        if check_interval_minutes is not None:
            if check_interval_minutes <= 0:
                raise ValidationError(
                    "Check interval must be a positive number of minutes"
                )
            updates["check_interval_minutes"] = check_interval_minutes

        new_config = replace(config, **updates)
        validate_api_key(new_config.ai_provider, new_config.api_key)

        self.store.save_config(new_config)
        logger.debug(f"Configuration saved to {self.store.config_path}")
        return new_config

    def init(self, cwd: Path) -> DaemonInfo:
        """Starts a daemon for the repository containing `cwd`.

        Steps, aborting at the first failure: detect the git root, refuse if
        a live daemon already watches it, validate the credential, save the
        root in the configuration, spawn.

        Raises:
            SpawnError: If `cwd` is not in a repository or the spawn fails.
            ValidationError: If the configured credential is rejected.
        """
        try:
            root = find_root(cwd)
        except RuntimeError as e:
            raise SpawnError(f"Failed to detect Git root: {e}") from e

        current = self.status()
        if current.state == STATE_CRASHED:
            logger.warning("Removing stale daemon descriptor before starting.")
            self.store.delete_daemon_info()
        if current.is_live:
            if current.repo_path == str(root):
                raise SpawnError(
                    "Daemon is already running for this repository "
                    f"(PID: {current.pid})"
                )
            raise SpawnError(
                f"Daemon is already running for {current.repo_path} "
                f"(PID: {current.pid}). Run 'autogit pause' first."
            )

        effective = self.store.load_config()
        validate_api_key(effective.ai_provider, effective.api_key)

        saved = self.store.load_config(with_env=False)
        self.store.save_config(replace(saved, root_path=str(root)))
        return self.supervisor.spawn(root)
