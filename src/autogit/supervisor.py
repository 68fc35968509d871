import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from .constants import APP_NAME, DAEMON_COMMAND, HOME_ENV_VAR, STATUS_RUNNING
from .errors import ConfigurationError, ProcessNotFoundError, SpawnError
from .state import DaemonInfo, StateStore
from .system import is_process_alive

logger = logging.getLogger(APP_NAME)


def get_executable() -> str:
    """Resolves the absolute path of the running interpreter.

    Returns:
        str: The absolute interpreter path used to relaunch Autogit.

    Raises:
        SpawnError: If the interpreter path cannot be determined.
    """
    exe = sys.executable
    if not exe:
        raise SpawnError("Failed to get executable path")
    # Symlinks stay unresolved: a venv interpreter is a link to the base one.
    return str(Path(exe).absolute())


def _detach_kwargs() -> dict:
    """Popen options that let the child outlive the invoking terminal."""
    if sys.platform == "win32":
        flags = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        return {"creationflags": flags}
    return {"start_new_session": True}


class ProcessSupervisor:
    """Spawns, probes and stops the background daemon process.

    Attributes:
        store (StateStore): Where the daemon descriptor lives.
    """

    def __init__(self, store: StateStore):
        self.store = store

    def spawn(self, root_path: Path) -> DaemonInfo:
        """Launches a detached daemon for `root_path` and records it.

        Args:
            root_path (Path): The absolute repository root to monitor.

        Returns:
            DaemonInfo: The descriptor written for the new process.

        Raises:
            SpawnError: If the interpreter cannot be resolved or the process
                fails to start. No descriptor is written in that case.
        """
        exe = get_executable()
        cmd = [exe, "-m", APP_NAME, DAEMON_COMMAND, str(root_path)]

        env = os.environ.copy()
        env[HOME_ENV_VAR] = str(self.store.root)

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=root_path,
                env=env,
                close_fds=True,
                **_detach_kwargs(),
            )
        except OSError as e:
            raise SpawnError(f"Failed to start daemon: {e}") from e

        info = DaemonInfo(
            pid=proc.pid, repo_path=str(root_path), status=STATUS_RUNNING
        )
        try:
            self.store.save_daemon_info(info)
        except ConfigurationError as e:
            # An untracked daemon could never be stopped; take it down again.
            proc.terminate()
            raise SpawnError(f"Failed to save daemon info: {e}") from e

        logger.info(f"Spawned daemon (PID {proc.pid}) for {root_path}")
        return info

    def is_alive(self, pid: int) -> bool:
        """Returns True if a process with `pid` exists."""
        return is_process_alive(pid)

    def terminate(self, info: DaemonInfo) -> bool:
        """Asks a daemon to stop and removes its descriptor.

        Sends SIGTERM (cooperative, never a hard kill). The descriptor is
        deleted whether or not the process was still alive.

        Args:
            info (DaemonInfo): The descriptor of the daemon to stop.

        Returns:
            bool: True if a live process was signalled, False if there was
            nothing to stop.

        Raises:
            ProcessNotFoundError: If the process exists but cannot be signalled.
        """
        if not self.is_alive(info.pid):
            self.store.delete_daemon_info()
            logger.info(f"Daemon PID {info.pid} was not running; descriptor removed.")
            return False

        try:
            os.kill(info.pid, signal.SIGTERM)
        except ProcessLookupError:
            self.store.delete_daemon_info()
            return False
        except OSError as e:
            raise ProcessNotFoundError(f"Failed to stop daemon: {e}") from e

        self.store.delete_daemon_info()
        logger.info(f"Sent SIGTERM to daemon PID {info.pid}")
        return True
