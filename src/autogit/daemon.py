import logging
import os
import signal
import threading
from enum import Enum
from pathlib import Path
from types import FrameType

from .constants import (
    APP_NAME,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    STATUS_ERROR,
    STATUS_RUNNING,
)
from .errors import AutogitError
from .git_wrapper import GitRepo
from .pipeline import CommitPipeline, CycleOutcome, CycleResult
from .providers import CommitMessageProvider, get_provider
from .state import Config, StateStore
from .system import SystemStrategy, get_system

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


class LoopState(str, Enum):
    RUNNING = "running"
    PAUSED_ON_ERROR = "paused_on_error"
    STOPPED = "stopped"


class DaemonLoop:
    """The scheduler that runs inside the spawned daemon process.

    A single thread drives every tick: it runs a commit cycle to completion,
    then waits on the stop event for the configured interval. Cycles can
    therefore never overlap, and a stop request is only observed between
    cycles or while idle.

    A failed push moves the loop to PAUSED_ON_ERROR. From there no further
    cycles run; the loop only waits for a stop request.

    Attributes:
        root_path (Path): The monitored repository root.
        state (LoopState): The current state machine position.
        cycles (int): Number of cycles executed so far.
    """

    def __init__(
        self,
        store: StateStore,
        config: Config,
        root_path: Path,
        provider: CommitMessageProvider,
        system: SystemStrategy | None = None,
        pid: int | None = None,
    ):
        self.store = store
        self.config = config
        self.root_path = Path(root_path)
        self.repo_name = self.root_path.name
        self.provider = provider
        self.system = system or get_system()
        self.pid = pid if pid is not None else os.getpid()
        self.state = LoopState.RUNNING
        self.cycles = 0
        self._stop_event = threading.Event()
        self._pipeline: CommitPipeline | None = None

    @property
    def interval(self) -> int:
        return self.config.check_interval

    def start(self) -> bool:
        """Moves into the monitored root. Returns False if that failed."""
        logger.info(f"Daemon started for repository: {self.root_path}")
        try:
            os.chdir(self.root_path)
            self._pipeline = CommitPipeline(
                GitRepo(self.root_path), self.provider, self.system
            )
        except (OSError, ValueError) as e:
            logger.error(f"ERROR: Failed to change to root directory: {e}")
            self._pause()
            return False
        return True

    def run(self) -> LoopState:
        """Runs until stopped. The first tick fires immediately.

        Returns:
            LoopState: Always STOPPED once the loop exits.
        """
        if self._pipeline is None and self.state is LoopState.RUNNING:
            self.start()

        while not self._stop_event.is_set():
            if self.state is LoopState.RUNNING:
                self.tick()
                if self.state is LoopState.RUNNING:
                    self._stop_event.wait(self.interval)
            else:
                # Paused: idle until a stop request arrives.
                self._stop_event.wait()

        self.state = LoopState.STOPPED
        logger.info("Daemon stopped")
        return self.state

    def tick(self) -> CycleOutcome | None:
        """Executes one cycle if the loop is running."""
        if self.state is not LoopState.RUNNING or self._pipeline is None:
            return None

        self.cycles += 1
        outcome = self._pipeline.run_cycle()
        if outcome.result is CycleResult.PUSH_FAILED:
            self._pause()
        elif outcome.result is CycleResult.PUSHED:
            self._set_status(STATUS_RUNNING)
        return outcome

    def stop(self) -> None:
        """Requests the loop to exit. Safe to call from a signal handler."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _pause(self) -> None:
        if self.state is LoopState.PAUSED_ON_ERROR:
            return
        self.state = LoopState.PAUSED_ON_ERROR
        logger.warning(f"PAUSED {self.repo_name}: Automatic commits halted.")
        self._set_status(STATUS_ERROR)

    def _set_status(self, status: str) -> None:
        try:
            self.store.update_daemon_status(self.pid, status)
        except AutogitError as e:
            logger.warning(f"Could not record daemon status '{status}': {e}")


def setup_logging(store: StateStore, repo_name: str) -> logging.Handler:
    """Attaches the repository's append-only log file to the app logger.

    Args:
        store (StateStore): The state directory holding the logs folder.
        repo_name (str): The monitored repository's base name.

    Returns:
        logging.Handler: The file handler, so the caller can close it.
    """
    store.ensure()
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    file_handler = logging.FileHandler(store.log_path(repo_name), mode="a")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    logger.setLevel(logging.INFO)
    return file_handler


def run_daemon(store: StateStore, root_path: str) -> int:
    """Entry point of the spawned child process.

    Loads the configuration once (later edits need a restart), builds the
    provider, installs SIGTERM/SIGINT handlers and runs the loop.

    Args:
        store (StateStore): The shared state directory.
        root_path (str): The repository root to monitor.

    Returns:
        int: The process exit code.
    """
    root = Path(root_path).resolve()
    handler = setup_logging(store, root.name)
    pid = os.getpid()

    try:
        config = store.load_config()
        try:
            provider = get_provider(config.ai_provider, config.api_key, config.base_url)
        except AutogitError as e:
            logger.error(f"ERROR: Failed to create AI provider: {e}")
            store.update_daemon_status(pid, STATUS_ERROR)
            return 1

        loop = DaemonLoop(store, config, root, provider, pid=pid)

        def handle_signal(_signum: int, _frame: FrameType | None) -> None:
            loop.stop()

        signal.signal(signal.SIGTERM, handle_signal)
        signal.signal(signal.SIGINT, handle_signal)

        loop.start()
        loop.run()

        info = store.load_daemon_info()
        if info is not None and info.pid == pid:
            store.delete_daemon_info()
        return 0
    except AutogitError as e:
        logger.error(f"ERROR: {e}")
        return 1
    finally:
        logger.removeHandler(handler)
        handler.close()
