import logging
from dataclasses import dataclass
from enum import Enum

from .constants import APP_NAME
from .errors import (
    CommitError,
    CycleError,
    GenerationError,
    PushError,
    StageError,
)
from .git_wrapper import GitRepo
from .monitor import ChangeMonitor
from .providers import CommitMessageProvider
from .system import SystemStrategy

logger = logging.getLogger(APP_NAME)


class CycleResult(str, Enum):
    NO_CHANGES = "no_changes"
    FAILED = "failed"
    PUSHED = "pushed"
    PUSH_FAILED = "push_failed"


@dataclass
class CycleOutcome:
    """What a single commit cycle did.

    Attributes:
        result (CycleResult): The terminal state the cycle reached.
        message (str | None): The generated commit message, if any.
        error (CycleError | None): The failure that ended the cycle, if any.
    """

    result: CycleResult
    message: str | None = None
    error: CycleError | None = None


class CommitPipeline:
    """One detect, diff, generate, stage, commit, push pass over a repository.

    Each step short-circuits the rest on failure. Only a failed push is
    reported to the user; every other failure is logged and left for the
    next cycle.
    """

    def __init__(
        self,
        repo: GitRepo,
        provider: CommitMessageProvider,
        system: SystemStrategy,
        monitor: ChangeMonitor | None = None,
    ):
        self.repo = repo
        self.provider = provider
        self.system = system
        self.monitor = monitor or ChangeMonitor(repo)

    @property
    def repo_name(self) -> str:
        return self.repo.name

    def run_cycle(self) -> CycleOutcome:
        """Runs one cycle and reports its outcome. Never raises a CycleError."""
        name = self.repo_name
        logger.info(f"CHECK {name}: Checking for changes...")

        message: str | None = None
        try:
            if not self.monitor.has_changes():
                logger.info(f"IDLE {name}: No changes detected.")
                return CycleOutcome(CycleResult.NO_CHANGES)

            logger.info(f"CHANGES {name}: Generating commit message...")
            diff = self.monitor.diff()
            message = self._generate(diff)
            logger.info(f"GENERATED {name}: {message}")

            logger.info(f"STAGING {name}: Staging all changes...")
            self._stage()
            self._commit(message)
            logger.info(f"COMMITTED {name}: Committed successfully.")
        except CycleError as e:
            logger.error(f"{e.step.upper()} ERROR {name}: {e}")
            return CycleOutcome(CycleResult.FAILED, message=message, error=e)

        logger.info(f"PUSHING {name}: Pushing to remote...")
        try:
            self._push()
        except PushError as e:
            logger.error(f"PUSH ERROR {name}: {e}")
            self.system.notify_error(name, str(e))
            return CycleOutcome(CycleResult.PUSH_FAILED, message=message, error=e)

        logger.info(f"SUCCESS {name}: Pushed.")
        self.system.notify_success(name, message)
        return CycleOutcome(CycleResult.PUSHED, message=message)

    def _generate(self, diff: str) -> str:
        try:
            return self.provider.generate(diff)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Failed to generate commit message: {e}") from e

    def _stage(self) -> None:
        try:
            self.repo.add_all()
        except RuntimeError as e:
            raise StageError(f"Failed to stage changes: {e}") from e

    def _commit(self, message: str) -> None:
        try:
            self.repo.commit(message)
        except RuntimeError as e:
            raise CommitError(f"Failed to commit: {e}") from e

    def _push(self) -> None:
        try:
            self.repo.push()
        except RuntimeError as e:
            raise PushError(str(e)) from e
