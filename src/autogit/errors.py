"""Exception hierarchy shared by the daemon and the control commands."""


class AutogitError(Exception):
    """Base class for every error Autogit raises on purpose."""


class ConfigurationError(AutogitError):
    """Persisted state could not be read or written."""


class ValidationError(AutogitError):
    """A value was rejected before any network or process call."""


class CycleError(AutogitError):
    """A step of a commit cycle failed."""

    step = "cycle"


class DetectionError(CycleError):
    step = "detect"


class GenerationError(CycleError):
    step = "generate"


class StageError(CycleError):
    step = "stage"


class CommitError(CycleError):
    step = "commit"


class PushError(CycleError):
    step = "push"


class SpawnError(AutogitError):
    """The background daemon process could not be started."""


class ProcessNotFoundError(AutogitError):
    """A recorded daemon process could not be signalled."""


class NotRunningError(AutogitError):
    """No live daemon is recorded in the state directory."""
