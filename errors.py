class ProgressionError(ValueError):
    """Base class for engine precondition failures."""


class DuplicateResultError(ProgressionError):
    """Raised when a day already holds a YES for the machine."""


class EmptyWorkoutError(ProgressionError):
    """Raised when a template has no machine that can be resolved."""


class NotFoundError(ProgressionError):
    """Raised when a machine, template or workout item does not exist."""


class WorkoutInProgressError(ProgressionError):
    """Raised when starting a workout while another one is running."""


class StateValidationError(ProgressionError):
    """Raised when an imported or restored document is malformed."""


class SyncFailure(Exception):
    """Raised by sync transports when a batch could not be delivered."""
