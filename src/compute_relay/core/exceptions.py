"""Custom exceptions for ComputeRelay."""


class ComputeRelayException(Exception):
    """Base exception for all ComputeRelay-specific exceptions."""

    pass


class InvalidStateTransitionError(ComputeRelayException):
    """Raised when attempting an invalid job state transition."""

    pass


class JobNotFoundError(ComputeRelayException):
    """Raised when a job is not found in the database."""

    pass


class DuplicateCorrelationIdError(ComputeRelayException):
    """Raised when attempting to create a job with a correlation id already in use."""

    pass


class QueueFullError(ComputeRelayException):
    """Raised by the non-blocking enqueue when the submission queue is full."""

    pass


class UnsupportedInputError(ComputeRelayException):
    """Raised when a submitted input artifact has a disallowed file type."""

    pass


class InvalidHeartbeatError(ComputeRelayException):
    """Raised when a heartbeat is missing its correlation id or message."""

    pass
