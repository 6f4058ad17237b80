"""Core enumerations for the ComputeRelay job lifecycle engine."""
from enum import Enum


class JobStatus(str, Enum):
    """
    Job record states.

    State flow:
        PENDING → RUNNING → COMPLETED
           ↑         ↓
           └──── (retry)      RUNNING → FAILED
        STOPPED (from PENDING)

    A COMPLETED job whose upload has not succeeded stays COMPLETED while
    delivery of its result is retried.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class JobKind(str, Enum):
    """
    Job kind discriminator.

    - PRIMARY: Submitted from outside
    - FOLLOW_UP: Chained automatically after a primary job completed
    """

    PRIMARY = "primary"
    FOLLOW_UP = "follow_up"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class FailureKind(str, Enum):
    """
    Failure classes carried by a run outcome.

    - INPUT_UNAVAILABLE: Input artifact never appeared (permanent)
    - COMPUTE_FAILURE: Compute program exited non-zero (retry-eligible)
    - OUTPUT_MISSING: No result artifact found (retry-eligible)
    - UPLOAD_REJECTED: Gateway answered with a non-5xx 4xx (permanent)
    - UPLOAD_TRANSIENT: Gateway 5xx, timeout or network error (retry-eligible)
    - RECORD_NOT_FOUND: Job record deleted out of band (dropped)
    - UNHANDLED_EXCEPTION: Unexpected error inside a run (permanent)
    """

    INPUT_UNAVAILABLE = "input_unavailable"
    COMPUTE_FAILURE = "compute_failure"
    OUTPUT_MISSING = "output_missing"
    UPLOAD_REJECTED = "upload_rejected"
    UPLOAD_TRANSIENT = "upload_transient"
    RECORD_NOT_FOUND = "record_not_found"
    UNHANDLED_EXCEPTION = "unhandled_exception"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class RetryDecision(str, Enum):
    """
    What the worker loop does with a finished attempt.

    - SUCCEEDED: Attempt succeeded, record already settled
    - RETRY_COMPUTE: Reset to PENDING and re-enqueue for a full recompute
    - RETRY_UPLOAD: Keep COMPLETED and re-enqueue for delivery only
    - KEEP_COMPLETED: Budget exhausted on upload, keep COMPLETED, record error
    - FAIL: Settle FAILED
    """

    SUCCEEDED = "succeeded"
    RETRY_COMPUTE = "retry_compute"
    RETRY_UPLOAD = "retry_upload"
    KEEP_COMPLETED = "keep_completed"
    FAIL = "fail"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value
