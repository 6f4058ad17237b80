"""Worker data models and result classes."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from compute_relay.core.enums import FailureKind


@dataclass
class JobRequest:
    """
    Ephemeral unit of work carried by the submission queue.

    The upload credential only ever lives here, never on the persisted record.
    """

    job_id: int
    domain_value: float
    upload_url: Optional[str] = None
    upload_token: Optional[str] = field(default=None, repr=False)


@dataclass
class RunOutcome:
    """
    Tri-state result of one attempt: success, retry eligibility, message.

    Every component reports failures in this shape so the worker loop never
    has to inspect exceptions. A follow-up request created during the attempt
    rides along so the worker can enqueue it once the attempt is over.
    """

    success: bool
    retry_eligible: bool = False
    error_message: Optional[str] = None
    failure: Optional[FailureKind] = None
    follow_up_request: Optional[JobRequest] = None

    @classmethod
    def succeeded(cls) -> "RunOutcome":
        return cls(success=True)

    @classmethod
    def input_unavailable(cls, message: str) -> "RunOutcome":
        return cls(False, False, message, FailureKind.INPUT_UNAVAILABLE)

    @classmethod
    def compute_failure(cls, stderr: Optional[str]) -> "RunOutcome":
        message = stderr if stderr and stderr.strip() else "Unknown error occurred during execution."
        return cls(False, True, message, FailureKind.COMPUTE_FAILURE)

    @classmethod
    def output_missing(cls, message: str) -> "RunOutcome":
        return cls(False, True, message, FailureKind.OUTPUT_MISSING)

    @classmethod
    def upload_rejected(cls, message: str) -> "RunOutcome":
        return cls(False, False, message, FailureKind.UPLOAD_REJECTED)

    @classmethod
    def upload_transient(cls, message: str) -> "RunOutcome":
        return cls(False, True, message, FailureKind.UPLOAD_TRANSIENT)

    @classmethod
    def record_not_found(cls, job_id: int) -> "RunOutcome":
        return cls(False, False, f"Job {job_id} not found", FailureKind.RECORD_NOT_FOUND)

    @classmethod
    def unhandled(cls, message: str) -> "RunOutcome":
        return cls(False, False, message, FailureKind.UNHANDLED_EXCEPTION)


@dataclass
class ExecutionSpec:
    """Arguments handed to the external compute program."""

    input_name: str
    domain_value: float
    heartbeat_url: str
    heartbeat_interval_ms: int
    metadata_tag: str
    flags: List[str] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """Exit code and captured output of one compute program run."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass
class HeartbeatEntry:
    """Latest progress message for one correlation id."""

    message: str
    posted_at: datetime
