"""Job state machine logic for managing valid job state transitions."""
from typing import Set, Dict
from compute_relay.core.enums import JobStatus
from compute_relay.core.exceptions import InvalidStateTransitionError


class JobStateMachine:
    """
    Defines valid state transitions for job records.

    State Diagram:
        PENDING → RUNNING → COMPLETED
           ↑        │
           └────────┤ (recompute retry)
                    ↓
                  FAILED
        PENDING → STOPPED
        PENDING → FAILED (attempt aborted before it started running)

    COMPLETED has no outgoing transitions: an upload-only retry keeps the
    status untouched and a completed computation is never downgraded.
    """

    # Define valid transitions as a mapping from current state to allowed next states
    TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
        JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED, JobStatus.STOPPED},
        JobStatus.RUNNING: {
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.PENDING,
        },
        JobStatus.COMPLETED: set(),  # Terminal state
        JobStatus.FAILED: set(),  # Terminal state
        JobStatus.STOPPED: set(),  # Terminal state
    }

    TERMINAL_STATES = {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED}

    @classmethod
    def can_transition(cls, from_state: JobStatus, to_state: JobStatus) -> bool:
        """
        Check if transition from from_state to to_state is valid.

        Args:
            from_state: Current job status
            to_state: Desired job status

        Returns:
            bool: True if transition is valid, False otherwise
        """
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(cls, from_state: JobStatus, to_state: JobStatus) -> None:
        """
        Validate state transition and raise exception if invalid.

        Args:
            from_state: Current job status
            to_state: Desired job status

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        if not cls.can_transition(from_state, to_state):
            raise InvalidStateTransitionError(
                f"Invalid state transition: {from_state} -> {to_state}"
            )

    @classmethod
    def is_terminal(cls, state: JobStatus) -> bool:
        """
        Check if state is terminal (no further transitions possible).

        Args:
            state: Job status to check

        Returns:
            bool: True if terminal state, False otherwise
        """
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, from_state: JobStatus) -> Set[JobStatus]:
        """
        Get all valid next states from current state.

        Args:
            from_state: Current job status

        Returns:
            Set[JobStatus]: Set of valid next states
        """
        return cls.TRANSITIONS.get(from_state, set())
