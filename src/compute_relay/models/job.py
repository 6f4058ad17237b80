"""Job record model tracking one run of the external compute program."""
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    String,
    Integer,
    Float,
    Boolean,
    CheckConstraint,
    Index,
    Text,
    DateTime,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column
from compute_relay.core.database import Base
from compute_relay.core.enums import JobKind, JobStatus
from compute_relay.models.base import TimestampMixin, utcnow


class JobRecord(Base, TimestampMixin):
    """
    Persisted state of a compute job.

    The worker loop and the heartbeat flusher are the only writers after
    submission. Every writer re-reads the row before mutating it.
    """

    __tablename__ = "jobs"

    # Identification
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    correlation_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )

    # Input
    input_name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_value: Mapped[float] = mapped_column(Float, nullable=False, default=4.0)

    # Classification
    kind: Mapped[JobKind] = mapped_column(
        SQLEnum(JobKind, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobKind.PRIMARY,
    )
    generate_follow_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_correlation_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    # Ownership (carried onto follow-up jobs)
    owner_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stored for callers; the submission queue is strict FIFO
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # State machine
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )

    # Retry accounting
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Result delivery; meaningful only when COMPLETED
    upload_succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Execution tracking
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    result_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Process output and errors
    stdout: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stderr: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Latest progress reported by the compute program
    heartbeat_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    heartbeat_posted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("max_retries >= 0", name="check_max_retries_non_negative"),
        CheckConstraint("retry_count >= 0", name="check_retry_count_non_negative"),
        CheckConstraint(
            "retry_count <= max_retries", name="check_retry_count_not_exceed_max"
        ),
        Index("idx_jobs_status_submitted_at", "status", "submitted_at"),
    )

    @property
    def upload_pending(self) -> bool:
        """True when compute finished but the result was never delivered."""
        return self.status == JobStatus.COMPLETED and not self.upload_succeeded

    def __repr__(self) -> str:
        """Return string representation of JobRecord."""
        return (
            f"<JobRecord(id={self.id}, correlation_id={self.correlation_id}, "
            f"status={self.status})>"
        )
