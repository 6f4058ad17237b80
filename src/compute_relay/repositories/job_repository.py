"""Job repository for database operations."""
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from compute_relay.models.job import JobRecord
from compute_relay.core.enums import JobStatus
from compute_relay.core.exceptions import DuplicateCorrelationIdError, JobNotFoundError


class JobRepository:
    """Repository for JobRecord database operations."""

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def create(self, job_data: Dict[str, Any]) -> JobRecord:
        """
        Create a new job record.

        Args:
            job_data: Dictionary of job attributes

        Returns:
            JobRecord: Created job instance

        Raises:
            DuplicateCorrelationIdError: If the correlation id is already taken
        """
        job = JobRecord(**job_data)
        self.db.add(job)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if "correlation_id" in str(e):
                raise DuplicateCorrelationIdError(
                    f"Job with correlation id '{job_data.get('correlation_id')}' already exists"
                ) from e
            raise
        self.db.refresh(job)
        return job

    def get_by_id(self, job_id: int) -> Optional[JobRecord]:
        """
        Retrieve job by ID.

        Args:
            job_id: Job primary key

        Returns:
            Optional[JobRecord]: Job instance or None if not found
        """
        return self.db.query(JobRecord).filter(JobRecord.id == job_id).first()

    def get_by_correlation_id(self, correlation_id: str) -> Optional[JobRecord]:
        """
        Retrieve job by correlation id.

        Args:
            correlation_id: Caller-facing job identifier

        Returns:
            Optional[JobRecord]: Job instance or None if not found
        """
        return (
            self.db.query(JobRecord)
            .filter(JobRecord.correlation_id == correlation_id)
            .first()
        )

    def list_by_correlation_prefix(self, prefix: str) -> List[JobRecord]:
        """
        List jobs whose correlation id starts with a prefix.

        Args:
            prefix: Literal correlation id prefix

        Returns:
            List[JobRecord]: Matching jobs ordered by id
        """
        return (
            self.db.query(JobRecord)
            .filter(JobRecord.correlation_id.startswith(prefix, autoescape=True))
            .order_by(JobRecord.id)
            .all()
        )

    def list_by_status(self, statuses: List[JobStatus]) -> List[JobRecord]:
        """
        List jobs in any of the given statuses, oldest submission first.

        Args:
            statuses: Statuses to match

        Returns:
            List[JobRecord]: Matching jobs
        """
        return (
            self.db.query(JobRecord)
            .filter(JobRecord.status.in_(statuses))
            .order_by(JobRecord.submitted_at, JobRecord.id)
            .all()
        )

    def upsert(self, job_id: int, changes: Dict[str, Any]) -> JobRecord:
        """
        Apply field changes to an existing job and commit.

        Args:
            job_id: Job primary key
            changes: Attribute name to new value

        Returns:
            JobRecord: Updated job instance

        Raises:
            JobNotFoundError: If job not found
        """
        job = self.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        for field, value in changes.items():
            setattr(job, field, value)
        self.db.commit()
        self.db.refresh(job)
        return job

    def update_status(self, job_id: int, status: JobStatus) -> JobRecord:
        """
        Update job status.

        Args:
            job_id: Job primary key
            status: New job status

        Returns:
            JobRecord: Updated job instance

        Raises:
            JobNotFoundError: If job not found
        """
        return self.upsert(job_id, {"status": status})
