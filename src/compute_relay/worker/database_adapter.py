"""Database adapter for bridging async workers with sync SQLAlchemy operations."""
import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar
from sqlalchemy.orm import Session, sessionmaker
from compute_relay.core.enums import JobStatus
from compute_relay.models.job import JobRecord
from compute_relay.repositories.job_repository import JobRepository
from compute_relay.services.state_machine import JobStateMachine
from compute_relay.worker.models import HeartbeatEntry

T = TypeVar("T")


class DatabaseAdapter:
    """
    Async persistence collaborator for the worker.

    Every call opens a fresh session in a worker thread via asyncio.to_thread(),
    re-reads the row it is about to change, commits, and hands back a detached
    copy. Nothing is cached between calls, so writes coming from the heartbeat
    flusher and from the job runner never overwrite each other with stale data.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize database adapter.

        Args:
            session_factory: Session factory (defaults to the application SessionLocal)
        """
        if session_factory is None:
            from compute_relay.core.database import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    async def _run(self, operation: Callable[[JobRepository], T]) -> T:
        def run_sync() -> T:
            session: Session = self.session_factory()
            try:
                result = operation(JobRepository(session))
                # Hand back detached instances with all columns loaded
                if isinstance(result, JobRecord):
                    session.expunge(result)
                elif isinstance(result, list):
                    for item in result:
                        if isinstance(item, JobRecord):
                            session.expunge(item)
                return result
            finally:
                session.close()

        return await asyncio.to_thread(run_sync)

    async def get_job(self, job_id: int) -> Optional[JobRecord]:
        """
        Find a job by id.

        Args:
            job_id: Job primary key

        Returns:
            Optional[JobRecord]: Detached job or None if deleted
        """
        return await self._run(lambda repo: repo.get_by_id(job_id))

    async def get_job_by_correlation_id(self, correlation_id: str) -> Optional[JobRecord]:
        """
        Find a job by correlation id.

        Args:
            correlation_id: Caller-facing job identifier

        Returns:
            Optional[JobRecord]: Detached job or None
        """
        return await self._run(lambda repo: repo.get_by_correlation_id(correlation_id))

    async def list_by_correlation_prefix(self, prefix: str) -> List[JobRecord]:
        """
        List jobs whose correlation id starts with prefix.

        Args:
            prefix: Correlation id prefix

        Returns:
            List[JobRecord]: Detached jobs
        """
        return await self._run(lambda repo: repo.list_by_correlation_prefix(prefix))

    async def list_jobs_by_status(self, *statuses: JobStatus) -> List[JobRecord]:
        """
        List jobs in any of the given statuses, oldest submission first.

        Args:
            *statuses: Statuses to match

        Returns:
            List[JobRecord]: Detached jobs
        """
        return await self._run(lambda repo: repo.list_by_status(list(statuses)))

    async def create_job(self, job_data: Dict[str, Any]) -> JobRecord:
        """
        Insert a new job record.

        Args:
            job_data: Job attributes

        Returns:
            JobRecord: Detached created job

        Raises:
            DuplicateCorrelationIdError: If the correlation id is taken
        """
        return await self._run(lambda repo: repo.create(job_data))

    async def update_job(self, job_id: int, **changes: Any) -> JobRecord:
        """
        Re-read a job and apply field changes (upsert of an existing record).

        Args:
            job_id: Job primary key
            **changes: Attribute values to set

        Returns:
            JobRecord: Detached updated job

        Raises:
            JobNotFoundError: If the job was deleted
        """
        return await self._run(lambda repo: repo.upsert(job_id, changes))

    async def transition_job_status(
        self, job_id: int, new_status: JobStatus, **changes: Any
    ) -> JobRecord:
        """
        Validate and apply a status transition against the fresh row.

        Args:
            job_id: Job primary key
            new_status: Target status
            **changes: Extra attribute values written in the same commit

        Returns:
            JobRecord: Detached updated job

        Raises:
            JobNotFoundError: If the job was deleted
            InvalidStateTransitionError: If the transition is not allowed
        """

        def transition(repo: JobRepository) -> JobRecord:
            job = repo.get_by_id(job_id)
            current = job.status if job is not None else None
            if current is not None:
                JobStateMachine.validate_transition(current, new_status)
            return repo.upsert(job_id, {"status": new_status, **changes})

        return await self._run(transition)

    async def record_retry(
        self,
        job_id: int,
        reset_to_pending: bool,
        error_message: Optional[str] = None,
    ) -> JobRecord:
        """
        Consume one unit of the job-level retry budget.

        Args:
            job_id: Job primary key
            reset_to_pending: True for a full recompute, False for an upload-only retry
            error_message: Error of the attempt that is being retried

        Returns:
            JobRecord: Detached updated job
        """

        def retry(repo: JobRepository) -> JobRecord:
            job = repo.get_by_id(job_id)
            changes: Dict[str, Any] = {
                "retry_count": (job.retry_count if job is not None else 0) + 1,
                "error_message": error_message,
            }
            if reset_to_pending and job is not None and job.status != JobStatus.PENDING:
                JobStateMachine.validate_transition(job.status, JobStatus.PENDING)
                changes["status"] = JobStatus.PENDING
            return repo.upsert(job_id, changes)

        return await self._run(retry)

    async def apply_heartbeats(self, entries: Dict[str, HeartbeatEntry]) -> int:
        """
        Copy buffered heartbeats onto their records in one unit of work.

        Args:
            entries: Correlation id to latest heartbeat

        Returns:
            int: Number of records updated
        """

        def apply(repo: JobRepository) -> int:
            updated = 0
            for correlation_id, entry in entries.items():
                job = repo.get_by_correlation_id(correlation_id)
                if job is not None:
                    job.heartbeat_message = entry.message
                    job.heartbeat_posted_at = entry.posted_at
                    updated += 1
            repo.db.commit()
            return updated

        return await self._run(apply)
