"""Job service for submission and lookup."""
import logging
import uuid
from compute_relay.core.enums import JobKind, JobStatus
from compute_relay.core.exceptions import DuplicateCorrelationIdError, JobNotFoundError
from compute_relay.models.job import JobRecord
from compute_relay.observability.metrics import record_job_submitted
from compute_relay.schemas.job import JobSubmission
from compute_relay.services.file_store import FileStore
from compute_relay.services.submission_queue import SubmissionQueue
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.models import JobRequest

logger = logging.getLogger(__name__)


class JobService:
    """Entry point for submitting compute jobs and reading their state."""

    def __init__(
        self,
        store: DatabaseAdapter,
        queue: SubmissionQueue,
        file_store: FileStore,
        default_max_retries: int = 3,
    ):
        """
        Initialize service.

        Args:
            store: Persistence collaborator
            queue: Submission queue feeding the worker
            file_store: Input artifact staging
            default_max_retries: Retry budget for submissions that do not set one
        """
        self.store = store
        self.queue = queue
        self.file_store = file_store
        self.default_max_retries = default_max_retries

    async def submit(
        self, submission: JobSubmission, file_name: str, content: bytes
    ) -> JobRecord:
        """
        Stage the input artifact, create a PENDING job and enqueue it.

        Waits for queue space when the submission queue is full.

        Args:
            submission: Validated submission parameters
            file_name: Original input file name (its extension selects the type)
            content: Input file bytes

        Returns:
            JobRecord: Created job

        Raises:
            DuplicateCorrelationIdError: If the correlation id already exists
            UnsupportedInputError: If the input file type is not allowed
        """
        if not content:
            raise ValueError("No input file content submitted")

        correlation_id = submission.correlation_id or uuid.uuid4().hex
        if submission.correlation_id:
            existing = await self.store.get_job_by_correlation_id(correlation_id)
            if existing is not None:
                raise DuplicateCorrelationIdError(
                    f"A job with correlation id '{correlation_id}' already exists"
                )

        input_name = await self.file_store.save_input(file_name, content)

        job = await self.store.create_job(
            {
                "correlation_id": correlation_id,
                "input_name": input_name,
                "domain_value": submission.domain_value,
                "kind": JobKind.PRIMARY,
                "generate_follow_up": submission.generate_follow_up,
                "max_retries": (
                    submission.max_retries
                    if submission.max_retries is not None
                    else self.default_max_retries
                ),
                "priority": submission.priority,
                "owner_id": submission.owner_id,
                "client_id": submission.client_id,
                "status": JobStatus.PENDING,
            }
        )

        await self.queue.enqueue(
            JobRequest(
                job_id=job.id,
                domain_value=job.domain_value,
                upload_url=submission.upload_url,
                upload_token=submission.upload_token,
            )
        )
        record_job_submitted(str(job.kind))
        logger.info(f"Submitted job {job.id} ({job.correlation_id}) with input {input_name}")
        return job

    async def get_job(self, job_id: int) -> JobRecord:
        """
        Get job by ID.

        Args:
            job_id: Job primary key

        Returns:
            JobRecord: Job instance

        Raises:
            JobNotFoundError: If job not found
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    async def get_job_by_correlation_id(self, correlation_id: str) -> JobRecord:
        """
        Get job by correlation id.

        Args:
            correlation_id: Caller-facing job identifier

        Returns:
            JobRecord: Job instance

        Raises:
            JobNotFoundError: If job not found
        """
        job = await self.store.get_job_by_correlation_id(correlation_id)
        if job is None:
            raise JobNotFoundError(f"Job '{correlation_id}' not found")
        return job

    async def stop_job(self, job_id: int) -> JobRecord:
        """
        Stop a job that has not started yet.

        The worker drops stopped jobs when it dequeues them.

        Args:
            job_id: Job primary key

        Returns:
            JobRecord: Updated job instance

        Raises:
            JobNotFoundError: If job not found
            InvalidStateTransitionError: If the job is no longer pending
        """
        await self.get_job(job_id)
        job = await self.store.transition_job_status(job_id, JobStatus.STOPPED)
        logger.info(f"Stopped job {job_id}")
        return job

    async def recover_pending(self) -> int:
        """
        Put jobs left over from a previous process back on the queue.

        RUNNING records were interrupted mid-attempt and go back to PENDING
        without consuming a retry. Upload destinations are not persisted, so
        recovered jobs complete without an upload.

        Returns:
            int: Number of jobs enqueued
        """
        for job in await self.store.list_jobs_by_status(JobStatus.RUNNING):
            await self.store.transition_job_status(job.id, JobStatus.PENDING)
            logger.warning(f"Job {job.id} ({job.correlation_id}) was interrupted, resetting to pending")

        pending = await self.store.list_jobs_by_status(JobStatus.PENDING)
        for job in pending:
            await self.queue.enqueue(JobRequest(job_id=job.id, domain_value=job.domain_value))
        if pending:
            logger.info(f"Re-enqueued {len(pending)} pending job(s) from a previous run")
        return len(pending)
