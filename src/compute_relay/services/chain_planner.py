"""Chaining of dependent follow-up jobs after a primary job completes."""
import asyncio
import logging
import re
import secrets
from typing import Optional
from compute_relay.core.enums import JobKind, JobStatus
from compute_relay.core.exceptions import DuplicateCorrelationIdError
from compute_relay.models.job import JobRecord
from compute_relay.observability.metrics import record_follow_up_submitted
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.models import JobRequest

logger = logging.getLogger(__name__)


class ChainPlanner:
    """
    Creates at most one live follow-up job per completed primary job.

    The follow-up correlation id is derived from the primary's, so retries
    of the primary (upload-only retries call the planner again) find the
    existing follow-up and skip. Check-and-create runs under a lock; the
    unique correlation id constraint covers other processes.

    The planner never enqueues. It hands the follow-up request back so the
    worker can enqueue it after giving up its concurrency permit.
    """

    def __init__(
        self,
        store: DatabaseAdapter,
        suffix: str = "-followup",
    ):
        """
        Initialize chain planner.

        Args:
            store: Persistence collaborator
            suffix: Appended to the primary correlation id
        """
        self.store = store
        self.suffix = suffix
        self._lock = asyncio.Lock()

    def follow_up_id(self, primary_correlation_id: str) -> str:
        return f"{primary_correlation_id}{self.suffix}"

    def should_chain(self, job: JobRecord) -> bool:
        return (
            job.kind == JobKind.PRIMARY
            and job.generate_follow_up
            and job.status == JobStatus.COMPLETED
        )

    async def plan(self, job: JobRecord, request: JobRequest) -> Optional[JobRequest]:
        """
        Create the follow-up job for a completed primary job if none is live.

        Args:
            job: Freshly read primary job record
            request: Request the primary ran with (upload destination is carried over)

        Returns:
            Optional[JobRequest]: Request for the new follow-up, None if skipped
        """
        if not self.should_chain(job):
            return None

        base_id = self.follow_up_id(job.correlation_id)

        async with self._lock:
            if await self._has_live_follow_up(base_id):
                logger.info(f"Follow-up for job {job.correlation_id} already exists, skipping")
                return None

            try:
                follow_up = await self._create_follow_up(job, base_id)
            except DuplicateCorrelationIdError:
                # Only a failed follow-up holds the base id; retry once with a suffix
                candidate = f"{base_id}-{secrets.token_hex(3)}"
                if await self._has_live_follow_up(base_id):
                    return None
                follow_up = await self._create_follow_up(job, candidate)

        record_follow_up_submitted()
        logger.info(
            f"Created follow-up job {follow_up.correlation_id} for {job.correlation_id}"
        )
        return JobRequest(
            job_id=follow_up.id,
            domain_value=follow_up.domain_value,
            upload_url=request.upload_url,
            upload_token=request.upload_token,
        )

    async def _has_live_follow_up(self, base_id: str) -> bool:
        # Only the base id and its generated "-<6 hex>" variants are follow-ups
        pattern = re.compile(rf"{re.escape(base_id)}(-[0-9a-f]{{6}})?")
        existing = await self.store.list_by_correlation_prefix(base_id)
        return any(
            pattern.fullmatch(item.correlation_id) and item.status != JobStatus.FAILED
            for item in existing
        )

    async def _create_follow_up(self, job: JobRecord, correlation_id: str) -> JobRecord:
        return await self.store.create_job(
            {
                "correlation_id": correlation_id,
                "input_name": job.input_name,
                "domain_value": job.domain_value,
                "kind": JobKind.FOLLOW_UP,
                "generate_follow_up": False,
                "parent_correlation_id": job.correlation_id,
                "owner_id": job.owner_id,
                "client_id": job.client_id,
                "priority": job.priority,
                "max_retries": job.max_retries,
                "status": JobStatus.PENDING,
            }
        )
