"""Per-job orchestration: compute, locate the result, chain, upload."""
import asyncio
import logging
import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple
from compute_relay.core.enums import JobKind, JobStatus
from compute_relay.models.job import JobRecord
from compute_relay.observability.metrics import jobs_active
from compute_relay.services.chain_planner import ChainPlanner
from compute_relay.services.file_store import FileStore
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.services.heartbeat_service import HeartbeatService
from compute_relay.services.uploader import ResultUploader
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.models import ExecutionSpec, JobRequest, RunOutcome
from compute_relay.worker.process_executor import ComputeExecutor
from compute_relay.worker.result_locator import ResultLocator

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Runs one attempt of a job and reports a RunOutcome.

    Flow for a fresh attempt:
        RUNNING → wait for input → compute → locate result → COMPLETED
                → chain follow-up → upload

    A record that is already COMPLETED with a failed upload skips straight to
    chaining and upload using the result that is already on disk.

    The runner never decides about retries; it persists what happened and
    hands the outcome to the worker loop.
    """

    def __init__(
        self,
        store: DatabaseAdapter,
        executor: ComputeExecutor,
        locator: ResultLocator,
        uploader: ResultUploader,
        file_store: FileStore,
        heartbeat_buffer: HeartbeatBuffer,
        heartbeat_service: HeartbeatService,
        chain_planner: Optional[ChainPlanner] = None,
        heartbeat_url: str = "http://localhost:8080/heartbeat",
        heartbeat_interval_ms: int = 5000,
        input_poll_attempts: int = 5,
        input_poll_delay: float = 0.1,
        follow_up_flags: str = "--follow-up",
    ):
        """
        Initialize job runner.

        Args:
            store: Persistence collaborator
            executor: Compute program invoker
            locator: Result artifact finder
            uploader: Result delivery client
            file_store: Input artifact storage
            heartbeat_buffer: Buffer whose active set tracks running programs
            heartbeat_service: Used for the flush right after a program exits
            chain_planner: Follow-up submitter (None disables chaining)
            heartbeat_url: URL the program posts heartbeats to
            heartbeat_interval_ms: Heartbeat period requested from the program
            input_poll_attempts: Checks for the input artifact before giving up
            input_poll_delay: Seconds between input checks
            follow_up_flags: Extra program flags for follow-up jobs
        """
        self.store = store
        self.executor = executor
        self.locator = locator
        self.uploader = uploader
        self.file_store = file_store
        self.heartbeat_buffer = heartbeat_buffer
        self.heartbeat_service = heartbeat_service
        self.chain_planner = chain_planner
        self.heartbeat_url = heartbeat_url
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.input_poll_attempts = input_poll_attempts
        self.input_poll_delay = input_poll_delay
        self.follow_up_flags = shlex.split(follow_up_flags)

    async def run(self, job: JobRecord, request: JobRequest) -> RunOutcome:
        """
        Run one attempt of a job.

        Args:
            job: Freshly read job record
            request: Queue item carrying the domain value and upload destination

        Returns:
            RunOutcome: Outcome of the attempt
        """
        if job.upload_pending:
            logger.info(f"Job {job.id} already computed, retrying delivery only")
            result_path = await asyncio.to_thread(self.locator.locate, job.input_name)
            if result_path is None:
                return RunOutcome.output_missing(
                    f"Result for job {job.id} no longer found in output directory"
                )
        else:
            outcome, result_path = await self._compute(job, request)
            if outcome is not None:
                return outcome

        follow_up_request = await self._chain(job.id, request)
        outcome = await self._deliver(job.id, result_path, request)
        outcome.follow_up_request = follow_up_request
        return outcome

    async def _compute(
        self, job: JobRecord, request: JobRequest
    ) -> Tuple[Optional[RunOutcome], Optional[Path]]:
        job = await self.store.transition_job_status(
            job.id,
            JobStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )

        input_found = await self.file_store.wait_for_input(
            job.input_name,
            attempts=self.input_poll_attempts,
            delay_seconds=self.input_poll_delay,
        )
        if not input_found:
            message = f"Input file not found after {self.input_poll_attempts} attempts."
            logger.error(f"Job {job.id}: {message}")
            await self.store.update_job(job.id, error_message=message)
            return RunOutcome.input_unavailable(message), None

        logger.info(f"Input file found for job {job.id}: {job.input_name}")

        spec = ExecutionSpec(
            input_name=job.input_name,
            domain_value=request.domain_value,
            heartbeat_url=self.heartbeat_url,
            heartbeat_interval_ms=self.heartbeat_interval_ms,
            metadata_tag=f"jobid={job.correlation_id}",
            flags=self._flags_for(job),
        )

        self.heartbeat_buffer.mark_active(job.correlation_id)
        jobs_active.inc()
        try:
            result = await self.executor.run(spec)
        finally:
            self.heartbeat_buffer.mark_inactive(job.correlation_id)
            jobs_active.dec()

        await self._flush_heartbeats(job.id)

        if not result.succeeded:
            outcome = RunOutcome.compute_failure(result.stderr)
            await self.store.update_job(
                job.id,
                stdout=result.stdout,
                stderr=result.stderr,
                error_message=outcome.error_message,
            )
            logger.error(f"Job {job.id} compute failed with exit code {result.exit_code}")
            return outcome, None

        result_path = await asyncio.to_thread(self.locator.locate, job.input_name)
        if result_path is None:
            message = (
                f"Compute succeeded but no result was found in "
                f"{self.locator.result_dir(job.input_name)}"
            )
            await self.store.update_job(
                job.id, stdout=result.stdout, stderr=result.stderr, error_message=message
            )
            logger.warning(f"Job {job.id}: {message}")
            return RunOutcome.output_missing(message), None

        await self.store.transition_job_status(
            job.id,
            JobStatus.COMPLETED,
            completed_at=datetime.now(timezone.utc),
            stdout=result.stdout,
            stderr=result.stderr,
            result_path=str(result_path),
            error_message=None,
        )
        logger.info(f"Job {job.id} computed, result at {result_path}")
        return None, result_path

    async def _chain(self, job_id: int, request: JobRequest) -> Optional[JobRequest]:
        if self.chain_planner is None:
            return None
        job = await self.store.get_job(job_id)
        if job is None:
            return None
        try:
            return await self.chain_planner.plan(job, request)
        except Exception as e:
            logger.error(f"Failed to chain follow-up for job {job_id}: {e}", exc_info=True)
            return None

    async def _deliver(
        self, job_id: int, result_path: Path, request: JobRequest
    ) -> RunOutcome:
        if not request.upload_url:
            logger.info(f"Job {job_id} has no upload destination, skipping upload")
            return RunOutcome.succeeded()

        outcome = await self.uploader.upload(result_path, request.upload_url, request.upload_token)
        if outcome.success:
            await self.store.update_job(job_id, upload_succeeded=True, error_message=None)
        else:
            await self.store.update_job(
                job_id, upload_succeeded=False, error_message=outcome.error_message
            )
        return outcome

    async def _flush_heartbeats(self, job_id: int) -> None:
        try:
            await self.heartbeat_service.flush_now()
        except Exception as e:
            logger.warning(f"Failed to flush heartbeats for job {job_id}: {e}")

    def _flags_for(self, job: JobRecord) -> List[str]:
        if job.kind == JobKind.FOLLOW_UP:
            return list(self.follow_up_flags)
        return []
