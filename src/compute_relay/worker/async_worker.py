"""Async worker draining the submission queue."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Set
from compute_relay.core.enums import JobStatus, RetryDecision
from compute_relay.observability.metrics import (
    record_job_failed,
    record_job_retrying,
    record_job_succeeded,
)
from compute_relay.services.retry_service import RetryService
from compute_relay.services.submission_queue import SubmissionQueue
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.job_runner import JobRunner
from compute_relay.worker.models import JobRequest, RunOutcome

logger = logging.getLogger(__name__)


class AsyncWorker:
    """
    Single consumer of the submission queue.

    Each dequeued request runs as its own task, admitted by an asyncio
    semaphore so at most max_concurrent_jobs attempts run at once. After an
    attempt the worker re-reads the record and either settles it or puts the
    request back on the queue. A request is only re-enqueued once its previous
    attempt has persisted its outcome, so one job never runs twice at a time.
    """

    def __init__(
        self,
        queue: SubmissionQueue,
        runner: JobRunner,
        store: DatabaseAdapter,
        max_concurrent_jobs: int = 1,
        poll_interval: float = 1.0,
        worker_id: str = "worker",
        retry_service: Optional[RetryService] = None,
    ):
        """
        Initialize async worker.

        Args:
            queue: Submission queue to drain
            runner: Per-job orchestration
            store: Persistence collaborator
            max_concurrent_jobs: Maximum concurrent job attempts
            poll_interval: Seconds to wait on an empty queue before re-checking for shutdown
            worker_id: Identifier used in logs
            retry_service: Retry classification
        """
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        self.queue = queue
        self.runner = runner
        self.store = store
        self.max_concurrent_jobs = max_concurrent_jobs
        self.poll_interval = poll_interval
        self.worker_id = worker_id
        self.retry_service = retry_service or RetryService()

        # Concurrency control
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs)
        self._running_tasks: Set[asyncio.Task] = set()

        # State
        self.is_running = False
        self._stop_event = asyncio.Event()

        # Metrics
        self.jobs_processed = 0
        self.jobs_succeeded = 0
        self.jobs_failed = 0
        self.jobs_retried = 0

    @property
    def running_jobs(self) -> int:
        return len(self._running_tasks)

    async def start(self):
        """
        Start the worker drain loop.

        Continuously takes requests off the queue until stopped.
        """
        self.is_running = True
        self._stop_event.clear()
        logger.info(f"Worker {self.worker_id} starting...")

        try:
            await self._drain_loop()
        finally:
            self.is_running = False
            logger.info(f"Worker {self.worker_id} stopped")

    async def stop(self, timeout: float = 30.0):
        """
        Stop the worker gracefully.

        In-flight attempts are allowed to finish; they are cancelled only
        after the timeout, which kills any running compute process.

        Args:
            timeout: Maximum time to wait for running jobs
        """
        logger.info(f"Worker {self.worker_id} stopping...")
        self._stop_event.set()

        # Wait for running tasks to complete
        if self._running_tasks:
            logger.info(f"Waiting for {len(self._running_tasks)} running jobs...")
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._running_tasks, return_exceptions=True),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for jobs, cancelling...")
                pending = list(self._running_tasks)
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

    async def _drain_loop(self):
        """
        Main drain loop.

        Waits for requests and spawns one task per request until stopped.
        """
        while not self._stop_event.is_set():
            try:
                try:
                    request = await asyncio.wait_for(
                        self.queue.dequeue(), timeout=self.poll_interval
                    )
                except asyncio.TimeoutError:
                    continue

                # Wait for an available slot
                await self._semaphore.acquire()
                if self._stop_event.is_set():
                    # The record stays PENDING and is recovered on the next start
                    self._semaphore.release()
                    logger.info(f"Worker stopping, not starting job {request.job_id}")
                    break

                task = asyncio.create_task(self._run_with_permit(request))
                self._running_tasks.add(task)
                task.add_done_callback(self._running_tasks.discard)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in drain loop: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval)

    async def _run_with_permit(self, request: JobRequest):
        """
        Run one request while holding a semaphore permit.

        Args:
            request: Request to process
        """
        to_enqueue: List[JobRequest] = []
        try:
            to_enqueue = await self.process(request)
        except Exception as e:
            logger.error(
                f"Unexpected error processing job {request.job_id}: {e}", exc_info=True
            )
        finally:
            # Release the slot for the next job
            self._semaphore.release()

        # Follow-ups and retries are enqueued only after the permit is free so
        # a full queue cannot block the single consumer
        for item in to_enqueue:
            await self.queue.enqueue(item)

    async def process(self, request: JobRequest) -> List[JobRequest]:
        """
        Run one attempt of a job and settle its record.

        Args:
            request: Dequeued request

        Returns:
            List[JobRequest]: Follow-up and retry requests to enqueue, empty if none
        """
        job = await self.store.get_job(request.job_id)
        if job is None:
            outcome = RunOutcome.record_not_found(request.job_id)
            logger.info(f"{outcome.error_message} in DB. Skipping.")
            return []

        if job.status in (JobStatus.FAILED, JobStatus.STOPPED) or (
            job.status == JobStatus.COMPLETED and job.upload_succeeded
        ):
            logger.info(f"Job {job.id} already settled as {job.status}. Skipping.")
            return []

        job_kind = str(job.kind)
        logger.info(f"Executing job {job.id} ({job.correlation_id}) from queue")
        started = time.monotonic()

        try:
            outcome = await self.runner.run(job, request)
        except Exception as e:
            logger.error(f"Exception running job {job.id}: {e}", exc_info=True)
            outcome = RunOutcome.unhandled(f"{type(e).__name__}: {e}")

        duration = time.monotonic() - started
        self.jobs_processed += 1
        follow_ups = [outcome.follow_up_request] if outcome.follow_up_request else []

        # Re-read so retry decisions never work from a stale record
        fresh = await self.store.get_job(job.id)
        if fresh is None:
            logger.info(f"Job {job.id} not found after run. Skipping updates.")
            return follow_ups

        decision = self.retry_service.decide(
            status=fresh.status,
            upload_succeeded=fresh.upload_succeeded,
            retry_count=fresh.retry_count,
            max_retries=fresh.max_retries,
            success=outcome.success,
            retry_eligible=outcome.retry_eligible,
        )

        if decision == RetryDecision.SUCCEEDED:
            self.jobs_succeeded += 1
            record_job_succeeded(job_kind, duration)
            logger.info(f"Job {fresh.id} completed")
            return follow_ups

        if decision in (RetryDecision.RETRY_COMPUTE, RetryDecision.RETRY_UPLOAD):
            upload_only = decision == RetryDecision.RETRY_UPLOAD
            updated = await self.store.record_retry(
                fresh.id,
                reset_to_pending=not upload_only,
                error_message=outcome.error_message,
            )
            self.jobs_retried += 1
            record_job_retrying(job_kind, "upload" if upload_only else "compute")
            if upload_only:
                logger.info(
                    f"Upload-only re-enqueue for job {fresh.id} "
                    f"(retry {updated.retry_count}/{updated.max_retries})"
                )
            else:
                logger.info(
                    f"Re-enqueuing job {fresh.id} for recompute "
                    f"(retry {updated.retry_count}/{updated.max_retries})"
                )
            return follow_ups + [request]

        self.jobs_failed += 1
        record_job_failed(job_kind, duration)

        if decision == RetryDecision.KEEP_COMPLETED:
            await self.store.update_job(fresh.id, error_message=outcome.error_message)
            logger.warning(
                f"Job {fresh.id} completed but upload failed; leaving status Completed: "
                f"{outcome.error_message}"
            )
            return follow_ups

        await self.store.transition_job_status(
            fresh.id,
            JobStatus.FAILED,
            completed_at=datetime.now(timezone.utc),
            error_message=outcome.error_message or "Max retries reached",
        )
        logger.error(
            f"Job {fresh.id} failed ({outcome.failure}) after "
            f"{fresh.retry_count} retries: {outcome.error_message}"
        )
        return follow_ups
