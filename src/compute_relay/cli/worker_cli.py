"""CLI entry point for running the compute relay worker."""
import asyncio
import signal
import logging
import socket
import os
import sys
from typing import Optional
from prometheus_client import start_http_server
from compute_relay.config import Settings, get_settings
from compute_relay.core.database import init_db
from compute_relay.observability.metrics import init_system_info
from compute_relay.services.background_tasks import BackgroundTaskManager
from compute_relay.services.chain_planner import ChainPlanner
from compute_relay.services.file_store import FileStore
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.services.heartbeat_service import HeartbeatService
from compute_relay.services.job_service import JobService
from compute_relay.services.retry_service import RetryService
from compute_relay.services.submission_queue import SubmissionQueue
from compute_relay.services.uploader import ResultUploader
from compute_relay.worker.async_worker import AsyncWorker
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.job_runner import JobRunner
from compute_relay.worker.process_executor import SubprocessExecutor
from compute_relay.worker.result_locator import ResultLocator

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """
    Configure root logging.

    Args:
        level: Log level name
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Runtime:
    """Process-wide components wired from settings."""

    def __init__(self, settings: Settings, worker_id: Optional[str] = None):
        """
        Build every component of the engine.

        Args:
            settings: Application settings
            worker_id: Optional worker ID (auto-generated if not provided)
        """
        if not worker_id:
            worker_id = f"worker-{socket.gethostname()}-{os.getpid()}"

        retry_service = RetryService()
        self.store = DatabaseAdapter()
        self.queue = SubmissionQueue(capacity=settings.QUEUE_CAPACITY)
        self.file_store = FileStore(settings.INPUT_DIR, settings.ALLOWED_INPUT_EXTENSIONS)
        self.heartbeat_buffer = HeartbeatBuffer()
        self.heartbeat_service = HeartbeatService(self.heartbeat_buffer, self.store)

        self.job_service = JobService(
            self.store,
            self.queue,
            self.file_store,
            default_max_retries=settings.DEFAULT_MAX_RETRIES,
        )
        chain_planner = ChainPlanner(self.store, suffix=settings.FOLLOW_UP_SUFFIX)

        runner = JobRunner(
            store=self.store,
            executor=SubprocessExecutor(
                command=settings.COMPUTE_COMMAND,
                input_dir=settings.INPUT_DIR,
                output_dir=settings.OUTPUT_DIR,
                heartbeat_token=settings.HEARTBEAT_TOKEN,
                timeout_seconds=settings.COMPUTE_TIMEOUT_SECONDS,
            ),
            locator=ResultLocator(
                settings.OUTPUT_DIR,
                prefix=settings.RESULT_FILE_PREFIX,
                extensions=settings.RESULT_FILE_EXTENSIONS,
            ),
            uploader=ResultUploader(
                max_attempts=settings.UPLOAD_MAX_ATTEMPTS,
                retry_delay_seconds=settings.UPLOAD_RETRY_DELAY_SECONDS,
                timeout_seconds=settings.UPLOAD_TIMEOUT_SECONDS,
                retry_service=retry_service,
            ),
            file_store=self.file_store,
            heartbeat_buffer=self.heartbeat_buffer,
            heartbeat_service=self.heartbeat_service,
            chain_planner=chain_planner,
            heartbeat_url=settings.HEARTBEAT_URL,
            heartbeat_interval_ms=settings.HEARTBEAT_INTERVAL_MS,
            input_poll_attempts=settings.INPUT_POLL_ATTEMPTS,
            input_poll_delay=settings.INPUT_POLL_DELAY_SECONDS,
            follow_up_flags=settings.COMPUTE_FOLLOW_UP_FLAGS,
        )

        self.worker = AsyncWorker(
            queue=self.queue,
            runner=runner,
            store=self.store,
            max_concurrent_jobs=settings.WORKER_MAX_CONCURRENT_JOBS,
            poll_interval=settings.WORKER_POLL_INTERVAL,
            worker_id=worker_id,
            retry_service=retry_service,
        )
        self.background_tasks = BackgroundTaskManager(
            self.heartbeat_service,
            self.heartbeat_buffer,
            flush_interval=settings.HEARTBEAT_FLUSH_INTERVAL,
        )


async def run_worker(settings: Optional[Settings] = None) -> None:
    """
    Run the worker and heartbeat flusher until SIGINT or SIGTERM.

    Args:
        settings: Application settings (loaded from the environment if omitted)
    """
    settings = settings or get_settings()

    if not settings.WORKER_ENABLED:
        logger.info("Worker disabled (WORKER_ENABLED=false), not starting")
        return

    init_db()
    init_system_info(settings.APP_VERSION)
    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        logger.info(f"Metrics exporter listening on port {settings.METRICS_PORT}")

    runtime = Runtime(settings)
    logger.info(f"Starting worker: {runtime.worker.worker_id}")

    # Setup signal handlers for graceful shutdown
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(signum: int) -> None:
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    await runtime.background_tasks.start()
    worker_task = asyncio.create_task(runtime.worker.start())

    # The consumer is already running, so recovery cannot block on a full queue
    recovered = await runtime.job_service.recover_pending()
    logger.info(f"Recovered {recovered} job(s) from the database")

    # Wait for stop signal
    await stop_event.wait()

    # Graceful shutdown
    logger.info("Stopping worker...")
    await runtime.worker.stop(timeout=30.0)
    await worker_task
    await runtime.background_tasks.stop()

    # Persist whatever heartbeats arrived after the last flush round
    try:
        await runtime.heartbeat_service.flush_now()
    except Exception as e:
        logger.error(f"Error flushing heartbeats on shutdown: {e}")

    logger.info("Worker stopped")


def main():
    """Main entry point."""
    configure_logging(get_settings().LOG_LEVEL)
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
