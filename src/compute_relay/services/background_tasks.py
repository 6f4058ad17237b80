"""Background task manager for periodic operations."""
import asyncio
import logging
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.services.heartbeat_service import HeartbeatService

logger = logging.getLogger(__name__)


class BackgroundTaskManager:
    """
    Manages background tasks that run beside the worker loop.

    Runs periodic tasks like:
    - Heartbeat flushing (buffered progress messages to job records)
    """

    def __init__(
        self,
        heartbeat_service: HeartbeatService,
        buffer: HeartbeatBuffer,
        flush_interval: float = 60.0,
    ):
        """
        Initialize background task manager.

        Args:
            heartbeat_service: Service that persists buffered heartbeats
            buffer: Heartbeat buffer whose active set gates each flush
            flush_interval: Seconds between flush rounds
        """
        self.heartbeat_service = heartbeat_service
        self.buffer = buffer
        self.flush_interval = flush_interval
        self.is_running = False
        self.flush_rounds = 0
        self._tasks: list[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start all background tasks."""
        if self.is_running:
            logger.warning("Background tasks already running")
            return

        self.is_running = True
        self._stop_event.clear()
        logger.info("Starting background tasks...")

        # Start heartbeat flusher
        task = asyncio.create_task(self._heartbeat_flusher())
        self._tasks.append(task)

        logger.info(f"Started {len(self._tasks)} background tasks")

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Stop all background tasks gracefully.

        Args:
            timeout: Maximum time to wait for tasks to complete
        """
        if not self.is_running:
            return

        logger.info("Stopping background tasks...")
        self._stop_event.set()

        # Wait for tasks with timeout
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._tasks, return_exceptions=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Background tasks did not stop in time, cancelling...")
            for task in self._tasks:
                task.cancel()

        self.is_running = False
        self._tasks.clear()
        logger.info("Background tasks stopped")

    async def flush_round(self) -> int:
        """
        Run one flush round.

        Skips the round entirely while no compute process is running.

        Returns:
            int: Number of job records updated
        """
        self.flush_rounds += 1
        if not self.buffer.has_active_jobs():
            logger.debug("No active jobs, skipping heartbeat flush")
            return 0
        return await self.heartbeat_service.flush_now()

    async def _heartbeat_flusher(self) -> None:
        """
        Periodically flush buffered heartbeats.

        Runs every flush_interval seconds.
        """
        logger.info(f"Heartbeat flusher started (interval: {self.flush_interval}s)")

        while not self._stop_event.is_set():
            try:
                await self.flush_round()
            except Exception as e:
                logger.error(f"Error in heartbeat flusher: {e}", exc_info=True)

            # Wait for next flush
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.flush_interval,
                )
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop
