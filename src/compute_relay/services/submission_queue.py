"""Bounded in-process FIFO of job requests."""
import asyncio
from compute_relay.core.exceptions import QueueFullError
from compute_relay.observability.metrics import (
    record_queue_dequeue,
    record_queue_enqueue,
    update_queue_length,
)
from compute_relay.worker.models import JobRequest


class SubmissionQueue:
    """
    Bounded FIFO queue feeding the worker loop.

    Producers (the submission entry point, the chain planner, retries) wait
    for space when the queue is full; nothing is dropped. Ordering is strict
    FIFO, the record's priority field is not consulted.
    """

    def __init__(self, capacity: int = 100, queue_name: str = "jobs"):
        """
        Initialize submission queue.

        Args:
            capacity: Maximum number of queued requests
            queue_name: Name used in metrics labels
        """
        if capacity <= 0:
            raise ValueError("Queue capacity must be positive")
        self.capacity = capacity
        self.queue_name = queue_name
        self._queue: "asyncio.Queue[JobRequest]" = asyncio.Queue(maxsize=capacity)

    async def enqueue(self, request: JobRequest) -> None:
        """
        Add a request, suspending until space is available.

        Args:
            request: Job request to queue
        """
        await self._queue.put(request)
        self._record_enqueue()

    def try_enqueue(self, request: JobRequest) -> None:
        """
        Add a request without waiting.

        Args:
            request: Job request to queue

        Raises:
            QueueFullError: If the queue is at capacity
        """
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull as e:
            raise QueueFullError(
                f"Unable to enqueue job {request.job_id}. Queue is full."
            ) from e
        self._record_enqueue()

    async def dequeue(self) -> JobRequest:
        """
        Remove and return the oldest request, waiting while empty.

        Returns:
            JobRequest: Next request in FIFO order
        """
        request = await self._queue.get()
        self._queue.task_done()
        record_queue_dequeue(self.queue_name)
        update_queue_length(self.queue_name, self._queue.qsize())
        return request

    def get_queue_length(self) -> int:
        """
        Get number of queued requests.

        Returns:
            int: Number of requests waiting
        """
        return self._queue.qsize()

    def is_full(self) -> bool:
        """Whether the next enqueue would have to wait."""
        return self._queue.full()

    def _record_enqueue(self) -> None:
        record_queue_enqueue(self.queue_name)
        update_queue_length(self.queue_name, self._queue.qsize())
