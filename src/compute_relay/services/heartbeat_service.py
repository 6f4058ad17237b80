"""Heartbeat service for job progress ingestion and persistence."""
import logging
from pydantic import ValidationError
from compute_relay.core.exceptions import InvalidHeartbeatError
from compute_relay.observability.metrics import record_heartbeat_flush
from compute_relay.schemas.job import HeartbeatIngest
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.models import HeartbeatEntry

logger = logging.getLogger(__name__)


class HeartbeatService:
    """
    Manages job heartbeats.

    Uses a two-tier approach:
    - Buffer: every heartbeat lands in memory immediately
    - DB: buffered heartbeats are written in batches by flush_now(), which
      then drops them from the buffer
    """

    def __init__(self, buffer: HeartbeatBuffer, store: DatabaseAdapter):
        """
        Initialize heartbeat service.

        Args:
            buffer: Shared heartbeat buffer
            store: Persistence collaborator
        """
        self.buffer = buffer
        self.store = store

    def ingest(self, correlation_id: str, message: str) -> HeartbeatEntry:
        """
        Record a heartbeat posted by a running compute program.

        Args:
            correlation_id: Job correlation id from the heartbeat metadata tag
            message: Progress description

        Returns:
            HeartbeatEntry: Buffered entry

        Raises:
            InvalidHeartbeatError: If the id or message is missing
        """
        try:
            heartbeat = HeartbeatIngest(correlation_id=correlation_id, message=message)
        except ValidationError as e:
            raise InvalidHeartbeatError(
                f"Invalid heartbeat: {e.errors()[0]['msg']}"
            ) from e

        entry = self.buffer.update(heartbeat.correlation_id, heartbeat.message)
        logger.debug(f"Heartbeat for job {heartbeat.correlation_id}: {heartbeat.message}")
        return entry

    async def flush_now(self) -> int:
        """
        Write every buffered heartbeat to its job record in one commit.

        Written entries leave the buffer, so each heartbeat is persisted once
        and heartbeats for unknown jobs are not kept around.

        Returns:
            int: Number of job records updated
        """
        entries = self.buffer.snapshot()
        if not entries:
            return 0

        updated = await self.store.apply_heartbeats(entries)
        self.buffer.discard_flushed(entries)
        record_heartbeat_flush()
        logger.info(f"Flushed {updated} heartbeat update(s) to the database")
        return updated
