"""In-memory buffer of the latest heartbeat per job."""
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Set
from compute_relay.worker.models import HeartbeatEntry


class HeartbeatBuffer:
    """
    Last-write-wins store of progress messages keyed by correlation id.

    Heartbeats arrive every few seconds from running compute programs; the
    buffer absorbs them and the flusher copies the latest value to the
    database on a fixed interval. A separate active set tracks which
    correlation ids currently have a compute process running.

    Safe for concurrent writers from any thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._heartbeats: Dict[str, HeartbeatEntry] = {}
        self._active: Set[str] = set()

    def update(
        self, correlation_id: str, message: str, posted_at: Optional[datetime] = None
    ) -> HeartbeatEntry:
        """
        Store the latest message for a job, replacing any previous one.

        Args:
            correlation_id: Job correlation id
            message: Progress message
            posted_at: Receive time (defaults to now, UTC)

        Returns:
            HeartbeatEntry: Stored entry
        """
        entry = HeartbeatEntry(message=message, posted_at=posted_at or datetime.now(timezone.utc))
        with self._lock:
            self._heartbeats[correlation_id] = entry
        return entry

    def get(self, correlation_id: str) -> Optional[HeartbeatEntry]:
        with self._lock:
            return self._heartbeats.get(correlation_id)

    def snapshot(self) -> Dict[str, HeartbeatEntry]:
        """
        Copy of every buffered entry.

        Returns:
            Dict[str, HeartbeatEntry]: Correlation id to latest entry
        """
        with self._lock:
            return dict(self._heartbeats)

    def discard_flushed(self, flushed: Dict[str, HeartbeatEntry]) -> int:
        """
        Drop entries that were persisted and have not changed since.

        An entry replaced by a newer heartbeat after the snapshot was taken
        stays buffered for the next flush.

        Args:
            flushed: Snapshot that was written to the database

        Returns:
            int: Number of entries dropped
        """
        dropped = 0
        with self._lock:
            for correlation_id, entry in flushed.items():
                if self._heartbeats.get(correlation_id) is entry:
                    del self._heartbeats[correlation_id]
                    dropped += 1
        return dropped

    def mark_active(self, correlation_id: str) -> None:
        with self._lock:
            self._active.add(correlation_id)

    def mark_inactive(self, correlation_id: str) -> None:
        with self._lock:
            self._active.discard(correlation_id)

    def has_active_jobs(self) -> bool:
        with self._lock:
            return bool(self._active)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def __len__(self) -> int:
        with self._lock:
            return len(self._heartbeats)
