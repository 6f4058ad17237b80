"""Integration tests for heartbeat ingestion and flushing."""
import asyncio
import pytest
from compute_relay.core.exceptions import InvalidHeartbeatError
from compute_relay.services.background_tasks import BackgroundTaskManager
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.services.heartbeat_service import HeartbeatService
from compute_relay.worker.models import JobRequest


@pytest.mark.integration
@pytest.mark.asyncio
class TestHeartbeatService:
    """Test HeartbeatService against the database."""

    async def test_ingest_buffers_latest_message(self, store):
        service = HeartbeatService(HeartbeatBuffer(), store)

        service.ingest("job-1", "10%")
        entry = service.ingest("job-1", "20%")

        assert entry.message == "20%"
        assert service.buffer.get("job-1").message == "20%"

    async def test_ingest_rejects_blank_values(self, store):
        service = HeartbeatService(HeartbeatBuffer(), store)

        with pytest.raises(InvalidHeartbeatError):
            service.ingest("", "10%")
        with pytest.raises(InvalidHeartbeatError):
            service.ingest("job-1", "   ")

    async def test_flush_now_writes_records(self, store, make_job):
        make_job(correlation_id="job-1")
        service = HeartbeatService(HeartbeatBuffer(), store)
        service.ingest("job-1", "iteration 12/40")

        updated = await service.flush_now()

        job = await store.get_job_by_correlation_id("job-1")
        assert updated == 1
        assert job.heartbeat_message == "iteration 12/40"
        assert job.heartbeat_posted_at is not None

    async def test_flush_now_empties_buffer(self, store, make_job):
        """Test written heartbeats leave the buffer, including unknown jobs."""
        make_job(correlation_id="job-1")
        service = HeartbeatService(HeartbeatBuffer(), store)
        service.ingest("job-1", "iteration 12/40")
        service.ingest("ghost", "iteration 1/40")

        assert await service.flush_now() == 1
        assert len(service.buffer) == 0
        assert await service.flush_now() == 0

    async def test_buffer_is_empty_once_jobs_settle(self, runtime, make_job):
        jobs = [make_job(correlation_id=f"settle-{i}") for i in range(3)]
        by_input = {job.input_name: job.correlation_id for job in jobs}

        def post_heartbeat(spec):
            runtime.heartbeat_service.ingest(by_input[spec.input_name], "iteration 5/5")

        runtime.executor.on_run = post_heartbeat
        for job in jobs:
            await runtime.queue.enqueue(JobRequest(job.id, 4.0))

        await runtime.drain()

        assert len(runtime.buffer) == 0
        for job in jobs:
            assert (await runtime.store.get_job(job.id)).heartbeat_message == "iteration 5/5"

    async def test_flush_now_with_empty_buffer(self, store):
        service = HeartbeatService(HeartbeatBuffer(), store)

        assert await service.flush_now() == 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestBackgroundTaskManager:
    """Test the periodic heartbeat flusher."""

    async def test_round_skipped_without_active_jobs(self, store, make_job):
        make_job(correlation_id="job-1")
        buffer = HeartbeatBuffer()
        service = HeartbeatService(buffer, store)
        service.ingest("job-1", "50%")
        manager = BackgroundTaskManager(service, buffer, flush_interval=60)

        assert await manager.flush_round() == 0
        assert (await store.get_job_by_correlation_id("job-1")).heartbeat_message is None

    async def test_round_flushes_while_jobs_active(self, store, make_job):
        make_job(correlation_id="job-1")
        buffer = HeartbeatBuffer()
        service = HeartbeatService(buffer, store)
        service.ingest("job-1", "50%")
        buffer.mark_active("job-1")
        manager = BackgroundTaskManager(service, buffer, flush_interval=60)

        assert await manager.flush_round() == 1
        assert (await store.get_job_by_correlation_id("job-1")).heartbeat_message == "50%"

    async def test_start_and_stop(self, store):
        buffer = HeartbeatBuffer()
        manager = BackgroundTaskManager(
            HeartbeatService(buffer, store), buffer, flush_interval=0.05
        )

        await manager.start()
        assert manager.is_running is True
        assert len(manager._tasks) == 1

        await asyncio.sleep(0.2)
        await manager.stop(timeout=1.0)

        assert manager.is_running is False
        assert manager.flush_rounds >= 2

    async def test_start_already_running(self, store, caplog):
        buffer = HeartbeatBuffer()
        manager = BackgroundTaskManager(HeartbeatService(buffer, store), buffer)

        await manager.start()
        await manager.start()

        assert "already running" in caplog.text
        await manager.stop(timeout=1.0)

    async def test_flusher_survives_errors(self, store):
        """Test a failing flush does not stop the loop."""
        buffer = HeartbeatBuffer()
        buffer.mark_active("job-1")
        buffer.update("job-1", "x")
        service = HeartbeatService(buffer, store)
        calls = []

        async def broken_flush():
            calls.append(1)
            raise RuntimeError("database away")

        service.flush_now = broken_flush
        manager = BackgroundTaskManager(service, buffer, flush_interval=0.02)

        await manager.start()
        await asyncio.sleep(0.15)
        await manager.stop(timeout=1.0)

        assert len(calls) >= 2
