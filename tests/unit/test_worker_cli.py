"""Unit tests for the worker process entry point."""
import os
import signal
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from compute_relay.cli.worker_cli import Runtime, run_worker
from compute_relay.config import Settings


def make_settings(tmp_path, **overrides):
    values = dict(
        INPUT_DIR=str(tmp_path / "in"),
        OUTPUT_DIR=str(tmp_path / "out"),
        COMPUTE_COMMAND="solver --fast",
        QUEUE_CAPACITY=7,
        WORKER_MAX_CONCURRENT_JOBS=2,
        HEARTBEAT_FLUSH_INTERVAL=15,
        FOLLOW_UP_SUFFIX="-next",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestRuntime:
    """Test component wiring from settings."""

    def test_wires_components_from_settings(self, tmp_path):
        runtime = Runtime(make_settings(tmp_path), worker_id="worker-test")

        assert runtime.queue.capacity == 7
        assert runtime.worker.max_concurrent_jobs == 2
        assert runtime.worker.worker_id == "worker-test"
        assert runtime.background_tasks.flush_interval == 15
        assert runtime.worker.runner.executor.command == ["solver", "--fast"]
        assert runtime.worker.runner.chain_planner.suffix == "-next"
        assert runtime.job_service.default_max_retries == 3

    def test_generates_worker_id(self, tmp_path):
        runtime = Runtime(make_settings(tmp_path))

        assert runtime.worker.worker_id.startswith("worker-")


@pytest.mark.asyncio
class TestRunWorker:
    async def test_disabled_worker_does_not_start(self, tmp_path):
        """Test WORKER_ENABLED=false returns without touching the database."""
        with patch("compute_relay.cli.worker_cli.init_db") as mock_init_db:
            await run_worker(make_settings(tmp_path, WORKER_ENABLED=False))

        mock_init_db.assert_not_called()

    async def test_recovers_pending_jobs_after_worker_starts(self, tmp_path):
        """Test leftover jobs are re-enqueued once the consumer is running."""
        runtime = MagicMock()
        runtime.background_tasks.start = AsyncMock()
        runtime.background_tasks.stop = AsyncMock()
        runtime.worker.stop = AsyncMock()
        runtime.heartbeat_service.flush_now = AsyncMock(return_value=0)

        async def recover():
            os.kill(os.getpid(), signal.SIGTERM)
            return 2

        runtime.worker.start = AsyncMock()
        runtime.job_service.recover_pending = AsyncMock(side_effect=recover)

        with patch("compute_relay.cli.worker_cli.init_db"), patch(
            "compute_relay.cli.worker_cli.init_system_info"
        ), patch("compute_relay.cli.worker_cli.Runtime", return_value=runtime):
            await run_worker(make_settings(tmp_path, METRICS_PORT=0))

        runtime.job_service.recover_pending.assert_awaited_once()
        runtime.worker.start.assert_awaited_once()
        runtime.worker.stop.assert_awaited_once()
