"""Shared pytest fixtures for all tests."""
import asyncio
import os
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import List, Optional

# Set test database URL before importing anything else
os.environ["DATABASE_URL"] = "sqlite://"

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from compute_relay.core.database import Base
from compute_relay.core.enums import JobKind, JobStatus
from compute_relay.services.chain_planner import ChainPlanner
from compute_relay.services.file_store import FileStore
from compute_relay.services.heartbeat_buffer import HeartbeatBuffer
from compute_relay.services.heartbeat_service import HeartbeatService
from compute_relay.services.job_service import JobService
from compute_relay.services.submission_queue import SubmissionQueue
from compute_relay.services.uploader import ResultUploader
from compute_relay.worker.async_worker import AsyncWorker
from compute_relay.worker.database_adapter import DatabaseAdapter
from compute_relay.worker.job_runner import JobRunner
from compute_relay.worker.models import ExecutionResult, ExecutionSpec
from compute_relay.worker.result_locator import ResultLocator

# Import all models to register them with Base before creating tables
from compute_relay.models.job import JobRecord  # noqa: F401


@pytest.fixture
def test_engine(tmp_path):
    """
    Create a file-backed SQLite engine for one test.

    A file database lets the adapter's worker threads each open their own
    connection, like they would against a server database.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory):
    """Create a database session for direct inspection in a test."""
    session: Session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(session_factory):
    """Async persistence adapter backed by the test database."""
    return DatabaseAdapter(session_factory)


@pytest.fixture
def input_dir(tmp_path) -> Path:
    path = tmp_path / "input"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path) -> Path:
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def make_job(db_session, input_dir):
    """
    Factory inserting a job record (and its staged input file).

    Usage:
        job = make_job(correlation_id="abc", max_retries=1)
    """
    counter = {"n": 0}

    def _make(
        correlation_id: Optional[str] = None,
        stage_input: bool = True,
        **overrides,
    ) -> JobRecord:
        counter["n"] += 1
        input_name = overrides.pop("input_name", f"input{counter['n']}.json")
        if stage_input:
            (input_dir / input_name).write_text('{"grid": [1, 2, 3]}')
        job = JobRecord(
            correlation_id=correlation_id or f"job-{counter['n']}",
            input_name=input_name,
            domain_value=overrides.pop("domain_value", 4.0),
            kind=overrides.pop("kind", JobKind.PRIMARY),
            generate_follow_up=overrides.pop("generate_follow_up", False),
            status=overrides.pop("status", JobStatus.PENDING),
            max_retries=overrides.pop("max_retries", 3),
            **overrides,
        )
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        db_session.expunge(job)
        return job

    return _make


class FakeExecutor:
    """
    Stand-in for the compute program.

    Plays back a script of exit codes; every successful run writes a
    timestamped result file where the real program would.
    """

    def __init__(self, output_dir: Path, exit_codes: Optional[List[int]] = None):
        self.output_dir = output_dir
        self.exit_codes = list(exit_codes or [])
        self.specs: List[ExecutionSpec] = []
        self.write_result = True
        self.on_run = None
        # When set, runs block until the event fires
        self.gate: Optional[asyncio.Event] = None

    @property
    def calls(self) -> int:
        return len(self.specs)

    async def run(self, spec: ExecutionSpec) -> ExecutionResult:
        self.specs.append(spec)
        if self.on_run is not None:
            self.on_run(spec)
        if self.gate is not None:
            await self.gate.wait()
        exit_code = self.exit_codes.pop(0) if self.exit_codes else 0
        if exit_code != 0:
            return ExecutionResult(exit_code=exit_code, stdout="", stderr="solver diverged")

        if self.write_result:
            result_dir = self.output_dir / Path(spec.input_name).stem
            result_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime(2024, 1, 1, 12, 0, self.calls % 60).strftime("%Y%m%d_%H%M%S")
            (result_dir / f"result_{stamp}.json").write_text('{"mesh": "ok"}')
        return ExecutionResult(exit_code=0, stdout="done", stderr="")


class FakeGateway:
    """Upload gateway answering with scripted status codes."""

    def __init__(self, statuses: Optional[List[int]] = None):
        self.statuses = list(statuses or [])
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if self.statuses else 200
        return httpx.Response(status, text="gateway says hi")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def fake_executor(output_dir):
    return FakeExecutor(output_dir)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_runtime(store, input_dir, output_dir, fake_executor, gateway):
    """
    Factory for a fully wired engine using the fake compute program and gateway.

    Usage:
        runtime = make_runtime(queue_capacity=1)
    """

    def _make(queue_capacity: int = 100) -> SimpleNamespace:
        return _build_runtime(
            store, input_dir, output_dir, fake_executor, gateway, queue_capacity
        )

    return _make


@pytest.fixture
def runtime(make_runtime):
    """
    Fully wired engine with a roomy queue.

    Returns a namespace with queue, store, worker, runner and services.
    """
    return make_runtime()


def _build_runtime(store, input_dir, output_dir, fake_executor, gateway, queue_capacity):
    queue = SubmissionQueue(capacity=queue_capacity)
    buffer = HeartbeatBuffer()
    heartbeat_service = HeartbeatService(buffer, store)
    file_store = FileStore(str(input_dir))
    uploader = ResultUploader(
        max_attempts=3,
        retry_delay_seconds=0.0,
        transport=gateway.transport,
        sleep=_no_sleep,
    )
    chain_planner = ChainPlanner(store)
    runner = JobRunner(
        store=store,
        executor=fake_executor,
        locator=ResultLocator(str(output_dir), extensions=(".json",)),
        uploader=uploader,
        file_store=file_store,
        heartbeat_buffer=buffer,
        heartbeat_service=heartbeat_service,
        chain_planner=chain_planner,
        heartbeat_url="http://relay.test/heartbeat",
        input_poll_attempts=2,
        input_poll_delay=0.0,
    )
    worker = AsyncWorker(queue=queue, runner=runner, store=store, poll_interval=0.05)
    job_service = JobService(store, queue, file_store)

    async def drain() -> None:
        """Process queued requests one by one until the queue is empty."""
        while queue.get_queue_length():
            request = await queue.dequeue()
            for item in await worker.process(request):
                await queue.enqueue(item)

    return SimpleNamespace(
        queue=queue,
        store=store,
        buffer=buffer,
        heartbeat_service=heartbeat_service,
        file_store=file_store,
        uploader=uploader,
        chain_planner=chain_planner,
        runner=runner,
        worker=worker,
        job_service=job_service,
        executor=fake_executor,
        gateway=gateway,
        drain=drain,
    )
