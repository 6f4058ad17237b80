"""Prometheus metrics for ComputeRelay."""
from prometheus_client import Counter, Gauge, Histogram, Info


# Job metrics
jobs_submitted_total = Counter(
    'compute_relay_jobs_submitted_total',
    'Total number of jobs submitted',
    ['job_kind']
)

jobs_succeeded_total = Counter(
    'compute_relay_jobs_succeeded_total',
    'Total number of successful job attempts',
    ['job_kind']
)

jobs_failed_total = Counter(
    'compute_relay_jobs_failed_total',
    'Total number of jobs settled as failed',
    ['job_kind']
)

jobs_retrying_total = Counter(
    'compute_relay_jobs_retrying_total',
    'Total number of job retries, by retry mode',
    ['job_kind', 'mode']
)

job_duration_seconds = Histogram(
    'compute_relay_job_duration_seconds',
    'Job attempt duration in seconds',
    ['job_kind', 'status'],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0]
)

jobs_active = Gauge(
    'compute_relay_jobs_active',
    'Number of compute processes currently running'
)

# Queue metrics
queue_length = Gauge(
    'compute_relay_queue_length',
    'Number of job requests in the submission queue',
    ['queue_name']
)

queue_enqueued_total = Counter(
    'compute_relay_queue_enqueued_total',
    'Total number of job requests enqueued',
    ['queue_name']
)

queue_dequeued_total = Counter(
    'compute_relay_queue_dequeued_total',
    'Total number of job requests dequeued',
    ['queue_name']
)

# Upload metrics
upload_attempts_total = Counter(
    'compute_relay_upload_attempts_total',
    'Total number of upload attempts, by result',
    ['result']
)

# Heartbeat metrics
heartbeat_flushes_total = Counter(
    'compute_relay_heartbeat_flushes_total',
    'Total number of heartbeat flushes to the database'
)

follow_up_jobs_total = Counter(
    'compute_relay_follow_up_jobs_total',
    'Total number of chained follow-up jobs submitted'
)

# System info
system_info = Info(
    'compute_relay_system',
    'ComputeRelay system information'
)


def record_job_submitted(job_kind: str) -> None:
    """Record job submission metric."""
    jobs_submitted_total.labels(job_kind=job_kind).inc()


def record_job_succeeded(job_kind: str, duration: float) -> None:
    """Record job success metric."""
    jobs_succeeded_total.labels(job_kind=job_kind).inc()
    job_duration_seconds.labels(job_kind=job_kind, status="success").observe(duration)


def record_job_failed(job_kind: str, duration: float) -> None:
    """Record job failure metric."""
    jobs_failed_total.labels(job_kind=job_kind).inc()
    job_duration_seconds.labels(job_kind=job_kind, status="failed").observe(duration)


def record_job_retrying(job_kind: str, mode: str) -> None:
    """Record job retry metric."""
    jobs_retrying_total.labels(job_kind=job_kind, mode=mode).inc()


def record_queue_enqueue(queue_name: str = "jobs") -> None:
    """Record job request enqueued."""
    queue_enqueued_total.labels(queue_name=queue_name).inc()


def record_queue_dequeue(queue_name: str = "jobs") -> None:
    """Record job request dequeued."""
    queue_dequeued_total.labels(queue_name=queue_name).inc()


def update_queue_length(queue_name: str, length: int) -> None:
    """Set the queue length gauge."""
    queue_length.labels(queue_name=queue_name).set(length)


def record_upload_attempt(result: str) -> None:
    """Record one upload attempt (success, rejected, server_error, network_error)."""
    upload_attempts_total.labels(result=result).inc()


def record_heartbeat_flush() -> None:
    """Record a heartbeat flush."""
    heartbeat_flushes_total.inc()


def record_follow_up_submitted() -> None:
    """Record a chained follow-up job."""
    follow_up_jobs_total.inc()


def init_system_info(version: str) -> None:
    """
    Initialize system information metric.

    Args:
        version: Application version
    """
    system_info.info({
        'version': version,
        'name': 'ComputeRelay'
    })
