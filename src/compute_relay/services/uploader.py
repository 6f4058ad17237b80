"""Delivery of result artifacts to the upload gateway."""
import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional
import httpx
from compute_relay.observability.metrics import record_upload_attempt
from compute_relay.services.retry_service import RetryService
from compute_relay.worker.models import RunOutcome

logger = logging.getLogger(__name__)

DIGEST_HEADER = "Digest"


class ResultUploader:
    """
    PUTs a result file to the gateway with a bearer token and an integrity header.

    Classification of each attempt:
    - 2xx: delivered
    - >=500, timeout, network error: transient, retried with linear backoff
      up to max_attempts, then reported retry-eligible to the caller
    - any other status: permanent rejection, never retried
    """

    def __init__(
        self,
        max_attempts: int = 3,
        retry_delay_seconds: float = 2.0,
        timeout_seconds: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_service: Optional[RetryService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize uploader.

        Args:
            max_attempts: Attempts per upload call
            retry_delay_seconds: Backoff unit; attempt n waits n * unit
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
            retry_service: Backoff calculator
            sleep: Coroutine used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self.transport = transport
        self.retry_service = retry_service or RetryService()
        self._sleep = sleep

    async def upload(self, file_path: Path, url: str, token: Optional[str]) -> RunOutcome:
        """
        Upload a result file.

        Args:
            file_path: Result artifact
            url: Gateway destination
            token: Bearer credential

        Returns:
            RunOutcome: Success, transient (retry-eligible) or permanent failure
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            return RunOutcome.output_missing(f"Result file not found for upload: {file_path}")

        content = await asyncio.to_thread(file_path.read_bytes)
        checksum = hashlib.sha256(content).hexdigest()
        headers = {
            DIGEST_HEADER: f"sha256={checksum}",
            "Content-Type": "application/octet-stream",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        last_error = "Upload failed"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await client.put(url, content=content, headers=headers)
                except httpx.TimeoutException:
                    record_upload_attempt("network_error")
                    last_error = f"Upload timed out (attempt {attempt}/{self.max_attempts})"
                    logger.warning(f"{last_error}: {file_path.name} -> {url}")
                except httpx.TransportError as e:
                    record_upload_attempt("network_error")
                    last_error = (
                        f"Upload network error (attempt {attempt}/{self.max_attempts}): {e}"
                    )
                    logger.warning(f"{last_error}: {file_path.name} -> {url}")
                else:
                    if response.is_success:
                        record_upload_attempt("success")
                        logger.info(
                            f"Uploaded {file_path.name} to {url} "
                            f"(HTTP {response.status_code}, attempt {attempt})"
                        )
                        return RunOutcome.succeeded()

                    if response.status_code < 500:
                        record_upload_attempt("rejected")
                        message = (
                            f"Upload rejected with HTTP {response.status_code}: "
                            f"{_response_excerpt(response)}"
                        )
                        logger.error(f"{message} ({file_path.name} -> {url})")
                        return RunOutcome.upload_rejected(message)

                    record_upload_attempt("server_error")
                    last_error = (
                        f"Upload failed with HTTP {response.status_code} "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                    logger.warning(f"{last_error}: {file_path.name} -> {url}")

                if attempt < self.max_attempts:
                    await self._sleep(
                        self.retry_service.upload_backoff_delay(attempt, self.retry_delay_seconds)
                    )

        return RunOutcome.upload_transient(last_error)


def _response_excerpt(response: httpx.Response, limit: int = 200) -> str:
    text = response.text.strip()
    return text[:limit] if text else response.reason_phrase
