"""Retry service for classifying finished attempts and upload backoff."""
from compute_relay.core.enums import JobStatus, RetryDecision


class RetryService:
    """
    Decides what happens after a job attempt.

    The job-level budget (retry_count / max_retries on the record) and the
    upload attempt budget (inside the uploader) are separate ceilings: an
    exhausted upload budget surfaces here as one retry-eligible failure.
    """

    def should_retry(self, retry_count: int, max_retries: int) -> bool:
        """
        Check if job should be retried.

        Args:
            retry_count: Current retry attempt number
            max_retries: Maximum retry attempts allowed

        Returns:
            bool: True if should retry, False otherwise
        """
        return retry_count < max_retries

    def decide(
        self,
        status: JobStatus,
        upload_succeeded: bool,
        retry_count: int,
        max_retries: int,
        success: bool,
        retry_eligible: bool,
    ) -> RetryDecision:
        """
        Classify a finished attempt against the freshly read record.

        Args:
            status: Record status after the attempt
            upload_succeeded: Record upload flag after the attempt
            retry_count: Record retry count after the attempt
            max_retries: Record retry ceiling
            success: Whether the attempt succeeded
            retry_eligible: Whether the failure may be retried

        Returns:
            RetryDecision: Action for the worker loop
        """
        if success:
            return RetryDecision.SUCCEEDED

        upload_pending = status == JobStatus.COMPLETED and not upload_succeeded

        if retry_eligible and self.should_retry(retry_count, max_retries):
            if upload_pending:
                return RetryDecision.RETRY_UPLOAD
            return RetryDecision.RETRY_COMPUTE

        # A completed computation is never downgraded because of upload trouble
        if upload_pending:
            return RetryDecision.KEEP_COMPLETED

        return RetryDecision.FAIL

    def upload_backoff_delay(self, attempt: int, base_delay: float) -> float:
        """
        Delay before the next upload attempt.

        Args:
            attempt: 1-based number of the attempt that just failed
            base_delay: Delay unit in seconds

        Returns:
            float: Seconds to wait, growing linearly with the attempt number
        """
        return base_delay * attempt
