from dataclasses import dataclass

from image_api.config.settings import Settings
from image_api.processor.exceptions import is_permanent
from image_api.queue.models import ProcessingJob


@dataclass(frozen=True)
class RetryPolicy:
    """One policy for the whole job: attempts cap plus exponential backoff."""

    max_attempts: int = 3
    backoff_base_seconds: float = 2.0
    backoff_max_seconds: float = 60.0
    in_flight_delay_seconds: float = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_job_attempts,
            backoff_base_seconds=settings.retry_backoff_base_seconds,
            backoff_max_seconds=settings.retry_backoff_max_seconds,
            in_flight_delay_seconds=settings.claim_stale_after_seconds,
        )

    def is_final(self, job: ProcessingJob, exc: BaseException) -> bool:
        """True when the job must be dead-lettered instead of redelivered."""
        return is_permanent(exc) or job.attempt_number >= self.max_attempts

    def is_exhausted(self, job: ProcessingJob) -> bool:
        """True for a delivery past the cap, left over from unsettled attempts."""
        return job.attempt_number > self.max_attempts

    def backoff_seconds(self, attempt_number: int) -> float:
        """Delay before the attempt following ``attempt_number``."""
        delay = self.backoff_base_seconds * 2 ** max(attempt_number - 1, 0)
        return min(delay, self.backoff_max_seconds)
