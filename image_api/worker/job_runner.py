from image_api.logging.logger import Log
from image_api.processor.exceptions import AttemptsExhaustedError
from image_api.processor.models import JobOutcome
from image_api.processor.orchestrator import PipelineOrchestrator
from image_api.processor.retry_policy import RetryPolicy
from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob
from image_api.storage.exceptions import StoreError


class JobRunner:
    """Run one job, catch exceptions, and apply retry logic."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        queue: BaseJobQueue,
        retry_policy: RetryPolicy,
    ) -> None:
        self._orchestrator = orchestrator
        self._queue = queue
        self._retry_policy = retry_policy

    def run(self, job: ProcessingJob) -> None:
        """Execute a single job and settle its delivery exactly once."""
        Log.info(f"Running job for image {job.image_id} (attempt {job.attempt_number})")
        if self._retry_policy.is_exhausted(job):
            self._abandon(job)
            return
        try:
            outcome = self._orchestrator.process_one(job)
        except Exception as exc:
            self._handle_failure(job, exc)
            return
        if outcome is JobOutcome.IN_FLIGHT:
            self._defer(job)
            return
        self._queue.ack(job)
        Log.info(f"Job for image {job.image_id} acknowledged ({outcome.value})")

    def _defer(self, job: ProcessingJob) -> None:
        """Hold the job back until the other claim settles or goes stale."""
        delay = self._retry_policy.in_flight_delay_seconds
        self._queue.redeliver(job, delay, count_attempt=False)
        Log.info(f"Job for image {job.image_id} deferred for {delay:.1f}s")

    def _abandon(self, job: ProcessingJob) -> None:
        """Dead-letter a delivery that outlived the attempts cap without settling."""
        exc = AttemptsExhaustedError(
            f"Image {job.image_id} was not settled within "
            f"{self._retry_policy.max_attempts} attempt(s)"
        )
        try:
            outcome = self._orchestrator.abandon(job, exc)
        except StoreError as store_exc:
            Log.error(f"Could not record failure for image {job.image_id}: {store_exc}")
            delay = self._retry_policy.backoff_seconds(job.attempt_number)
            self._queue.redeliver(job, delay, count_attempt=False)
            return

        if outcome is JobOutcome.IN_FLIGHT:
            self._defer(job)
        elif outcome is JobOutcome.FAILED:
            self._queue.dead_letter(job, str(exc))
            Log.error(
                f"Job for image {job.image_id} dead-lettered after "
                f"{self._retry_policy.max_attempts} attempt(s)"
            )
        else:
            self._queue.ack(job)
            Log.info(f"Job for image {job.image_id} acknowledged ({outcome.value})")

    def _handle_failure(self, job: ProcessingJob, exc: Exception) -> None:
        """Mark the record failed, then redeliver or dead-letter the job."""
        Log.error(f"Job for image {job.image_id} failed: {exc}")
        final = self._retry_policy.is_final(job, exc)
        try:
            self._orchestrator.record_failure(job, exc, final=final)
        except StoreError as store_exc:
            Log.error(f"Could not record failure for image {job.image_id}: {store_exc}")

        if final:
            self._queue.dead_letter(job, str(exc))
            Log.error(
                f"Job for image {job.image_id} dead-lettered after "
                f"{job.attempt_number} attempt(s)"
            )
        else:
            delay = self._retry_policy.backoff_seconds(job.attempt_number)
            self._queue.redeliver(job, delay)
            Log.warning(
                f"Job for image {job.image_id} will be retried in {delay:.1f}s "
                f"(attempt {job.attempt_number + 1} of {self._retry_policy.max_attempts})"
            )
