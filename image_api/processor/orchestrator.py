from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

from image_api.config.settings import Settings
from image_api.database.models import EXTRACTED_FIELDS, ImageRecord, MetadataStatus
from image_api.database.repositories.base import BaseImageRepository
from image_api.logging.logger import Log
from image_api.processor.aggregator import MetadataAggregator
from image_api.processor.exceptions import InvalidStatusTransitionError, JobTimeoutError
from image_api.processor.models import AggregateExtractionResult, JobOutcome
from image_api.processor.status import StatusEvent, sources, target, transition
from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob
from image_api.storage.base import BaseBlobStore

_MAX_ERROR_LENGTH = 1000


class PipelineOrchestrator:
    """Drives one job: claim -> fetch -> aggregate -> write result.

    Sole writer of metadata_status and the extracted metadata columns.
    """

    def __init__(
        self,
        records: BaseImageRepository,
        blob_store: BaseBlobStore,
        queue: BaseJobQueue,
        aggregator: MetadataAggregator,
        settings: Settings,
    ) -> None:
        self._records = records
        self._blob_store = blob_store
        self._queue = queue
        self._aggregator = aggregator
        self._settings = settings

    def process_one(self, job: ProcessingJob) -> JobOutcome:
        """Run one attempt of ``job``.

        Returns SKIPPED when the record is gone or already processed, and
        IN_FLIGHT while another worker holds a live claim on it.

        Raises:
            AggregateFailure: fetch + aggregation produced no usable result.
            StoreError: the blob or record store failed.
        """
        if not self._claim(job, {"metadata_attempts": job.attempt_number}):
            return self._unclaimed(job)
        Log.info(f"Claimed image {job.image_id} (attempt {job.attempt_number})")

        result = self._fetch_and_aggregate_with_timeout(job)

        fields = {**result.record_fields(), "metadata_error": None}
        written = self._records.conditional_update(
            job.image_id,
            sources(StatusEvent.SUCCEED),
            target(StatusEvent.SUCCEED),
            fields,
        )
        if not written:
            Log.warning(f"Image {job.image_id} changed while processing; result discarded")
            return JobOutcome.SKIPPED
        Log.info(
            f"Image {job.image_id} completed: "
            + ", ".join(f"{o.kind.value}={o.state}" for o in result.outcomes)
        )
        return JobOutcome.COMPLETED

    def record_failure(self, job: ProcessingJob, exc: BaseException, final: bool) -> bool:
        """Move a claimed record to failed.

        On the final attempt the extracted columns are cleared so a failed
        record never shows partial metadata.
        """
        fields: dict[str, object] = {"metadata_error": str(exc)[:_MAX_ERROR_LENGTH]}
        if final:
            fields.update({column: None for column in EXTRACTED_FIELDS})
        return self._records.conditional_update(
            job.image_id,
            sources(StatusEvent.FAIL),
            target(StatusEvent.FAIL),
            fields,
        )

    def request_reextraction(self, image_id: str) -> ImageRecord | None:
        """Operator action: reset a completed or failed record and enqueue a new job.

        A pending record is only re-enqueued. Returns None if the record
        does not exist.

        Raises:
            InvalidStatusTransitionError: while processing, or if the status
                changed concurrently.
        """
        record = self._records.find_by_id(image_id)
        if record is None:
            return None

        if record.metadata_status is not MetadataStatus.PENDING:
            event = (
                StatusEvent.RETRY
                if record.metadata_status is MetadataStatus.FAILED
                else StatusEvent.REEXTRACT
            )
            new_status = transition(record.metadata_status, event)
            if not self._records.conditional_update(
                image_id, [record.metadata_status], new_status, {"metadata_attempts": 0}
            ):
                raise InvalidStatusTransitionError(
                    f"Image {image_id} changed status concurrently; retry the request"
                )

        self._queue.enqueue(ProcessingJob(image_id=image_id, blob_ref=record.blob_ref))
        Log.info(f"Re-extraction requested for image {image_id}")
        return self._records.find_by_id(image_id)

    def abandon(self, job: ProcessingJob, exc: BaseException) -> JobOutcome:
        """Fail a job whose deliveries ran out without being settled.

        The record is claimed first, so a live claim held by another worker
        is left alone. Returns FAILED once the record has been failed.
        """
        if not self._claim(job):
            return self._unclaimed(job)
        self.record_failure(job, exc, final=True)
        Log.error(f"Image {job.image_id} failed: {exc}")
        return JobOutcome.FAILED

    def _claim(self, job: ProcessingJob, fields: dict[str, object] | None = None) -> bool:
        return self._records.conditional_update(
            job.image_id,
            sources(StatusEvent.CLAIM),
            target(StatusEvent.CLAIM),
            fields,
            stale_after_seconds=self._settings.claim_stale_after_seconds,
        )

    def _unclaimed(self, job: ProcessingJob) -> JobOutcome:
        record = self._records.find_by_id(job.image_id)
        if record is not None and record.metadata_status is MetadataStatus.PROCESSING:
            Log.info(f"Image {job.image_id} is claimed by another worker; deferring")
            return JobOutcome.IN_FLIGHT
        Log.info(f"Image {job.image_id} not claimable (missing or done); skipping")
        return JobOutcome.SKIPPED

    def _fetch_and_aggregate_with_timeout(self, job: ProcessingJob) -> AggregateExtractionResult:
        timeout = self._settings.job_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="job")
        future = executor.submit(self._fetch_and_aggregate, job.blob_ref)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError as exc:
            raise JobTimeoutError(
                f"Image {job.image_id} exceeded the {timeout}s job time budget"
            ) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _fetch_and_aggregate(self, blob_ref: str) -> AggregateExtractionResult:
        data = self._blob_store.get(blob_ref)
        try:
            return self._aggregator.aggregate(data)
        finally:
            del data
