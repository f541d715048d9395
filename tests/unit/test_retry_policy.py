import pytest

from image_api.config.settings import Settings
from image_api.database.exceptions import RecordStoreUnavailableError
from image_api.processor.exceptions import (
    AggregateFailure,
    AllExtractorsFailedError,
    AttemptsExhaustedError,
    JobTimeoutError,
    is_permanent,
)
from image_api.processor.retry_policy import RetryPolicy
from image_api.queue.models import ProcessingJob
from image_api.storage.exceptions import BlobNotFoundError, BlobStoreUnavailableError


def _job(attempt: int) -> ProcessingJob:
    return ProcessingJob(image_id="img", blob_ref="ref", attempt=attempt)


class TestBackoff:
    def test_doubles_per_attempt(self) -> None:
        policy = RetryPolicy(backoff_base_seconds=2.0, backoff_max_seconds=60.0)
        assert [policy.backoff_seconds(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 16.0]

    def test_caps_at_maximum(self) -> None:
        policy = RetryPolicy(backoff_base_seconds=2.0, backoff_max_seconds=10.0)
        assert policy.backoff_seconds(10) == 10.0

    def test_zero_base_means_no_delay(self) -> None:
        policy = RetryPolicy(backoff_base_seconds=0.0)
        assert policy.backoff_seconds(3) == 0.0


class TestIsFinal:
    @pytest.mark.parametrize(("attempt", "final"), [(0, False), (1, False), (2, True), (5, True)])
    def test_transient_failure_final_at_max_attempts(self, attempt: int, final: bool) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.is_final(_job(attempt), AggregateFailure("boom")) is final

    def test_permanent_failure_is_final_on_first_attempt(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.is_final(_job(0), BlobNotFoundError("gone")) is True


class TestIsPermanent:
    def test_all_extractors_failed_permanent_flag(self) -> None:
        assert is_permanent(AllExtractorsFailedError("x", permanent=True)) is True
        assert is_permanent(AllExtractorsFailedError("x", permanent=False)) is False

    def test_job_timeout_is_transient(self) -> None:
        assert is_permanent(JobTimeoutError("slow")) is False

    def test_store_errors_follow_transient_flag(self) -> None:
        assert is_permanent(BlobNotFoundError("gone")) is True
        assert is_permanent(BlobStoreUnavailableError("down")) is False
        assert is_permanent(RecordStoreUnavailableError("down")) is False

    def test_unknown_errors_are_transient(self) -> None:
        assert is_permanent(RuntimeError("?")) is False


class TestIsExhausted:
    @pytest.mark.parametrize(("attempt", "exhausted"), [(0, False), (2, False), (3, True)])
    def test_only_deliveries_past_the_cap(self, attempt: int, exhausted: bool) -> None:
        assert RetryPolicy(max_attempts=3).is_exhausted(_job(attempt)) is exhausted

    def test_attempts_exhausted_is_permanent(self) -> None:
        assert is_permanent(AttemptsExhaustedError("gone")) is True


class TestFromSettings:
    def test_in_flight_delay_follows_claim_staleness(self) -> None:
        policy = RetryPolicy.from_settings(Settings(claim_stale_after_seconds=45.0))
        assert policy.in_flight_delay_seconds == 45.0
