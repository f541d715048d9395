from image_api.storage.exceptions import StoreError


class ProcessorError(Exception):
    """Base exception for all pipeline-related errors."""


class AggregateFailure(ProcessorError):
    """A job-level failure: the job as a whole produced no usable result.

    Escalated to the retry policy. ``permanent`` failures are dead-lettered
    without further attempts.
    """

    permanent: bool = False

    def __init__(self, message: str, permanent: bool | None = None) -> None:
        super().__init__(message)
        if permanent is not None:
            self.permanent = permanent


class AllExtractorsFailedError(AggregateFailure):
    """Raised when every extractor returned an error for the same asset."""


class JobTimeoutError(AggregateFailure):
    """Raised when fetch plus aggregation exceeds the per-job time budget."""


class AttemptsExhaustedError(AggregateFailure):
    """Raised when a job keeps being redelivered without ever settling."""

    permanent = True


class InvalidStatusTransitionError(ProcessorError):
    """Raised for a metadata_status change the state machine does not allow."""


def is_permanent(exc: BaseException) -> bool:
    """Whether retrying the job after ``exc`` cannot help."""
    if isinstance(exc, AggregateFailure):
        return exc.permanent
    if isinstance(exc, StoreError):
        return not exc.transient
    return False
