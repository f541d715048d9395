from enum import Enum


class ExtractionErrorKind(str, Enum):
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"
    TIMEOUT = "timeout"


class ExtractionError(Exception):
    """Raised by an extractor when one metadata kind cannot be read.

    Never escalates to a job failure; the aggregator records it per kind.
    """

    def __init__(self, kind: ExtractionErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
