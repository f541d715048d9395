import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import UTC, datetime
from typing import Any, ClassVar

from image_api.extraction.exceptions import ExtractionError, ExtractionErrorKind
from image_api.extraction.models import ExtractionOutcome, MetadataKind
from image_api.logging.logger import Log


class BaseExtractor(ABC):
    """Contract for all metadata extraction adapters.

    ``extract`` never raises: every failure becomes an ``ExtractionOutcome``
    carrying an ``ExtractionError``. The work runs on a private thread so the
    time budget holds even when a codec library hangs.
    """

    kind: ClassVar[MetadataKind]
    name: ClassVar[str]

    def __init__(self, timeout_seconds: float = 5.0) -> None:
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def extract(self, data: bytes) -> ExtractionOutcome:
        """Extract one metadata kind from raw image bytes."""
        extracted_at = datetime.now(UTC)
        started = time.perf_counter()
        value: dict[str, Any] | None = None
        error: ExtractionError | None = None

        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"extract-{self.kind.value}"
        )
        future = executor.submit(self._extract, data)
        try:
            value = future.result(timeout=self._timeout_seconds)
        except FuturesTimeoutError:
            error = ExtractionError(
                ExtractionErrorKind.TIMEOUT,
                f"{self.name} exceeded {self._timeout_seconds}s time budget",
            )
        except ExtractionError as exc:
            error = exc
        except Exception as exc:  # noqa: BLE001
            error = ExtractionError(
                ExtractionErrorKind.MALFORMED, f"{self.name} extraction failed: {exc}"
            )
        finally:
            # A timed-out call keeps its thread; it is abandoned, not awaited.
            executor.shutdown(wait=False, cancel_futures=True)

        duration_ms = (time.perf_counter() - started) * 1000
        if error is not None:
            Log.warning(f"{self.kind.value} extraction failed ({error.kind.value}): {error}")
        return ExtractionOutcome(
            kind=self.kind,
            extractor=self.name,
            extracted_at=extracted_at,
            value=value,
            error=error,
            duration_ms=duration_ms,
        )

    @abstractmethod
    def _extract(self, data: bytes) -> dict[str, Any] | None:
        """Read this metadata kind from image bytes.

        Args:
            data: Raw image file content. Must not be retained.

        Returns:
            JSON-ready dict, or None when the asset carries no such metadata.

        Raises:
            ExtractionError: MALFORMED or UNSUPPORTED on failure.
        """
