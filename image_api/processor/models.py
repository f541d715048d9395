from dataclasses import dataclass
from enum import Enum
from typing import Any

from image_api.extraction.models import ExtractionOutcome


class JobOutcome(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    IN_FLIGHT = "in_flight"
    FAILED = "failed"


@dataclass(frozen=True)
class AggregateExtractionResult:
    """Everything one aggregation produced, ready to merge into ImageRecord."""

    exif: ExtractionOutcome
    iptc: ExtractionOutcome
    c2pa: ExtractionOutcome
    width: int | None = None
    height: int | None = None
    c2pa_verified: bool = False
    c2pa_signature_valid: bool | None = None
    c2pa_issuer: str | None = None

    @property
    def outcomes(self) -> tuple[ExtractionOutcome, ExtractionOutcome, ExtractionOutcome]:
        return (self.exif, self.iptc, self.c2pa)

    def record_fields(self) -> dict[str, Any]:
        """Columns to write on success. Absent or failed kinds are written as None."""
        return {
            "width": self.width,
            "height": self.height,
            "exif": self.exif.value,
            "iptc": self.iptc.value,
            "c2pa": self.c2pa.value,
            "c2pa_verified": self.c2pa_verified,
            "c2pa_signature_valid": self.c2pa_signature_valid,
            "c2pa_issuer": self.c2pa_issuer,
            "metadata_provenance": {
                outcome.kind.value: outcome.provenance() for outcome in self.outcomes
            },
        }
