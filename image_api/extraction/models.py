from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from image_api.extraction.exceptions import ExtractionError


class MetadataKind(str, Enum):
    EXIF = "exif"
    IPTC = "iptc"
    C2PA = "c2pa"


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of one extractor run: a value, an explicit absence, or an error."""

    kind: MetadataKind
    extractor: str
    extracted_at: datetime
    value: dict[str, Any] | None = None
    error: ExtractionError | None = None
    duration_ms: float = 0.0

    @property
    def present(self) -> bool:
        return self.value is not None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def state(self) -> str:
        if self.error is not None:
            return "error"
        return "present" if self.value is not None else "absent"

    def provenance(self) -> dict[str, Any]:
        """JSON-ready provenance entry persisted next to the extracted value."""
        entry: dict[str, Any] = {
            "state": self.state,
            "extractor": self.extractor,
            "extracted_at": self.extracted_at.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.error is not None:
            entry["error_kind"] = self.error.kind.value
            entry["reason"] = self.error.message
        return entry
