from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class MetadataStatus(str, Enum):
    """Processing state of the deferred metadata extraction."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LifecycleStatus(str, Enum):
    """Lifecycle of the asset itself, independent of metadata processing."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


# Columns written only by the pipeline orchestrator.
EXTRACTED_FIELDS = (
    "width",
    "height",
    "exif",
    "iptc",
    "c2pa",
    "c2pa_verified",
    "c2pa_signature_valid",
    "c2pa_issuer",
    "metadata_provenance",
)

# Columns written only by the ingestion side.
DESCRIPTIVE_FIELDS = ("title", "description", "tags", "status", "deleted_at")

JSON_FIELDS = frozenset({"exif", "iptc", "c2pa", "metadata_provenance", "tags"})


@dataclass
class ImageRecord:
    """Represents a row from the images table."""

    id: str
    blob_ref: str
    original_filename: str
    mime_type: str
    file_size_bytes: int
    uploaded_by: str | None = None
    title: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    width: int | None = None
    height: int | None = None
    exif: dict[str, Any] | None = None
    iptc: dict[str, Any] | None = None
    c2pa: dict[str, Any] | None = None
    c2pa_verified: bool | None = None
    c2pa_signature_valid: bool | None = None
    c2pa_issuer: str | None = None
    metadata_status: MetadataStatus = MetadataStatus.PENDING
    metadata_attempts: int = 0
    metadata_error: str | None = None
    metadata_provenance: dict[str, Any] | None = None
    claimed_at: datetime | None = None
    status: LifecycleStatus = LifecycleStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


SORTABLE_FIELDS = frozenset(
    {"created_at", "updated_at", "file_size_bytes", "original_filename"}
)


@dataclass(frozen=True)
class ImageFilter:
    """Filter, sort and pagination parameters for listing images.

    With ``status`` unset, soft-deleted images are excluded.
    """

    status: LifecycleStatus | None = None
    metadata_status: MetadataStatus | None = None
    uploaded_by: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    sort: str = "created_at"
    descending: bool = True
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.sort not in SORTABLE_FIELDS:
            raise ValueError(
                f"Cannot sort by '{self.sort}'. Choose from: {sorted(SORTABLE_FIELDS)}"
            )
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= 100:
            raise ValueError("limit must be between 1 and 100")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ImagePage:
    """One page of images plus the total count matching the filter."""

    items: list[ImageRecord]
    total: int
    page: int
    limit: int
