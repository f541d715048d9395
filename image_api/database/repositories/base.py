from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from typing import Any

from image_api.database.models import ImageFilter, ImagePage, ImageRecord, MetadataStatus


class BaseImageRepository(ABC):
    """Contract for the keyed image record store."""

    @abstractmethod
    def insert(self, record: ImageRecord) -> ImageRecord:
        """Insert a new record and return it with timestamps populated.

        Raises:
            DuplicateImageError: if a record with the same id exists.
        """

    @abstractmethod
    def find_by_id(self, image_id: str) -> ImageRecord | None:
        """Point lookup. Soft-deleted records are returned too."""

    @abstractmethod
    def conditional_update(
        self,
        image_id: str,
        expected: Collection[MetadataStatus],
        new_status: MetadataStatus,
        fields: Mapping[str, Any] | None = None,
        stale_after_seconds: float | None = None,
    ) -> bool:
        """Compare-and-set on ``metadata_status``.

        Moves the record to ``new_status`` and writes ``fields`` only if its
        current status is one of ``expected``. With ``stale_after_seconds``,
        a record claimed more than that many seconds ago and still in
        ``processing`` also matches. Moving to ``processing`` stamps
        ``claimed_at``.

        Returns:
            False if the record is missing or its status did not match.
        """

    @abstractmethod
    def list_by_filter(self, image_filter: ImageFilter) -> ImagePage:
        """Filtered, sorted, paginated listing."""

    @abstractmethod
    def update_fields(self, image_id: str, fields: Mapping[str, Any]) -> ImageRecord | None:
        """Unconditionally write descriptive/lifecycle fields.

        Returns:
            The updated record, or None if it does not exist.
        """

    @abstractmethod
    def delete(self, image_id: str) -> bool:
        """Permanently remove the record. Returns False if it did not exist."""
