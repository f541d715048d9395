import copy
import threading
from collections.abc import Collection, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from image_api.database.exceptions import DuplicateImageError
from image_api.database.models import (
    DESCRIPTIVE_FIELDS,
    EXTRACTED_FIELDS,
    ImageFilter,
    ImagePage,
    ImageRecord,
    LifecycleStatus,
    MetadataStatus,
)
from image_api.database.repositories.base import BaseImageRepository

_CONDITIONAL_FIELDS = frozenset(EXTRACTED_FIELDS) | {"metadata_attempts", "metadata_error"}
_UPDATABLE_FIELDS = frozenset(DESCRIPTIVE_FIELDS)


def _check_columns(fields: Mapping[str, Any], allowed: frozenset[str]) -> None:
    for column in fields:
        if column not in allowed:
            raise ValueError(f"Column '{column}' cannot be written here")


class InMemoryImageRepository(BaseImageRepository):
    """Process-local record store for tests and single-process deployments.

    A single lock serializes writes, so ``conditional_update`` is an atomic
    compare-and-set. Records are copied in and out.
    """

    def __init__(self) -> None:
        self._records: dict[str, ImageRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: ImageRecord) -> ImageRecord:
        now = datetime.now(UTC)
        with self._lock:
            if record.id in self._records:
                raise DuplicateImageError(f"Image {record.id} already exists")
            record.created_at = record.created_at or now
            record.updated_at = now
            self._records[record.id] = copy.deepcopy(record)
        return record

    def find_by_id(self, image_id: str) -> ImageRecord | None:
        with self._lock:
            record = self._records.get(image_id)
            return copy.deepcopy(record) if record is not None else None

    def conditional_update(
        self,
        image_id: str,
        expected: Collection[MetadataStatus],
        new_status: MetadataStatus,
        fields: Mapping[str, Any] | None = None,
        stale_after_seconds: float | None = None,
    ) -> bool:
        fields = fields or {}
        _check_columns(fields, _CONDITIONAL_FIELDS)
        now = datetime.now(UTC)
        with self._lock:
            record = self._records.get(image_id)
            if record is None:
                return False
            matches = record.metadata_status in expected
            if not matches and stale_after_seconds is not None:
                claimed_at = record.claimed_at or record.updated_at
                matches = (
                    record.metadata_status is MetadataStatus.PROCESSING
                    and claimed_at is not None
                    and claimed_at < now - timedelta(seconds=stale_after_seconds)
                )
            if not matches:
                return False
            for column, value in fields.items():
                setattr(record, column, copy.deepcopy(value))
            if new_status is MetadataStatus.PROCESSING:
                record.claimed_at = now
            record.metadata_status = new_status
            record.updated_at = now
        return True

    def list_by_filter(self, image_filter: ImageFilter) -> ImagePage:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values()]

        def matches(record: ImageRecord) -> bool:
            if image_filter.status is None:
                if record.status is LifecycleStatus.DELETED:
                    return False
            elif record.status is not image_filter.status:
                return False
            if (
                image_filter.metadata_status is not None
                and record.metadata_status is not image_filter.metadata_status
            ):
                return False
            if (
                image_filter.uploaded_by is not None
                and record.uploaded_by != image_filter.uploaded_by
            ):
                return False
            if record.created_at is None:
                return False
            created_from, created_to = image_filter.created_from, image_filter.created_to
            if created_from is not None and record.created_at < created_from:
                return False
            if created_to is not None and record.created_at >= created_to:
                return False
            return True

        selected = [r for r in records if matches(r)]
        selected.sort(key=lambda r: r.id)
        selected.sort(
            key=lambda r: getattr(r, image_filter.sort),
            reverse=image_filter.descending,
        )
        start = image_filter.offset
        return ImagePage(
            items=selected[start : start + image_filter.limit],
            total=len(selected),
            page=image_filter.page,
            limit=image_filter.limit,
        )

    def update_fields(self, image_id: str, fields: Mapping[str, Any]) -> ImageRecord | None:
        _check_columns(fields, _UPDATABLE_FIELDS)
        with self._lock:
            record = self._records.get(image_id)
            if record is None:
                return None
            for column, value in fields.items():
                setattr(record, column, copy.deepcopy(value))
            if fields:
                record.updated_at = datetime.now(UTC)
            return copy.deepcopy(record)

    def delete(self, image_id: str) -> bool:
        with self._lock:
            return self._records.pop(image_id, None) is not None
