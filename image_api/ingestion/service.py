import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

from image_api.config.settings import Settings
from image_api.database.models import ImageFilter, ImagePage, ImageRecord, LifecycleStatus
from image_api.database.repositories.base import BaseImageRepository
from image_api.ingestion.exceptions import (
    ImageDeletedError,
    ImageNotFoundError,
    InvalidUpdateError,
)
from image_api.ingestion.validator import UploadValidator
from image_api.logging.logger import Log
from image_api.processor.orchestrator import PipelineOrchestrator
from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob
from image_api.storage.base import BaseBlobStore
from image_api.storage.exceptions import BlobNotFoundError, StoreError

EDITABLE_FIELDS = frozenset({"title", "description", "tags", "status"})
_EDITABLE_STATUSES = frozenset({LifecycleStatus.ACTIVE, LifecycleStatus.ARCHIVED})
_MAX_FILENAME_LENGTH = 255


def _clean_filename(filename: str | None) -> str:
    name = PurePath(filename or "").name.strip()
    return name[:_MAX_FILENAME_LENGTH] or "unknown"


class ImageService:
    """Ingestion side of the service: uploads, reads, edits and deletes.

    Owns record creation and the lifecycle fields; metadata processing is
    left to the pipeline.
    """

    def __init__(
        self,
        records: BaseImageRepository,
        blob_store: BaseBlobStore,
        queue: BaseJobQueue,
        validator: UploadValidator,
        orchestrator: PipelineOrchestrator,
    ) -> None:
        self._records = records
        self._blob_store = blob_store
        self._queue = queue
        self._validator = validator
        self._orchestrator = orchestrator

    def ingest(
        self,
        data: bytes,
        filename: str | None,
        uploaded_by: str | None = None,
    ) -> ImageRecord:
        """Store the upload and schedule extraction without waiting for it.

        Order: blob -> record -> job, so a record never points at a missing
        blob and a job never refers to a missing record.
        """
        mime_type = self._validator.validate(data)

        blob_ref = self._blob_store.put(data)
        record = ImageRecord(
            id=uuid.uuid4().hex,
            blob_ref=blob_ref,
            original_filename=_clean_filename(filename),
            mime_type=mime_type,
            file_size_bytes=len(data),
            uploaded_by=uploaded_by,
        )
        try:
            record = self._records.insert(record)
        except StoreError:
            self._blob_store.delete(blob_ref)
            raise

        self._queue.enqueue(ProcessingJob(image_id=record.id, blob_ref=blob_ref))
        Log.info(
            f"Ingested image {record.id} ({record.mime_type}, {record.file_size_bytes} bytes)"
        )
        return record

    def get(self, image_id: str) -> ImageRecord:
        record = self._records.find_by_id(image_id)
        if record is None:
            raise ImageNotFoundError(f"Image {image_id} not found")
        return record

    def list_images(self, image_filter: ImageFilter) -> ImagePage:
        return self._records.list_by_filter(image_filter)

    def update(self, image_id: str, changes: Mapping[str, Any]) -> ImageRecord:
        """Edit descriptive fields or move between active and archived."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidUpdateError(f"Fields cannot be updated: {sorted(unknown)}")
        record = self.get(image_id)
        if record.status is LifecycleStatus.DELETED:
            raise ImageDeletedError(f"Image {image_id} has been deleted")

        fields = dict(changes)
        if "status" in fields:
            try:
                status = LifecycleStatus(fields["status"])
            except ValueError as exc:
                raise InvalidUpdateError(f"Unknown status {fields['status']!r}") from exc
            if status not in _EDITABLE_STATUSES:
                raise InvalidUpdateError("Use DELETE to delete an image")
            fields["status"] = status
        if "tags" in fields and fields["tags"] is None:
            fields["tags"] = []

        updated = self._records.update_fields(image_id, fields)
        if updated is None:
            raise ImageNotFoundError(f"Image {image_id} not found")
        return updated

    def delete(self, image_id: str, hard: bool = False) -> None:
        """Soft delete by default; hard delete removes the record, then the blob."""
        record = self.get(image_id)
        if hard:
            self._records.delete(image_id)
            try:
                self._blob_store.delete(record.blob_ref)
            except BlobNotFoundError:
                Log.warning(f"Blob for image {image_id} was already gone")
            Log.info(f"Hard-deleted image {image_id}")
            return
        if record.status is LifecycleStatus.DELETED:
            return
        self._records.update_fields(
            image_id,
            {"status": LifecycleStatus.DELETED, "deleted_at": datetime.now(UTC)},
        )
        Log.info(f"Soft-deleted image {image_id}")

    def request_reextraction(self, image_id: str) -> ImageRecord:
        record = self.get(image_id)
        if record.status is LifecycleStatus.DELETED:
            raise ImageDeletedError(f"Image {image_id} has been deleted")
        updated = self._orchestrator.request_reextraction(image_id)
        if updated is None:
            raise ImageNotFoundError(f"Image {image_id} not found")
        return updated

    def c2pa(self, image_id: str) -> dict[str, Any]:
        """Content credentials view of the record."""
        record = self.get(image_id)
        return {
            "id": record.id,
            "metadata_status": record.metadata_status.value,
            "c2pa_verified": record.c2pa_verified,
            "c2pa_signature_valid": record.c2pa_signature_valid,
            "c2pa_issuer": record.c2pa_issuer,
            "c2pa_data": record.c2pa,
        }

    def status(self, image_id: str) -> dict[str, Any]:
        record = self.get(image_id)
        return {
            "id": record.id,
            "status": record.status.value,
            "metadata_status": record.metadata_status.value,
            "metadata_attempts": record.metadata_attempts,
            "metadata_error": record.metadata_error,
            "updated_at": record.updated_at,
        }

    def variants(self, image_id: str) -> list[dict[str, Any]]:
        """Renditions available for the image. Only the original is stored."""
        record = self.get(image_id)
        return [
            {
                "name": "original",
                "mime_type": record.mime_type,
                "width": record.width,
                "height": record.height,
                "file_size_bytes": record.file_size_bytes,
                "url": f"/images/{record.id}/content",
            }
        ]

    def open_content(self, image_id: str) -> tuple[ImageRecord, bytes]:
        record = self.get(image_id)
        if record.status is LifecycleStatus.DELETED:
            raise ImageDeletedError(f"Image {image_id} has been deleted")
        return record, self._blob_store.get(record.blob_ref)


def build_image_service(
    settings: Settings,
    records: BaseImageRepository,
    blob_store: BaseBlobStore,
    queue: BaseJobQueue,
    orchestrator: PipelineOrchestrator,
) -> ImageService:
    validator = UploadValidator(settings.max_upload_bytes, settings.allowed_mime_types)
    return ImageService(
        records=records,
        blob_store=blob_store,
        queue=queue,
        validator=validator,
        orchestrator=orchestrator,
    )
