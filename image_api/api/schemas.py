from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from image_api.database.models import ImagePage, ImageRecord


class ImageUpdate(BaseModel):
    """Body of PATCH /images/{id}. Only the fields sent are changed."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    tags: list[str] | None = None
    status: Literal["active", "archived"] | None = None


def image_to_dict(record: ImageRecord, include_metadata: bool = True) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": record.id,
        "original_filename": record.original_filename,
        "mime_type": record.mime_type,
        "file_size_bytes": record.file_size_bytes,
        "uploaded_by": record.uploaded_by,
        "title": record.title,
        "description": record.description,
        "tags": record.tags,
        "width": record.width,
        "height": record.height,
        "status": record.status.value,
        "metadata_status": record.metadata_status.value,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "deleted_at": record.deleted_at,
    }
    if include_metadata:
        body.update(
            {
                "exif_data": record.exif,
                "iptc_data": record.iptc,
                "c2pa_data": record.c2pa,
                "c2pa_verified": record.c2pa_verified,
                "c2pa_signature_valid": record.c2pa_signature_valid,
                "c2pa_issuer": record.c2pa_issuer,
                "metadata_attempts": record.metadata_attempts,
                "metadata_error": record.metadata_error,
                "metadata_provenance": record.metadata_provenance,
            }
        )
    return body


def page_to_dict(page: ImagePage) -> dict[str, Any]:
    return {
        "items": [image_to_dict(record, include_metadata=False) for record in page.items],
        "total": page.total,
        "page": page.page,
        "limit": page.limit,
    }
