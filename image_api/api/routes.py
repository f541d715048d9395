from datetime import datetime
from typing import Literal
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Response, UploadFile

from image_api.api.dependencies import get_image_service, get_settings
from image_api.api.schemas import ImageUpdate, image_to_dict, page_to_dict
from image_api.config.settings import Settings
from image_api.database.models import ImageFilter, LifecycleStatus, MetadataStatus
from image_api.ingestion.exceptions import InvalidQueryError
from image_api.ingestion.service import ImageService

router = APIRouter(prefix="/images", tags=["images"])


@router.post("", status_code=202)
def upload_image(
    file: UploadFile,
    uploaded_by: str | None = Form(default=None),
    service: ImageService = Depends(get_image_service),
    settings: Settings = Depends(get_settings),
):
    # One byte past the limit is enough for the validator to reject it.
    data = file.file.read(settings.max_upload_bytes + 1)
    record = service.ingest(data, file.filename, uploaded_by=uploaded_by)
    body = image_to_dict(record, include_metadata=False)
    # Extraction is already scheduled; clients poll /status for the outcome.
    body["metadata_status"] = MetadataStatus.PROCESSING.value
    return body


@router.get("")
def list_images(
    status: LifecycleStatus | None = None,
    metadata_status: MetadataStatus | None = None,
    uploaded_by: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    sort: str = "created_at",
    order: Literal["asc", "desc"] = "desc",
    page: int = 1,
    limit: int = 20,
    service: ImageService = Depends(get_image_service),
):
    try:
        image_filter = ImageFilter(
            status=status,
            metadata_status=metadata_status,
            uploaded_by=uploaded_by,
            created_from=created_from,
            created_to=created_to,
            sort=sort,
            descending=order == "desc",
            page=page,
            limit=limit,
        )
    except ValueError as exc:
        raise InvalidQueryError(str(exc)) from exc
    return page_to_dict(service.list_images(image_filter))


@router.get("/{image_id}")
def get_image(
    image_id: str,
    include_metadata: bool = True,
    service: ImageService = Depends(get_image_service),
):
    return image_to_dict(service.get(image_id), include_metadata=include_metadata)


@router.patch("/{image_id}")
def update_image(
    image_id: str,
    changes: ImageUpdate,
    service: ImageService = Depends(get_image_service),
):
    record = service.update(image_id, changes.model_dump(exclude_unset=True))
    return image_to_dict(record)


@router.delete("/{image_id}", status_code=204)
def delete_image(
    image_id: str,
    hard_delete: bool = False,
    service: ImageService = Depends(get_image_service),
):
    service.delete(image_id, hard=hard_delete)
    return Response(status_code=204)


@router.get("/{image_id}/c2pa")
def get_c2pa(image_id: str, service: ImageService = Depends(get_image_service)):
    return service.c2pa(image_id)


@router.get("/{image_id}/variants")
def get_variants(image_id: str, service: ImageService = Depends(get_image_service)):
    return {"id": image_id, "variants": service.variants(image_id)}


@router.get("/{image_id}/status")
def get_status(image_id: str, service: ImageService = Depends(get_image_service)):
    return service.status(image_id)


@router.get("/{image_id}/content")
def get_content(image_id: str, service: ImageService = Depends(get_image_service)):
    record, data = service.open_content(image_id)
    disposition = f"inline; filename*=UTF-8''{quote(record.original_filename)}"
    return Response(
        content=data,
        media_type=record.mime_type,
        headers={"Content-Disposition": disposition},
    )


@router.post("/{image_id}/reprocess", status_code=202)
def reprocess_image(image_id: str, service: ImageService = Depends(get_image_service)):
    service.request_reextraction(image_id)
    return service.status(image_id)
