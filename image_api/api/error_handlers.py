"""Exception handlers registered on the FastAPI app.

Every handled error becomes ``{"error_code": ..., "message": ...}`` JSON.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from image_api.ingestion.exceptions import IngestionError
from image_api.logging.logger import Log
from image_api.processor.exceptions import InvalidStatusTransitionError
from image_api.storage.exceptions import BlobNotFoundError, StoreError


def _error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message},
    )


async def ingestion_exception_handler(request: Request, exc: IngestionError) -> JSONResponse:
    return _error_response(exc.status_code, exc.error_code, exc.message)


async def status_transition_handler(
    request: Request, exc: InvalidStatusTransitionError
) -> JSONResponse:
    return _error_response(409, "INVALID_STATUS_TRANSITION", str(exc))


async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    if isinstance(exc, BlobNotFoundError):
        return _error_response(404, "CONTENT_NOT_FOUND", "Stored image content is missing")
    Log.error(f"{request.method} {request.url.path} failed on a store: {exc}")
    if exc.transient:
        return _error_response(503, "STORE_UNAVAILABLE", "Storage is temporarily unavailable")
    return _error_response(500, "STORE_ERROR", "Storage error")
