class IngestionError(Exception):
    """Base exception for request-level errors on the ingestion side.

    Subclasses set ``status_code``, ``error_code`` and a default ``message``;
    the HTTP layer turns them into ``{"error_code", "message"}`` responses.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
        super().__init__(self.message)


# --- upload validation ---


class UploadValidationError(IngestionError):
    status_code = 400
    error_code = "INVALID_UPLOAD"
    message = "The upload is not a valid image"


class EmptyUploadError(UploadValidationError):
    error_code = "EMPTY_UPLOAD"
    message = "The uploaded file is empty"


class FileTooLargeError(UploadValidationError):
    status_code = 413
    error_code = "FILE_TOO_LARGE"
    message = "The uploaded file exceeds the size limit"


class UnsupportedMediaTypeError(UploadValidationError):
    status_code = 415
    error_code = "UNSUPPORTED_MEDIA_TYPE"
    message = "The uploaded file type is not supported"


# --- records ---


class ImageNotFoundError(IngestionError):
    status_code = 404
    error_code = "IMAGE_NOT_FOUND"
    message = "Image not found"


class InvalidUpdateError(IngestionError):
    status_code = 400
    error_code = "INVALID_UPDATE"
    message = "The requested update is not allowed"


class ImageDeletedError(IngestionError):
    status_code = 409
    error_code = "IMAGE_DELETED"
    message = "The image has been deleted"


class InvalidQueryError(IngestionError):
    status_code = 400
    error_code = "INVALID_QUERY"
    message = "The list query is not valid"
