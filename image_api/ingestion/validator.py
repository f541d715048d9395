import io
from collections.abc import Collection

from PIL import Image, UnidentifiedImageError

from image_api.ingestion.exceptions import (
    EmptyUploadError,
    FileTooLargeError,
    UnsupportedMediaTypeError,
)


def sniff_mime_type(data: bytes) -> str | None:
    """MIME type from the file's own header, or None if Pillow cannot identify it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
    except (UnidentifiedImageError, OSError, ValueError, EOFError):
        return None
    return Image.MIME.get(image_format or "")


class UploadValidator:
    """Synchronous checks run before anything reaches the blob store or queue."""

    def __init__(self, max_upload_bytes: int, allowed_mime_types: Collection[str]) -> None:
        self._max_upload_bytes = max_upload_bytes
        self._allowed_mime_types = frozenset(allowed_mime_types)

    def validate(self, data: bytes) -> str:
        """Check size and content type.

        Returns:
            The sniffed MIME type.

        Raises:
            EmptyUploadError, FileTooLargeError, UnsupportedMediaTypeError.
        """
        if not data:
            raise EmptyUploadError()
        if len(data) > self._max_upload_bytes:
            raise FileTooLargeError(
                f"File is {len(data)} bytes; the limit is {self._max_upload_bytes}"
            )
        mime_type = sniff_mime_type(data)
        if mime_type is None or mime_type not in self._allowed_mime_types:
            raise UnsupportedMediaTypeError(
                f"Unsupported file type {mime_type or 'unknown'}; "
                f"allowed: {sorted(self._allowed_mime_types)}"
            )
        return mime_type
