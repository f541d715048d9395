import os
import re
import uuid
from pathlib import Path

from image_api.storage.base import BaseBlobStore
from image_api.storage.exceptions import BlobNotFoundError, BlobStoreUnavailableError

_BLOB_REF_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def blob_file_path(blob_root: Path, blob_ref: str) -> Path:
    """Build path to blob file: {blob_root}/{ref[:2]}/{ref}"""
    return blob_root / blob_ref[:2] / blob_ref


class LocalBlobStore(BaseBlobStore):
    """Stores blobs as files under a root directory."""

    def __init__(self, blob_root: Path) -> None:
        self._blob_root = blob_root

    def put(self, data: bytes) -> str:
        blob_ref = uuid.uuid4().hex
        path = blob_file_path(self._blob_root, blob_ref)
        tmp_path = path.with_suffix(".part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise BlobStoreUnavailableError(f"Failed to store blob: {exc}") from exc
        return blob_ref

    def get(self, blob_ref: str) -> bytes:
        path = self._resolve_path(blob_ref)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"Blob not found: {blob_ref}") from exc
        except OSError as exc:
            raise BlobStoreUnavailableError(f"Failed to read blob {blob_ref}: {exc}") from exc

    def delete(self, blob_ref: str) -> None:
        try:
            path = self._resolve_path(blob_ref)
        except BlobNotFoundError:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStoreUnavailableError(
                f"Failed to delete blob {blob_ref}: {exc}"
            ) from exc

    def _resolve_path(self, blob_ref: str) -> Path:
        if not _BLOB_REF_PATTERN.match(blob_ref):
            raise BlobNotFoundError(f"Invalid blob reference: {blob_ref!r}")
        return blob_file_path(self._blob_root, blob_ref)
