from pathlib import Path

from image_api.config.settings import Settings
from image_api.storage.base import BaseBlobStore
from image_api.storage.local_adapter import LocalBlobStore


class BlobStoreFactory:
    """Creates the configured blob store adapter."""

    @classmethod
    def create(cls, settings: Settings) -> BaseBlobStore:
        backend = settings.blob_store_backend.lower()
        if backend == "local":
            return LocalBlobStore(Path(settings.blob_root))
        raise ValueError(f"Unknown blob store backend '{backend}'. Choose from: ['local']")
