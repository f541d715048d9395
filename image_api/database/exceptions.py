from image_api.storage.exceptions import StoreError


class RecordStoreError(StoreError):
    """Base exception for record store failures."""


class RecordStoreUnavailableError(RecordStoreError):
    """Raised when the record store cannot be reached."""


class DuplicateImageError(RecordStoreError):
    """Raised when inserting a record whose id already exists."""

    transient = False
