class StoreError(Exception):
    """Base exception for blob and record store failures.

    ``transient`` tells the retry policy whether another attempt can succeed.
    """

    transient: bool = True


class BlobStoreError(StoreError):
    """Base exception for blob store failures."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob reference does not resolve to stored bytes."""

    transient = False


class BlobStoreUnavailableError(BlobStoreError):
    """Raised when the blob store cannot be reached or written to."""
