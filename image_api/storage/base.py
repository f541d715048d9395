from abc import ABC, abstractmethod


class BaseBlobStore(ABC):
    """Contract for all blob store adapters."""

    @abstractmethod
    def put(self, data: bytes) -> str:
        """Store bytes and return an opaque blob reference.

        The blob is fully readable once this returns.

        Raises:
            BlobStoreUnavailableError: if the bytes could not be stored.
        """

    @abstractmethod
    def get(self, blob_ref: str) -> bytes:
        """Return the bytes stored under ``blob_ref``.

        Raises:
            BlobNotFoundError: if nothing is stored under the reference.
            BlobStoreUnavailableError: on transient read failures.
        """

    @abstractmethod
    def delete(self, blob_ref: str) -> None:
        """Remove the blob. Deleting a missing blob is not an error."""
