"""Base interface for blob (object) stores."""

from abc import ABC, abstractmethod

from blast.adapters.blob.paths import storage_path_from_url


class BlobStore(ABC):
    """Abstract base class for blob stores.

    Implementations:
    - InMemoryBlobStore: Process-local store with simulated URL lag
    - FirebaseBlobStore: Firebase Storage over its REST API

    A freshly uploaded object may not have a resolvable public URL straight
    away; ``resolve_url`` returns None until it does.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name identifier."""
        ...

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes to an object path.

        Raises:
            TransientIO: If the upload fails
        """
        ...

    @abstractmethod
    async def resolve_url(self, path: str) -> str | None:
        """Return the public URL for an object, or None if not yet available."""
        ...

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Download the bytes behind a URL.

        Raises:
            InvalidReference: If the URL cannot be parsed
            NotFound: If no object exists at the URL
            TransientIO: If the download fails
        """
        ...

    @abstractmethod
    async def delete_path(self, path: str) -> None:
        """Delete the object at ``path``.

        Raises:
            NotFound: If no object exists at the path
            TransientIO: If the delete fails
        """
        ...

    async def delete(self, url: str) -> None:
        """Delete the object a download URL points to."""
        await self.delete_path(storage_path_from_url(url))

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        return True
