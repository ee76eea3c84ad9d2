"""Blob (object) store adapters."""

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.firebase import FirebaseBlobStore
from blast.adapters.blob.memory import InMemoryBlobStore

__all__ = [
    "BlobStore",
    "FirebaseBlobStore",
    "InMemoryBlobStore",
]
