"""Adapters for external services."""

from blast.adapters.blob.base import BlobStore
from blast.adapters.metadata.base import MetadataStore

__all__ = [
    "BlobStore",
    "MetadataStore",
]
