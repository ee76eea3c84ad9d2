"""Metadata (document) store adapters."""

from blast.adapters.metadata.base import (
    SERVER_TIMESTAMP,
    BatchOp,
    Document,
    FieldFilter,
    MetadataStore,
    OrderBy,
    Page,
)
from blast.adapters.metadata.memory import InMemoryMetadataStore
from blast.adapters.metadata.sql import SqlMetadataStore

__all__ = [
    "SERVER_TIMESTAMP",
    "BatchOp",
    "Document",
    "FieldFilter",
    "InMemoryMetadataStore",
    "MetadataStore",
    "OrderBy",
    "Page",
    "SqlMetadataStore",
]
