"""Base interface for metadata (document) stores."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4


class _ServerTimestamp:
    """Sentinel replaced by the store's own clock at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP: Any = _ServerTimestamp()


@dataclass(frozen=True)
class Document:
    """A stored document with its store-managed version."""

    id: str
    fields: dict[str, Any]
    version: int


@dataclass(frozen=True)
class FieldFilter:
    """Equality filter; an absent field compares equal to None."""

    field: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    """Sort order for a query."""

    field: str
    descending: bool = False


@dataclass
class Page:
    """One page of query results."""

    documents: list[Document] = field(default_factory=list)
    cursor: str | None = None  # None when there are no further pages


@dataclass(frozen=True)
class BatchOp:
    """A single write inside an atomic batch."""

    kind: Literal["create", "update"]
    collection: str
    document_id: str
    fields: dict[str, Any]
    expected_version: int | None = None

    @classmethod
    def create(cls, collection: str, document_id: str, fields: dict[str, Any]) -> "BatchOp":
        return cls("create", collection, document_id, fields)

    @classmethod
    def update(
        cls,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> "BatchOp":
        return cls("update", collection, document_id, fields, expected_version)


class MetadataStore(ABC):
    """Abstract base class for document stores.

    Implementations:
    - InMemoryMetadataStore: Process-local store for tests and development
    - SqlMetadataStore: SQLAlchemy-backed store (JSON documents table)

    Every write bumps the document's integer version. Passing
    ``expected_version`` to a write turns it into a compare-and-set that raises
    ConcurrencyConflict when the stored version differs. Writes are atomic per
    document; ``batch`` is atomic across documents of this one store only.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name identifier."""
        ...

    @abstractmethod
    async def create(
        self,
        collection: str,
        fields: dict[str, Any],
        document_id: str | None = None,
    ) -> str:
        """Create a document and return its id.

        Raises:
            ConcurrencyConflict: If ``document_id`` is given and already exists
        """
        ...

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Document:
        """Read a document.

        Raises:
            NotFound: If the document does not exist
        """
        ...

    @abstractmethod
    async def update_fields(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        """Merge top-level fields into a document and return the new state.

        Raises:
            NotFound: If the document does not exist
            ConcurrencyConflict: If ``expected_version`` does not match
        """
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> Page:
        """Run a filtered, ordered query and return one page."""
        ...

    @abstractmethod
    async def batch(self, ops: Sequence[BatchOp]) -> None:
        """Apply all writes atomically, or none of them."""
        ...

    def new_id(self) -> str:
        """Generate a client-side document id (for batched creates)."""
        return uuid4().hex

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        return True
