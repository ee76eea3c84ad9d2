"""In-memory metadata store for tests and local development."""

import copy
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from blast.adapters.metadata.base import (
    SERVER_TIMESTAMP,
    BatchOp,
    Document,
    FieldFilter,
    MetadataStore,
    OrderBy,
    Page,
)
from blast.domain.errors import ConcurrencyConflict, InvalidReference, NotFound
from blast.logging import get_logger

logger = get_logger(__name__)


class InMemoryMetadataStore(MetadataStore):
    """Stub store that keeps documents in process memory.

    Supports fault injection through ``inject_failure`` so pipelines can be
    exercised against partial failures without a real backend.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._collections: dict[str, dict[str, tuple[dict[str, Any], int]]] = {}
        self._failures: dict[str, list[Exception]] = {}
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "memory"

    def inject_failure(self, operation: str, error: Exception) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures.setdefault(operation, []).append(error)

    def _record(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _resolve(self, fields: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return {
            key: (now if value is SERVER_TIMESTAMP else copy.deepcopy(value))
            for key, value in fields.items()
        }

    def _docs(self, collection: str) -> dict[str, tuple[dict[str, Any], int]]:
        return self._collections.setdefault(collection, {})

    def _check_update(self, collection: str, document_id: str, expected: int | None) -> None:
        docs = self._docs(collection)
        if document_id not in docs:
            raise NotFound(f"{collection}/{document_id} does not exist")
        actual = docs[document_id][1]
        if expected is not None and actual != expected:
            raise ConcurrencyConflict(
                f"{collection}/{document_id} is at version {actual}, expected {expected}",
                expected=expected,
                actual=actual,
            )

    def _apply_update(self, collection: str, document_id: str, fields: dict[str, Any]) -> Document:
        docs = self._docs(collection)
        current, version = docs[document_id]
        merged = {**current, **self._resolve(fields)}
        docs[document_id] = (merged, version + 1)
        return Document(id=document_id, fields=copy.deepcopy(merged), version=version + 1)

    async def create(
        self,
        collection: str,
        fields: dict[str, Any],
        document_id: str | None = None,
    ) -> str:
        doc_id = document_id or self.new_id()
        self._record("create", f"{collection}/{doc_id}")
        docs = self._docs(collection)
        if doc_id in docs:
            raise ConcurrencyConflict(f"{collection}/{doc_id} already exists")
        docs[doc_id] = (self._resolve(fields), 1)
        return doc_id

    async def get(self, collection: str, document_id: str) -> Document:
        self._record("get", f"{collection}/{document_id}")
        docs = self._docs(collection)
        if document_id not in docs:
            raise NotFound(f"{collection}/{document_id} does not exist")
        fields, version = docs[document_id]
        return Document(id=document_id, fields=copy.deepcopy(fields), version=version)

    async def update_fields(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        self._record("update_fields", f"{collection}/{document_id}")
        self._check_update(collection, document_id, expected_version)
        return self._apply_update(collection, document_id, fields)

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> Page:
        self._record("query", collection)
        matches = [
            Document(id=doc_id, fields=copy.deepcopy(fields), version=version)
            for doc_id, (fields, version) in self._docs(collection).items()
            if all(fields.get(f.field) == f.value for f in filters)
        ]

        # Ties break on document id, ascending, same as the SQL store
        matches.sort(key=lambda d: d.id)
        if order_by is not None:
            present = [d for d in matches if d.fields.get(order_by.field) is not None]
            missing = [d for d in matches if d.fields.get(order_by.field) is None]
            present.sort(key=lambda d: d.fields[order_by.field], reverse=order_by.descending)
            matches = present + missing

        try:
            offset = int(cursor) if cursor else 0
        except ValueError as e:
            raise InvalidReference(f"Invalid query cursor: {cursor!r}") from e

        documents = matches[offset : offset + limit]
        next_offset = offset + len(documents)
        next_cursor = str(next_offset) if next_offset < len(matches) else None
        return Page(documents=documents, cursor=next_cursor)

    async def batch(self, ops: Sequence[BatchOp]) -> None:
        self._record("batch", ",".join(f"{op.collection}/{op.document_id}" for op in ops))

        # Validate everything before touching state so the batch is all-or-nothing
        for op in ops:
            if op.kind == "create":
                if op.document_id in self._docs(op.collection):
                    raise ConcurrencyConflict(f"{op.collection}/{op.document_id} already exists")
            else:
                self._check_update(op.collection, op.document_id, op.expected_version)

        for op in ops:
            if op.kind == "create":
                self._docs(op.collection)[op.document_id] = (self._resolve(op.fields), 1)
            else:
                self._apply_update(op.collection, op.document_id, op.fields)

        logger.debug("memory_batch_committed", ops=len(ops))
