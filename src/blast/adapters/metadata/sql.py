"""SQLAlchemy-backed metadata store."""

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from blast.adapters.metadata.base import (
    SERVER_TIMESTAMP,
    BatchOp,
    Document,
    FieldFilter,
    MetadataStore,
    OrderBy,
    Page,
)
from blast.db.models import DocumentModel
from blast.domain.errors import BlastError, ConcurrencyConflict, InvalidReference, NotFound, TransientIO
from blast.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _encode(value: Any, now: datetime) -> Any:
    """Make a field value JSON-safe.

    Datetimes are stored as fixed-width ISO strings so that ordering on the
    string form matches chronological order.
    """
    if value is SERVER_TIMESTAMP:
        value = now
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat(timespec="microseconds")
    if isinstance(value, dict):
        return {k: _encode(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v, now) for v in value]
    return value


class SqlMetadataStore(MetadataStore):
    """Document store over a single ``documents`` table.

    Blocking SQLAlchemy sessions run in a worker thread so callers stay on the
    event loop. Every update is a single UPDATE guarded by the version that was
    read, so of two writers racing on one document only the first commits and
    the other gets ConcurrencyConflict.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if session_factory is None:
            from blast.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return "sql"

    async def _run(self, fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with self._session_factory() as session:
                with session.begin():
                    return fn(session)

        try:
            return await asyncio.to_thread(work)
        except BlastError:
            raise
        except SQLAlchemyError as e:
            logger.error("sql_store_error", error=str(e))
            raise TransientIO(f"Metadata store error: {e}") from e

    def _encode_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return {key: _encode(value, now) for key, value in fields.items()}

    @staticmethod
    def _load(
        session: Session,
        collection: str,
        document_id: str,
        expected_version: int | None = None,
    ) -> DocumentModel:
        row = session.get(DocumentModel, (collection, document_id))
        if row is None:
            raise NotFound(f"{collection}/{document_id} does not exist")
        if expected_version is not None and row.version != expected_version:
            raise ConcurrencyConflict(
                f"{collection}/{document_id} is at version {row.version}, "
                f"expected {expected_version}",
                expected=expected_version,
                actual=row.version,
            )
        return row

    @staticmethod
    def _write(
        session: Session,
        row: DocumentModel,
        fields: dict[str, Any],
    ) -> Document:
        """Merge ``fields`` into ``row`` with a compare-and-set on its version.

        The version predicate is part of the UPDATE itself, so a concurrent
        writer that committed after ``row`` was read makes this match no rows.
        """
        merged = {**(row.fields or {}), **fields}
        new_version = row.version + 1
        result = session.execute(
            update(DocumentModel)
            .where(
                DocumentModel.collection == row.collection,
                DocumentModel.id == row.id,
                DocumentModel.version == row.version,
            )
            .values(fields=merged, version=new_version)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflict(
                f"{row.collection}/{row.id} was modified concurrently "
                f"(read at version {row.version})",
                expected=row.version,
            )
        return Document(id=row.id, fields=merged, version=new_version)

    @staticmethod
    def _flush_creates(session: Session) -> None:
        try:
            session.flush()
        except IntegrityError as e:
            raise ConcurrencyConflict(f"Document already exists: {e.orig}") from e

    @staticmethod
    def _to_document(row: DocumentModel) -> Document:
        return Document(id=row.id, fields=dict(row.fields or {}), version=row.version)

    async def create(
        self,
        collection: str,
        fields: dict[str, Any],
        document_id: str | None = None,
    ) -> str:
        doc_id = document_id or self.new_id()
        encoded = self._encode_fields(fields)

        def work(session: Session) -> str:
            if session.get(DocumentModel, (collection, doc_id)) is not None:
                raise ConcurrencyConflict(f"{collection}/{doc_id} already exists")
            session.add(DocumentModel(collection=collection, id=doc_id, fields=encoded, version=1))
            self._flush_creates(session)
            return doc_id

        return await self._run(work)

    async def get(self, collection: str, document_id: str) -> Document:
        def work(session: Session) -> Document:
            return self._to_document(self._load(session, collection, document_id))

        return await self._run(work)

    async def update_fields(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        encoded = self._encode_fields(fields)

        def work(session: Session) -> Document:
            row = self._load(session, collection, document_id, expected_version)
            return self._write(session, row, encoded)

        return await self._run(work)

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> Page:
        try:
            offset = int(cursor) if cursor else 0
        except ValueError as e:
            raise InvalidReference(f"Invalid query cursor: {cursor!r}") from e

        stmt = select(DocumentModel).where(DocumentModel.collection == collection)
        for f in filters:
            element = DocumentModel.fields[f.field]
            if f.value is None:
                stmt = stmt.where(element.as_string().is_(None))
            elif isinstance(f.value, bool):
                stmt = stmt.where(element.as_boolean() == f.value)
            elif isinstance(f.value, int):
                stmt = stmt.where(element.as_integer() == f.value)
            elif isinstance(f.value, float):
                stmt = stmt.where(element.as_float() == f.value)
            else:
                stmt = stmt.where(element.as_string() == str(f.value))

        if order_by is not None:
            key = DocumentModel.fields[order_by.field].as_string()
            ordering = key.desc() if order_by.descending else key.asc()
            # Documents without the field sort last in either direction
            stmt = stmt.order_by(ordering.nulls_last())
        stmt = stmt.order_by(DocumentModel.id).offset(offset).limit(limit + 1)

        def work(session: Session) -> Page:
            rows = list(session.scalars(stmt))
            has_more = len(rows) > limit
            documents = [self._to_document(row) for row in rows[:limit]]
            return Page(
                documents=documents,
                cursor=str(offset + len(documents)) if has_more else None,
            )

        return await self._run(work)

    async def batch(self, ops: Sequence[BatchOp]) -> None:
        encoded = [(op, self._encode_fields(op.fields)) for op in ops]

        def work(session: Session) -> None:
            # Guarded updates run before any insert is flushed
            for op, fields in encoded:
                if op.kind == "update":
                    row = self._load(session, op.collection, op.document_id, op.expected_version)
                    self._write(session, row, fields)

            for op, fields in encoded:
                if op.kind == "create":
                    if session.get(DocumentModel, (op.collection, op.document_id)) is not None:
                        raise ConcurrencyConflict(
                            f"{op.collection}/{op.document_id} already exists"
                        )
                    session.add(
                        DocumentModel(
                            collection=op.collection,
                            id=op.document_id,
                            fields=fields,
                            version=1,
                        )
                    )
            self._flush_creates(session)

        await self._run(work)
        logger.debug("sql_batch_committed", ops=len(ops))

    async def health_check(self) -> bool:
        try:
            await self.query("__health__", limit=1)
            return True
        except BlastError as e:
            logger.error("sql_health_check_failed", error=str(e))
            return False
