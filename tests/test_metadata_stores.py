"""Contract tests run against every metadata store backend."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from blast.adapters.metadata.base import SERVER_TIMESTAMP, BatchOp, FieldFilter, OrderBy
from blast.adapters.metadata.memory import InMemoryMetadataStore
from blast.adapters.metadata.sql import SqlMetadataStore
from blast.db.models import Base, DocumentModel
from blast.domain.errors import ConcurrencyConflict, InvalidReference, NotFound


@pytest.fixture(params=["memory", "sql"])
def store(request, clock):
    if request.param == "sql":
        return request.getfixturevalue("sql_metadata_store")
    return InMemoryMetadataStore(clock=clock)


@pytest.mark.asyncio
async def test_create_and_get(store) -> None:
    """Test a created document starts at version 1 with a server timestamp."""
    doc_id = await store.create("videos", {"caption": "hi", "timestamp": SERVER_TIMESTAMP})

    doc = await store.get("videos", doc_id)

    assert doc.id == doc_id
    assert doc.version == 1
    assert doc.fields["caption"] == "hi"
    assert doc.fields["timestamp"] is not None


@pytest.mark.asyncio
async def test_create_with_existing_id_conflicts(store) -> None:
    await store.create("videos", {"caption": "a"}, document_id="v1")

    with pytest.raises(ConcurrencyConflict):
        await store.create("videos", {"caption": "b"}, document_id="v1")


@pytest.mark.asyncio
async def test_get_missing_document(store) -> None:
    with pytest.raises(NotFound):
        await store.get("videos", "nope")


@pytest.mark.asyncio
async def test_update_fields_merges_and_bumps_version(store) -> None:
    doc_id = await store.create("changes", {"status": "open", "description": "x"})

    doc = await store.update_fields("changes", doc_id, {"status": "accepted"})

    assert doc.version == 2
    assert doc.fields == {"status": "accepted", "description": "x"}


@pytest.mark.asyncio
async def test_update_with_stale_version_conflicts(store) -> None:
    """Test a compare-and-set write fails once the document has moved on."""
    doc_id = await store.create("changes", {"status": "open"})
    await store.update_fields("changes", doc_id, {"status": "accepted"}, expected_version=1)

    with pytest.raises(ConcurrencyConflict) as exc_info:
        await store.update_fields("changes", doc_id, {"status": "rejected"}, expected_version=1)

    assert exc_info.value.expected == 1
    assert exc_info.value.actual == 2
    assert (await store.get("changes", doc_id)).fields["status"] == "accepted"


@pytest.mark.asyncio
async def test_update_missing_document(store) -> None:
    with pytest.raises(NotFound):
        await store.update_fields("changes", "nope", {"status": "accepted"})


@pytest.mark.asyncio
async def test_query_filters_orders_and_pages(store) -> None:
    """Test filtered queries come back newest first across pages."""
    base = datetime(2025, 1, 1, tzinfo=UTC)
    for i in range(5):
        await store.create(
            "changes",
            {"videoId": "v1", "n": i, "timestamp": base + timedelta(minutes=i)},
            document_id=f"c{i}",
        )
    await store.create("changes", {"videoId": "v2", "n": 99, "timestamp": base})

    seen = []
    cursor = None
    while True:
        page = await store.query(
            "changes",
            filters=[FieldFilter("videoId", "v1")],
            order_by=OrderBy("timestamp", descending=True),
            limit=2,
            cursor=cursor,
        )
        assert len(page.documents) <= 2
        seen.extend(doc.fields["n"] for doc in page.documents)
        if page.cursor is None:
            break
        cursor = page.cursor

    assert seen == [4, 3, 2, 1, 0]


@pytest.mark.asyncio
async def test_query_orders_by_field_not_insertion(store) -> None:
    """Test documents written out of timestamp order still page in timestamp order."""
    base = datetime(2025, 1, 1, tzinfo=UTC)
    for i, minutes in enumerate([3, 0, 4, 1, 2]):
        await store.create(
            "changes",
            {"videoId": "v1", "minutes": minutes, "timestamp": base + timedelta(minutes=minutes)},
            document_id=f"c{i}",
        )

    async def read_all(descending: bool) -> list[int]:
        seen, cursor = [], None
        while True:
            page = await store.query(
                "changes",
                order_by=OrderBy("timestamp", descending=descending),
                limit=2,
                cursor=cursor,
            )
            seen.extend(doc.fields["minutes"] for doc in page.documents)
            if page.cursor is None:
                return seen
            cursor = page.cursor

    assert await read_all(descending=True) == [4, 3, 2, 1, 0]
    assert await read_all(descending=False) == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_query_ties_break_on_id(store) -> None:
    """Test equal sort keys come back in id order and missing keys sort last."""
    same = datetime(2025, 1, 1, tzinfo=UTC)
    await store.create("changes", {"timestamp": same}, document_id="b")
    await store.create("changes", {"note": "no timestamp"}, document_id="0")
    await store.create("changes", {"timestamp": same}, document_id="a")
    await store.create("changes", {"timestamp": same + timedelta(hours=1)}, document_id="z")
    await store.create("changes", {"timestamp": same}, document_id="c")

    newest = await store.query("changes", order_by=OrderBy("timestamp", descending=True))
    oldest = await store.query("changes", order_by=OrderBy("timestamp"))

    assert [doc.id for doc in newest.documents] == ["z", "a", "b", "c", "0"]
    assert [doc.id for doc in oldest.documents] == ["a", "b", "c", "z", "0"]


@pytest.mark.asyncio
async def test_query_none_filter_matches_absent_field(store) -> None:
    await store.create("videos", {"caption": "current"}, document_id="v2")
    await store.create("videos", {"caption": "old", "supersededById": "v2"}, document_id="v1")

    page = await store.query("videos", filters=[FieldFilter("supersededById", None)])

    assert [doc.id for doc in page.documents] == ["v2"]


@pytest.mark.asyncio
async def test_query_invalid_cursor(store) -> None:
    with pytest.raises(InvalidReference):
        await store.query("videos", cursor="not-a-cursor")


@pytest.mark.asyncio
async def test_batch_applies_all_writes(store) -> None:
    await store.create("videos", {"caption": "old"}, document_id="v1")

    await store.batch(
        [
            BatchOp.create("videos", "v2", {"caption": "new", "previousVersionId": "v1"}),
            BatchOp.update("videos", "v1", {"supersededById": "v2"}, expected_version=1),
        ]
    )

    assert (await store.get("videos", "v2")).fields["previousVersionId"] == "v1"
    old = await store.get("videos", "v1")
    assert old.fields["supersededById"] == "v2"
    assert old.version == 2


@pytest.mark.asyncio
async def test_batch_is_all_or_nothing(store) -> None:
    """Test one failed precondition leaves every document untouched."""
    await store.create("videos", {"caption": "old"}, document_id="v1")
    await store.update_fields("videos", "v1", {"likes": 1})

    with pytest.raises(ConcurrencyConflict):
        await store.batch(
            [
                BatchOp.create("videos", "v2", {"caption": "new"}),
                BatchOp.update("videos", "v1", {"supersededById": "v2"}, expected_version=1),
            ]
        )

    with pytest.raises(NotFound):
        await store.get("videos", "v2")
    assert "supersededById" not in (await store.get("videos", "v1")).fields


@pytest.mark.asyncio
async def test_health_check(store) -> None:
    assert await store.health_check() is True


@pytest.mark.asyncio
async def test_memory_store_fault_injection(metadata_store) -> None:
    """Test an injected failure is raised once, then the store recovers."""
    from blast.domain.errors import TransientIO

    metadata_store.inject_failure("get", TransientIO("network down"))
    doc_id = await metadata_store.create("videos", {"caption": "x"})

    with pytest.raises(TransientIO):
        await metadata_store.get("videos", doc_id)
    assert (await metadata_store.get("videos", doc_id)).id == doc_id


def _file_sql_store(path, clock):
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return engine, SqlMetadataStore(session_factory=sessionmaker(bind=engine), clock=clock)


def _commit_between_read_and_write(monkeypatch, engine, fields) -> None:
    """Commit a competing write on another connection right after the first read."""
    load = SqlMetadataStore._load
    done = []

    def load_then_commit(session, collection, document_id, expected_version=None):
        row = load(session, collection, document_id, expected_version)
        if not done:
            done.append(document_id)
            with engine.begin() as conn:
                conn.execute(
                    update(DocumentModel)
                    .where(
                        DocumentModel.collection == collection,
                        DocumentModel.id == document_id,
                    )
                    .values(fields=fields, version=DocumentModel.version + 1)
                )
        return row

    monkeypatch.setattr(SqlMetadataStore, "_load", staticmethod(load_then_commit))


@pytest.mark.asyncio
async def test_sql_update_loses_to_write_committed_after_read(monkeypatch, tmp_path, clock) -> None:
    """Test a writer whose read went stale cannot overwrite the newer document."""
    engine, store = _file_sql_store(tmp_path / "blast.db", clock)
    doc_id = await store.create("changes", {"status": "open"})
    _commit_between_read_and_write(monkeypatch, engine, {"status": "rejected"})

    with pytest.raises(ConcurrencyConflict):
        await store.update_fields("changes", doc_id, {"status": "accepted"}, expected_version=1)

    doc = await store.get("changes", doc_id)
    assert doc.version == 2
    assert doc.fields == {"status": "rejected"}
    engine.dispose()


@pytest.mark.asyncio
async def test_sql_batch_loses_to_write_committed_after_read(monkeypatch, tmp_path, clock) -> None:
    engine, store = _file_sql_store(tmp_path / "blast.db", clock)
    await store.create("videos", {"caption": "old"}, document_id="v1")
    _commit_between_read_and_write(monkeypatch, engine, {"caption": "old", "likes": 1})

    with pytest.raises(ConcurrencyConflict):
        await store.batch(
            [
                BatchOp.create("videos", "v2", {"caption": "new"}),
                BatchOp.update("videos", "v1", {"supersededById": "v2"}, expected_version=1),
            ]
        )

    with pytest.raises(NotFound):
        await store.get("videos", "v2")
    assert (await store.get("videos", "v1")).fields == {"caption": "old", "likes": 1}
    engine.dispose()
