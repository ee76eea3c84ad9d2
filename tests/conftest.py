"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio

# Set test environment before importing app modules
os.environ["METADATA_STORE"] = "memory"
os.environ["BLOB_STORE"] = "memory"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "WARNING"

OWNER_ID = "owner-1"
PROPOSER_ID = "proposer-1"
FIXED_UNIX_TIME = 1738843200


class TickingClock:
    """Clock that advances a fixed step on every reading."""

    def __init__(
        self,
        start: datetime = datetime(2025, 2, 6, 12, 0, tzinfo=UTC),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self.step
        return value


class RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""

    def __init__(self, yield_control: bool = False) -> None:
        self.delays: list[float] = []
        self.yield_control = yield_control

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.yield_control:
            import asyncio

            await asyncio.sleep(0)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def metadata_store(clock):
    """Get an in-memory metadata store with a deterministic clock."""
    from blast.adapters.metadata.memory import InMemoryMetadataStore

    return InMemoryMetadataStore(clock=clock)


@pytest.fixture
def sql_metadata_store(clock):
    """Get a SQL metadata store over a private in-memory SQLite database."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from blast.adapters.metadata.sql import SqlMetadataStore
    from blast.db.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield SqlMetadataStore(session_factory=sessionmaker(bind=engine), clock=clock)
    engine.dispose()


@pytest.fixture
def blob_store():
    """Get an in-memory blob store whose URLs resolve immediately."""
    from blast.adapters.blob.memory import InMemoryBlobStore

    return InMemoryBlobStore(bucket="test-bucket")


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def yielding_sleep() -> RecordingSleep:
    """Sleep that hands control back to the event loop, for interleaving tests."""
    return RecordingSleep(yield_control=True)


@pytest.fixture
def change_repo(metadata_store):
    """Change repository with a small page size so listing spans pages."""
    from blast.services.changes import ChangeRepository

    return ChangeRepository(metadata_store, page_size=2)


@pytest.fixture
def video_repo(metadata_store):
    from blast.services.videos import VideoRepository

    return VideoRepository(metadata_store, page_size=5)


@pytest.fixture
def refresh_calls() -> list[str]:
    return []


@pytest.fixture
def make_promoter(change_repo, video_repo, blob_store, sleep, refresh_calls):
    """Factory for promoters sharing the test stores."""
    from blast.domain.enums import PromotionStrategy
    from blast.services.promotion import VersionPromoter
    from blast.utils.retry import BackoffPolicy

    def factory(
        strategy=PromotionStrategy.NEW_VERSION, refresh_feed=None, sleep_fn=None, lease_seconds=600.0
    ):
        return VersionPromoter(
            change_repo,
            video_repo,
            blob_store,
            refresh_feed=refresh_feed or (lambda: refresh_calls.append("refresh")),
            policy=BackoffPolicy(),
            sleep=sleep_fn or sleep,
            strategy=strategy,
            canonical_prefix="videos",
            clock=lambda: FIXED_UNIX_TIME,
            lease_seconds=lease_seconds,
        )

    return factory


@pytest.fixture
def promoter(make_promoter):
    return make_promoter()


@pytest.fixture
def rejector(change_repo, blob_store):
    from blast.services.rejection import Rejector

    return Rejector(change_repo, blob_store)


@pytest_asyncio.fixture
async def original_video(metadata_store, blob_store, video_repo):
    """Video "v1" owned by OWNER_ID, with its canonical asset in the blob store."""
    from blast.adapters.metadata.base import SERVER_TIMESTAMP
    from blast.domain.models import Video

    url = blob_store.put("videos/original.mp4", b"ORIGINAL")
    video = Video(
        id="v1",
        canonical_url=url,
        user_id=OWNER_ID,
        caption="Sunset over the bay",
        likes=7,
        comments=3,
    )
    await metadata_store.create(
        "videos", {**video.to_fields(), "timestamp": SERVER_TIMESTAMP}, document_id="v1"
    )
    return await video_repo.get("v1")


@pytest_asyncio.fixture
async def edit_change(change_repo, blob_store, original_video):
    """Open change against "v1" carrying an edited video."""
    url = blob_store.put("edits/brighter.mp4", b"EDITED")
    change_id = await change_repo.create(
        "v1",
        PROPOSER_ID,
        "brighten",
        edit_url=url,
        diff_metadata={"adjustments": {"brightness": 0.2}},
    )
    return await change_repo.get(change_id)


@pytest_asyncio.fixture
async def text_change(change_repo, original_video):
    """Open text-only change against "v1"."""
    change_id = await change_repo.create("v1", PROPOSER_ID, "trim the intro")
    return await change_repo.get(change_id)


@pytest.fixture
def review_service(metadata_store, blob_store, sleep):
    from blast.services.review import ReviewService
    from blast.utils.retry import BackoffPolicy

    return ReviewService(
        metadata=metadata_store,
        blobs=blob_store,
        policy=BackoffPolicy(),
        sleep=sleep,
    )


@pytest.fixture
def test_client(review_service) -> Generator:
    """Create a test client for the FastAPI app backed by the test stores."""
    from fastapi.testclient import TestClient

    from blast.api.deps import get_review_service
    from blast.main import app

    app.dependency_overrides[get_review_service] = lambda: review_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
