"""Video records and the paginated feed."""

from dataclasses import dataclass, field

from blast.adapters.metadata.base import (
    SERVER_TIMESTAMP,
    BatchOp,
    FieldFilter,
    MetadataStore,
    OrderBy,
)
from blast.config import settings
from blast.domain.models import Video
from blast.logging import get_logger

logger = get_logger(__name__)

VIDEOS = "videos"


@dataclass
class FeedPage:
    """One page of the video feed, newest first."""

    videos: list[Video] = field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False


class VideoRepository:
    """CRUD over Video records in the metadata store."""

    def __init__(self, store: MetadataStore, page_size: int | None = None) -> None:
        self.store = store
        self.page_size = page_size or settings.feed_page_size

    async def create(self, user_id: str, caption: str, canonical_url: str) -> str:
        """Create the record for a freshly uploaded video."""
        video = Video(id="", canonical_url=canonical_url, user_id=user_id, caption=caption)
        fields = {**video.to_fields(), "timestamp": SERVER_TIMESTAMP}
        video_id = await self.store.create(VIDEOS, fields)
        logger.info("video_created", video_id=video_id, user_id=user_id)
        return video_id

    async def get(self, video_id: str) -> Video:
        doc = await self.store.get(VIDEOS, video_id)
        return Video.from_fields(doc.id, doc.fields, doc.version)

    async def list_page(self, cursor: str | None = None) -> FeedPage:
        """Fetch one feed page of videos that have not been superseded."""
        page = await self.store.query(
            VIDEOS,
            filters=[FieldFilter("supersededById", None)],
            order_by=OrderBy("timestamp", descending=True),
            limit=self.page_size,
            cursor=cursor,
        )
        videos = [Video.from_fields(d.id, d.fields, d.version) for d in page.documents]
        return FeedPage(videos=videos, cursor=page.cursor, has_more=page.cursor is not None)

    def successor_ops(self, original: Video, canonical_url: str) -> tuple[str, list[BatchOp]]:
        """Batch writes that create a new version of ``original``.

        The new record starts with zero likes and comments and points back at
        the original; the original is marked superseded under its current
        version so a concurrent modification fails the whole batch.
        """
        new_id = self.store.new_id()
        successor = Video(
            id=new_id,
            canonical_url=canonical_url,
            user_id=original.user_id,
            caption=original.caption,
            likes=0,
            comments=0,
            is_edited=True,
            previous_version_id=original.id,
        )
        ops = [
            BatchOp.create(VIDEOS, new_id, {**successor.to_fields(), "timestamp": SERVER_TIMESTAMP}),
            BatchOp.update(
                VIDEOS,
                original.id,
                {"supersededById": new_id},
                expected_version=original.version,
            ),
        ]
        return new_id, ops

    def replace_url_op(self, original: Video, canonical_url: str) -> BatchOp:
        """Batch write that swaps the canonical URL of ``original`` in place."""
        return BatchOp.update(
            VIDEOS,
            original.id,
            {"canonicalUrl": canonical_url, "isEdited": True},
            expected_version=original.version,
        )


class FeedCache:
    """Cached feed pages for list views.

    ``invalidate`` is the feed refresh hook handed to the promotion pipeline:
    after a promotion the next read re-queries the store.
    """

    def __init__(self, videos: VideoRepository) -> None:
        self.videos = videos
        self._pages: dict[str | None, FeedPage] = {}

    async def page(self, cursor: str | None = None) -> FeedPage:
        if cursor not in self._pages:
            self._pages[cursor] = await self.videos.list_page(cursor)
        return self._pages[cursor]

    def invalidate(self) -> None:
        dropped = len(self._pages)
        self._pages.clear()
        logger.debug("feed_cache_invalidated", pages=dropped)
