"""Change review service - wires stores, repositories and pipelines together."""

import asyncio
from typing import Any

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.memory import InMemoryBlobStore
from blast.adapters.blob.paths import unique_asset_path, video_content_type
from blast.adapters.metadata.base import MetadataStore
from blast.adapters.metadata.memory import InMemoryMetadataStore
from blast.config import settings
from blast.domain.enums import PromotionStrategy
from blast.domain.errors import NotAuthorized
from blast.domain.models import Change, EditDiff, Video
from blast.logging import get_logger
from blast.services.auth import CurrentUserProvider, require_user, static_user
from blast.services.changes import ChangeRepository
from blast.services.promotion import PromotionResult, VersionPromoter
from blast.services.rejection import RejectionResult, Rejector
from blast.services.videos import FeedCache, FeedPage, VideoRepository
from blast.utils.retry import BackoffPolicy, Sleep, poll_until_available

logger = get_logger(__name__)


def get_metadata_store() -> MetadataStore:
    """Get the configured metadata store."""
    if settings.metadata_store == "sql":
        from blast.adapters.metadata.sql import SqlMetadataStore

        return SqlMetadataStore()
    return InMemoryMetadataStore()


def get_blob_store() -> BlobStore:
    """Get the configured blob store."""
    if settings.blob_store == "firebase":
        from blast.adapters.blob.firebase import FirebaseBlobStore

        return FirebaseBlobStore()
    return InMemoryBlobStore(bucket=settings.firebase_bucket)


class ReviewService:
    """Entry point for proposing, listing, accepting and rejecting changes.

    Only the owner of a video may accept or reject changes against it. The
    feed cache's ``invalidate`` is passed to the promoter as its refresh hook.
    """

    def __init__(
        self,
        metadata: MetadataStore | None = None,
        blobs: BlobStore | None = None,
        current_user: CurrentUserProvider | None = None,
        policy: BackoffPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        strategy: PromotionStrategy | None = None,
    ) -> None:
        self.metadata = metadata or get_metadata_store()
        self.blobs = blobs or get_blob_store()
        self.current_user = current_user or static_user(None)
        self.policy = policy or BackoffPolicy.from_settings(settings)
        self._sleep = sleep

        self.videos = VideoRepository(self.metadata)
        self.feed = FeedCache(self.videos)
        self.changes = ChangeRepository(self.metadata)
        self.promoter = VersionPromoter(
            self.changes,
            self.videos,
            self.blobs,
            refresh_feed=self.feed.invalidate,
            policy=self.policy,
            sleep=sleep,
            strategy=strategy,
        )
        self.rejector = Rejector(self.changes, self.blobs)

    def _user(self, user_id: str | None) -> str:
        return require_user(lambda: user_id or self.current_user())

    async def _store_asset(self, prefix: str, data: bytes, ext: str) -> str:
        """Upload bytes under ``prefix`` and wait for the public URL."""
        path = unique_asset_path(prefix, ext)
        await self.blobs.upload(path, data, video_content_type(ext))
        return await poll_until_available(
            lambda: self.blobs.resolve_url(path),
            self.policy,
            self._sleep,
            description=f"URL for {path}",
        )

    async def upload_video(
        self,
        data: bytes,
        caption: str,
        ext: str = "mp4",
        user_id: str | None = None,
    ) -> Video:
        """Upload a new video and add it to the feed."""
        owner = self._user(user_id)
        url = await self._store_asset(settings.canonical_prefix, data, ext)
        video_id = await self.videos.create(owner, caption, url)
        self.feed.invalidate()
        return await self.videos.get(video_id)

    async def feed_page(self, cursor: str | None = None) -> FeedPage:
        return await self.feed.page(cursor)

    async def propose(
        self,
        video_id: str,
        description: str,
        edit_data: bytes | None = None,
        edit_ext: str = "mp4",
        diff_metadata: EditDiff | dict[str, Any] | None = None,
        edit_url: str | None = None,
        user_id: str | None = None,
    ) -> Change:
        """Propose a change, uploading the edited video first if given."""
        author = self._user(user_id)
        await self.videos.get(video_id)

        if edit_data is not None:
            edit_url = await self._store_asset(settings.edit_prefix, edit_data, edit_ext)

        change_id = await self.changes.create(
            video_id, author, description, edit_url=edit_url, diff_metadata=diff_metadata
        )
        return await self.changes.get(change_id)

    async def list_changes(self, video_id: str) -> list[Change]:
        return await self.changes.list(video_id)

    async def _owned_change(self, change_id: str, user_id: str | None) -> Change:
        reviewer = self._user(user_id)
        change = await self.changes.get(change_id)
        video = await self.videos.get(change.video_id)
        if video.user_id != reviewer:
            raise NotAuthorized(f"Only the owner of video {video.id} can review its changes")
        return change

    async def accept(self, change_id: str, user_id: str | None = None) -> PromotionResult:
        change = await self._owned_change(change_id, user_id)
        return await self.promoter.accept(change)

    async def reject(self, change_id: str, user_id: str | None = None) -> RejectionResult:
        change = await self._owned_change(change_id, user_id)
        return await self.rejector.reject(change)

    async def health_check(self) -> dict[str, bool]:
        return {
            f"metadata_{self.metadata.name}": await self.metadata.health_check(),
            f"blob_{self.blobs.name}": await self.blobs.health_check(),
        }
