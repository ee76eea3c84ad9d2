"""Accept pipeline: promote a change's edit asset to the canonical video.

The metadata store and the blob store share no transaction, so acceptance is
a saga. The decision is committed together with an ``in_progress`` promotion
record and is never rolled back. If a later stage fails, the record becomes
``inconsistent`` naming the failed stage, and the error propagates. Calling
``accept`` again on that change resumes the promotion instead of starting a
second one. The record only becomes ``done`` once every stage has run.
"""

import asyncio
import dataclasses
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.paths import (
    ensure_url,
    extension_from_url,
    unique_asset_path,
    video_content_type,
)
from blast.config import settings
from blast.domain.enums import ChangeStatus, PromotionStage, PromotionState, PromotionStrategy
from blast.domain.errors import ConcurrencyConflict, InvalidTransition
from blast.domain.models import Change, PromotionRecord, Video
from blast.logging import get_logger
from blast.services.changes import ChangeRepository
from blast.services.videos import VideoRepository
from blast.utils.retry import BackoffPolicy, Sleep, poll_until_available

logger = get_logger(__name__)

RefreshHook = Callable[[], Awaitable[None] | None]


@dataclass
class PromotionResult:
    """Outcome of a successful accept."""

    change: Change
    stage: PromotionStage
    promoted_video_id: str | None = None
    canonical_url: str | None = None
    old_asset_retired: bool = False
    replayed: bool = False  # True when an earlier accept had already finished
    changes: list[Change] = field(default_factory=list)


class VersionPromoter:
    """Runs the accept pipeline for a change.

    Stages run strictly in order:

    1. commit the decision - mark the change accepted, record ``in_progress``
    2. fetching_edit - download the edit asset
    3. uploading_canonical - re-upload it under the canonical prefix
    4. resolving_url - poll until the upload has a public URL
    5. writing_new_version - write the promoted Video record
    6. refreshing_feed - tell list views to re-query
    7. best-effort delete of the replaced asset, then record ``done``
    8. read back the change list

    Failures in stages 2-6 propagate; a failed delete in stage 7 is logged only.
    Both repositories must share one metadata store, since stage 5 writes the
    Video and the promotion record in a single batch.

    A second accept that finds a fresh ``in_progress`` record raises
    ConcurrencyConflict. Once ``lease_seconds`` have passed since the decision,
    the running accept is presumed crashed and the record is resumed instead.
    """

    def __init__(
        self,
        changes: ChangeRepository,
        videos: VideoRepository,
        blobs: BlobStore,
        refresh_feed: RefreshHook | None = None,
        policy: BackoffPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        strategy: PromotionStrategy | None = None,
        canonical_prefix: str | None = None,
        clock: Callable[[], float] = time.time,
        lease_seconds: float | None = None,
    ) -> None:
        self.changes = changes
        self.videos = videos
        self.blobs = blobs
        self.refresh_feed = refresh_feed
        self.policy = policy or BackoffPolicy.from_settings(settings)
        self.strategy = strategy or PromotionStrategy(settings.promotion_strategy)
        self.canonical_prefix = canonical_prefix or settings.canonical_prefix
        self.lease_seconds = (
            lease_seconds if lease_seconds is not None else settings.promotion_lease_seconds
        )
        self._sleep = sleep
        self._clock = clock

    async def accept(self, change: Change) -> PromotionResult:
        """Accept a change and promote its edit asset.

        Raises:
            InvalidTransition: If the change was rejected
            ConcurrencyConflict: If the change was modified concurrently, or
                another accept of it is still running
            InvalidReference, NotFound, TransientIO, PermanentIO: From the
                promotion stages, after the decision has been committed
        """
        log = logger.bind(change_id=change.id, video_id=change.video_id)

        current = await self.changes.get(change.id)
        if current.status == ChangeStatus.REJECTED:
            raise InvalidTransition(f"Change {change.id} was already rejected")
        if current.status == ChangeStatus.ACCEPTED:
            return await self._replay(current, log)

        if current.edit_url is None:
            record = PromotionRecord(state=PromotionState.SKIPPED, stage=PromotionStage.DONE)
        else:
            record = PromotionRecord(
                state=PromotionState.IN_PROGRESS,
                stage=PromotionStage.FETCHING_EDIT,
                started_at=self._clock(),
            )
        committed = await self.changes.set_status(
            current.id,
            ChangeStatus.ACCEPTED,
            expected_version=current.version,
            promotion=record,
        )
        log.info("change_accepted", strategy=self.strategy.value)

        if committed.edit_url is None:
            log.info("promotion_skipped", reason="no_edit_asset")
            return PromotionResult(
                change=committed,
                stage=PromotionStage.DONE,
                changes=await self.changes.list(committed.video_id),
            )
        return await self._promote(committed, log)

    async def _replay(self, current: Change, log) -> PromotionResult:
        record = current.promotion
        if record is not None and record.state in (PromotionState.DONE, PromotionState.SKIPPED):
            log.info("promotion_replayed", state=record.state.value)
            return PromotionResult(
                change=current,
                stage=PromotionStage.DONE,
                promoted_video_id=record.promoted_video_id,
                canonical_url=record.canonical_url,
                replayed=True,
                changes=await self.changes.list(current.video_id),
            )

        if record is not None and record.state == PromotionState.IN_PROGRESS:
            age = self._clock() - (record.started_at or 0.0)
            if age < self.lease_seconds:
                raise ConcurrencyConflict(
                    f"Change {current.id} is already being promoted "
                    f"(stage {record.stage.value})"
                )
            log.warning("promotion_lease_expired", stage=record.stage.value, age=age)

        if current.edit_url is None:
            return await self._finish_without_asset(current, log)

        claimed = await self._claim(current, record)
        log.info("promotion_resuming", from_stage=claimed.promotion.stage.value)
        return await self._promote(claimed, log, resume_from=claimed.promotion)

    async def _claim(self, current: Change, record: PromotionRecord | None) -> Change:
        """Take over an unfinished promotion with a fresh in-progress record."""
        written = record is not None and record.promoted_video_id is not None
        return await self.changes.record_promotion(
            current.id,
            PromotionRecord(
                state=PromotionState.IN_PROGRESS,
                stage=PromotionStage.REFRESHING_FEED if written else PromotionStage.FETCHING_EDIT,
                promoted_video_id=record.promoted_video_id if written else None,
                canonical_url=record.canonical_url if written else None,
                replaced_url=record.replaced_url if written else None,
                started_at=self._clock(),
            ),
            expected_version=current.version,
        )

    async def _finish_without_asset(self, change: Change, log) -> PromotionResult:
        """Text-only change: nothing to promote, the Video is left untouched."""
        change = await self.changes.record_promotion(
            change.id,
            PromotionRecord(state=PromotionState.SKIPPED, stage=PromotionStage.DONE),
            expected_version=change.version,
        )
        log.info("promotion_skipped", reason="no_edit_asset")
        return PromotionResult(
            change=change,
            stage=PromotionStage.DONE,
            changes=await self.changes.list(change.video_id),
        )

    async def _promote(
        self,
        change: Change,
        log,
        resume_from: PromotionRecord | None = None,
    ) -> PromotionResult:
        promoted_video_id = resume_from.promoted_video_id if resume_from else None
        canonical_url = resume_from.canonical_url if resume_from else None
        replaced_url = resume_from.replaced_url if resume_from else None

        stage = PromotionStage.FETCHING_EDIT
        try:
            if promoted_video_id is None:
                data = await self._fetch_edit(change)

                stage = PromotionStage.UPLOADING_CANONICAL
                ext = extension_from_url(change.edit_url or "")
                path = unique_asset_path(self.canonical_prefix, ext, now=self._clock())
                await self.blobs.upload(path, data, video_content_type(ext))
                log.info("canonical_asset_uploaded", path=path, size=len(data))

                stage = PromotionStage.RESOLVING_URL
                canonical_url = await poll_until_available(
                    lambda: self.blobs.resolve_url(path),
                    self.policy,
                    self._sleep,
                    description=f"URL for {path}",
                )

                stage = PromotionStage.WRITING_NEW_VERSION
                original = await self.videos.get(change.video_id)
                replaced_url = original.canonical_url
                change, promoted_video_id = await self._write_version(
                    change, original, canonical_url
                )
                log.info("promoted_version_written", promoted_video_id=promoted_video_id)

            stage = PromotionStage.REFRESHING_FEED
            await self._refresh()

            retired = await self._retire(replaced_url, canonical_url, log)

            change = await self.changes.record_promotion(
                change.id,
                PromotionRecord(
                    state=PromotionState.DONE,
                    stage=PromotionStage.DONE,
                    promoted_video_id=promoted_video_id,
                    canonical_url=canonical_url,
                    replaced_url=replaced_url,
                ),
                expected_version=change.version,
            )
        except Exception as e:
            log.error("promotion_failed", stage=stage.value, error=str(e))
            await self._mark_inconsistent(
                change, stage, e, promoted_video_id, canonical_url, replaced_url, log
            )
            raise

        changes = await self.changes.list(change.video_id)
        latest = next((c for c in changes if c.id == change.id), change)
        log.info("promotion_completed", promoted_video_id=promoted_video_id, retired=retired)

        return PromotionResult(
            change=latest,
            stage=PromotionStage.DONE,
            promoted_video_id=promoted_video_id,
            canonical_url=canonical_url,
            old_asset_retired=retired,
            changes=changes,
        )

    async def _fetch_edit(self, change: Change) -> bytes:
        url = ensure_url(change.edit_url or "")
        return await self.blobs.fetch(url)

    async def _write_version(
        self,
        change: Change,
        original: Video,
        canonical_url: str,
    ) -> tuple[Change, str]:
        """Write the promoted Video and the promotion checkpoint in one batch.

        The checkpoint stays ``in_progress`` at the feed refresh, so a failure
        from here on still resumes. The returned change carries the version
        the batch wrote, without reading it back.
        """
        if self.strategy == PromotionStrategy.IN_PLACE:
            promoted_id = original.id
            ops = [self.videos.replace_url_op(original, canonical_url)]
        else:
            promoted_id, ops = self.videos.successor_ops(original, canonical_url)

        record = PromotionRecord(
            state=PromotionState.IN_PROGRESS,
            stage=PromotionStage.REFRESHING_FEED,
            promoted_video_id=promoted_id,
            canonical_url=canonical_url,
            replaced_url=original.canonical_url,
            started_at=(change.promotion.started_at if change.promotion else None) or self._clock(),
        )
        ops.append(self.changes.promotion_op(change, record))
        await self.changes.store.batch(ops)

        written = dataclasses.replace(change, promotion=record, version=change.version + 1)
        return written, promoted_id

    async def _refresh(self) -> None:
        if self.refresh_feed is None:
            return
        result = self.refresh_feed()
        if inspect.isawaitable(result):
            await result

    async def _mark_inconsistent(
        self,
        change: Change,
        stage: PromotionStage,
        error: Exception,
        promoted_video_id: str | None,
        canonical_url: str | None,
        replaced_url: str | None,
        log,
    ) -> None:
        record = PromotionRecord(
            state=PromotionState.INCONSISTENT,
            stage=stage,
            promoted_video_id=promoted_video_id,
            canonical_url=canonical_url,
            replaced_url=replaced_url,
            error=f"{type(error).__name__}: {error}",
        )
        try:
            await self.changes.record_promotion(
                change.id, record, expected_version=change.version
            )
        except Exception as record_error:
            # The record stays in_progress and is resumed once its lease expires
            log.error("promotion_record_failed", stage=stage.value, error=str(record_error))
            return
        log.warning("change_left_inconsistent", stage=stage.value)

    async def _retire(self, replaced_url: str | None, canonical_url: str | None, log) -> bool:
        """Best-effort delete of the asset the promotion replaced."""
        if not replaced_url or replaced_url == canonical_url:
            return False
        try:
            await self.blobs.delete(replaced_url)
        except Exception as e:
            log.warning("old_asset_retire_failed", url=replaced_url[:100], error=str(e))
            return False
        log.info("old_asset_retired", url=replaced_url[:100])
        return True
