"""Reject pipeline: close a change and discard its edit asset."""

from dataclasses import dataclass, field

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.paths import storage_path_from_url
from blast.domain.enums import ChangeStatus
from blast.domain.models import Change
from blast.logging import get_logger
from blast.services.changes import ChangeRepository

logger = get_logger(__name__)


@dataclass
class RejectionResult:
    """Outcome of a reject."""

    change: Change
    edit_asset_deleted: bool = False
    changes: list[Change] = field(default_factory=list)


class Rejector:
    """Marks a change rejected, then best-effort deletes its edit asset.

    The two steps fail independently: once the status is written, a failed
    delete is logged and left as an orphaned object, never retried.
    """

    def __init__(self, changes: ChangeRepository, blobs: BlobStore) -> None:
        self.changes = changes
        self.blobs = blobs

    async def reject(self, change: Change) -> RejectionResult:
        """Reject a change.

        Raises:
            InvalidTransition: If the change is no longer open
            ConcurrencyConflict: If the change was modified concurrently
        """
        rejected = await self.changes.set_status(change.id, ChangeStatus.REJECTED)
        logger.info("change_rejected", change_id=change.id, video_id=rejected.video_id)

        deleted = False
        if rejected.edit_url:
            deleted = await self._discard_edit_asset(rejected)

        changes = await self.changes.list(rejected.video_id)
        latest = next((c for c in changes if c.id == rejected.id), rejected)
        return RejectionResult(change=latest, edit_asset_deleted=deleted, changes=changes)

    async def _discard_edit_asset(self, change: Change) -> bool:
        url = change.edit_url or ""
        try:
            path = storage_path_from_url(url)
            await self.blobs.delete_path(path)
        except Exception as e:
            logger.warning(
                "edit_asset_delete_failed",
                change_id=change.id,
                url=url[:100],
                error=str(e),
            )
            return False

        logger.info("edit_asset_deleted", change_id=change.id, path=path)
        return True
