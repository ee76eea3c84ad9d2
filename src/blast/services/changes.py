"""Change proposal records and their status bookkeeping."""

from typing import Any

from blast.adapters.blob.paths import ensure_url
from blast.adapters.metadata.base import (
    SERVER_TIMESTAMP,
    BatchOp,
    FieldFilter,
    MetadataStore,
    OrderBy,
)
from blast.config import settings
from blast.domain.enums import ChangeStatus
from blast.domain.errors import AuthenticationRequired, ConcurrencyConflict, InvalidTransition
from blast.domain.models import Change, EditDiff, PromotionRecord
from blast.logging import get_logger

logger = get_logger(__name__)

CHANGES = "changes"


class ChangeRepository:
    """CRUD and status transitions for Change records.

    Never touches blobs. Status moves from ``open`` to exactly one terminal
    state; every transition is written under the version it was checked
    against, so two concurrent transitions cannot both succeed.
    """

    def __init__(self, store: MetadataStore, page_size: int | None = None) -> None:
        self.store = store
        self.page_size = page_size or settings.query_page_size

    async def create(
        self,
        video_id: str,
        author_id: str | None,
        description: str,
        edit_url: str | None = None,
        diff_metadata: EditDiff | dict[str, Any] | None = None,
    ) -> str:
        """Record a new open change and return its id.

        Raises:
            AuthenticationRequired: If there is no author
            InvalidReference: If ``edit_url`` is not an absolute URL
        """
        if not author_id:
            raise AuthenticationRequired("User not authenticated")
        if edit_url is not None:
            ensure_url(edit_url)
        if isinstance(diff_metadata, dict):
            diff_metadata = EditDiff.from_metadata(diff_metadata)

        change = Change(
            id="",
            video_id=video_id,
            user_id=author_id,
            description=description,
            edit_url=edit_url,
            diff_metadata=diff_metadata,
        )
        fields = {**change.to_fields(), "timestamp": SERVER_TIMESTAMP}
        change_id = await self.store.create(CHANGES, fields)

        logger.info(
            "change_created",
            change_id=change_id,
            video_id=video_id,
            user_id=author_id,
            has_edit=edit_url is not None,
        )
        return change_id

    async def get(self, change_id: str) -> Change:
        doc = await self.store.get(CHANGES, change_id)
        return Change.from_fields(doc.id, doc.fields, doc.version)

    async def list(self, video_id: str) -> list[Change]:
        """All changes proposed against a video, newest first."""
        changes: list[Change] = []
        cursor: str | None = None
        while True:
            page = await self.store.query(
                CHANGES,
                filters=[FieldFilter("videoId", video_id)],
                order_by=OrderBy("timestamp", descending=True),
                limit=self.page_size,
                cursor=cursor,
            )
            for doc in page.documents:
                try:
                    changes.append(Change.from_fields(doc.id, doc.fields, doc.version))
                except (KeyError, ValueError) as e:
                    logger.warning("change_document_malformed", change_id=doc.id, error=str(e))
            if page.cursor is None:
                return changes
            cursor = page.cursor

    async def set_status(
        self,
        change_id: str,
        new_status: ChangeStatus,
        expected_version: int | None = None,
        promotion: PromotionRecord | None = None,
    ) -> Change:
        """Move an open change to a terminal status.

        ``promotion`` is stored in the same write as the status.

        Raises:
            NotFound: If the change does not exist
            InvalidTransition: If the change is no longer open
            ConcurrencyConflict: If the change was modified since it was read
        """
        if new_status == ChangeStatus.OPEN:
            raise InvalidTransition("A change cannot be moved back to open")

        current = await self.get(change_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyConflict(
                f"Change {change_id} changed since it was read",
                expected=expected_version,
                actual=current.version,
            )
        if not current.is_open:
            raise InvalidTransition(
                f"Change {change_id} is already {current.status.value}, cannot become "
                f"{new_status.value}"
            )

        fields: dict[str, Any] = {"status": new_status.value}
        if promotion is not None:
            fields["promotion"] = promotion.to_dict()
        doc = await self.store.update_fields(
            CHANGES,
            change_id,
            fields,
            expected_version=current.version,
        )
        logger.info("change_status_updated", change_id=change_id, status=new_status.value)
        return Change.from_fields(doc.id, doc.fields, doc.version)

    async def record_promotion(
        self,
        change_id: str,
        record: PromotionRecord,
        expected_version: int | None = None,
    ) -> Change:
        """Store the outcome of an accept pipeline on its change."""
        doc = await self.store.update_fields(
            CHANGES,
            change_id,
            {"promotion": record.to_dict()},
            expected_version=expected_version,
        )
        return Change.from_fields(doc.id, doc.fields, doc.version)

    def promotion_op(self, change: Change, record: PromotionRecord) -> BatchOp:
        """Batch write storing ``record`` on ``change`` under its current version."""
        return BatchOp.update(
            CHANGES,
            change.id,
            {"promotion": record.to_dict()},
            expected_version=change.version,
        )
