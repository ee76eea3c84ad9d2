"""Domain models - pure Python classes independent of any store."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from blast.domain.enums import ChangeStatus, PromotionStage, PromotionState


def _as_datetime(value: Any) -> datetime | None:
    """Accept a datetime or its ISO string form (SQL store round-trip)."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class EditDiff:
    """Structured description of the edits applied to a proposed video."""

    filters: dict[str, Any] = field(default_factory=dict)
    adjustments: dict[str, Any] = field(default_factory=dict)
    transform: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "EditDiff":
        """Build from a stored diff map, tolerating missing sections."""
        return cls(
            filters=dict(metadata.get("filters") or {}),
            adjustments=dict(metadata.get("adjustments") or {}),
            transform=dict(metadata.get("transform") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "filters": self.filters,
            "adjustments": self.adjustments,
            "transform": self.transform,
        }


@dataclass
class Video:
    """A canonical playable video record."""

    id: str
    canonical_url: str
    user_id: str
    caption: str = ""
    likes: int = 0
    comments: int = 0
    timestamp: datetime | None = None
    is_edited: bool = False
    previous_version_id: str | None = None
    superseded_by_id: str | None = None
    version: int = 0

    @classmethod
    def from_fields(cls, id: str, fields: dict[str, Any], version: int = 0) -> "Video":
        """Create a Video from a stored document."""
        return cls(
            id=id,
            canonical_url=fields.get("canonicalUrl") or "",
            user_id=fields.get("userId") or "",
            caption=fields.get("caption") or "",
            likes=int(fields.get("likes") or 0),
            comments=int(fields.get("comments") or 0),
            timestamp=_as_datetime(fields.get("timestamp")),
            is_edited=bool(fields.get("isEdited", False)),
            previous_version_id=fields.get("previousVersionId"),
            superseded_by_id=fields.get("supersededById"),
            version=version,
        )

    def to_fields(self) -> dict[str, Any]:
        """Document fields, omitting absent optional references."""
        data: dict[str, Any] = {
            "userId": self.user_id,
            "caption": self.caption,
            "canonicalUrl": self.canonical_url,
            "likes": self.likes,
            "comments": self.comments,
            "timestamp": self.timestamp,
            "isEdited": self.is_edited,
        }
        if self.previous_version_id is not None:
            data["previousVersionId"] = self.previous_version_id
        if self.superseded_by_id is not None:
            data["supersededById"] = self.superseded_by_id
        return data


@dataclass
class PromotionRecord:
    """Saga record stored on a change after its accept pipeline runs.

    The change id is the idempotency key: a repeated accept consults this
    record instead of promoting twice. While an accept runs, the record is
    ``in_progress`` at the stage it will resume from.
    """

    state: PromotionState
    stage: PromotionStage
    promoted_video_id: str | None = None
    canonical_url: str | None = None
    replaced_url: str | None = None  # Canonical URL before promotion, retired afterwards
    error: str | None = None
    started_at: float | None = None  # Unix time the running accept committed its decision

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PromotionRecord":
        return cls(
            state=PromotionState(data["state"]),
            stage=PromotionStage(data["stage"]),
            promoted_video_id=data.get("promotedVideoId"),
            canonical_url=data.get("canonicalUrl"),
            replaced_url=data.get("replacedUrl"),
            error=data.get("error"),
            started_at=data.get("startedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "stage": self.stage.value,
            "promotedVideoId": self.promoted_video_id,
            "canonicalUrl": self.canonical_url,
            "replacedUrl": self.replaced_url,
            "error": self.error,
            "startedAt": self.started_at,
        }


@dataclass
class Change:
    """A proposed edit against exactly one Video."""

    id: str
    video_id: str
    user_id: str
    description: str
    status: ChangeStatus = ChangeStatus.OPEN
    timestamp: datetime | None = None
    edit_url: str | None = None
    diff_metadata: EditDiff | None = None
    promotion: PromotionRecord | None = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == ChangeStatus.OPEN

    @property
    def is_inconsistent(self) -> bool:
        """Accepted, but the promotion never completed."""
        return (
            self.status == ChangeStatus.ACCEPTED
            and self.promotion is not None
            and self.promotion.state == PromotionState.INCONSISTENT
        )

    @classmethod
    def from_fields(cls, id: str, fields: dict[str, Any], version: int = 0) -> "Change":
        """Create a Change from a stored document."""
        diff = fields.get("diffMetadata")
        promotion = fields.get("promotion")
        return cls(
            id=id,
            video_id=fields["videoId"],
            user_id=fields["userId"],
            description=fields.get("description") or "",
            status=ChangeStatus(fields.get("status", ChangeStatus.OPEN)),
            timestamp=_as_datetime(fields.get("timestamp")),
            edit_url=fields.get("editUrl"),
            diff_metadata=EditDiff.from_metadata(diff) if diff else None,
            promotion=PromotionRecord.from_dict(promotion) if promotion else None,
            version=version,
        )

    def to_fields(self) -> dict[str, Any]:
        """Document fields, omitting absent optional attributes."""
        data: dict[str, Any] = {
            "videoId": self.video_id,
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "description": self.description,
        }
        if self.edit_url is not None:
            data["editUrl"] = self.edit_url
        if self.diff_metadata is not None:
            data["diffMetadata"] = self.diff_metadata.to_dict()
        if self.promotion is not None:
            data["promotion"] = self.promotion.to_dict()
        return data
