"""Request and response models shared by the API routes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from blast.domain.models import Change, Video


class VideoResponse(BaseModel):
    """Video response model."""

    id: str
    canonical_url: str
    user_id: str
    caption: str
    likes: int
    comments: int
    timestamp: datetime | None
    is_edited: bool
    previous_version_id: str | None = None

    @classmethod
    def from_video(cls, video: Video) -> "VideoResponse":
        return cls(
            id=video.id,
            canonical_url=video.canonical_url,
            user_id=video.user_id,
            caption=video.caption,
            likes=video.likes,
            comments=video.comments,
            timestamp=video.timestamp,
            is_edited=video.is_edited,
            previous_version_id=video.previous_version_id,
        )


class PromotionResponse(BaseModel):
    """Saga record of an accepted change."""

    state: str
    stage: str
    promoted_video_id: str | None = None
    error: str | None = None


class ChangeResponse(BaseModel):
    """Change response model."""

    id: str
    video_id: str
    user_id: str
    description: str
    status: str
    timestamp: datetime | None
    edit_url: str | None = None
    diff_metadata: dict[str, Any] | None = None
    promotion: PromotionResponse | None = None

    @classmethod
    def from_change(cls, change: Change) -> "ChangeResponse":
        promotion = None
        if change.promotion is not None:
            promotion = PromotionResponse(
                state=change.promotion.state.value,
                stage=change.promotion.stage.value,
                promoted_video_id=change.promotion.promoted_video_id,
                error=change.promotion.error,
            )
        return cls(
            id=change.id,
            video_id=change.video_id,
            user_id=change.user_id,
            description=change.description,
            status=change.status.value,
            timestamp=change.timestamp,
            edit_url=change.edit_url,
            diff_metadata=change.diff_metadata.to_dict() if change.diff_metadata else None,
            promotion=promotion,
        )


class CreateChangeRequest(BaseModel):
    """Request to propose a change against a video."""

    description: str = Field(..., min_length=1, max_length=5000)
    edit_url: str | None = Field(None, description="URL of an already uploaded edit asset")
    diff_metadata: dict[str, Any] | None = None


class FeedResponse(BaseModel):
    """One page of the video feed."""

    videos: list[VideoResponse]
    cursor: str | None
    has_more: bool
