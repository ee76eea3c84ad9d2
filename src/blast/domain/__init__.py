"""Domain models and business logic."""

from blast.domain.enums import (
    ChangeStatus,
    PromotionStage,
    PromotionState,
    PromotionStrategy,
)
from blast.domain.models import Change, EditDiff, PromotionRecord, Video

__all__ = [
    "Change",
    "ChangeStatus",
    "EditDiff",
    "PromotionRecord",
    "PromotionStage",
    "PromotionState",
    "PromotionStrategy",
    "Video",
]
