"""Business logic services."""

from blast.services.changes import ChangeRepository
from blast.services.promotion import PromotionResult, VersionPromoter
from blast.services.rejection import RejectionResult, Rejector
from blast.services.review import ReviewService
from blast.services.videos import FeedCache, VideoRepository

__all__ = [
    "ChangeRepository",
    "FeedCache",
    "PromotionResult",
    "RejectionResult",
    "Rejector",
    "ReviewService",
    "VersionPromoter",
    "VideoRepository",
]
