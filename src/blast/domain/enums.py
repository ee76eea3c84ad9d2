"""Domain enumerations."""

from enum import StrEnum


class ChangeStatus(StrEnum):
    """Review status of a proposed change."""

    OPEN = "open"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ChangeStatus.OPEN


class PromotionStage(StrEnum):
    """Recorded stages of the accept pipeline, in execution order."""

    FETCHING_EDIT = "fetching_edit"
    UPLOADING_CANONICAL = "uploading_canonical"
    RESOLVING_URL = "resolving_url"
    WRITING_NEW_VERSION = "writing_new_version"
    REFRESHING_FEED = "refreshing_feed"
    DONE = "done"


class PromotionState(StrEnum):
    """Saga state recorded on an accepted change."""

    IN_PROGRESS = "in_progress"  # An accept is running the stages
    SKIPPED = "skipped"  # Text-only change, nothing to promote
    DONE = "done"
    INCONSISTENT = "inconsistent"  # Decision committed, promotion did not finish


class PromotionStrategy(StrEnum):
    """How an accepted edit replaces the canonical video."""

    NEW_VERSION = "new_version"  # New Video record linked via previousVersionId
    IN_PLACE = "in_place"  # Original Video record's URL is overwritten
