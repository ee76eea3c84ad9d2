"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header

from blast.services.review import ReviewService


@lru_cache
def get_review_service() -> ReviewService:
    """Get the review service instance shared by all requests."""
    return ReviewService()


def get_current_user(x_user_id: Annotated[str | None, Header()] = None) -> str | None:
    """Signed-in user id from the ``X-User-Id`` header, if any."""
    return x_user_id or None


ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]
CurrentUserDep = Annotated[str | None, Depends(get_current_user)]
