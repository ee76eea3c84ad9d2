"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from blast.api.deps import ReviewServiceDep
from blast.config import settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    components: dict[str, bool]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint that verifies the API is running.",
)
async def health_check() -> HealthResponse:
    """Basic health check - is the API up?

    Reports which store backends are configured, without contacting them.
    """
    from blast import __version__

    return HealthResponse(
        status="healthy",
        version=__version__,
        components={
            "metadata_store": settings.metadata_store,
            "blob_store": settings.blob_store,
            "promotion_strategy": settings.promotion_strategy,
        },
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Checks that the metadata and blob stores are reachable.",
)
async def readiness_check(service: ReviewServiceDep) -> ReadinessResponse:
    """Readiness check including store connectivity."""
    components = await service.health_check()
    return ReadinessResponse(ready=all(components.values()), components=components)


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
