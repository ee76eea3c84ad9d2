"""Video feed endpoints."""

from fastapi import APIRouter, Query

from blast.api.deps import ReviewServiceDep
from blast.api.schemas import FeedResponse, VideoResponse

router = APIRouter(prefix="/videos", tags=["Videos"])


@router.get(
    "",
    response_model=FeedResponse,
    summary="List videos",
    description="Newest-first feed of current video versions, one page at a time.",
)
async def list_videos(
    service: ReviewServiceDep,
    cursor: str | None = Query(None, description="Cursor from the previous page"),
) -> FeedResponse:
    page = await service.feed_page(cursor)
    return FeedResponse(
        videos=[VideoResponse.from_video(v) for v in page.videos],
        cursor=page.cursor,
        has_more=page.has_more,
    )


@router.get("/{video_id}", response_model=VideoResponse, summary="Get video")
async def get_video(video_id: str, service: ReviewServiceDep) -> VideoResponse:
    return VideoResponse.from_video(await service.videos.get(video_id))
