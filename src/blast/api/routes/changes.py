"""Change proposal and review endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from blast.api.deps import CurrentUserDep, ReviewServiceDep
from blast.api.schemas import ChangeResponse, CreateChangeRequest

router = APIRouter(tags=["Changes"])


class AcceptResponse(BaseModel):
    """Result of accepting a change."""

    change: ChangeResponse
    promoted_video_id: str | None
    old_asset_retired: bool
    replayed: bool
    changes: list[ChangeResponse]


class RejectResponse(BaseModel):
    """Result of rejecting a change."""

    change: ChangeResponse
    edit_asset_deleted: bool
    changes: list[ChangeResponse]


@router.get(
    "/videos/{video_id}/changes",
    response_model=list[ChangeResponse],
    summary="List changes",
    description="All changes proposed against a video, newest first.",
)
async def list_changes(video_id: str, service: ReviewServiceDep) -> list[ChangeResponse]:
    changes = await service.list_changes(video_id)
    return [ChangeResponse.from_change(c) for c in changes]


@router.post(
    "/videos/{video_id}/changes",
    response_model=ChangeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Propose change",
)
async def create_change(
    video_id: str,
    request: CreateChangeRequest,
    service: ReviewServiceDep,
    user_id: CurrentUserDep,
) -> ChangeResponse:
    change = await service.propose(
        video_id,
        request.description,
        edit_url=request.edit_url,
        diff_metadata=request.diff_metadata,
        user_id=user_id,
    )
    return ChangeResponse.from_change(change)


@router.post(
    "/changes/{change_id}/accept",
    response_model=AcceptResponse,
    summary="Accept change",
    description="Accept a change and promote its edit asset to the canonical video.",
)
async def accept_change(
    change_id: str,
    service: ReviewServiceDep,
    user_id: CurrentUserDep,
) -> AcceptResponse:
    result = await service.accept(change_id, user_id=user_id)
    return AcceptResponse(
        change=ChangeResponse.from_change(result.change),
        promoted_video_id=result.promoted_video_id,
        old_asset_retired=result.old_asset_retired,
        replayed=result.replayed,
        changes=[ChangeResponse.from_change(c) for c in result.changes],
    )


@router.post(
    "/changes/{change_id}/reject",
    response_model=RejectResponse,
    summary="Reject change",
)
async def reject_change(
    change_id: str,
    service: ReviewServiceDep,
    user_id: CurrentUserDep,
) -> RejectResponse:
    result = await service.reject(change_id, user_id=user_id)
    return RejectResponse(
        change=ChangeResponse.from_change(result.change),
        edit_asset_deleted=result.edit_asset_deleted,
        changes=[ChangeResponse.from_change(c) for c in result.changes],
    )
