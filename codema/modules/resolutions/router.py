from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.database import get_db
from codema.modules.resolutions.models import ResolutionStatus
from codema.modules.resolutions.schemas import (
    ResolutionCreate,
    ResolutionResponse,
    ResolutionUpdate,
    RevokeRequest,
    VoteResultRequest,
)
from codema.modules.resolutions.service import ResolutionService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/resolutions", tags=["Resolutions"])


@router.post("", response_model=ApiResponse[ResolutionResponse], status_code=status.HTTP_201_CREATED)
async def create_resolution(
    data: ResolutionCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Draft a resolution. A RES protocol number is assigned."""
    resolution = await ResolutionService(db).create_resolution(data, current_user.id)
    message = "Resolution drafted"
    if resolution.protocol_degraded:
        message = "Resolution drafted with a provisional protocol number"
    return ApiResponse(data=ResolutionResponse.model_validate(resolution), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[ResolutionResponse]])
async def list_resolutions(
    current_user: CurrentUser,
    status: ResolutionStatus | None = Query(None),
    meeting_id: int | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    resolutions, total = await ResolutionService(db).list_resolutions(
        status=status, meeting_id=meeting_id, search=search, page=page, limit=limit
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[ResolutionResponse.model_validate(r) for r in resolutions],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/{resolution_id}", response_model=ApiResponse[ResolutionResponse])
async def get_resolution(resolution_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    resolution = await ResolutionService(db).get_resolution(resolution_id)
    return ApiResponse(data=ResolutionResponse.model_validate(resolution))


@router.patch("/{resolution_id}", response_model=ApiResponse[ResolutionResponse])
async def update_resolution(
    resolution_id: int,
    data: ResolutionUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    resolution = await ResolutionService(db).update_resolution(
        resolution_id, data.model_dump(exclude_unset=True), current_user.id
    )
    return ApiResponse(data=ResolutionResponse.model_validate(resolution), message="Resolution updated")


@router.post("/{resolution_id}/voting", response_model=ApiResponse[ResolutionResponse])
async def start_voting(resolution_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    resolution = await ResolutionService(db).start_voting(resolution_id, current_user.id)
    return ApiResponse(data=ResolutionResponse.model_validate(resolution), message="Voting started")


@router.post("/{resolution_id}/vote-result", response_model=ApiResponse[ResolutionResponse])
async def record_vote_result(
    resolution_id: int,
    data: VoteResultRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    resolution = await ResolutionService(db).record_vote_result(resolution_id, data, current_user.id)
    return ApiResponse(data=ResolutionResponse.model_validate(resolution))


@router.post("/{resolution_id}/publish", response_model=ApiResponse[ResolutionResponse])
async def publish_resolution(resolution_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    resolution = await ResolutionService(db).publish(resolution_id, current_user.id)
    return ApiResponse(data=ResolutionResponse.model_validate(resolution), message="Resolution published")


@router.post("/{resolution_id}/revoke", response_model=ApiResponse[ResolutionResponse])
async def revoke_resolution(
    resolution_id: int,
    data: RevokeRequest,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    resolution = await ResolutionService(db).revoke(resolution_id, data.reason, current_user.id)
    return ApiResponse(data=ResolutionResponse.model_validate(resolution), message="Resolution revoked")
