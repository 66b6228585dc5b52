from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import CurrentUser, require_roles
from codema.core.auth.models import STAFF_ROLES, User, UserRole
from codema.core.database import get_db
from codema.core.exceptions import AuthorizationError
from codema.modules.complaints.models import Complaint, ComplaintPriority, ComplaintStatus
from codema.modules.complaints.schemas import (
    ComplaintActionRequest,
    ComplaintAnalytics,
    ComplaintCreate,
    ComplaintEventResponse,
    ComplaintResponse,
    ComplaintUpdate,
    ComplaintWorkflow,
)
from codema.modules.complaints.service import ComplaintService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/complaints", tags=["Complaints"])

# Staff and inspectors handle complaints; everyone else sees only their own
HANDLER_ROLES = (*STAFF_ROLES, UserRole.INSPECTOR)


def _can_view(user: User, complaint: Complaint) -> bool:
    if user.has_role(*HANDLER_ROLES, UserRole.COUNCILLOR):
        return True
    return complaint.submitted_by_id == user.id


@router.post("", response_model=ApiResponse[ComplaintResponse], status_code=status.HTTP_201_CREATED)
async def create_complaint(
    data: ComplaintCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """File a complaint. An OUV protocol number is assigned."""
    complaint = await ComplaintService(db).create_complaint(data, submitted_by_id=current_user.id)
    message = "Complaint registered"
    if complaint.protocol_degraded:
        message = "Complaint registered with a provisional protocol number"
    return ApiResponse(data=ComplaintResponse.model_validate(complaint), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[ComplaintResponse]])
async def list_complaints(
    current_user: CurrentUser,
    status: ComplaintStatus | None = Query(None),
    priority: ComplaintPriority | None = Query(None),
    complaint_type: str | None = Query(None),
    inspector_id: int | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    submitted_by_id = None
    if not current_user.has_role(*HANDLER_ROLES, UserRole.COUNCILLOR):
        submitted_by_id = current_user.id

    complaints, total = await ComplaintService(db).list_complaints(
        status=status,
        priority=priority,
        complaint_type=complaint_type,
        inspector_id=inspector_id,
        submitted_by_id=submitted_by_id,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[ComplaintResponse.model_validate(c) for c in complaints],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/analytics", response_model=ApiResponse[ComplaintAnalytics])
async def get_complaint_analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*HANDLER_ROLES)),
):
    return ApiResponse(data=await ComplaintService(db).get_analytics())


@router.get("/{complaint_id}", response_model=ApiResponse[ComplaintResponse])
async def get_complaint(
    complaint_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    complaint = await ComplaintService(db).get_complaint(complaint_id)
    if not _can_view(current_user, complaint):
        raise AuthorizationError("You can only view your own complaints")
    return ApiResponse(data=ComplaintResponse.model_validate(complaint))


@router.patch("/{complaint_id}", response_model=ApiResponse[ComplaintResponse])
async def update_complaint(
    complaint_id: int,
    data: ComplaintUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*HANDLER_ROLES)),
):
    complaint = await ComplaintService(db).update_complaint(
        complaint_id, data.model_dump(exclude_unset=True), updated_by_id=current_user.id
    )
    return ApiResponse(data=ComplaintResponse.model_validate(complaint), message="Complaint updated")


@router.post("/{complaint_id}/actions", response_model=ApiResponse[ComplaintResponse])
async def apply_complaint_action(
    complaint_id: int,
    payload: ComplaintActionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*HANDLER_ROLES)),
):
    """Run one workflow action (investigate, schedule/record inspection, conclude, archive)."""
    complaint = await ComplaintService(db).apply_action(complaint_id, payload, current_user.id)
    return ApiResponse(data=ComplaintResponse.model_validate(complaint))


@router.get("/{complaint_id}/workflow", response_model=ApiResponse[ComplaintWorkflow])
async def get_complaint_workflow(
    complaint_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    service = ComplaintService(db)
    complaint = await service.get_complaint(complaint_id)
    if not _can_view(current_user, complaint):
        raise AuthorizationError("You can only view your own complaints")
    return ApiResponse(data=await service.get_workflow(complaint_id))


@router.get("/{complaint_id}/timeline", response_model=ApiResponse[list[ComplaintEventResponse]])
async def get_complaint_timeline(
    complaint_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    service = ComplaintService(db)
    complaint = await service.get_complaint(complaint_id)
    if not _can_view(current_user, complaint):
        raise AuthorizationError("You can only view your own complaints")
    events = await service.get_timeline(complaint_id)
    return ApiResponse(
        data=[
            ComplaintEventResponse(
                id=event.id,
                action=event.action,
                from_status=event.from_status,
                to_status=event.to_status,
                user_id=event.user_id,
                user_name=event.user.full_name if event.user else None,
                notes=event.notes,
                created_at=event.created_at,
            )
            for event in events
        ]
    )
