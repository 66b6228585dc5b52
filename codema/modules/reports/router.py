from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.database import get_db
from codema.core.exceptions import AuthorizationError
from codema.modules.reports.models import ReportPriority, ReportStatus
from codema.modules.reports.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ReportCreate,
    ReportResponse,
    ReportStatusRequest,
    ReportUpdate,
)
from codema.modules.reports.service import ReportService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/reports", tags=["Reports"])


# --- Categories ---


@router.get("/categories", response_model=ApiResponse[list[CategoryResponse]])
async def list_categories(
    current_user: CurrentUser,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    categories = await ReportService(db).list_categories(
        include_inactive=include_inactive and current_user.is_staff
    )
    return ApiResponse(data=[CategoryResponse.model_validate(c) for c in categories])


@router.post(
    "/categories",
    response_model=ApiResponse[CategoryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    data: CategoryCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    category = await ReportService(db).create_category(data)
    return ApiResponse(data=CategoryResponse.model_validate(category), message="Category created")


@router.patch("/categories/{category_id}", response_model=ApiResponse[CategoryResponse])
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    category = await ReportService(db).update_category(category_id, data.model_dump(exclude_unset=True))
    return ApiResponse(data=CategoryResponse.model_validate(category), message="Category updated")


# --- Reports ---


@router.post("", response_model=ApiResponse[ReportResponse], status_code=status.HTTP_201_CREATED)
async def create_report(
    data: ReportCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Report a problem to the council. A REL protocol number is assigned."""
    report = await ReportService(db).create_report(data, user_id=current_user.id)
    message = "Report submitted"
    if report.protocol_degraded:
        message = "Report submitted with a provisional protocol number"
    return ApiResponse(data=ReportResponse.model_validate(report), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[ReportResponse]])
async def list_reports(
    current_user: CurrentUser,
    status: ReportStatus | None = Query(None),
    priority: ReportPriority | None = Query(None),
    category_id: int | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Staff see every report; everyone else sees their own."""
    reports, total = await ReportService(db).list_reports(
        status=status,
        priority=priority,
        category_id=category_id,
        user_id=None if current_user.is_staff else current_user.id,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[ReportResponse.model_validate(r) for r in reports],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/{report_id}", response_model=ApiResponse[ReportResponse])
async def get_report(report_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    report = await ReportService(db).get_report(report_id)
    if not current_user.is_staff and report.user_id != current_user.id:
        raise AuthorizationError("You can only view your own reports")
    return ApiResponse(data=ReportResponse.model_validate(report))


@router.patch("/{report_id}", response_model=ApiResponse[ReportResponse])
async def update_report(
    report_id: int,
    data: ReportUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    report = await ReportService(db).update_report(
        report_id, data.model_dump(exclude_unset=True), current_user
    )
    return ApiResponse(data=ReportResponse.model_validate(report), message="Report updated")


@router.post("/{report_id}/status", response_model=ApiResponse[ReportResponse])
async def change_report_status(
    report_id: int,
    payload: ReportStatusRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    report = await ReportService(db).change_status(report_id, payload, current_user.id)
    return ApiResponse(data=ReportResponse.model_validate(report))


@router.delete("/{report_id}", response_model=ApiResponse[None])
async def delete_report(report_id: int, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    await ReportService(db).delete_report(report_id, current_user.id)
    return ApiResponse(data=None, message="Report deleted")
