from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.database import get_db
from codema.modules.fma.models import ProjectStatus, RevenueStatus, RevenueType
from codema.modules.fma.schemas import (
    ExpenseCreate,
    ExpenseResponse,
    ExpenseReviewRequest,
    FundSummary,
    ProjectActionRequest,
    ProjectCreate,
    ProjectExecution,
    ProjectResponse,
    ProjectUpdate,
    RevenueCreate,
    RevenueResponse,
    RevenueUpdate,
)
from codema.modules.fma.service import FundService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/fma", tags=["Environmental Fund"])


@router.get("/summary", response_model=ApiResponse[FundSummary])
async def get_fund_summary(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Received revenue, committed amounts, available balance and project counts."""
    return ApiResponse(data=await FundService(db).get_summary())


# --- Revenues ---


@router.post(
    "/revenues",
    response_model=ApiResponse[RevenueResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_revenue(
    data: RevenueCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    revenue = await FundService(db).create_revenue(data, created_by_id=current_user.id)
    return ApiResponse(data=RevenueResponse.model_validate(revenue), message="Revenue recorded")


@router.get("/revenues", response_model=ApiResponse[PaginatedResponse[RevenueResponse]])
async def list_revenues(
    current_user: CurrentUser,
    revenue_type: RevenueType | None = Query(None),
    status: RevenueStatus | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    revenues, total = await FundService(db).list_revenues(
        revenue_type=revenue_type,
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[RevenueResponse.model_validate(r) for r in revenues],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.patch("/revenues/{revenue_id}", response_model=ApiResponse[RevenueResponse])
async def update_revenue(
    revenue_id: int,
    data: RevenueUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    revenue = await FundService(db).update_revenue(
        revenue_id, data.model_dump(exclude_unset=True), updated_by_id=current_user.id
    )
    return ApiResponse(data=RevenueResponse.model_validate(revenue), message="Revenue updated")


# --- Projects ---


@router.post(
    "/projects",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    data: ProjectCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Register a project proposal. A PROJ protocol number is assigned."""
    project = await FundService(db).create_project(data, submitted_by_id=current_user.id)
    message = "Project submitted"
    if project.protocol_degraded:
        message = "Project submitted with a provisional protocol number"
    return ApiResponse(data=ProjectResponse.model_validate(project), message=message)


@router.get("/projects", response_model=ApiResponse[PaginatedResponse[ProjectResponse]])
async def list_projects(
    current_user: CurrentUser,
    status: ProjectStatus | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    projects, total = await FundService(db).list_projects(
        status=status, search=search, page=page, limit=limit
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[ProjectResponse.model_validate(p) for p in projects],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/projects/{project_id}", response_model=ApiResponse[ProjectResponse])
async def get_project(project_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    project = await FundService(db).get_project(project_id)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.patch("/projects/{project_id}", response_model=ApiResponse[ProjectResponse])
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    project = await FundService(db).update_project(
        project_id, data.model_dump(exclude_unset=True), updated_by_id=current_user.id
    )
    return ApiResponse(data=ProjectResponse.model_validate(project), message="Project updated")


@router.post("/projects/{project_id}/actions", response_model=ApiResponse[ProjectResponse])
async def apply_project_action(
    project_id: int,
    payload: ProjectActionRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    project = await FundService(db).apply_action(project_id, payload, current_user.id)
    return ApiResponse(data=ProjectResponse.model_validate(project))


@router.get("/projects/{project_id}/execution", response_model=ApiResponse[ProjectExecution])
async def get_project_execution(
    project_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)
):
    return ApiResponse(data=await FundService(db).get_execution(project_id))


# --- Expenses ---


@router.get("/projects/{project_id}/expenses", response_model=ApiResponse[list[ExpenseResponse]])
async def list_expenses(project_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    project = await FundService(db).get_project(project_id)
    return ApiResponse(data=[ExpenseResponse.model_validate(e) for e in project.expenses])


@router.post(
    "/projects/{project_id}/expenses",
    response_model=ApiResponse[ExpenseResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_expense(
    project_id: int,
    data: ExpenseCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    expense = await FundService(db).add_expense(project_id, data, current_user.id)
    return ApiResponse(data=ExpenseResponse.model_validate(expense), message="Expense registered")


@router.post(
    "/projects/{project_id}/expenses/{expense_id}/review",
    response_model=ApiResponse[ExpenseResponse],
)
async def review_expense(
    project_id: int,
    expense_id: int,
    payload: ExpenseReviewRequest,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    expense = await FundService(db).review_expense(
        project_id,
        expense_id,
        payload.approve,
        payload.rejection_reason,
        reviewed_by_id=current_user.id,
    )
    return ApiResponse(
        data=ExpenseResponse.model_validate(expense),
        message="Expense approved" if payload.approve else "Expense rejected",
    )


@router.delete("/projects/{project_id}/expenses/{expense_id}", response_model=ApiResponse[None])
async def delete_expense(
    project_id: int,
    expense_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    await FundService(db).delete_expense(project_id, expense_id, current_user.id)
    return ApiResponse(data=None, message="Expense deleted")
