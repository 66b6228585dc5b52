from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.database import get_db
from codema.modules.processes.models import (
    EnvironmentalProcess,
    ProcessPriority,
    ProcessStatus,
    ProcessType,
)
from codema.modules.processes.schemas import (
    AssignRapporteurRequest,
    ProcessActionRequest,
    ProcessCreate,
    ProcessResponse,
    ProcessSummary,
    ProcessUpdate,
)
from codema.modules.processes.service import ProcessService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/processes", tags=["Processes"])


def _to_response(process: EnvironmentalProcess) -> ProcessResponse:
    response = ProcessResponse.model_validate(process)
    response.overdue = process.is_overdue(date.today())
    return response


@router.post("", response_model=ApiResponse[ProcessResponse], status_code=status.HTTP_201_CREATED)
async def create_process(
    data: ProcessCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """File an environmental process. A PROC protocol number is assigned."""
    process = await ProcessService(db).create_process(data, created_by_id=current_user.id)
    message = "Process filed"
    if process.protocol_degraded:
        message = "Process filed with a provisional protocol number"
    return ApiResponse(data=_to_response(process), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[ProcessResponse]])
async def list_processes(
    current_user: CurrentUser,
    status: ProcessStatus | None = Query(None),
    process_type: ProcessType | None = Query(None),
    priority: ProcessPriority | None = Query(None),
    rapporteur_id: int | None = Query(None),
    overdue: bool = Query(False, description="Only open processes past the opinion deadline"),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    processes, total = await ProcessService(db).list_processes(
        status=status,
        process_type=process_type,
        priority=priority,
        rapporteur_id=rapporteur_id,
        overdue=overdue,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[_to_response(p) for p in processes],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/summary", response_model=ApiResponse[ProcessSummary])
async def get_process_summary(current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await ProcessService(db).get_summary())


@router.get("/{process_id}", response_model=ApiResponse[ProcessResponse])
async def get_process(process_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=_to_response(await ProcessService(db).get_process(process_id)))


@router.patch("/{process_id}", response_model=ApiResponse[ProcessResponse])
async def update_process(
    process_id: int,
    data: ProcessUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    process = await ProcessService(db).update_process(
        process_id, data.model_dump(exclude_unset=True), updated_by_id=current_user.id
    )
    return ApiResponse(data=_to_response(process), message="Process updated")


@router.post("/{process_id}/rapporteur", response_model=ApiResponse[ProcessResponse])
async def assign_rapporteur(
    process_id: int,
    payload: AssignRapporteurRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Name the councillor who reports the process to the plenary."""
    process = await ProcessService(db).assign_rapporteur(
        process_id, payload.rapporteur_id, current_user.id
    )
    return ApiResponse(data=_to_response(process), message="Rapporteur assigned")


@router.post("/{process_id}/actions", response_model=ApiResponse[ProcessResponse])
async def apply_process_action(
    process_id: int,
    payload: ProcessActionRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Run one workflow action (technical review, rapporteur, voting, decision, archive)."""
    process = await ProcessService(db).apply_action(process_id, payload, current_user.id)
    return ApiResponse(data=_to_response(process))


@router.delete("/{process_id}", response_model=ApiResponse[None])
async def delete_process(process_id: int, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    """Remove a process filed by mistake (only while still Filed)."""
    await ProcessService(db).delete_process(process_id, current_user.id)
    return ApiResponse(data=None, message="Process deleted")
