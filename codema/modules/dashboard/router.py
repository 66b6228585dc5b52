"""API for the executive dashboard (staff and councillors)."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import require_roles
from codema.core.auth.models import STAFF_ROLES, User, UserRole
from codema.core.database import get_db
from codema.core.exceptions import ValidationError
from codema.modules.dashboard.schemas import DashboardResponse
from codema.modules.dashboard.service import DashboardService
from codema.shared.schemas import ApiResponse

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

DashboardUser = Depends(require_roles(*STAFF_ROLES, UserRole.COUNCILLOR))


@router.get("", response_model=ApiResponse[DashboardResponse])
async def get_dashboard(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    year: int | None = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
    current_user: User = DashboardUser,
):
    """Meetings, minutes, resolutions, complaints and protocol totals."""
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to", field="date_from")
    data = await DashboardService(db).get_summary(date_from=date_from, date_to=date_to, year=year)
    return ApiResponse(data=data)
