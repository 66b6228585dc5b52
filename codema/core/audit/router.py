"""Audit trail (read-only, Admin/SuperAdmin)."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit.schemas import AuditLogResponse
from codema.core.audit.service import list_audit_entries
from codema.core.auth.dependencies import AdminUser
from codema.core.database import get_db
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=ApiResponse[PaginatedResponse[AuditLogResponse]])
async def list_audit_log(
    current_user: AdminUser,
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user_id: int | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: int | None = Query(None),
    action: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List audit entries, newest first."""
    rows, total = await list_audit_entries(
        db,
        date_from=date_from,
        date_to=date_to,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        page=page,
        limit=limit,
    )
    items = []
    for entry, full_name in rows:
        item = AuditLogResponse.model_validate(entry)
        item.user_full_name = full_name
        items.append(item)
    return ApiResponse(data=PaginatedResponse.create(items=items, total=total, page=page, limit=limit))
