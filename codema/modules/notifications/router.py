from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import CurrentUser
from codema.core.database import get_db
from codema.modules.notifications.schemas import (
    MarkAllReadResponse,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
    UnreadCountResponse,
)
from codema.modules.notifications.service import NotificationService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=ApiResponse[PaginatedResponse[NotificationResponse]])
async def list_notifications(
    current_user: CurrentUser,
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Current user's inbox, newest first."""
    items, total = await NotificationService(db).list_notifications(
        current_user.id, unread_only=unread_only, page=page, limit=limit
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[NotificationResponse.model_validate(n) for n in items],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCountResponse])
async def get_unread_count(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    count = await NotificationService(db).unread_count(current_user.id)
    return ApiResponse(data=UnreadCountResponse(unread=count))


@router.post("/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
async def mark_notification_read(
    notification_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService(db).mark_read(notification_id, current_user.id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.post("/read-all", response_model=ApiResponse[MarkAllReadResponse])
async def mark_all_notifications_read(
    current_user: CurrentUser, db: AsyncSession = Depends(get_db)
):
    updated = await NotificationService(db).mark_all_read(current_user.id)
    return ApiResponse(data=MarkAllReadResponse(updated=updated))


@router.get("/preferences", response_model=ApiResponse[NotificationPreferenceResponse])
async def get_preferences(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    prefs = await NotificationService(db).get_preferences(current_user.id)
    return ApiResponse(data=NotificationPreferenceResponse.model_validate(prefs))


@router.put("/preferences", response_model=ApiResponse[NotificationPreferenceResponse])
async def update_preferences(
    data: NotificationPreferenceUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    prefs = await NotificationService(db).update_preferences(
        current_user.id, data.model_dump(exclude_unset=True)
    )
    return ApiResponse(
        data=NotificationPreferenceResponse.model_validate(prefs),
        message="Preferences updated",
    )
