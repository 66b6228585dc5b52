"""Inbox and preferences; `notify` is the entry point other modules use."""

from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.exceptions import NotFoundError
from codema.modules.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPreference,
)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_preferences(self, user_id: int) -> NotificationPreference:
        """Stored preferences, or an unsaved row with defaults."""
        result = await self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        prefs = result.scalar_one_or_none()
        if prefs is None:
            prefs = NotificationPreference(
                user_id=user_id,
                email_enabled=True,
                push_enabled=False,
                in_app_enabled=True,
                convocations=True,
                complaints=True,
                resolutions=True,
                reminder_hours_before=24,
            )
        return prefs

    async def update_preferences(self, user_id: int, data: dict) -> NotificationPreference:
        prefs = await self.get_preferences(user_id)
        for field, value in data.items():
            if value is not None:
                setattr(prefs, field, value)
        if prefs.id is None:
            self.db.add(prefs)
        await self.db.flush()
        await self.db.refresh(prefs)
        return prefs

    async def notify(
        self,
        user_id: int,
        kind: NotificationKind,
        title: str,
        message: str,
        entity_type: str | None = None,
        entity_id: int | None = None,
    ) -> Notification | None:
        """Create an in-app notification unless the user's preferences turn it off."""
        prefs = await self.get_preferences(user_id)
        if not prefs.allows(kind.value):
            return None
        notification = Notification(
            user_id=user_id,
            kind=kind.value,
            title=title[:255],
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Notification], int]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: int, user_id: int) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        unread_ids = (
            await self.db.execute(
                select(Notification.id).where(
                    Notification.user_id == user_id, Notification.is_read.is_(False)
                )
            )
        ).scalars().all()
        if unread_ids:
            await self.db.execute(
                update(Notification)
                .where(Notification.id.in_(unread_ids))
                .values(is_read=True, read_at=datetime.now(timezone.utc))
            )
        return len(unread_ids)
