"""Tests for the notification inbox and preferences."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import User
from codema.core.exceptions import NotFoundError
from codema.modules.notifications.models import NotificationKind
from codema.modules.notifications.service import NotificationService


async def _notify(service: NotificationService, user: User, kind=NotificationKind.SYSTEM, title="Aviso"):
    return await service.notify(user.id, kind, title=title, message="Mensagem de teste")


class TestNotificationService:
    """notify() honours preferences; the inbox tracks read state."""

    async def test_default_preferences_allow_everything(self, db_session: AsyncSession, citizen: User):
        service = NotificationService(db_session)

        prefs = await service.get_preferences(citizen.id)
        assert prefs.id is None
        assert prefs.in_app_enabled is True
        assert prefs.reminder_hours_before == 24

        notification = await _notify(service, citizen, NotificationKind.COMPLAINT)
        assert notification is not None
        assert notification.is_read is False

    async def test_kind_toggle_suppresses(self, db_session: AsyncSession, councillors: list[User]):
        service = NotificationService(db_session)
        user = councillors[0]
        await service.update_preferences(user.id, {"convocations": False})

        assert await _notify(service, user, NotificationKind.CONVOCATION) is None
        assert await _notify(service, user, NotificationKind.RESOLUTION) is not None

    async def test_in_app_off_suppresses_all(self, db_session: AsyncSession, citizen: User):
        service = NotificationService(db_session)
        await service.update_preferences(citizen.id, {"in_app_enabled": False})

        assert await _notify(service, citizen, NotificationKind.SYSTEM) is None
        assert await service.unread_count(citizen.id) == 0

    async def test_update_preferences_persists_once(self, db_session: AsyncSession, citizen: User):
        service = NotificationService(db_session)
        first = await service.update_preferences(citizen.id, {"reminder_hours_before": 48})
        second = await service.update_preferences(citizen.id, {"email_enabled": False})

        assert first.id == second.id
        assert second.reminder_hours_before == 48
        assert second.email_enabled is False

    async def test_read_state(self, db_session: AsyncSession, citizen: User, admin: User):
        service = NotificationService(db_session)
        first = await _notify(service, citizen, title="Primeiro")
        await _notify(service, citizen, title="Segundo")
        await _notify(service, admin, title="De outro usuário")

        assert await service.unread_count(citizen.id) == 2

        read = await service.mark_read(first.id, citizen.id)
        assert read.is_read is True
        assert read.read_at is not None

        unread, total = await service.list_notifications(citizen.id, unread_only=True)
        assert total == 1
        assert unread[0].title == "Segundo"

        assert await service.mark_all_read(citizen.id) == 1
        assert await service.unread_count(citizen.id) == 0
        assert await service.unread_count(admin.id) == 1

    async def test_cannot_read_someone_elses(self, db_session: AsyncSession, citizen: User, admin: User):
        service = NotificationService(db_session)
        notification = await _notify(service, admin)

        with pytest.raises(NotFoundError):
            await service.mark_read(notification.id, citizen.id)


class TestNotificationEndpoints:
    """The current user's inbox over HTTP."""

    async def test_inbox_flow(self, client: AsyncClient, db_session: AsyncSession, citizen: User, auth_headers):
        service = NotificationService(db_session)
        await _notify(service, citizen, title="Denúncia atualizada")
        await _notify(service, citizen, title="Comunicado")
        await db_session.commit()
        headers = await auth_headers(citizen)

        count = await client.get("/api/v1/notifications/unread-count", headers=headers)
        assert count.json()["data"]["unread"] == 2

        inbox = await client.get("/api/v1/notifications", headers=headers)
        items = inbox.json()["data"]["items"]
        assert len(items) == 2

        read = await client.post(f"/api/v1/notifications/{items[0]['id']}/read", headers=headers)
        assert read.json()["data"]["is_read"] is True

        read_all = await client.post("/api/v1/notifications/read-all", headers=headers)
        assert read_all.json()["data"]["updated"] == 1

        listed = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=headers)
        assert listed.json()["data"]["total"] == 0

    async def test_preferences_endpoints(self, client: AsyncClient, citizen: User, auth_headers):
        headers = await auth_headers(citizen)

        defaults = await client.get("/api/v1/notifications/preferences", headers=headers)
        assert defaults.json()["data"]["complaints"] is True

        updated = await client.put(
            "/api/v1/notifications/preferences",
            json={"complaints": False, "reminder_hours_before": 2},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["complaints"] is False
        assert updated.json()["data"]["reminder_hours_before"] == 2

        invalid = await client.put(
            "/api/v1/notifications/preferences",
            json={"reminder_hours_before": 500},
            headers=headers,
        )
        assert invalid.status_code == 422

    async def test_mark_missing(self, client: AsyncClient, citizen: User, auth_headers):
        response = await client.post(
            "/api/v1/notifications/999/read", headers=await auth_headers(citizen)
        )
        assert response.status_code == 404
