"""Tests for the audit trail."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit.service import AuditAction, create_audit_log, list_audit_entries
from codema.core.auth.models import User


class TestAuditService:
    """Writing and filtering audit entries."""

    async def test_create_and_filter(self, db_session: AsyncSession, admin: User):
        await create_audit_log(
            session=db_session,
            action=AuditAction.CREATE,
            entity_type="Resolution",
            entity_id=1,
            user_id=admin.id,
            entity_identifier="RES-001/2025",
            new_values={"title": "Plano de arborização"},
        )
        await create_audit_log(
            session=db_session,
            action=AuditAction.UPDATE,
            entity_type="Meeting",
            entity_id=3,
            user_id=admin.id,
        )
        await db_session.flush()

        rows, total = await list_audit_entries(db_session, entity_type="Resolution")
        assert total == 1
        entry, full_name = rows[0]
        assert entry.action == "CREATE"
        assert entry.entity_identifier == "RES-001/2025"
        assert entry.new_values == {"title": "Plano de arborização"}
        assert full_name == admin.full_name

    async def test_pagination(self, db_session: AsyncSession, admin: User):
        for entity_id in range(5):
            await create_audit_log(
                session=db_session,
                action=AuditAction.UPDATE,
                entity_type="Complaint",
                entity_id=entity_id,
                user_id=admin.id,
            )
        await db_session.flush()

        rows, total = await list_audit_entries(
            db_session, entity_type="Complaint", page=2, limit=2
        )
        assert total == 5
        assert len(rows) == 2


class TestAuditEndpoints:
    """GET /audit is restricted to administrators."""

    async def test_admin_sees_login_entries(self, client: AsyncClient, admin: User, auth_headers):
        response = await client.get(
            "/api/v1/audit", params={"action": "LOGIN"}, headers=await auth_headers(admin)
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] >= 1
        assert data["items"][0]["user_full_name"] == admin.full_name

    async def test_secretary_forbidden(self, client: AsyncClient, secretary: User, auth_headers):
        response = await client.get("/api/v1/audit", headers=await auth_headers(secretary))
        assert response.status_code == 403
