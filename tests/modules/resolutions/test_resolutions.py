"""Tests for resolutions: drafting, voting, publication and revocation."""

from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit.models import AuditLog
from codema.core.auth.models import User
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols.generator import ProtocolGenerator
from codema.core.protocols.numbering import is_provisional
from codema.modules.notifications.models import Notification
from codema.modules.resolutions.models import ResolutionStatus
from codema.modules.resolutions.schemas import ResolutionCreate, VoteResultRequest
from codema.modules.resolutions.service import ResolutionService


def _resolution_data(**overrides) -> ResolutionCreate:
    data = {
        "title": "Plano Municipal de Arborização",
        "summary": "Aprova o plano de arborização urbana",
        "legal_basis": "Lei Municipal 1.234/2020",
        "body": "Art. 1º Fica aprovado o Plano Municipal de Arborização.",
    }
    data.update(overrides)
    return ResolutionCreate(**data)


async def _approved(service: ResolutionService, user: User):
    resolution = await service.create_resolution(_resolution_data(), user.id)
    await service.start_voting(resolution.id, user.id)
    return await service.record_vote_result(
        resolution.id, VoteResultRequest(votes_for=7, votes_against=2, votes_abstain=1), user.id
    )


class TestResolutionService:
    """Status rules of the resolution lifecycle."""

    async def test_create_draft_with_res_protocol(self, db_session: AsyncSession, secretary: User):
        resolution = await ResolutionService(db_session).create_resolution(
            _resolution_data(), secretary.id
        )

        assert resolution.protocol_number.startswith("RES-001/")
        assert resolution.status == ResolutionStatus.DRAFT
        assert resolution.votes_for == 0

    async def test_unknown_meeting_rejected(self, db_session: AsyncSession, secretary: User):
        with pytest.raises(NotFoundError):
            await ResolutionService(db_session).create_resolution(
                _resolution_data(meeting_id=404), secretary.id
            )

    async def test_majority_approves(self, db_session: AsyncSession, secretary: User):
        resolution = await _approved(ResolutionService(db_session), secretary)

        assert resolution.status == ResolutionStatus.APPROVED
        assert (resolution.votes_for, resolution.votes_against, resolution.votes_abstain) == (7, 2, 1)
        assert resolution.approved_at is not None

    async def test_tie_rejects(self, db_session: AsyncSession, secretary: User):
        service = ResolutionService(db_session)
        resolution = await service.create_resolution(_resolution_data(), secretary.id)
        await service.start_voting(resolution.id, secretary.id)

        resolution = await service.record_vote_result(
            resolution.id, VoteResultRequest(votes_for=4, votes_against=4), secretary.id
        )

        assert resolution.status == ResolutionStatus.REJECTED
        assert resolution.approved_at is None

    async def test_vote_requires_voting_status(self, db_session: AsyncSession, secretary: User):
        service = ResolutionService(db_session)
        resolution = await service.create_resolution(_resolution_data(), secretary.id)

        with pytest.raises(InvalidTransitionError):
            await service.record_vote_result(
                resolution.id, VoteResultRequest(votes_for=1, votes_against=0), secretary.id
            )

    async def test_zero_votes_rejected(self, db_session: AsyncSession, secretary: User):
        service = ResolutionService(db_session)
        resolution = await service.create_resolution(_resolution_data(), secretary.id)
        await service.start_voting(resolution.id, secretary.id)

        with pytest.raises(ValidationError):
            await service.record_vote_result(
                resolution.id, VoteResultRequest(votes_for=0, votes_against=0), secretary.id
            )

    async def test_only_drafts_are_editable(self, db_session: AsyncSession, secretary: User):
        service = ResolutionService(db_session)
        resolution = await service.create_resolution(_resolution_data(), secretary.id)

        updated = await service.update_resolution(
            resolution.id, {"title": "Plano de Arborização Urbana"}, secretary.id
        )
        assert updated.title == "Plano de Arborização Urbana"

        await service.start_voting(resolution.id, secretary.id)
        with pytest.raises(InvalidTransitionError):
            await service.update_resolution(resolution.id, {"title": "Outro"}, secretary.id)

    async def test_publish_notifies_councillors(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        service = ResolutionService(db_session)
        resolution = await _approved(service, secretary)

        published = await service.publish(resolution.id, secretary.id)

        assert published.status == ResolutionStatus.PUBLISHED
        assert published.published_at is not None
        notified = (
            await db_session.execute(select(Notification.user_id).where(Notification.kind == "resolution"))
        ).scalars().all()
        assert sorted(notified) == sorted(c.id for c in councillors)

    async def test_revoke_published_only(self, db_session: AsyncSession, secretary: User, admin: User):
        service = ResolutionService(db_session)
        resolution = await _approved(service, secretary)

        with pytest.raises(InvalidTransitionError):
            await service.revoke(resolution.id, "Ilegalidade constatada", admin.id)

        await service.publish(resolution.id, secretary.id)
        revoked = await service.revoke(resolution.id, "Ilegalidade constatada", admin.id)

        assert revoked.status == ResolutionStatus.REVOKED
        assert revoked.revocation_reason == "Ilegalidade constatada"
        entry = (
            await db_session.execute(select(AuditLog).where(AuditLog.action == "REVOKE"))
        ).scalar_one()
        assert entry.comment == "Ilegalidade constatada"
        assert entry.old_values == {"status": "Published"}


class TestResolutionEndpoints:
    """Role rules on /resolutions."""

    async def test_full_flow(
        self, client: AsyncClient, secretary: User, admin: User, citizen: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        created = await client.post(
            "/api/v1/resolutions",
            json={
                "title": "Criação de unidade de conservação",
                "summary": "Cria o Parque Natural Municipal",
                "body": "Art. 1º Fica criado o Parque Natural Municipal.",
            },
            headers=staff,
        )
        assert created.status_code == 201
        resolution_id = created.json()["data"]["id"]
        base = f"/api/v1/resolutions/{resolution_id}"

        await client.post(f"{base}/voting", headers=staff)
        voted = await client.post(
            f"{base}/vote-result", json={"votes_for": 5, "votes_against": 1}, headers=staff
        )
        assert voted.json()["data"]["status"] == "Approved"

        published = await client.post(f"{base}/publish", headers=staff)
        assert published.json()["data"]["status"] == "Published"

        body = {"reason": "Decisão judicial"}
        denied = await client.post(f"{base}/revoke", json=body, headers=staff)
        assert denied.status_code == 403

        revoked = await client.post(f"{base}/revoke", json=body, headers=await auth_headers(admin))
        assert revoked.status_code == 200
        assert revoked.json()["data"]["status"] == "Revoked"

        listed = await client.get(
            "/api/v1/resolutions", params={"status": "Revoked"}, headers=await auth_headers(citizen)
        )
        assert listed.json()["data"]["total"] == 1

    async def test_citizen_cannot_draft(self, client: AsyncClient, citizen: User, auth_headers):
        response = await client.post(
            "/api/v1/resolutions",
            json={"title": "Titulo", "summary": "Resumo", "body": "Corpo da resolução"},
            headers=await auth_headers(citizen),
        )
        assert response.status_code == 403

    async def test_publish_draft_conflict(self, client: AsyncClient, secretary: User, auth_headers):
        staff = await auth_headers(secretary)
        created = await client.post(
            "/api/v1/resolutions",
            json={"title": "Titulo", "summary": "Resumo", "body": "Corpo da resolução"},
            headers=staff,
        )
        response = await client.post(
            f"/api/v1/resolutions/{created.json()['data']['id']}/publish", headers=staff
        )
        assert response.status_code == 409

    async def test_provisional_protocol_is_flagged(
        self, client: AsyncClient, secretary: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        body = {"title": "Titulo", "summary": "Resumo", "body": "Corpo da resolução"}
        failure = OperationalError("INSERT INTO protocol_sequences", {}, Exception("connection lost"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            created = await client.post("/api/v1/resolutions", json=body, headers=staff)

        assert created.status_code == 201
        assert created.json()["message"] == "Resolution drafted with a provisional protocol number"
        data = created.json()["data"]
        assert data["protocol_degraded"] is True
        assert is_provisional(data["protocol_number"], "P")

        fetched = await client.get(f"/api/v1/resolutions/{data['id']}", headers=staff)
        assert fetched.json()["data"]["protocol_degraded"] is True
