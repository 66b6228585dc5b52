"""Tests for environmental processes: filing, rapporteur, opinions and the plenary vote."""

from datetime import date
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import User
from codema.core.exceptions import InvalidTransitionError, ValidationError
from codema.core.protocols.generator import ProtocolGenerator
from codema.core.protocols.numbering import is_provisional, parse_protocol
from codema.core.protocols.types import ProtocolType
from codema.modules.notifications.models import Notification
from codema.modules.processes.models import ProcessStatus
from codema.modules.processes.schemas import ProcessActionRequest, ProcessCreate
from codema.modules.processes.service import ProcessService


def _process_data(**overrides) -> ProcessCreate:
    data = {
        "process_type": "Licensing",
        "applicant": "Cerâmica Boa Vista Ltda",
        "applicant_document": "12345678000190",
        "site_address": "Rodovia MT-040, km 12",
        "activity_description": "Licença de operação para extração de argila",
        "filed_on": date(2025, 3, 3),
    }
    data.update(overrides)
    return ProcessCreate(**data)


async def _run(service: ProcessService, process_id: int, user: User, action: str, **fields):
    return await service.apply_action(process_id, ProcessActionRequest(action=action, **fields), user.id)


class TestProcessService:
    """Filing and workflow rules."""

    async def test_create_assigns_proc_protocol(self, db_session: AsyncSession, secretary: User):
        process = await ProcessService(db_session).create_process(_process_data(), secretary.id)

        parsed = parse_protocol(process.protocol_number)
        assert parsed.protocol_type == ProtocolType.PROC
        assert parsed.sequence == 1
        assert process.protocol_degraded is False
        assert process.status == ProcessStatus.FILED
        assert process.opinion_due_on == date(2025, 4, 2)
        assert process.rapporteur_name is None

    async def test_full_approval_path(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        service = ProcessService(db_session, today=lambda: date(2025, 5, 20))
        rapporteur = councillors[1]
        process = await service.create_process(_process_data(), secretary.id)

        await _run(service, process.id, secretary, "start_technical_review")
        await service.assign_rapporteur(process.id, rapporteur.id, secretary.id)
        await _run(
            service, process.id, secretary, "send_to_rapporteur",
            technical_opinion="Viável com condicionantes",
        )
        await _run(
            service, process.id, secretary, "start_voting",
            rapporteur_opinion="Voto pelo deferimento",
        )
        process = await _run(service, process.id, secretary, "approve", vote_result="12 a 2")

        assert process.status == ProcessStatus.APPROVED
        assert process.rapporteur_name == rapporteur.full_name
        assert process.technical_opinion == "Viável com condicionantes"
        assert process.vote_result == "12 a 2"
        assert process.voted_on == date(2025, 5, 20)

    async def test_rapporteur_required_before_review(self, db_session: AsyncSession, secretary: User):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)
        await _run(service, process.id, secretary, "start_technical_review")

        with pytest.raises(ValidationError) as exc_info:
            await _run(
                service, process.id, secretary, "send_to_rapporteur",
                technical_opinion="Viável",
            )
        assert exc_info.value.details["field"] == "rapporteur_id"

        process = await service.get_process(process.id)
        assert process.status == ProcessStatus.TECHNICAL_REVIEW
        assert process.technical_opinion is None

    async def test_vote_result_required(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)
        await _run(service, process.id, secretary, "start_technical_review")
        await service.assign_rapporteur(process.id, councillors[0].id, secretary.id)
        await _run(service, process.id, secretary, "send_to_rapporteur", technical_opinion="Viável")
        await _run(service, process.id, secretary, "start_voting", rapporteur_opinion="Favorável")

        with pytest.raises(ValidationError):
            await _run(service, process.id, secretary, "reject")

    async def test_rapporteur_must_be_councillor(
        self, db_session: AsyncSession, secretary: User, inspector: User
    ):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)

        with pytest.raises(ValidationError):
            await service.assign_rapporteur(process.id, inspector.id, secretary.id)

    async def test_rapporteur_notified(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)

        await service.assign_rapporteur(process.id, councillors[2].id, secretary.id)

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        assert [n.user_id for n in notifications] == [councillors[2].id]
        assert notifications[0].kind == "process"

    async def test_illegal_transition(self, db_session: AsyncSession, secretary: User):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)

        with pytest.raises(InvalidTransitionError):
            await _run(service, process.id, secretary, "start_voting", rapporteur_opinion="Favorável")

    async def test_closed_process_is_immutable(self, db_session: AsyncSession, secretary: User):
        service = ProcessService(db_session)
        process = await service.create_process(_process_data(), secretary.id)
        await _run(service, process.id, secretary, "archive")

        with pytest.raises(InvalidTransitionError):
            await service.update_process(process.id, {"notes": "Reaberto"}, secretary.id)

    async def test_delete_only_while_filed(self, db_session: AsyncSession, secretary: User):
        service = ProcessService(db_session)
        filed = await service.create_process(_process_data(), secretary.id)
        reviewed = await service.create_process(_process_data(applicant="Posto Estrela"), secretary.id)
        await _run(service, reviewed.id, secretary, "start_technical_review")

        await service.delete_process(filed.id, secretary.id)
        with pytest.raises(InvalidTransitionError):
            await service.delete_process(reviewed.id, secretary.id)

        _, total = await service.list_processes()
        assert total == 1

    async def test_overdue_and_summary(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        service = ProcessService(db_session, today=lambda: date(2025, 4, 10))
        late = await service.create_process(_process_data(), secretary.id)
        await service.create_process(
            _process_data(applicant="Loteamento Sol", filed_on=date(2025, 4, 1), process_type="ImpactStudy"),
            secretary.id,
        )
        closed = await service.create_process(_process_data(applicant="Granja Feliz"), secretary.id)
        await _run(service, closed.id, secretary, "archive")
        await service.assign_rapporteur(late.id, councillors[0].id, secretary.id)

        overdue, total = await service.list_processes(overdue=True)
        assert total == 1
        assert overdue[0].id == late.id
        assert late.is_overdue(date(2025, 4, 10)) is True

        summary = await service.get_summary()
        assert summary.total == 3
        assert summary.open == 2
        assert summary.overdue == 1
        assert summary.without_rapporteur == 1
        assert summary.by_type == {"Licensing": 2, "ImpactStudy": 1}
        assert summary.by_status == {"Filed": 2, "Archived": 1}


class TestProcessEndpoints:
    """Role rules on /processes."""

    BODY = {
        "process_type": "PublicHearing",
        "applicant": "Prefeitura Municipal",
        "activity_description": "Audiência pública sobre o plano diretor",
    }

    async def test_staff_files_and_councillor_reads(
        self, client: AsyncClient, secretary: User, councillors: list[User], citizen: User, auth_headers
    ):
        denied = await client.post(
            "/api/v1/processes", json=self.BODY, headers=await auth_headers(citizen)
        )
        assert denied.status_code == 403

        created = await client.post(
            "/api/v1/processes", json=self.BODY, headers=await auth_headers(secretary)
        )
        assert created.status_code == 201
        assert created.json()["message"] == "Process filed"
        data = created.json()["data"]
        assert data["protocol_number"].startswith("PROC-001/")
        assert data["protocol_degraded"] is False
        assert data["overdue"] is False

        councillor_headers = await auth_headers(councillors[0])
        listed = await client.get("/api/v1/processes", headers=councillor_headers)
        assert listed.json()["data"]["total"] == 1

        summary = await client.get("/api/v1/processes/summary", headers=councillor_headers)
        assert summary.status_code == 403

    async def test_rapporteur_and_actions(
        self, client: AsyncClient, secretary: User, councillors: list[User], auth_headers
    ):
        staff = await auth_headers(secretary)
        created = await client.post("/api/v1/processes", json=self.BODY, headers=staff)
        base = f"/api/v1/processes/{created.json()['data']['id']}"

        assigned = await client.post(
            f"{base}/rapporteur", json={"rapporteur_id": councillors[1].id}, headers=staff
        )
        assert assigned.status_code == 200
        assert assigned.json()["data"]["rapporteur_name"] == councillors[1].full_name

        illegal = await client.post(f"{base}/actions", json={"action": "approve"}, headers=staff)
        assert illegal.status_code == 409

        started = await client.post(
            f"{base}/actions", json={"action": "start_technical_review"}, headers=staff
        )
        assert started.json()["data"]["status"] == "TechnicalReview"

    async def test_delete_requires_admin(
        self, client: AsyncClient, secretary: User, admin: User, auth_headers
    ):
        created = await client.post(
            "/api/v1/processes", json=self.BODY, headers=await auth_headers(secretary)
        )
        url = f"/api/v1/processes/{created.json()['data']['id']}"

        denied = await client.delete(url, headers=await auth_headers(secretary))
        assert denied.status_code == 403

        deleted = await client.delete(url, headers=await auth_headers(admin))
        assert deleted.status_code == 200
        assert deleted.json()["data"] is None

    async def test_provisional_protocol_is_flagged(
        self, client: AsyncClient, secretary: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        failure = OperationalError("INSERT INTO protocol_sequences", {}, Exception("connection lost"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            created = await client.post("/api/v1/processes", json=self.BODY, headers=staff)

        assert created.status_code == 201
        assert created.json()["message"] == "Process filed with a provisional protocol number"
        data = created.json()["data"]
        assert data["protocol_degraded"] is True
        assert is_provisional(data["protocol_number"], "P")
