"""Tests for the environmental fund: revenues, project approval and expense accountability."""

from datetime import date
from decimal import Decimal
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
from codema.modules.fma.models import ExpenseStatus, ProjectStatus
from codema.modules.fma.schemas import (
    ExpenseCreate,
    ProjectActionRequest,
    ProjectCreate,
    RevenueCreate,
)
from codema.modules.fma.service import FundService
from codema.modules.notifications.models import Notification


def _project_data(**overrides) -> ProjectCreate:
    data = {
        "title": "Recuperação da mata ciliar do Córrego Grande",
        "description": "Plantio de mudas nativas em 4 hectares de APP",
        "proponent": "Associação Amigos do Córrego",
        "area": "Recuperação de áreas degradadas",
        "duration_months": 12,
        "requested_amount": Decimal("60000.00"),
    }
    data.update(overrides)
    return ProjectCreate(**data)


def _expense_data(amount: str, expense_type: str = "Service") -> ExpenseCreate:
    return ExpenseCreate(
        expense_type=expense_type,
        supplier="Viveiro Verde Ltda",
        description="Mudas e plantio",
        amount=Decimal(amount),
        spent_on=date(2025, 6, 10),
        invoice_number="NF-1020",
    )


async def _receive(service: FundService, amount: str, user: User, status: str = "Received"):
    return await service.create_revenue(
        RevenueCreate(
            revenue_type="Fine",
            description="Multa ambiental",
            amount=Decimal(amount),
            received_on=date(2025, 2, 1),
            status=status,
        ),
        user.id,
    )


async def _run(service: FundService, project_id: int, user: User, action: str, **fields):
    return await service.apply_action(project_id, ProjectActionRequest(action=action, **fields), user.id)


async def _approved_project(service: FundService, user: User, amount: str = "50000.00"):
    project = await service.create_project(_project_data(), user.id)
    await _run(service, project.id, user, "start_review")
    return await _run(service, project.id, user, "approve", approved_amount=Decimal(amount))


class TestFundProjects:
    """Project lifecycle against the fund balance."""

    async def test_create_assigns_proj_protocol(self, db_session: AsyncSession, secretary: User):
        project = await FundService(db_session).create_project(_project_data(), secretary.id)

        parsed = parse_protocol(project.protocol_number)
        assert parsed.protocol_type == ProtocolType.PROJ
        assert parsed.sequence == 1
        assert project.protocol_degraded is False
        assert project.status == ProjectStatus.SUBMITTED
        assert project.approved_amount is None

    async def test_approval_commits_balance(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session, today=lambda: date(2025, 3, 15))
        await _receive(service, "100000.00", secretary)

        project = await _approved_project(service, secretary)

        assert project.status == ProjectStatus.APPROVED
        assert project.approved_amount == Decimal("50000.00")
        assert project.decided_on == date(2025, 3, 15)
        assert await service.available_balance() == Decimal("50000.00")

    async def test_approval_defaults_to_requested_amount(
        self, db_session: AsyncSession, secretary: User
    ):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await service.create_project(_project_data(), secretary.id)
        await _run(service, project.id, secretary, "start_review")

        project = await _run(service, project.id, secretary, "approve")

        assert project.approved_amount == Decimal("60000.00")

    async def test_approval_limited_by_balance(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "40000.00", secretary)
        await _receive(service, "90000.00", secretary, status="Expected")
        project = await service.create_project(_project_data(), secretary.id)
        await _run(service, project.id, secretary, "start_review")

        with pytest.raises(ValidationError) as exc_info:
            await _run(service, project.id, secretary, "approve", approved_amount=Decimal("45000.00"))
        assert exc_info.value.details["field"] == "approved_amount"

        project = await service.get_project(project.id)
        assert project.status == ProjectStatus.UNDER_REVIEW

    async def test_approval_limited_by_request(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "500000.00", secretary)
        project = await service.create_project(_project_data(), secretary.id)
        await _run(service, project.id, secretary, "start_review")

        with pytest.raises(ValidationError):
            await _run(service, project.id, secretary, "approve", approved_amount=Decimal("60000.01"))

    async def test_cancelled_project_releases_balance(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await _approved_project(service, secretary)

        await _run(service, project.id, secretary, "cancel", notes="Proponente desistiu")

        assert await service.available_balance() == Decimal("100000.00")
        with pytest.raises(InvalidTransitionError):
            await _run(service, project.id, secretary, "start_execution")

    async def test_submitter_notified_of_decision(
        self, db_session: AsyncSession, secretary: User, admin: User
    ):
        service = FundService(db_session)
        project = await service.create_project(_project_data(), secretary.id)
        await _run(service, project.id, admin, "start_review")
        await _run(service, project.id, admin, "reject", notes="Fora das linhas do fundo")

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        assert [n.user_id for n in notifications] == [secretary.id, secretary.id]
        assert notifications[-1].kind == "fund"

    async def test_update_only_before_decision(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await service.create_project(_project_data(), secretary.id)

        updated = await service.update_project(
            project.id, {"requested_amount": Decimal("55000.00")}, secretary.id
        )
        assert updated.requested_amount == Decimal("55000.00")

        await _run(service, project.id, secretary, "start_review")
        await _run(service, project.id, secretary, "approve")
        with pytest.raises(InvalidTransitionError):
            await service.update_project(project.id, {"title": "Outro título"}, secretary.id)


class TestProjectExpenses:
    """Accountability for projects in execution."""

    async def test_expense_requires_execution(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await _approved_project(service, secretary)

        with pytest.raises(InvalidTransitionError):
            await service.add_expense(project.id, _expense_data("1000.00"), secretary.id)

    async def test_execution_report(self, db_session: AsyncSession, secretary: User, admin: User):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await _approved_project(service, secretary)
        await _run(service, project.id, secretary, "start_execution")

        first = await service.add_expense(project.id, _expense_data("20000.00"), secretary.id)
        second = await service.add_expense(
            project.id, _expense_data("10000.00", "Material"), secretary.id
        )
        third = await service.add_expense(project.id, _expense_data("40000.00"), secretary.id)

        await service.review_expense(project.id, first.id, True, reviewed_by_id=admin.id)
        rejected = await service.review_expense(
            project.id, second.id, False, " Nota ilegível ", reviewed_by_id=admin.id
        )
        assert rejected.status == ExpenseStatus.REJECTED
        assert rejected.rejection_reason == "Nota ilegível"

        with pytest.raises(ValidationError):
            await service.review_expense(project.id, third.id, True, reviewed_by_id=admin.id)

        execution = await service.get_execution(project.id)
        assert execution.approved_amount == Decimal("50000.00")
        assert execution.executed == Decimal("20000.00")
        assert execution.pending == Decimal("40000.00")
        assert execution.balance == Decimal("30000.00")
        assert execution.percent_executed == 40.0
        assert execution.by_type == {"Service": Decimal("20000.00")}

    async def test_reviewed_expense_cannot_change(
        self, db_session: AsyncSession, secretary: User, admin: User
    ):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        project = await _approved_project(service, secretary)
        await _run(service, project.id, secretary, "start_execution")
        expense = await service.add_expense(project.id, _expense_data("500.00"), secretary.id)
        await service.review_expense(project.id, expense.id, True, reviewed_by_id=admin.id)

        with pytest.raises(InvalidTransitionError):
            await service.review_expense(project.id, expense.id, False, reviewed_by_id=admin.id)
        with pytest.raises(InvalidTransitionError):
            await service.delete_expense(project.id, expense.id, secretary.id)

    async def test_summary(self, db_session: AsyncSession, secretary: User):
        service = FundService(db_session)
        await _receive(service, "100000.00", secretary)
        await _receive(service, "8000.00", secretary, status="Expected")
        await _receive(service, "3000.00", secretary, status="Cancelled")
        approved = await _approved_project(service, secretary)
        await _run(service, approved.id, secretary, "start_execution")
        await service.create_project(_project_data(requested_amount=Decimal("15000.00")), secretary.id)

        summary = await service.get_summary()

        assert summary.total_received == Decimal("100000.00")
        assert summary.total_expected == Decimal("8000.00")
        assert summary.total_requested == Decimal("75000.00")
        assert summary.total_approved == Decimal("50000.00")
        assert summary.available_balance == Decimal("50000.00")
        assert summary.projects_in_progress == 1
        assert summary.projects_completed == 0
        assert summary.projects_by_status == {"InProgress": 1, "Submitted": 1}


class TestFundEndpoints:
    """Role rules on /fma."""

    PROJECT = {
        "title": "Educação ambiental nas escolas",
        "description": "Oficinas sobre resíduos em 10 escolas municipais",
        "proponent": "Secretaria de Educação",
        "requested_amount": "12000.00",
    }

    async def test_revenue_requires_staff(
        self, client: AsyncClient, secretary: User, councillors: list[User], auth_headers
    ):
        body = {
            "revenue_type": "LicensingFee",
            "description": "Taxas de licenciamento de março",
            "amount": "2500.50",
            "received_on": "2025-03-31",
            "status": "Received",
        }
        councillor_headers = await auth_headers(councillors[0])
        denied = await client.post("/api/v1/fma/revenues", json=body, headers=councillor_headers)
        assert denied.status_code == 403

        created = await client.post(
            "/api/v1/fma/revenues", json=body, headers=await auth_headers(secretary)
        )
        assert created.status_code == 201
        assert Decimal(created.json()["data"]["amount"]) == Decimal("2500.50")

        summary = await client.get("/api/v1/fma/summary", headers=councillor_headers)
        assert Decimal(summary.json()["data"]["available_balance"]) == Decimal("2500.50")

    async def test_expense_review_requires_admin(
        self, client: AsyncClient, secretary: User, admin: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        await client.post(
            "/api/v1/fma/revenues",
            json={
                "revenue_type": "Transfer",
                "description": "Repasse estadual",
                "amount": "30000.00",
                "received_on": "2025-01-15",
                "status": "Received",
            },
            headers=staff,
        )
        created = await client.post("/api/v1/fma/projects", json=self.PROJECT, headers=staff)
        assert created.status_code == 201
        assert created.json()["message"] == "Project submitted"
        base = f"/api/v1/fma/projects/{created.json()['data']['id']}"
        for action in ("start_review", "approve", "start_execution"):
            response = await client.post(f"{base}/actions", json={"action": action}, headers=staff)
            assert response.status_code == 200

        expense = await client.post(
            f"{base}/expenses",
            json={
                "expense_type": "Material",
                "supplier": "Papelaria Central",
                "description": "Cartilhas impressas",
                "amount": "1800.00",
                "spent_on": "2025-04-02",
            },
            headers=staff,
        )
        assert expense.status_code == 201
        review_url = f"{base}/expenses/{expense.json()['data']['id']}/review"

        denied = await client.post(review_url, json={"approve": True}, headers=staff)
        assert denied.status_code == 403

        approved = await client.post(review_url, json={"approve": True}, headers=await auth_headers(admin))
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "Approved"

        execution = await client.get(f"{base}/execution", headers=staff)
        assert execution.json()["data"]["percent_executed"] == 15.0

    async def test_provisional_protocol_is_flagged(
        self, client: AsyncClient, secretary: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        failure = OperationalError("INSERT INTO protocol_sequences", {}, Exception("connection lost"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            created = await client.post("/api/v1/fma/projects", json=self.PROJECT, headers=staff)

        assert created.status_code == 201
        assert created.json()["message"] == "Project submitted with a provisional protocol number"
        data = created.json()["data"]
        assert data["protocol_degraded"] is True
        assert is_provisional(data["protocol_number"], "P")
