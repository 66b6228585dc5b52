"""Environmental fund: revenue ledger, project approval against the balance, expense accountability."""

import logging
from collections.abc import Callable
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codema.core.audit import AuditAction, create_audit_log
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.fma.models import (
    COMMITTED_STATUSES,
    PROJECT_TRANSITIONS,
    ExpenseStatus,
    FundProject,
    FundRevenue,
    ProjectAction,
    ProjectExpense,
    ProjectStatus,
    RevenueStatus,
    RevenueType,
)
from codema.modules.fma.schemas import (
    ExpenseCreate,
    FundSummary,
    ProjectActionRequest,
    ProjectCreate,
    ProjectExecution,
    RevenueCreate,
)
from codema.modules.notifications import NotificationKind, NotificationService
from codema.shared.utils.money import ZERO, percent_of, round_money

logger = logging.getLogger(__name__)

_REVENUE_FIELDS = ("description", "amount", "received_on", "source", "document_number", "status")
_PROJECT_FIELDS = ("title", "description", "objectives", "area", "duration_months", "requested_amount")


class FundService:
    def __init__(self, db: AsyncSession, today: Callable[[], date] = date.today):
        self.db = db
        self.notifications = NotificationService(db)
        self._today = today

    # --- Revenues ---

    async def create_revenue(self, data: RevenueCreate, created_by_id: int) -> FundRevenue:
        revenue = FundRevenue(
            revenue_type=data.revenue_type.value,
            description=data.description.strip(),
            amount=round_money(data.amount),
            received_on=data.received_on,
            source=data.source,
            document_number=data.document_number,
            status=data.status.value,
            created_by_id=created_by_id,
        )
        self.db.add(revenue)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="FundRevenue",
            entity_id=revenue.id,
            user_id=created_by_id,
            new_values=revenue.snapshot("revenue_type", "amount", "received_on", "status"),
        )
        return revenue

    async def get_revenue(self, revenue_id: int) -> FundRevenue:
        revenue = await self.db.get(FundRevenue, revenue_id)
        if not revenue:
            raise NotFoundError("Revenue", revenue_id)
        return revenue

    async def list_revenues(
        self,
        revenue_type: RevenueType | None = None,
        status: RevenueStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[FundRevenue], int]:
        query = select(FundRevenue)
        if revenue_type is not None:
            query = query.where(FundRevenue.revenue_type == revenue_type.value)
        if status is not None:
            query = query.where(FundRevenue.status == status.value)
        if date_from:
            query = query.where(FundRevenue.received_on >= date_from)
        if date_to:
            query = query.where(FundRevenue.received_on <= date_to)

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(FundRevenue.received_on.desc(), FundRevenue.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_revenue(self, revenue_id: int, data: dict, updated_by_id: int) -> FundRevenue:
        """Edit a revenue. Cancelled revenues are immutable."""
        revenue = await self.get_revenue(revenue_id)
        if revenue.status == RevenueStatus.CANCELLED:
            raise InvalidTransitionError("revenue", "update", revenue.status)

        fields = [name for name in _REVENUE_FIELDS if data.get(name) is not None]
        if not fields:
            return revenue

        old_values = revenue.snapshot(*fields)
        for name in fields:
            value = data[name]
            if isinstance(value, RevenueStatus):
                value = value.value
            elif name == "amount":
                value = round_money(value)
            setattr(revenue, name, value)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="FundRevenue",
            entity_id=revenue.id,
            user_id=updated_by_id,
            old_values=old_values,
            new_values=revenue.snapshot(*fields),
        )
        await self.db.refresh(revenue)
        return revenue

    # --- Projects ---

    async def create_project(self, data: ProjectCreate, submitted_by_id: int) -> FundProject:
        """Register a project proposal under a new PROJ protocol number."""
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.PROJ)

        project = FundProject(
            protocol_number=protocol.number,
            title=data.title.strip(),
            description=data.description.strip(),
            objectives=data.objectives,
            proponent=data.proponent.strip(),
            proponent_document=data.proponent_document,
            area=data.area,
            duration_months=data.duration_months,
            requested_amount=round_money(data.requested_amount),
            status=ProjectStatus.SUBMITTED.value,
            submitted_by_id=submitted_by_id,
        )
        self.db.add(project)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="FundProject",
            entity_id=project.id,
            user_id=submitted_by_id,
            entity_identifier=project.protocol_number,
            new_values=project.snapshot("protocol_number", "title", "requested_amount", "status"),
        )
        if protocol.degraded:
            logger.warning("Fund project %s submitted with provisional protocol", project.id)
        return await self.get_project(project.id)

    async def get_project(self, project_id: int) -> FundProject:
        result = await self.db.execute(
            select(FundProject)
            .where(FundProject.id == project_id)
            .options(selectinload(FundProject.expenses))
            .execution_options(populate_existing=True)
        )
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    async def list_projects(
        self,
        status: ProjectStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[FundProject], int]:
        """List projects, newest first. search matches protocol number, title or proponent."""
        query = select(FundProject)
        if status is not None:
            query = query.where(FundProject.status == status.value)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    FundProject.protocol_number.ilike(pattern),
                    FundProject.title.ilike(pattern),
                    FundProject.proponent.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(FundProject.created_at.desc(), FundProject.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_project(self, project_id: int, data: dict, updated_by_id: int) -> FundProject:
        """Edit a proposal. Only possible before a decision is taken."""
        project = await self.get_project(project_id)
        if project.status not in (ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW):
            raise InvalidTransitionError("project", "update", project.status)

        fields = [name for name in _PROJECT_FIELDS if data.get(name) is not None]
        if not fields:
            return project

        old_values = project.snapshot(*fields)
        for name in fields:
            value = data[name]
            setattr(project, name, round_money(value) if name == "requested_amount" else value)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="FundProject",
            entity_id=project.id,
            user_id=updated_by_id,
            entity_identifier=project.protocol_number,
            old_values=old_values,
            new_values=project.snapshot(*fields),
        )
        return await self.get_project(project_id)

    async def apply_action(
        self, project_id: int, payload: ProjectActionRequest, user_id: int
    ) -> FundProject:
        """
        Move a project along its lifecycle.

        Approval commits approved_amount (the requested amount when omitted)
        against the fund; it may not exceed what was requested nor the
        available balance.
        """
        project = await self.get_project(project_id)
        action = payload.action
        sources, target = PROJECT_TRANSITIONS[action]
        if project.status not in sources:
            raise InvalidTransitionError("project", action.value, project.status)

        old_values = project.snapshot("status", "approved_amount", "decided_on")
        if action == ProjectAction.APPROVE:
            amount = round_money(payload.approved_amount or project.requested_amount)
            if amount > project.requested_amount:
                raise ValidationError(
                    "Approved amount cannot exceed the requested amount", field="approved_amount"
                )
            available = await self.available_balance()
            if amount > available:
                raise ValidationError(
                    f"Approved amount exceeds the available fund balance ({available})",
                    field="approved_amount",
                )
            project.approved_amount = amount
        if action in (ProjectAction.APPROVE, ProjectAction.REJECT):
            project.decided_on = self._today()
        if payload.notes:
            project.review_notes = payload.notes.strip()
        project.status = target.value
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.PROJECT_ACTION,
            entity_type="FundProject",
            entity_id=project.id,
            user_id=user_id,
            entity_identifier=project.protocol_number,
            old_values=old_values,
            new_values={
                **project.snapshot("status", "approved_amount", "decided_on"),
                "action": action.value,
            },
            comment=payload.notes,
        )
        if project.submitted_by_id != user_id:
            await self.notifications.notify(
                project.submitted_by_id,
                NotificationKind.FUND,
                title=f"Projeto {project.protocol_number}",
                message=f"Status atualizado para {project.status}",
                entity_type="FundProject",
                entity_id=project.id,
            )
        logger.info("Fund project %s: %s", project.protocol_number, action.value)
        return await self.get_project(project_id)

    # --- Expenses ---

    async def add_expense(self, project_id: int, data: ExpenseCreate, user_id: int) -> ProjectExpense:
        """Report spending on a project. Only projects in execution accept expenses."""
        project = await self.get_project(project_id)
        if project.status != ProjectStatus.IN_PROGRESS:
            raise InvalidTransitionError("project", "add_expense", project.status)

        expense = ProjectExpense(
            project_id=project.id,
            expense_type=data.expense_type.value,
            supplier=data.supplier.strip(),
            supplier_document=data.supplier_document,
            description=data.description.strip(),
            amount=round_money(data.amount),
            spent_on=data.spent_on,
            invoice_number=data.invoice_number,
            status=ExpenseStatus.PENDING.value,
        )
        self.db.add(expense)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="ProjectExpense",
            entity_id=expense.id,
            user_id=user_id,
            entity_identifier=project.protocol_number,
            new_values=expense.snapshot("expense_type", "supplier", "amount", "spent_on"),
        )
        return expense

    async def get_expense(self, project_id: int, expense_id: int) -> ProjectExpense:
        expense = await self.db.get(ProjectExpense, expense_id)
        if not expense or expense.project_id != project_id:
            raise NotFoundError("Expense", expense_id)
        return expense

    async def review_expense(
        self,
        project_id: int,
        expense_id: int,
        approve: bool,
        reason: str | None = None,
        *,
        reviewed_by_id: int,
    ) -> ProjectExpense:
        """Approve or reject a pending expense. Approved spending may not exceed the approved amount."""
        project = await self.get_project(project_id)
        expense = await self.get_expense(project_id, expense_id)
        if expense.status != ExpenseStatus.PENDING:
            raise InvalidTransitionError("expense", "review", expense.status)

        old_values = expense.snapshot("status", "rejection_reason")
        if approve:
            executed = self._sum_expenses(project, ExpenseStatus.APPROVED)
            remaining = round_money(project.approved_amount or ZERO) - executed
            if expense.amount > remaining:
                raise ValidationError(
                    f"Expense exceeds the remaining approved amount ({remaining})", field="amount"
                )
            expense.status = ExpenseStatus.APPROVED.value
            expense.rejection_reason = None
        else:
            expense.status = ExpenseStatus.REJECTED.value
            expense.rejection_reason = reason.strip() if reason else None
        expense.reviewed_by_id = reviewed_by_id
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.APPROVE if approve else AuditAction.REJECT,
            entity_type="ProjectExpense",
            entity_id=expense.id,
            user_id=reviewed_by_id,
            entity_identifier=project.protocol_number,
            old_values=old_values,
            new_values=expense.snapshot("status", "rejection_reason"),
        )
        await self.db.refresh(expense)
        return expense

    async def delete_expense(self, project_id: int, expense_id: int, deleted_by_id: int) -> None:
        """Withdraw an expense that has not been reviewed yet."""
        expense = await self.get_expense(project_id, expense_id)
        if expense.status != ExpenseStatus.PENDING:
            raise InvalidTransitionError("expense", "delete", expense.status)

        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE,
            entity_type="ProjectExpense",
            entity_id=expense.id,
            user_id=deleted_by_id,
            old_values=expense.snapshot("supplier", "amount", "status"),
        )
        await self.db.delete(expense)
        await self.db.flush()

    # --- Balances ---

    @staticmethod
    def _sum_expenses(project: FundProject, status: ExpenseStatus) -> Decimal:
        return round_money(sum((e.amount for e in project.expenses if e.status == status), ZERO))

    async def get_execution(self, project_id: int) -> ProjectExecution:
        """How much of the approved amount has been spent, overall and by expense type."""
        project = await self.get_project(project_id)
        approved = round_money(project.approved_amount or ZERO)
        executed = self._sum_expenses(project, ExpenseStatus.APPROVED)
        by_type: dict[str, Decimal] = {}
        for expense in project.expenses:
            if expense.status == ExpenseStatus.APPROVED:
                by_type[expense.expense_type] = round_money(
                    by_type.get(expense.expense_type, ZERO) + expense.amount
                )
        return ProjectExecution(
            project_id=project.id,
            approved_amount=approved,
            executed=executed,
            pending=self._sum_expenses(project, ExpenseStatus.PENDING),
            balance=approved - executed,
            percent_executed=percent_of(executed, approved),
            by_type=by_type,
        )

    async def _sum_revenues(self, status: RevenueStatus) -> Decimal:
        total = (
            await self.db.execute(
                select(func.coalesce(func.sum(FundRevenue.amount), 0)).where(
                    FundRevenue.status == status.value
                )
            )
        ).scalar()
        return round_money(total or 0)

    async def _committed(self) -> Decimal:
        total = (
            await self.db.execute(
                select(func.coalesce(func.sum(FundProject.approved_amount), 0)).where(
                    FundProject.status.in_([s.value for s in COMMITTED_STATUSES])
                )
            )
        ).scalar()
        return round_money(total or 0)

    async def available_balance(self) -> Decimal:
        """Received revenue minus the amounts committed to approved projects."""
        return await self._sum_revenues(RevenueStatus.RECEIVED) - await self._committed()

    async def get_summary(self) -> FundSummary:
        received = await self._sum_revenues(RevenueStatus.RECEIVED)
        committed = await self._committed()
        requested = (
            await self.db.execute(
                select(func.coalesce(func.sum(FundProject.requested_amount), 0)).where(
                    FundProject.status.not_in(
                        [ProjectStatus.REJECTED.value, ProjectStatus.CANCELLED.value]
                    )
                )
            )
        ).scalar()
        by_status = dict(
            (
                await self.db.execute(
                    select(FundProject.status, func.count()).group_by(FundProject.status)
                )
            ).all()
        )
        return FundSummary(
            total_received=received,
            total_expected=await self._sum_revenues(RevenueStatus.EXPECTED),
            total_requested=round_money(requested or 0),
            total_approved=committed,
            available_balance=received - committed,
            projects_in_progress=by_status.get(ProjectStatus.IN_PROGRESS.value, 0),
            projects_completed=by_status.get(ProjectStatus.COMPLETED.value, 0),
            projects_by_status=by_status,
        )
