import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User
from codema.core.exceptions import (
    AuthorizationError,
    DuplicateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.notifications import NotificationKind, NotificationService
from codema.modules.reports.models import (
    ALLOWED_TRANSITIONS,
    CitizenReport,
    ReportCategory,
    ReportPriority,
    ReportStatus,
)
from codema.modules.reports.schemas import CategoryCreate, ReportCreate, ReportStatusRequest

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "description", "location", "category_id", "priority")


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    # --- Categories ---

    async def create_category(self, data: CategoryCreate) -> ReportCategory:
        name = data.name.strip()
        existing = await self.db.execute(
            select(ReportCategory).where(func.lower(ReportCategory.name) == name.lower())
        )
        if existing.scalar_one_or_none():
            raise DuplicateError("Report category", "name", name)

        category = ReportCategory(
            name=name, description=data.description, icon=data.icon, is_active=True
        )
        self.db.add(category)
        await self.db.flush()
        return category

    async def list_categories(self, include_inactive: bool = False) -> list[ReportCategory]:
        query = select(ReportCategory).order_by(ReportCategory.name)
        if not include_inactive:
            query = query.where(ReportCategory.is_active.is_(True))
        return list((await self.db.execute(query)).scalars().all())

    async def update_category(self, category_id: int, data: dict) -> ReportCategory:
        category = await self.db.get(ReportCategory, category_id)
        if not category:
            raise NotFoundError("Report category", category_id)
        for name in ("description", "icon", "is_active"):
            if data.get(name) is not None:
                setattr(category, name, data[name])
        await self.db.flush()
        await self.db.refresh(category)
        return category

    async def _check_category(self, category_id: int | None) -> None:
        if category_id is None:
            return
        category = await self.db.get(ReportCategory, category_id)
        if not category or not category.is_active:
            raise ValidationError("Unknown or inactive category", field="category_id")

    # --- Reports ---

    async def create_report(self, data: ReportCreate, user_id: int) -> CitizenReport:
        """File a report under a new REL protocol number."""
        await self._check_category(data.category_id)
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.REL)

        report = CitizenReport(
            protocol_number=protocol.number,
            user_id=user_id,
            category_id=data.category_id,
            title=data.title.strip(),
            description=data.description.strip(),
            location=data.location.strip(),
            priority=data.priority.value,
            status=ReportStatus.OPEN.value,
        )
        self.db.add(report)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="CitizenReport",
            entity_id=report.id,
            user_id=user_id,
            entity_identifier=report.protocol_number,
            new_values=report.snapshot("protocol_number", "title", "category_id", "priority", "status"),
        )
        if protocol.degraded:
            logger.warning("Report %s filed with provisional protocol", report.id)
        return await self.get_report(report.id)

    async def get_report(self, report_id: int) -> CitizenReport:
        result = await self.db.execute(
            select(CitizenReport)
            .where(CitizenReport.id == report_id)
            .options(selectinload(CitizenReport.category), selectinload(CitizenReport.user))
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if not report:
            raise NotFoundError("Report", report_id)
        return report

    async def list_reports(
        self,
        status: ReportStatus | None = None,
        priority: ReportPriority | None = None,
        category_id: int | None = None,
        user_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[CitizenReport], int]:
        """List reports, newest first."""
        query = select(CitizenReport).options(
            selectinload(CitizenReport.category), selectinload(CitizenReport.user)
        )

        if status is not None:
            query = query.where(CitizenReport.status == status.value)
        if priority is not None:
            query = query.where(CitizenReport.priority == priority.value)
        if category_id is not None:
            query = query.where(CitizenReport.category_id == category_id)
        if user_id is not None:
            query = query.where(CitizenReport.user_id == user_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    CitizenReport.protocol_number.ilike(pattern),
                    CitizenReport.title.ilike(pattern),
                    CitizenReport.location.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(CitizenReport.created_at.desc(), CitizenReport.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_report(self, report_id: int, data: dict, user: User) -> CitizenReport:
        """
        Edit a report.

        The reporter may edit while the report is still Open; staff may edit
        until it is Closed.
        """
        report = await self.get_report(report_id)
        if not user.is_staff and report.user_id != user.id:
            raise AuthorizationError("You can only edit your own reports")
        if report.status == ReportStatus.CLOSED or (
            not user.is_staff and report.status != ReportStatus.OPEN
        ):
            raise InvalidTransitionError("report", "update", report.status)

        fields = [name for name in _EDITABLE_FIELDS if data.get(name) is not None]
        if not fields:
            return report
        if "category_id" in fields:
            await self._check_category(data["category_id"])

        old_values = report.snapshot(*fields)
        for name in fields:
            value = data[name]
            setattr(report, name, value.value if isinstance(value, ReportPriority) else value)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="CitizenReport",
            entity_id=report.id,
            user_id=user.id,
            entity_identifier=report.protocol_number,
            old_values=old_values,
            new_values=report.snapshot(*fields),
        )
        return await self.get_report(report_id)

    async def change_status(
        self, report_id: int, payload: ReportStatusRequest, changed_by_id: int
    ) -> CitizenReport:
        """Move a report to another status and tell the reporter."""
        report = await self.get_report(report_id)
        current = ReportStatus(report.status)
        if payload.status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError("report", f"move_to_{payload.status.value}", report.status)

        old_values = report.snapshot("status", "staff_response")
        report.status = payload.status.value
        if payload.staff_response:
            report.staff_response = payload.staff_response.strip()
        if payload.status == ReportStatus.RESOLVED:
            report.resolved_at = datetime.now(timezone.utc)
        elif payload.status in (ReportStatus.OPEN, ReportStatus.IN_PROGRESS):
            report.resolved_at = None
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CHANGE_STATUS,
            entity_type="CitizenReport",
            entity_id=report.id,
            user_id=changed_by_id,
            entity_identifier=report.protocol_number,
            old_values=old_values,
            new_values=report.snapshot("status", "staff_response"),
        )
        if report.user_id != changed_by_id:
            await self.notifications.notify(
                report.user_id,
                NotificationKind.REPORT,
                title=f"Relatório {report.protocol_number}",
                message=payload.staff_response or f"Status atualizado para {report.status}",
                entity_type="CitizenReport",
                entity_id=report.id,
            )
        return await self.get_report(report_id)

    async def delete_report(self, report_id: int, deleted_by_id: int) -> None:
        report = await self.get_report(report_id)
        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE,
            entity_type="CitizenReport",
            entity_id=report.id,
            user_id=deleted_by_id,
            entity_identifier=report.protocol_number,
            old_values=report.snapshot("protocol_number", "title", "status"),
        )
        await self.db.delete(report)
        await self.db.flush()
