"""Complaint intake, the five-step workflow and analytics."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User, UserRole
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.complaints.models import (
    CLOSED_STATUSES,
    TRANSITIONS,
    Complaint,
    ComplaintAction,
    ComplaintEvent,
    ComplaintPriority,
    ComplaintStatus,
)
from codema.modules.complaints.schemas import (
    ComplaintActionRequest,
    ComplaintAnalytics,
    ComplaintCreate,
    ComplaintWorkflow,
    WorkflowStep,
)
from codema.modules.notifications import NotificationKind, NotificationService

logger = logging.getLogger(__name__)

# Fields each action must receive
_REQUIRED_FIELDS: dict[ComplaintAction, tuple[str, ...]] = {
    ComplaintAction.START_INVESTIGATION: ("inspector_id",),
    ComplaintAction.SCHEDULE_INSPECTION: ("inspection_date",),
    ComplaintAction.RECORD_INSPECTION: ("inspection_report",),
    ComplaintAction.CONCLUDE_UPHELD: ("final_report",),
    ComplaintAction.CONCLUDE_DISMISSED: ("final_report",),
    ComplaintAction.ARCHIVE: (),
}

_AUDITED_FIELDS = (
    "status",
    "inspector_id",
    "inspection_date",
    "inspection_report",
    "final_report",
)

_STEPS = (
    ("received", "Denúncia Recebida", "Denúncia registrada no sistema"),
    ("triage", "Triagem e Análise", "Análise preliminar da denúncia"),
    ("inspection", "Fiscalização", "Vistoria no local da denúncia"),
    ("final_report", "Relatório Final", "Elaboração do parecer técnico"),
    ("conclusion", "Conclusão", "Finalização do processo"),
)

# Index of the current step per status; closed statuses have every step completed
_CURRENT_STEP = {
    ComplaintStatus.RECEIVED: 1,
    ComplaintStatus.UNDER_INVESTIGATION: 2,
    ComplaintStatus.INSPECTION_SCHEDULED: 2,
    ComplaintStatus.INSPECTION_DONE: 3,
}


def build_workflow(complaint: Complaint) -> ComplaintWorkflow:
    """Five workflow steps with completed/current/pending status and progress."""
    status = ComplaintStatus(complaint.status)
    current = _CURRENT_STEP.get(status, len(_STEPS))

    steps = []
    for index, (step_id, title, description) in enumerate(_STEPS):
        if index < current:
            step_status = "completed"
        elif index == current:
            step_status = "current"
        else:
            step_status = "pending"
        steps.append(
            WorkflowStep(id=step_id, title=title, description=description, status=step_status)
        )

    completed = sum(1 for step in steps if step.status == "completed")
    return ComplaintWorkflow(
        complaint_id=complaint.id,
        status=status,
        steps=steps,
        progress=round(completed / len(_STEPS) * 100, 1),
        available_actions=[
            action for action, (sources, _) in TRANSITIONS.items() if status in sources
        ],
    )


class ComplaintService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def create_complaint(
        self, data: ComplaintCreate, submitted_by_id: int | None = None
    ) -> Complaint:
        """Register a complaint under a new OUV protocol number."""
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.OUV)

        contact = {}
        if not data.is_anonymous:
            contact = {
                "complainant_name": data.complainant_name,
                "complainant_email": str(data.complainant_email) if data.complainant_email else None,
                "complainant_phone": data.complainant_phone,
            }

        complaint = Complaint(
            protocol_number=protocol.number,
            protocol_degraded=protocol.degraded,
            complaint_type=data.complaint_type.strip(),
            description=data.description.strip(),
            location=data.location.strip(),
            latitude=data.latitude,
            longitude=data.longitude,
            occurred_on=data.occurred_on,
            priority=data.priority.value,
            status=ComplaintStatus.RECEIVED.value,
            is_anonymous=data.is_anonymous,
            submitted_by_id=None if data.is_anonymous else submitted_by_id,
            **contact,
        )
        self.db.add(complaint)
        await self.db.flush()

        self.db.add(
            ComplaintEvent(
                complaint_id=complaint.id,
                action="create",
                from_status=None,
                to_status=complaint.status,
                user_id=complaint.submitted_by_id,
            )
        )
        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="Complaint",
            entity_id=complaint.id,
            user_id=complaint.submitted_by_id,
            entity_identifier=complaint.protocol_number,
            new_values=complaint.snapshot("protocol_number", "complaint_type", "priority", "status"),
        )
        if protocol.degraded:
            logger.warning("Complaint %s registered with provisional protocol", complaint.id)
        return await self.get_complaint(complaint.id)

    async def get_complaint(self, complaint_id: int) -> Complaint:
        result = await self.db.execute(
            select(Complaint)
            .where(Complaint.id == complaint_id)
            .options(selectinload(Complaint.events).selectinload(ComplaintEvent.user))
            .execution_options(populate_existing=True)
        )
        complaint = result.scalar_one_or_none()
        if not complaint:
            raise NotFoundError("Complaint", complaint_id)
        return complaint

    async def list_complaints(
        self,
        status: ComplaintStatus | None = None,
        priority: ComplaintPriority | None = None,
        complaint_type: str | None = None,
        inspector_id: int | None = None,
        submitted_by_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Complaint], int]:
        """List complaints, newest first."""
        query = select(Complaint)

        if status is not None:
            query = query.where(Complaint.status == status.value)
        if priority is not None:
            query = query.where(Complaint.priority == priority.value)
        if complaint_type:
            query = query.where(Complaint.complaint_type == complaint_type)
        if inspector_id is not None:
            query = query.where(Complaint.inspector_id == inspector_id)
        if submitted_by_id is not None:
            query = query.where(Complaint.submitted_by_id == submitted_by_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Complaint.protocol_number.ilike(pattern),
                    Complaint.description.ilike(pattern),
                    Complaint.location.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(Complaint.created_at.desc(), Complaint.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_complaint(self, complaint_id: int, data: dict, updated_by_id: int) -> Complaint:
        """Edit triage fields (type, priority, location, notes)."""
        complaint = await self.get_complaint(complaint_id)
        fields = [name for name, value in data.items() if value is not None]
        if not fields:
            return complaint

        old_values = complaint.snapshot(*fields)
        for name in fields:
            value = data[name]
            setattr(complaint, name, value.value if isinstance(value, ComplaintPriority) else value)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="Complaint",
            entity_id=complaint.id,
            user_id=updated_by_id,
            entity_identifier=complaint.protocol_number,
            old_values=old_values,
            new_values=complaint.snapshot(*fields),
        )
        return await self.get_complaint(complaint_id)

    async def apply_action(
        self, complaint_id: int, payload: ComplaintActionRequest, user_id: int
    ) -> Complaint:
        """
        Move a complaint along its workflow.

        Raises InvalidTransitionError when the action is not allowed from the
        current status and ValidationError when a required field is missing.
        """
        complaint = await self.get_complaint(complaint_id)
        action = payload.action
        sources, target = TRANSITIONS[action]
        if complaint.status not in sources:
            raise InvalidTransitionError("complaint", action.value, complaint.status)

        for field in _REQUIRED_FIELDS[action]:
            value = getattr(payload, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"{field} is required for {action.value}", field=field)

        old_values = complaint.snapshot(*_AUDITED_FIELDS)
        from_status = complaint.status

        if payload.inspector_id is not None:
            await self._check_inspector(payload.inspector_id)
            complaint.inspector_id = payload.inspector_id
        if action == ComplaintAction.SCHEDULE_INSPECTION:
            complaint.inspection_date = payload.inspection_date
        elif action == ComplaintAction.RECORD_INSPECTION:
            complaint.inspection_report = payload.inspection_report.strip()
        elif action in (ComplaintAction.CONCLUDE_UPHELD, ComplaintAction.CONCLUDE_DISMISSED):
            complaint.final_report = payload.final_report.strip()
            complaint.concluded_at = datetime.now(timezone.utc)
        if payload.notes:
            complaint.resolution_notes = payload.notes

        complaint.status = target.value
        self.db.add(
            ComplaintEvent(
                complaint_id=complaint.id,
                action=action.value,
                from_status=from_status,
                to_status=target.value,
                user_id=user_id,
                notes=payload.notes,
            )
        )
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.COMPLAINT_ACTION,
            entity_type="Complaint",
            entity_id=complaint.id,
            user_id=user_id,
            entity_identifier=complaint.protocol_number,
            old_values=old_values,
            new_values={**complaint.snapshot(*_AUDITED_FIELDS), "action": action.value},
            comment=payload.notes,
        )
        await self._notify_parties(complaint, action, user_id)
        return await self.get_complaint(complaint_id)

    async def _check_inspector(self, inspector_id: int) -> None:
        inspector = await self.db.get(User, inspector_id)
        if not inspector or not inspector.is_active:
            raise NotFoundError("Inspector", inspector_id)
        if not inspector.has_role(UserRole.INSPECTOR, UserRole.SECRETARY, UserRole.ADMIN, UserRole.SUPER_ADMIN):
            raise ValidationError("Assigned user cannot inspect complaints", field="inspector_id")

    async def _notify_parties(self, complaint: Complaint, action: ComplaintAction, acting_user_id: int) -> None:
        recipients = {complaint.submitted_by_id, complaint.inspector_id} - {None, acting_user_id}
        for recipient_id in sorted(recipients):
            await self.notifications.notify(
                recipient_id,
                NotificationKind.COMPLAINT,
                title=f"Denúncia {complaint.protocol_number}",
                message=f"Status atualizado para {complaint.status}",
                entity_type="Complaint",
                entity_id=complaint.id,
            )

    async def get_workflow(self, complaint_id: int) -> ComplaintWorkflow:
        return build_workflow(await self.get_complaint(complaint_id))

    async def get_timeline(self, complaint_id: int) -> list[ComplaintEvent]:
        complaint = await self.get_complaint(complaint_id)
        return list(complaint.events)

    async def get_analytics(self) -> ComplaintAnalytics:
        """Counts by status, priority and type; average days to conclusion."""
        by_status = dict(
            (await self.db.execute(select(Complaint.status, func.count()).group_by(Complaint.status))).all()
        )
        by_priority = dict(
            (await self.db.execute(select(Complaint.priority, func.count()).group_by(Complaint.priority))).all()
        )
        by_type = dict(
            (
                await self.db.execute(
                    select(Complaint.complaint_type, func.count()).group_by(Complaint.complaint_type)
                )
            ).all()
        )
        concluded_rows = (
            await self.db.execute(
                select(Complaint.created_at, Complaint.concluded_at).where(
                    Complaint.concluded_at.is_not(None)
                )
            )
        ).all()

        average_days = None
        if concluded_rows:
            days = [
                (_aware(concluded) - _aware(created)).total_seconds() / 86400
                for created, concluded in concluded_rows
            ]
            average_days = round(sum(days) / len(days), 1)

        total = sum(by_status.values())
        closed = sum(by_status.get(s.value, 0) for s in CLOSED_STATUSES)
        return ComplaintAnalytics(
            total=total,
            by_status=by_status,
            by_priority=by_priority,
            by_type=by_type,
            open=total - closed,
            concluded=by_status.get(ComplaintStatus.UPHELD.value, 0)
            + by_status.get(ComplaintStatus.DISMISSED.value, 0),
            average_days_to_conclusion=average_days,
        )


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
