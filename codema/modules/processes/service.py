"""Environmental processes: filing, rapporteur assignment, opinions and the plenary vote."""

import logging
from collections.abc import Callable
from datetime import date, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User
from codema.core.config import settings
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.notifications import NotificationKind, NotificationService
from codema.modules.processes.models import (
    CLOSED_STATUSES,
    TRANSITIONS,
    EnvironmentalProcess,
    ProcessAction,
    ProcessPriority,
    ProcessStatus,
    ProcessType,
)
from codema.modules.processes.schemas import ProcessActionRequest, ProcessCreate, ProcessSummary

logger = logging.getLogger(__name__)

# Fields that must be on the process (from the payload or already stored) before the action
_REQUIRED_FIELDS: dict[ProcessAction, tuple[str, ...]] = {
    ProcessAction.START_TECHNICAL_REVIEW: (),
    ProcessAction.SEND_TO_RAPPORTEUR: ("technical_opinion", "rapporteur_id"),
    ProcessAction.START_VOTING: ("rapporteur_opinion",),
    ProcessAction.APPROVE: ("vote_result",),
    ProcessAction.REJECT: ("vote_result",),
    ProcessAction.ARCHIVE: (),
}

_AUDITED_FIELDS = (
    "status",
    "rapporteur_id",
    "technical_opinion",
    "rapporteur_opinion",
    "vote_result",
    "voted_on",
)

_EDITABLE_FIELDS = (
    "applicant",
    "applicant_document",
    "site_address",
    "activity_description",
    "priority",
    "notes",
)


class ProcessService:
    def __init__(self, db: AsyncSession, today: Callable[[], date] = date.today):
        self.db = db
        self.notifications = NotificationService(db)
        self._today = today

    async def create_process(self, data: ProcessCreate, created_by_id: int) -> EnvironmentalProcess:
        """File a process under a new PROC protocol number."""
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.PROC)
        filed_on = data.filed_on or self._today()

        process = EnvironmentalProcess(
            protocol_number=protocol.number,
            process_type=data.process_type.value,
            applicant=data.applicant.strip(),
            applicant_document=data.applicant_document,
            site_address=data.site_address,
            activity_description=data.activity_description.strip(),
            status=ProcessStatus.FILED.value,
            priority=data.priority.value,
            filed_on=filed_on,
            opinion_due_on=filed_on + timedelta(days=settings.process_opinion_deadline_days),
            notes=data.notes,
            created_by_id=created_by_id,
        )
        self.db.add(process)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
            user_id=created_by_id,
            entity_identifier=process.protocol_number,
            new_values=process.snapshot(
                "protocol_number", "process_type", "applicant", "status", "opinion_due_on"
            ),
        )
        if protocol.degraded:
            logger.warning("Process %s filed with provisional protocol", process.id)
        return await self.get_process(process.id)

    async def get_process(self, process_id: int) -> EnvironmentalProcess:
        result = await self.db.execute(
            select(EnvironmentalProcess)
            .where(EnvironmentalProcess.id == process_id)
            .options(selectinload(EnvironmentalProcess.rapporteur))
            .execution_options(populate_existing=True)
        )
        process = result.scalar_one_or_none()
        if not process:
            raise NotFoundError("Process", process_id)
        return process

    async def list_processes(
        self,
        status: ProcessStatus | None = None,
        process_type: ProcessType | None = None,
        priority: ProcessPriority | None = None,
        rapporteur_id: int | None = None,
        overdue: bool = False,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[EnvironmentalProcess], int]:
        """List processes, most recently filed first. search matches protocol number or applicant."""
        query = select(EnvironmentalProcess).options(selectinload(EnvironmentalProcess.rapporteur))

        if status is not None:
            query = query.where(EnvironmentalProcess.status == status.value)
        if process_type is not None:
            query = query.where(EnvironmentalProcess.process_type == process_type.value)
        if priority is not None:
            query = query.where(EnvironmentalProcess.priority == priority.value)
        if rapporteur_id is not None:
            query = query.where(EnvironmentalProcess.rapporteur_id == rapporteur_id)
        if overdue:
            query = query.where(
                EnvironmentalProcess.opinion_due_on < self._today(),
                EnvironmentalProcess.status.not_in([s.value for s in CLOSED_STATUSES]),
            )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    EnvironmentalProcess.protocol_number.ilike(pattern),
                    EnvironmentalProcess.applicant.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(EnvironmentalProcess.filed_on.desc(), EnvironmentalProcess.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_process(self, process_id: int, data: dict, updated_by_id: int) -> EnvironmentalProcess:
        """Edit applicant and description fields. Closed processes are immutable."""
        process = await self.get_process(process_id)
        if process.status in CLOSED_STATUSES:
            raise InvalidTransitionError("process", "update", process.status)

        fields = [name for name in _EDITABLE_FIELDS if data.get(name) is not None]
        if not fields:
            return process

        old_values = process.snapshot(*fields)
        for name in fields:
            value = data[name]
            setattr(process, name, value.value if isinstance(value, ProcessPriority) else value)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
            user_id=updated_by_id,
            entity_identifier=process.protocol_number,
            old_values=old_values,
            new_values=process.snapshot(*fields),
        )
        return await self.get_process(process_id)

    async def assign_rapporteur(
        self, process_id: int, rapporteur_id: int, assigned_by_id: int
    ) -> EnvironmentalProcess:
        """Name an active councillor as rapporteur and notify them."""
        process = await self.get_process(process_id)
        if process.status in CLOSED_STATUSES or process.status == ProcessStatus.VOTING:
            raise InvalidTransitionError("process", "assign_rapporteur", process.status)

        rapporteur = await self.db.get(User, rapporteur_id)
        if not rapporteur or not rapporteur.is_active:
            raise NotFoundError("Councillor", rapporteur_id)
        if not rapporteur.is_councillor:
            raise ValidationError("Rapporteur must be a councillor", field="rapporteur_id")

        old_values = process.snapshot("rapporteur_id")
        process.rapporteur_id = rapporteur_id
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.ASSIGN_RAPPORTEUR,
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
            user_id=assigned_by_id,
            entity_identifier=process.protocol_number,
            old_values=old_values,
            new_values=process.snapshot("rapporteur_id"),
        )
        await self.notifications.notify(
            rapporteur_id,
            NotificationKind.PROCESS,
            title=f"Relatoria do processo {process.protocol_number}",
            message=f"Você foi designado relator. Parecer técnico até {process.opinion_due_on:%d/%m/%Y}.",
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
        )
        logger.info("Process %s assigned to rapporteur %s", process.protocol_number, rapporteur_id)
        return await self.get_process(process_id)

    async def apply_action(
        self, process_id: int, payload: ProcessActionRequest, user_id: int
    ) -> EnvironmentalProcess:
        """
        Move a process along its workflow.

        Opinions and the vote result may travel with the action that needs
        them; a required field already stored on the process also counts.
        """
        process = await self.get_process(process_id)
        action = payload.action
        sources, target = TRANSITIONS[action]
        if process.status not in sources:
            raise InvalidTransitionError("process", action.value, process.status)

        updates = {}
        for field in ("technical_opinion", "rapporteur_opinion"):
            text = (getattr(payload, field) or "").strip()
            if text:
                updates[field] = text
        if action in (ProcessAction.APPROVE, ProcessAction.REJECT):
            updates["vote_result"] = (payload.vote_result or "").strip() or None
            updates["voted_on"] = payload.voted_on or self._today()

        for field in _REQUIRED_FIELDS[action]:
            value = updates[field] if field in updates else getattr(process, field)
            if value is None:
                raise ValidationError(f"{field} is required for {action.value}", field=field)

        old_values = process.snapshot(*_AUDITED_FIELDS)
        for field, value in updates.items():
            setattr(process, field, value)
        if payload.notes:
            process.notes = payload.notes
        process.status = target.value
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.PROCESS_ACTION,
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
            user_id=user_id,
            entity_identifier=process.protocol_number,
            old_values=old_values,
            new_values={**process.snapshot(*_AUDITED_FIELDS), "action": action.value},
            comment=payload.notes,
        )
        if process.rapporteur_id and process.rapporteur_id != user_id:
            await self.notifications.notify(
                process.rapporteur_id,
                NotificationKind.PROCESS,
                title=f"Processo {process.protocol_number}",
                message=f"Status atualizado para {process.status}",
                entity_type="EnvironmentalProcess",
                entity_id=process.id,
            )
        return await self.get_process(process_id)

    async def delete_process(self, process_id: int, deleted_by_id: int) -> None:
        """Remove a process filed by mistake. Only possible before any analysis starts."""
        process = await self.get_process(process_id)
        if process.status != ProcessStatus.FILED:
            raise InvalidTransitionError("process", "delete", process.status)

        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE,
            entity_type="EnvironmentalProcess",
            entity_id=process.id,
            user_id=deleted_by_id,
            entity_identifier=process.protocol_number,
            old_values=process.snapshot("protocol_number", "applicant", "status"),
        )
        await self.db.delete(process)
        await self.db.flush()

    async def get_summary(self) -> ProcessSummary:
        """Counts by status and type, open processes, overdue opinions and unassigned rapporteurs."""
        by_status = dict(
            (
                await self.db.execute(
                    select(EnvironmentalProcess.status, func.count()).group_by(EnvironmentalProcess.status)
                )
            ).all()
        )
        by_type = dict(
            (
                await self.db.execute(
                    select(EnvironmentalProcess.process_type, func.count()).group_by(
                        EnvironmentalProcess.process_type
                    )
                )
            ).all()
        )
        open_filter = EnvironmentalProcess.status.not_in([s.value for s in CLOSED_STATUSES])
        overdue = (
            await self.db.execute(
                select(func.count())
                .select_from(EnvironmentalProcess)
                .where(open_filter, EnvironmentalProcess.opinion_due_on < self._today())
            )
        ).scalar() or 0
        without_rapporteur = (
            await self.db.execute(
                select(func.count())
                .select_from(EnvironmentalProcess)
                .where(open_filter, EnvironmentalProcess.rapporteur_id.is_(None))
            )
        ).scalar() or 0

        total = sum(by_status.values())
        closed = sum(by_status.get(s.value, 0) for s in CLOSED_STATUSES)
        return ProcessSummary(
            total=total,
            by_status=by_status,
            by_type=by_type,
            open=total - closed,
            overdue=overdue,
            without_rapporteur=without_rapporteur,
        )
