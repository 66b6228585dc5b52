"""Meetings: scheduling, convocation, attendance, quorum and minutes."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User, UserRole
from codema.core.config import settings
from codema.core.exceptions import (
    DuplicateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from codema.core.pdf import pdf_service
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.meetings.models import (
    ConvocationStatus,
    Meeting,
    MeetingAttendance,
    MeetingMinutes,
    MeetingStatus,
    MinutesStatus,
)
from codema.modules.meetings.schemas import (
    AttendanceEntry,
    MeetingCreate,
    QuorumResponse,
)
from codema.modules.notifications import NotificationKind, NotificationService

logger = logging.getLogger(__name__)

_MEETING_FIELDS = (
    "title",
    "meeting_type",
    "scheduled_at",
    "location",
    "agenda",
    "secretary_id",
    "quorum_required",
)


class MeetingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    # --- Meetings ---

    async def create_meeting(self, data: MeetingCreate, created_by_id: int) -> Meeting:
        """Schedule a meeting under a new REU protocol number."""
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.REU)
        meeting = Meeting(
            protocol_number=protocol.number,
            title=data.title.strip(),
            meeting_type=data.meeting_type.value,
            scheduled_at=data.scheduled_at,
            location=data.location.strip(),
            agenda=data.agenda,
            status=MeetingStatus.SCHEDULED.value,
            secretary_id=data.secretary_id,
            quorum_required=data.quorum_required,
            created_by_id=created_by_id,
        )
        self.db.add(meeting)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=created_by_id,
            entity_identifier=meeting.protocol_number,
            new_values=meeting.snapshot("protocol_number", *_MEETING_FIELDS),
        )
        if protocol.degraded:
            logger.warning("Meeting %s scheduled with provisional protocol", meeting.id)
        return await self.get_meeting(meeting.id)

    async def get_meeting(self, meeting_id: int) -> Meeting:
        result = await self.db.execute(
            select(Meeting)
            .where(Meeting.id == meeting_id)
            .options(
                selectinload(Meeting.attendances).selectinload(MeetingAttendance.user),
                selectinload(Meeting.minutes),
            )
            .execution_options(populate_existing=True)
        )
        meeting = result.scalar_one_or_none()
        if not meeting:
            raise NotFoundError("Meeting", meeting_id)
        return meeting

    async def list_meetings(
        self,
        status: MeetingStatus | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Meeting], int]:
        """List meetings, most recent first."""
        query = select(Meeting)
        if status is not None:
            query = query.where(Meeting.status == status.value)
        if date_from is not None:
            query = query.where(Meeting.scheduled_at >= date_from)
        if date_to is not None:
            query = query.where(Meeting.scheduled_at <= date_to)

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(Meeting.scheduled_at.desc(), Meeting.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_meeting(self, meeting_id: int, data: dict, updated_by_id: int) -> Meeting:
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULED.value:
            raise InvalidTransitionError("meeting", "update", meeting.status)

        fields = [name for name, value in data.items() if value is not None]
        if not fields:
            return meeting
        old_values = meeting.snapshot(*fields)
        for name in fields:
            setattr(meeting, name, data[name])
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=updated_by_id,
            entity_identifier=meeting.protocol_number,
            old_values=old_values,
            new_values=meeting.snapshot(*fields),
        )
        return await self.get_meeting(meeting_id)

    async def cancel_meeting(self, meeting_id: int, reason: str, cancelled_by_id: int) -> Meeting:
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULED.value:
            raise InvalidTransitionError("meeting", "cancel", meeting.status)

        meeting.status = MeetingStatus.CANCELLED.value
        meeting.cancellation_reason = reason.strip()
        await self.db.flush()

        for attendance in meeting.attendances:
            await self.notifications.notify(
                attendance.user_id,
                NotificationKind.CONVOCATION,
                title=f"Reunião cancelada: {meeting.title}",
                message=meeting.cancellation_reason,
                entity_type="Meeting",
                entity_id=meeting.id,
            )
        await create_audit_log(
            session=self.db,
            action=AuditAction.CANCEL,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=cancelled_by_id,
            entity_identifier=meeting.protocol_number,
            old_values={"status": MeetingStatus.SCHEDULED.value},
            new_values={"status": meeting.status},
            comment=meeting.cancellation_reason,
        )
        return await self.get_meeting(meeting_id)

    async def mark_held(self, meeting_id: int, user_id: int) -> Meeting:
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULED.value:
            raise InvalidTransitionError("meeting", "mark_held", meeting.status)

        meeting.status = MeetingStatus.HELD.value
        meeting.held_at = datetime.now(timezone.utc)
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=user_id,
            entity_identifier=meeting.protocol_number,
            old_values={"status": MeetingStatus.SCHEDULED.value},
            new_values={"status": meeting.status},
        )
        return await self.get_meeting(meeting_id)

    # --- Convocation and attendance ---

    async def _active_councillors(self) -> list[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == UserRole.COUNCILLOR.value, User.is_active.is_(True))
            .order_by(User.full_name)
        )
        return list(result.scalars().all())

    async def send_convocation(self, meeting_id: int, sent_by_id: int) -> Meeting:
        """
        Convoke every active councillor.

        The CONV protocol is assigned on the first send only; sending again
        reaches councillors added since and leaves existing answers intact.
        """
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULED.value:
            raise InvalidTransitionError("meeting", "send_convocation", meeting.status)

        councillors = await self._active_councillors()
        if not councillors:
            raise ValidationError("No active councillors to convoke")

        if meeting.convocation_protocol is None:
            protocol = await ProtocolGenerator(self.db).generate(ProtocolType.CONV)
            meeting.convocation_protocol = protocol.number
            if protocol.degraded:
                logger.warning("Meeting %s convoked with provisional protocol", meeting.id)

        existing = {a.user_id: a for a in meeting.attendances}
        now = datetime.now(timezone.utc)
        for councillor in councillors:
            attendance = existing.get(councillor.id)
            if attendance is None:
                attendance = MeetingAttendance(
                    meeting_id=meeting.id,
                    user_id=councillor.id,
                    convocation_status=ConvocationStatus.PENDING.value,
                    present=False,
                )
                self.db.add(attendance)
            if attendance.convocation_status != ConvocationStatus.PENDING.value:
                continue
            attendance.convocation_status = ConvocationStatus.SENT.value
            await self.notifications.notify(
                councillor.id,
                NotificationKind.CONVOCATION,
                title=f"Convocação {meeting.convocation_protocol}",
                message=(
                    f"{meeting.title} em {meeting.scheduled_at:%d/%m/%Y %H:%M}, {meeting.location}"
                ),
                entity_type="Meeting",
                entity_id=meeting.id,
            )
        meeting.convocation_sent_at = now
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.SEND_CONVOCATION,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=sent_by_id,
            entity_identifier=meeting.convocation_protocol,
            new_values={"convoked": len(councillors)},
        )
        logger.info("Convocation %s sent to %s councillors", meeting.convocation_protocol, len(councillors))
        return await self.get_meeting(meeting_id)

    async def confirm_attendance(self, meeting_id: int, user_id: int, attending: bool) -> MeetingAttendance:
        """A convoked councillor confirms or declines."""
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.SCHEDULED.value:
            raise InvalidTransitionError("meeting", "confirm_attendance", meeting.status)

        attendance = next((a for a in meeting.attendances if a.user_id == user_id), None)
        if attendance is None:
            raise NotFoundError("Convocation for this meeting")

        attendance.convocation_status = (
            ConvocationStatus.CONFIRMED.value if attending else ConvocationStatus.DECLINED.value
        )
        attendance.responded_at = datetime.now(timezone.utc)
        await self.db.flush()
        return attendance

    async def record_attendance(
        self, meeting_id: int, entries: list[AttendanceEntry], recorded_by_id: int
    ) -> Meeting:
        """Secretary marks who is present, creating rows for unconvoked councillors."""
        meeting = await self.get_meeting(meeting_id)
        if meeting.status == MeetingStatus.CANCELLED.value:
            raise InvalidTransitionError("meeting", "record_attendance", meeting.status)

        existing = {a.user_id: a for a in meeting.attendances}
        for entry in entries:
            attendance = existing.get(entry.user_id)
            if attendance is None:
                user = await self.db.get(User, entry.user_id)
                if not user or not user.is_councillor:
                    raise ValidationError(
                        f"User {entry.user_id} is not a councillor", field="user_id"
                    )
                attendance = MeetingAttendance(
                    meeting_id=meeting.id,
                    user_id=entry.user_id,
                    convocation_status=ConvocationStatus.PENDING.value,
                )
                self.db.add(attendance)
                existing[entry.user_id] = attendance
            attendance.present = entry.present
            if entry.present:
                attendance.arrived_at = entry.arrived_at or datetime.now(timezone.utc)
            else:
                attendance.arrived_at = None
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.RECORD_ATTENDANCE,
            entity_type="Meeting",
            entity_id=meeting.id,
            user_id=recorded_by_id,
            entity_identifier=meeting.protocol_number,
            new_values={
                "present": sorted(e.user_id for e in entries if e.present),
                "absent": sorted(e.user_id for e in entries if not e.present),
            },
        )
        return await self.get_meeting(meeting_id)

    async def get_quorum(self, meeting_id: int) -> QuorumResponse:
        """Present vs required; without an explicit quorum, a simple majority of those convoked."""
        meeting = await self.get_meeting(meeting_id)
        convoked = len(meeting.attendances)
        if convoked == 0:
            convoked = len(await self._active_councillors())
        present = sum(1 for a in meeting.attendances if a.present)
        required = meeting.quorum_required or (convoked // 2 + 1)
        return QuorumResponse(
            meeting_id=meeting.id,
            present=present,
            required=required,
            convoked=convoked,
            reached=present >= required,
        )

    # --- Minutes ---

    async def get_minutes(self, meeting_id: int) -> MeetingMinutes:
        result = await self.db.execute(
            select(MeetingMinutes)
            .where(MeetingMinutes.meeting_id == meeting_id)
            .execution_options(populate_existing=True)
        )
        minutes = result.scalar_one_or_none()
        if not minutes:
            raise NotFoundError("Minutes for meeting", meeting_id)
        return minutes

    async def create_minutes(self, meeting_id: int, content: str, created_by_id: int) -> MeetingMinutes:
        """Draft the minutes of a held meeting under an ATA protocol number."""
        meeting = await self.get_meeting(meeting_id)
        if meeting.status != MeetingStatus.HELD.value:
            raise InvalidTransitionError("meeting", "create_minutes", meeting.status)
        if meeting.minutes is not None:
            raise DuplicateError("Minutes", "meeting_id", meeting_id)

        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.ATA)
        minutes = MeetingMinutes(
            meeting_id=meeting.id,
            protocol_number=protocol.number,
            content=content,
            status=MinutesStatus.DRAFT.value,
            created_by_id=created_by_id,
        )
        self.db.add(minutes)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="MeetingMinutes",
            entity_id=minutes.id,
            user_id=created_by_id,
            entity_identifier=minutes.protocol_number,
            new_values=minutes.snapshot("meeting_id", "protocol_number", "status"),
        )
        if protocol.degraded:
            logger.warning("Minutes of meeting %s drafted with provisional protocol", meeting_id)
        await self.db.refresh(minutes)
        return minutes

    async def update_minutes(self, meeting_id: int, content: str, updated_by_id: int) -> MeetingMinutes:
        minutes = await self.get_minutes(meeting_id)
        if minutes.status != MinutesStatus.DRAFT.value:
            raise InvalidTransitionError("minutes", "update", minutes.status)
        minutes.content = content
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="MeetingMinutes",
            entity_id=minutes.id,
            user_id=updated_by_id,
            entity_identifier=minutes.protocol_number,
        )
        await self.db.refresh(minutes)
        return minutes

    async def submit_minutes_for_review(self, meeting_id: int, submitted_by_id: int) -> MeetingMinutes:
        minutes = await self.get_minutes(meeting_id)
        if minutes.status != MinutesStatus.DRAFT.value:
            raise InvalidTransitionError("minutes", "submit", minutes.status)
        minutes.status = MinutesStatus.IN_REVIEW.value
        minutes.submitted_at = datetime.now(timezone.utc)
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=AuditAction.SUBMIT_MINUTES,
            entity_type="MeetingMinutes",
            entity_id=minutes.id,
            user_id=submitted_by_id,
            entity_identifier=minutes.protocol_number,
            old_values={"status": MinutesStatus.DRAFT.value},
            new_values={"status": minutes.status},
        )
        await self.db.refresh(minutes)
        return minutes

    async def approve_minutes(self, meeting_id: int, approved_by_id: int) -> MeetingMinutes:
        minutes = await self.get_minutes(meeting_id)
        if minutes.status != MinutesStatus.IN_REVIEW.value:
            raise InvalidTransitionError("minutes", "approve", minutes.status)
        minutes.status = MinutesStatus.APPROVED.value
        minutes.approved_at = datetime.now(timezone.utc)
        minutes.approved_by_id = approved_by_id
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=AuditAction.APPROVE_MINUTES,
            entity_type="MeetingMinutes",
            entity_id=minutes.id,
            user_id=approved_by_id,
            entity_identifier=minutes.protocol_number,
            old_values={"status": MinutesStatus.IN_REVIEW.value},
            new_values={"status": minutes.status},
        )
        await self.db.refresh(minutes)
        return minutes

    # --- PDFs ---

    async def build_attendance_list_context(self, meeting_id: int) -> dict:
        """
        Template context for the attendance list.

        Members come from the attendance rows; a meeting nobody was convoked
        to lists every active councillor. Sorted by name.
        """
        meeting = await self.get_meeting(meeting_id)
        if meeting.attendances:
            members = [
                {
                    "full_name": a.user.full_name,
                    "represented_entity": a.user.represented_entity,
                    "arrived_at": a.arrived_at,
                }
                for a in meeting.attendances
            ]
        else:
            members = [
                {
                    "full_name": c.full_name,
                    "represented_entity": c.represented_entity,
                    "arrived_at": None,
                }
                for c in await self._active_councillors()
            ]
        members.sort(key=lambda m: m["full_name"].casefold())
        return {
            "council": settings.council_info,
            "meeting": meeting,
            "members": members,
            "generated_at": datetime.now(timezone.utc),
        }

    async def attendance_list_pdf(self, meeting_id: int) -> tuple[bytes, str]:
        """PDF bytes and a download file name."""
        context = await self.build_attendance_list_context(meeting_id)
        pdf_bytes = pdf_service.generate_attendance_list_pdf(context)
        meeting = context["meeting"]
        return pdf_bytes, f"lista-presenca-{meeting.protocol_number.replace('/', '-')}.pdf"

    async def minutes_pdf(self, meeting_id: int) -> tuple[bytes, str]:
        meeting = await self.get_meeting(meeting_id)
        minutes = await self.get_minutes(meeting_id)
        present = sorted(
            (a.user for a in meeting.attendances if a.present),
            key=lambda u: u.full_name.casefold(),
        )
        pdf_bytes = pdf_service.generate_minutes_pdf(
            {
                "council": settings.council_info,
                "meeting": meeting,
                "minutes": minutes,
                "present": present,
            }
        )
        return pdf_bytes, f"ata-{minutes.protocol_number.replace('/', '-')}.pdf"
