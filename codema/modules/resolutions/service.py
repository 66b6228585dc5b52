"""Resolution lifecycle: Draft -> Voting -> Approved/Rejected -> Published -> Revoked."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit import AuditAction, create_audit_log
from codema.core.auth.models import User, UserRole
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.meetings.models import Meeting
from codema.modules.notifications import NotificationKind, NotificationService
from codema.modules.resolutions.models import Resolution, ResolutionStatus
from codema.modules.resolutions.schemas import ResolutionCreate, VoteResultRequest

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "summary", "legal_basis", "body", "meeting_id")


class ResolutionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_resolution(self, resolution_id: int) -> Resolution:
        result = await self.db.execute(
            select(Resolution)
            .where(Resolution.id == resolution_id)
            .execution_options(populate_existing=True)
        )
        resolution = result.scalar_one_or_none()
        if not resolution:
            raise NotFoundError("Resolution", resolution_id)
        return resolution

    async def list_resolutions(
        self,
        status: ResolutionStatus | None = None,
        meeting_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Resolution], int]:
        query = select(Resolution)
        if status is not None:
            query = query.where(Resolution.status == status.value)
        if meeting_id is not None:
            query = query.where(Resolution.meeting_id == meeting_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Resolution.protocol_number.ilike(pattern),
                    Resolution.title.ilike(pattern),
                    Resolution.summary.ilike(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(Resolution.created_at.desc(), Resolution.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def _check_meeting(self, meeting_id: int | None) -> None:
        if meeting_id is not None and await self.db.get(Meeting, meeting_id) is None:
            raise NotFoundError("Meeting", meeting_id)

    async def create_resolution(self, data: ResolutionCreate, created_by_id: int) -> Resolution:
        """Draft a resolution under a new RES protocol number."""
        await self._check_meeting(data.meeting_id)
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.RES)
        resolution = Resolution(
            protocol_number=protocol.number,
            title=data.title.strip(),
            summary=data.summary.strip(),
            legal_basis=data.legal_basis,
            body=data.body,
            meeting_id=data.meeting_id,
            status=ResolutionStatus.DRAFT.value,
            votes_for=0,
            votes_against=0,
            votes_abstain=0,
            created_by_id=created_by_id,
        )
        self.db.add(resolution)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE,
            entity_type="Resolution",
            entity_id=resolution.id,
            user_id=created_by_id,
            entity_identifier=resolution.protocol_number,
            new_values=resolution.snapshot("protocol_number", "title", "status"),
        )
        if protocol.degraded:
            logger.warning("Resolution %s drafted with provisional protocol", resolution.id)
        return await self.get_resolution(resolution.id)

    async def update_resolution(self, resolution_id: int, data: dict, updated_by_id: int) -> Resolution:
        """Edit a draft. Anything past Draft is immutable."""
        resolution = await self.get_resolution(resolution_id)
        if resolution.status != ResolutionStatus.DRAFT.value:
            raise InvalidTransitionError("resolution", "update", resolution.status)

        fields = [name for name in _EDITABLE_FIELDS if data.get(name) is not None]
        if not fields:
            return resolution
        if "meeting_id" in fields:
            await self._check_meeting(data["meeting_id"])

        old_values = resolution.snapshot(*fields)
        for name in fields:
            setattr(resolution, name, data[name])
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="Resolution",
            entity_id=resolution.id,
            user_id=updated_by_id,
            entity_identifier=resolution.protocol_number,
            old_values=old_values,
            new_values=resolution.snapshot(*fields),
        )
        return await self.get_resolution(resolution_id)

    async def _transition(
        self,
        resolution: Resolution,
        action: AuditAction,
        to_status: ResolutionStatus,
        user_id: int,
        comment: str | None = None,
        extra: dict | None = None,
    ) -> Resolution:
        from_status = resolution.status
        resolution.status = to_status.value
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=action,
            entity_type="Resolution",
            entity_id=resolution.id,
            user_id=user_id,
            entity_identifier=resolution.protocol_number,
            old_values={"status": from_status},
            new_values={"status": to_status.value, **(extra or {})},
            comment=comment,
        )
        return await self.get_resolution(resolution.id)

    async def start_voting(self, resolution_id: int, user_id: int) -> Resolution:
        resolution = await self.get_resolution(resolution_id)
        if resolution.status != ResolutionStatus.DRAFT.value:
            raise InvalidTransitionError("resolution", "start_voting", resolution.status)
        resolution.voting_started_at = datetime.now(timezone.utc)
        return await self._transition(
            resolution, AuditAction.START_VOTING, ResolutionStatus.VOTING, user_id
        )

    async def record_vote_result(
        self, resolution_id: int, votes: VoteResultRequest, user_id: int
    ) -> Resolution:
        """Close voting: approved when votes in favour outnumber votes against."""
        resolution = await self.get_resolution(resolution_id)
        if resolution.status != ResolutionStatus.VOTING.value:
            raise InvalidTransitionError("resolution", "record_vote_result", resolution.status)
        if votes.votes_for + votes.votes_against + votes.votes_abstain == 0:
            raise ValidationError("At least one vote is required", field="votes_for")

        resolution.votes_for = votes.votes_for
        resolution.votes_against = votes.votes_against
        resolution.votes_abstain = votes.votes_abstain

        if votes.votes_for > votes.votes_against:
            resolution.approved_at = datetime.now(timezone.utc)
            to_status, action = ResolutionStatus.APPROVED, AuditAction.APPROVE
        else:
            to_status, action = ResolutionStatus.REJECTED, AuditAction.REJECT

        return await self._transition(
            resolution,
            action,
            to_status,
            user_id,
            extra={
                "votes_for": votes.votes_for,
                "votes_against": votes.votes_against,
                "votes_abstain": votes.votes_abstain,
            },
        )

    async def publish(self, resolution_id: int, user_id: int) -> Resolution:
        """Publish an approved resolution and notify active councillors."""
        resolution = await self.get_resolution(resolution_id)
        if resolution.status != ResolutionStatus.APPROVED.value:
            raise InvalidTransitionError("resolution", "publish", resolution.status)
        resolution.published_at = datetime.now(timezone.utc)
        resolution = await self._transition(
            resolution, AuditAction.PUBLISH, ResolutionStatus.PUBLISHED, user_id
        )

        councillor_ids = (
            await self.db.execute(
                select(User.id).where(
                    User.role == UserRole.COUNCILLOR.value, User.is_active.is_(True)
                )
            )
        ).scalars().all()
        notifications = NotificationService(self.db)
        for councillor_id in councillor_ids:
            await notifications.notify(
                councillor_id,
                NotificationKind.RESOLUTION,
                title=f"Resolução {resolution.protocol_number} publicada",
                message=resolution.title,
                entity_type="Resolution",
                entity_id=resolution.id,
            )
        return resolution

    async def revoke(self, resolution_id: int, reason: str, user_id: int) -> Resolution:
        """Revoke a published resolution. A reason is mandatory."""
        resolution = await self.get_resolution(resolution_id)
        if resolution.status != ResolutionStatus.PUBLISHED.value:
            raise InvalidTransitionError("resolution", "revoke", resolution.status)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to revoke a resolution", field="reason")
        resolution.revoked_at = datetime.now(timezone.utc)
        resolution.revocation_reason = reason.strip()
        return await self._transition(
            resolution,
            AuditAction.REVOKE,
            ResolutionStatus.REVOKED,
            user_id,
            comment=resolution.revocation_reason,
        )
