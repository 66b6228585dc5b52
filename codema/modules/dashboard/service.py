"""Service for the executive dashboard."""

from datetime import date, datetime, time, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import User, UserRole
from codema.core.protocols import ProtocolGenerator, ProtocolSequence
from codema.modules.complaints.models import CLOSED_STATUSES, Complaint, ComplaintStatus
from codema.modules.dashboard.schemas import (
    ComplaintMetrics,
    DashboardResponse,
    MeetingMetrics,
    MinutesMetrics,
    ResolutionMetrics,
)
from codema.modules.meetings.models import (
    Meeting,
    MeetingAttendance,
    MeetingMinutes,
    MeetingStatus,
    MinutesStatus,
)
from codema.modules.resolutions.models import Resolution, ResolutionStatus


def _start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _end(d: date) -> datetime:
    return datetime.combine(d, time.max, tzinfo=timezone.utc)


class DashboardService:
    """
    Aggregates council activity for the main page.

    Queries run one after another: they share a single AsyncSession.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _in_range(self, column, date_from: date | None, date_to: date | None) -> list:
        conditions = []
        if date_from is not None:
            conditions.append(column >= _start(date_from))
        if date_to is not None:
            conditions.append(column <= _end(date_to))
        return conditions

    async def _count_by_status(self, model, conditions: list) -> dict[str, int]:
        rows = (
            await self.db.execute(
                select(model.status, func.count()).where(*conditions).group_by(model.status)
            )
        ).all()
        return {status: count for status, count in rows}

    async def _meeting_metrics(self, date_from: date | None, date_to: date | None) -> MeetingMetrics:
        conditions = self._in_range(Meeting.scheduled_at, date_from, date_to)
        by_status = await self._count_by_status(Meeting, conditions)

        upcoming = (
            await self.db.execute(
                select(func.count())
                .select_from(Meeting)
                .where(
                    Meeting.status == MeetingStatus.SCHEDULED.value,
                    Meeting.scheduled_at >= datetime.now(timezone.utc),
                )
            )
        ).scalar() or 0

        # Held meetings with their present and convoked counts
        held_rows = (
            await self.db.execute(
                select(
                    Meeting.id,
                    Meeting.quorum_required,
                    func.count(MeetingAttendance.id),
                    func.coalesce(func.sum(case((MeetingAttendance.present.is_(True), 1), else_=0)), 0),
                )
                .outerjoin(MeetingAttendance, MeetingAttendance.meeting_id == Meeting.id)
                .where(Meeting.status == MeetingStatus.HELD.value, *conditions)
                .group_by(Meeting.id, Meeting.quorum_required)
            )
        ).all()
        with_quorum = sum(
            1
            for _, quorum_required, convoked, present in held_rows
            if convoked and present >= (quorum_required or convoked // 2 + 1)
        )

        return MeetingMetrics(
            total=sum(by_status.values()),
            held=by_status.get(MeetingStatus.HELD.value, 0),
            with_quorum=with_quorum,
            upcoming=upcoming,
            cancelled=by_status.get(MeetingStatus.CANCELLED.value, 0),
        )

    async def _minutes_metrics(self, date_from: date | None, date_to: date | None) -> MinutesMetrics:
        by_status = await self._count_by_status(
            MeetingMinutes, self._in_range(MeetingMinutes.created_at, date_from, date_to)
        )
        total = sum(by_status.values())
        approved = by_status.get(MinutesStatus.APPROVED.value, 0)
        return MinutesMetrics(
            total=total,
            pending=total - approved,
            approved=approved,
            approval_rate_percent=round(approved / total * 100, 1) if total else None,
        )

    async def _resolution_metrics(self, date_from: date | None, date_to: date | None) -> ResolutionMetrics:
        by_status = await self._count_by_status(
            Resolution, self._in_range(Resolution.created_at, date_from, date_to)
        )
        published = by_status.get(ResolutionStatus.PUBLISHED.value, 0)
        revoked = by_status.get(ResolutionStatus.REVOKED.value, 0)
        return ResolutionMetrics(
            total=sum(by_status.values()),
            # Published and revoked resolutions were approved first
            approved=by_status.get(ResolutionStatus.APPROVED.value, 0) + published + revoked,
            rejected=by_status.get(ResolutionStatus.REJECTED.value, 0),
            published=published,
            revoked=revoked,
        )

    async def _complaint_metrics(self, date_from: date | None, date_to: date | None) -> ComplaintMetrics:
        by_status = await self._count_by_status(
            Complaint, self._in_range(Complaint.created_at, date_from, date_to)
        )
        total = sum(by_status.values())
        upheld = by_status.get(ComplaintStatus.UPHELD.value, 0)
        return ComplaintMetrics(
            total=total,
            open=total - sum(by_status.get(s.value, 0) for s in CLOSED_STATUSES),
            concluded=upheld + by_status.get(ComplaintStatus.DISMISSED.value, 0),
            upheld=upheld,
        )

    async def get_summary(
        self,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        year: int | None = None,
    ) -> DashboardResponse:
        """Build the dashboard. Date range filters activity; protocol totals use `year` (default: current)."""
        current_year = year or date.today().year

        active_councillors = (
            await self.db.execute(
                select(func.count())
                .select_from(User)
                .where(User.role == UserRole.COUNCILLOR.value, User.is_active.is_(True))
            )
        ).scalar() or 0
        protocols_issued = (
            await self.db.execute(
                select(func.coalesce(func.sum(ProtocolSequence.total_issued), 0)).where(
                    ProtocolSequence.year == current_year
                )
            )
        ).scalar() or 0
        provisional = await ProtocolGenerator(self.db).find_provisional()

        return DashboardResponse(
            meetings=await self._meeting_metrics(date_from, date_to),
            minutes=await self._minutes_metrics(date_from, date_to),
            resolutions=await self._resolution_metrics(date_from, date_to),
            complaints=await self._complaint_metrics(date_from, date_to),
            active_councillors=active_councillors,
            protocols_issued_this_year=int(protocols_issued),
            provisional_protocols=len(provisional),
            date_from=date_from,
            date_to=date_to,
            current_year=current_year,
        )
