"""Tests for Dashboard API: GET /api/v1/dashboard (staff and councillors)."""

from datetime import date, datetime, timedelta, timezone

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import User
from codema.modules.complaints.models import Complaint
from codema.modules.complaints.schemas import ComplaintActionRequest, ComplaintCreate
from codema.modules.complaints.service import ComplaintService
from codema.modules.dashboard.service import DashboardService
from codema.modules.meetings.schemas import AttendanceEntry, MeetingCreate
from codema.modules.meetings.service import MeetingService
from codema.modules.resolutions.schemas import ResolutionCreate, VoteResultRequest
from codema.modules.resolutions.service import ResolutionService


async def _seed_activity(db: AsyncSession, secretary: User, councillors: list[User]) -> None:
    """One held meeting with quorum and approved minutes, one upcoming meeting,
    one published resolution, one upheld and one open complaint."""
    meetings = MeetingService(db)
    held = await meetings.create_meeting(
        MeetingCreate(
            title="Reunião Ordinária de Março",
            scheduled_at=datetime.now(timezone.utc) - timedelta(hours=2),
            location="Sala do Conselho",
        ),
        secretary.id,
    )
    await meetings.send_convocation(held.id, secretary.id)
    await meetings.record_attendance(
        held.id, [AttendanceEntry(user_id=c.id) for c in councillors[:2]], secretary.id
    )
    await meetings.mark_held(held.id, secretary.id)
    await meetings.create_minutes(held.id, "Ata da reunião ordinária de março.", secretary.id)
    await meetings.submit_minutes_for_review(held.id, secretary.id)
    await meetings.approve_minutes(held.id, secretary.id)

    await meetings.create_meeting(
        MeetingCreate(
            title="Reunião Ordinária de Abril",
            scheduled_at=datetime.now(timezone.utc) + timedelta(days=20),
            location="Sala do Conselho",
        ),
        secretary.id,
    )

    resolutions = ResolutionService(db)
    resolution = await resolutions.create_resolution(
        ResolutionCreate(
            title="Zoneamento ambiental",
            summary="Aprova o zoneamento",
            body="Art. 1º Fica aprovado o zoneamento ambiental.",
            meeting_id=held.id,
        ),
        secretary.id,
    )
    await resolutions.start_voting(resolution.id, secretary.id)
    await resolutions.record_vote_result(
        resolution.id, VoteResultRequest(votes_for=3, votes_against=0), secretary.id
    )
    await resolutions.publish(resolution.id, secretary.id)

    complaints = ComplaintService(db)
    dismissed, _ = [
        await complaints.create_complaint(
            ComplaintCreate(complaint_type="Poluição", description=description, location="Centro")
        )
        for description in ("Descarte de entulho na APP", "Ruído excessivo de serraria")
    ]
    await complaints.apply_action(
        dismissed.id,
        ComplaintActionRequest(action="start_investigation", inspector_id=secretary.id),
        secretary.id,
    )
    await complaints.apply_action(
        dismissed.id,
        ComplaintActionRequest(action="conclude_dismissed", final_report="Sem materialidade"),
        secretary.id,
    )


class TestDashboardService:
    """Metrics computed from council activity."""

    async def test_empty_dashboard(self, db_session: AsyncSession):
        summary = await DashboardService(db_session).get_summary()

        assert summary.meetings.total == 0
        assert summary.minutes.approval_rate_percent is None
        assert summary.complaints.total == 0
        assert summary.protocols_issued_this_year == 0
        assert summary.current_year == date.today().year

    async def test_summary_counts(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        await _seed_activity(db_session, secretary, councillors)

        summary = await DashboardService(db_session).get_summary()

        assert summary.meetings.total == 2
        assert summary.meetings.held == 1
        assert summary.meetings.with_quorum == 1
        assert summary.meetings.upcoming == 1
        assert summary.minutes.total == 1
        assert summary.minutes.approval_rate_percent == 100.0
        assert summary.resolutions.published == 1
        assert summary.resolutions.approved == 1
        assert summary.complaints.total == 2
        assert summary.complaints.open == 1
        assert summary.complaints.concluded == 1
        assert summary.complaints.upheld == 0
        assert summary.active_councillors == 3
        # REU x2, CONV, ATA, RES, OUV x2
        assert summary.protocols_issued_this_year == 7
        assert summary.provisional_protocols == 0

    async def test_provisional_protocols_counted(self, db_session: AsyncSession):
        db_session.add(
            Complaint(
                protocol_number="OUV-123/2025-P",
                protocol_degraded=True,
                complaint_type="Queimada",
                description="Queimada em lote vago",
                location="Bairro Novo",
            )
        )
        await db_session.flush()

        summary = await DashboardService(db_session).get_summary()
        assert summary.provisional_protocols == 1

    async def test_date_range_excludes_activity(
        self, db_session: AsyncSession, secretary: User, councillors: list[User]
    ):
        await _seed_activity(db_session, secretary, councillors)

        summary = await DashboardService(db_session).get_summary(
            date_from=date(2000, 1, 1), date_to=date(2000, 12, 31)
        )
        assert summary.meetings.total == 0
        assert summary.complaints.total == 0
        assert summary.resolutions.total == 0


class TestDashboardAccess:
    """Tests for GET /dashboard (main page summary)."""

    async def test_dashboard_requires_auth(self, client: AsyncClient):
        """Without token returns 401."""
        response = await client.get("/api/v1/dashboard")
        assert response.status_code == 401

    async def test_dashboard_admin_ok(self, client: AsyncClient, admin: User, auth_headers):
        """Admin can get dashboard summary."""
        response = await client.get("/api/v1/dashboard", headers=await auth_headers(admin))
        assert response.status_code == 200
        data = response.json()
        assert data.get("success") is True
        d = data["data"]
        assert "meetings" in d
        assert "minutes" in d
        assert "resolutions" in d
        assert "complaints" in d
        assert "protocols_issued_this_year" in d
        assert "current_year" in d

    async def test_dashboard_councillor_ok(
        self, client: AsyncClient, councillors: list[User], auth_headers
    ):
        response = await client.get(
            "/api/v1/dashboard", headers=await auth_headers(councillors[0])
        )
        assert response.status_code == 200
        assert response.json()["data"]["active_councillors"] == 3

    async def test_dashboard_citizen_forbidden(
        self, client: AsyncClient, citizen: User, auth_headers
    ):
        """Citizens cannot access the dashboard."""
        response = await client.get("/api/v1/dashboard", headers=await auth_headers(citizen))
        assert response.status_code == 403

    async def test_inverted_range_rejected(self, client: AsyncClient, admin: User, auth_headers):
        response = await client.get(
            "/api/v1/dashboard",
            params={"date_from": "2025-12-31", "date_to": "2025-01-01"},
            headers=await auth_headers(admin),
        )
        assert response.status_code == 422
