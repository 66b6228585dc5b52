from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import CurrentUser, StaffUser
from codema.core.database import get_db
from codema.modules.meetings.models import Meeting, MeetingAttendance, MeetingStatus
from codema.modules.meetings.schemas import (
    AttendanceResponse,
    ConfirmAttendanceRequest,
    MeetingCancelRequest,
    MeetingCreate,
    MeetingResponse,
    MeetingUpdate,
    MinutesCreate,
    MinutesResponse,
    MinutesUpdate,
    QuorumResponse,
    RecordAttendanceRequest,
)
from codema.modules.meetings.service import MeetingService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/meetings", tags=["Meetings"])


def _map_attendance(attendance: MeetingAttendance) -> AttendanceResponse:
    return AttendanceResponse(
        id=attendance.id,
        user_id=attendance.user_id,
        full_name=attendance.user.full_name,
        represented_entity=attendance.user.represented_entity,
        convocation_status=attendance.convocation_status,
        present=attendance.present,
        arrived_at=attendance.arrived_at,
        responded_at=attendance.responded_at,
    )


def _pdf_response(pdf_bytes: bytes, filename: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=ApiResponse[MeetingResponse], status_code=status.HTTP_201_CREATED)
async def create_meeting(
    data: MeetingCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Schedule a meeting. A REU protocol number is assigned."""
    meeting = await MeetingService(db).create_meeting(data, created_by_id=current_user.id)
    message = "Meeting scheduled"
    if meeting.protocol_degraded:
        message = "Meeting scheduled with a provisional protocol number"
    return ApiResponse(data=MeetingResponse.model_validate(meeting), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[MeetingResponse]])
async def list_meetings(
    current_user: CurrentUser,
    status: MeetingStatus | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    meetings, total = await MeetingService(db).list_meetings(
        status=status, date_from=date_from, date_to=date_to, page=page, limit=limit
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[MeetingResponse.model_validate(m) for m in meetings],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/{meeting_id}", response_model=ApiResponse[MeetingResponse])
async def get_meeting(meeting_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    meeting = await MeetingService(db).get_meeting(meeting_id)
    return ApiResponse(data=MeetingResponse.model_validate(meeting))


@router.patch("/{meeting_id}", response_model=ApiResponse[MeetingResponse])
async def update_meeting(
    meeting_id: int,
    data: MeetingUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    meeting = await MeetingService(db).update_meeting(
        meeting_id, data.model_dump(exclude_unset=True), updated_by_id=current_user.id
    )
    return ApiResponse(data=MeetingResponse.model_validate(meeting), message="Meeting updated")


@router.post("/{meeting_id}/cancel", response_model=ApiResponse[MeetingResponse])
async def cancel_meeting(
    meeting_id: int,
    data: MeetingCancelRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    meeting = await MeetingService(db).cancel_meeting(meeting_id, data.reason, current_user.id)
    return ApiResponse(data=MeetingResponse.model_validate(meeting), message="Meeting cancelled")


@router.post("/{meeting_id}/held", response_model=ApiResponse[MeetingResponse])
async def mark_meeting_held(meeting_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    meeting = await MeetingService(db).mark_held(meeting_id, current_user.id)
    return ApiResponse(data=MeetingResponse.model_validate(meeting))


@router.post("/{meeting_id}/convocation", response_model=ApiResponse[MeetingResponse])
async def send_convocation(meeting_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    """Convoke all active councillors (CONV protocol on first send)."""
    meeting = await MeetingService(db).send_convocation(meeting_id, current_user.id)
    message = "Convocation sent"
    if meeting.convocation_degraded:
        message = "Convocation sent with a provisional protocol number"
    return ApiResponse(data=MeetingResponse.model_validate(meeting), message=message)


@router.get("/{meeting_id}/attendance", response_model=ApiResponse[list[AttendanceResponse]])
async def list_attendance(meeting_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    meeting: Meeting = await MeetingService(db).get_meeting(meeting_id)
    rows = sorted(meeting.attendances, key=lambda a: a.user.full_name.casefold())
    return ApiResponse(data=[_map_attendance(a) for a in rows])


@router.post("/{meeting_id}/attendance/confirm", response_model=ApiResponse[AttendanceResponse])
async def confirm_attendance(
    meeting_id: int,
    data: ConfirmAttendanceRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """The current councillor confirms or declines the convocation."""
    attendance = await MeetingService(db).confirm_attendance(meeting_id, current_user.id, data.attending)
    return ApiResponse(data=_map_attendance(attendance))


@router.post("/{meeting_id}/attendance", response_model=ApiResponse[list[AttendanceResponse]])
async def record_attendance(
    meeting_id: int,
    data: RecordAttendanceRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    meeting = await MeetingService(db).record_attendance(meeting_id, data.entries, current_user.id)
    rows = sorted(meeting.attendances, key=lambda a: a.user.full_name.casefold())
    return ApiResponse(data=[_map_attendance(a) for a in rows], message="Attendance recorded")


@router.get("/{meeting_id}/quorum", response_model=ApiResponse[QuorumResponse])
async def get_quorum(meeting_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await MeetingService(db).get_quorum(meeting_id))


@router.get("/{meeting_id}/attendance-list.pdf")
async def download_attendance_list(
    meeting_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Printable attendance list (A4 landscape)."""
    pdf_bytes, filename = await MeetingService(db).attendance_list_pdf(meeting_id)
    return _pdf_response(pdf_bytes, filename)


@router.post(
    "/{meeting_id}/minutes",
    response_model=ApiResponse[MinutesResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_minutes(
    meeting_id: int,
    data: MinutesCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Draft minutes for a held meeting. An ATA protocol number is assigned."""
    minutes = await MeetingService(db).create_minutes(meeting_id, data.content, current_user.id)
    message = "Minutes created"
    if minutes.protocol_degraded:
        message = "Minutes created with a provisional protocol number"
    return ApiResponse(data=MinutesResponse.model_validate(minutes), message=message)


@router.get("/{meeting_id}/minutes", response_model=ApiResponse[MinutesResponse])
async def get_minutes(meeting_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    minutes = await MeetingService(db).get_minutes(meeting_id)
    return ApiResponse(data=MinutesResponse.model_validate(minutes))


@router.put("/{meeting_id}/minutes", response_model=ApiResponse[MinutesResponse])
async def update_minutes(
    meeting_id: int,
    data: MinutesUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    minutes = await MeetingService(db).update_minutes(meeting_id, data.content, current_user.id)
    return ApiResponse(data=MinutesResponse.model_validate(minutes), message="Minutes updated")


@router.post("/{meeting_id}/minutes/submit", response_model=ApiResponse[MinutesResponse])
async def submit_minutes(meeting_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    minutes = await MeetingService(db).submit_minutes_for_review(meeting_id, current_user.id)
    return ApiResponse(data=MinutesResponse.model_validate(minutes), message="Minutes submitted for review")


@router.post("/{meeting_id}/minutes/approve", response_model=ApiResponse[MinutesResponse])
async def approve_minutes(meeting_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    minutes = await MeetingService(db).approve_minutes(meeting_id, current_user.id)
    return ApiResponse(data=MinutesResponse.model_validate(minutes), message="Minutes approved")


@router.get("/{meeting_id}/minutes.pdf")
async def download_minutes(meeting_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    pdf_bytes, filename = await MeetingService(db).minutes_pdf(meeting_id)
    return _pdf_response(pdf_bytes, filename)
