from datetime import datetime

from pydantic import Field

from codema.modules.meetings.models import (
    ConvocationStatus,
    MeetingStatus,
    MeetingType,
    MinutesStatus,
)
from codema.shared.schemas import BaseSchema


class MeetingCreate(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    meeting_type: MeetingType = MeetingType.ORDINARY
    scheduled_at: datetime
    location: str = Field(..., min_length=2, max_length=255)
    agenda: str | None = None
    secretary_id: int | None = None
    quorum_required: int | None = Field(None, ge=1)


class MeetingUpdate(BaseSchema):
    title: str | None = Field(None, min_length=3, max_length=255)
    meeting_type: MeetingType | None = None
    scheduled_at: datetime | None = None
    location: str | None = Field(None, min_length=2, max_length=255)
    agenda: str | None = None
    secretary_id: int | None = None
    quorum_required: int | None = Field(None, ge=1)


class MeetingCancelRequest(BaseSchema):
    reason: str = Field(..., min_length=3, max_length=500)


class MeetingResponse(BaseSchema):
    id: int
    protocol_number: str
    convocation_protocol: str | None = None
    protocol_degraded: bool = False
    convocation_degraded: bool = False
    title: str
    meeting_type: MeetingType
    scheduled_at: datetime
    location: str
    agenda: str | None = None
    status: MeetingStatus
    secretary_id: int | None = None
    quorum_required: int | None = None
    convocation_sent_at: datetime | None = None
    held_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class AttendanceResponse(BaseSchema):
    id: int
    user_id: int
    full_name: str
    represented_entity: str | None = None
    convocation_status: ConvocationStatus
    present: bool
    arrived_at: datetime | None = None
    responded_at: datetime | None = None


class ConfirmAttendanceRequest(BaseSchema):
    attending: bool


class AttendanceEntry(BaseSchema):
    user_id: int
    present: bool = True
    arrived_at: datetime | None = None


class RecordAttendanceRequest(BaseSchema):
    entries: list[AttendanceEntry] = Field(..., min_length=1)


class QuorumResponse(BaseSchema):
    meeting_id: int
    present: int
    required: int
    convoked: int
    reached: bool


class MinutesCreate(BaseSchema):
    content: str = Field(..., min_length=10)


class MinutesUpdate(BaseSchema):
    content: str = Field(..., min_length=10)


class MinutesResponse(BaseSchema):
    id: int
    meeting_id: int
    protocol_number: str
    protocol_degraded: bool = False
    content: str
    status: MinutesStatus
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by_id: int | None = None
    created_at: datetime
    updated_at: datetime
