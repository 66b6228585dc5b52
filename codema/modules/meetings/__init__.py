from codema.modules.meetings.models import (
    ConvocationStatus,
    Meeting,
    MeetingAttendance,
    MeetingMinutes,
    MeetingStatus,
    MeetingType,
    MinutesStatus,
)
from codema.modules.meetings.service import MeetingService

__all__ = [
    "ConvocationStatus",
    "Meeting",
    "MeetingAttendance",
    "MeetingMinutes",
    "MeetingService",
    "MeetingStatus",
    "MeetingType",
    "MinutesStatus",
]
