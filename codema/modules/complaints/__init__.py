from codema.modules.complaints.models import (
    Complaint,
    ComplaintAction,
    ComplaintEvent,
    ComplaintPriority,
    ComplaintStatus,
)
from codema.modules.complaints.service import ComplaintService

__all__ = [
    "Complaint",
    "ComplaintAction",
    "ComplaintEvent",
    "ComplaintPriority",
    "ComplaintStatus",
    "ComplaintService",
]
