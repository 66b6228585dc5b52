from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import EmailStr, Field

from codema.modules.complaints.models import (
    ComplaintAction,
    ComplaintPriority,
    ComplaintStatus,
)
from codema.shared.schemas import BaseSchema


class ComplaintCreate(BaseSchema):
    complaint_type: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=10)
    location: str = Field(..., min_length=3, max_length=500)
    latitude: Decimal | None = Field(None, ge=-90, le=90)
    longitude: Decimal | None = Field(None, ge=-180, le=180)
    occurred_on: date | None = None
    priority: ComplaintPriority = ComplaintPriority.NORMAL
    is_anonymous: bool = False
    complainant_name: str | None = Field(None, max_length=200)
    complainant_email: EmailStr | None = None
    complainant_phone: str | None = Field(None, max_length=50)


class ComplaintUpdate(BaseSchema):
    complaint_type: str | None = Field(None, min_length=2, max_length=100)
    priority: ComplaintPriority | None = None
    location: str | None = Field(None, min_length=3, max_length=500)
    resolution_notes: str | None = None


class ComplaintActionRequest(BaseSchema):
    """Workflow action with the fields the action needs."""

    action: ComplaintAction
    inspector_id: int | None = None
    inspection_date: date | None = None
    inspection_report: str | None = None
    final_report: str | None = None
    notes: str | None = Field(None, max_length=2000)


class ComplaintResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool
    complaint_type: str
    description: str
    location: str
    latitude: Decimal | None = None
    longitude: Decimal | None = None
    occurred_on: date | None = None
    is_anonymous: bool
    complainant_name: str | None = None
    complainant_email: str | None = None
    complainant_phone: str | None = None
    priority: ComplaintPriority
    status: ComplaintStatus
    inspector_id: int | None = None
    inspection_date: date | None = None
    inspection_report: str | None = None
    final_report: str | None = None
    resolution_notes: str | None = None
    concluded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ComplaintEventResponse(BaseSchema):
    id: int
    action: str
    from_status: str | None = None
    to_status: str
    user_id: int | None = None
    user_name: str | None = None
    notes: str | None = None
    created_at: datetime


class WorkflowStep(BaseSchema):
    id: str
    title: str
    description: str
    status: Literal["completed", "current", "pending"]


class ComplaintWorkflow(BaseSchema):
    complaint_id: int
    status: ComplaintStatus
    steps: list[WorkflowStep]
    progress: float
    available_actions: list[ComplaintAction]


class ComplaintAnalytics(BaseSchema):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    by_type: dict[str, int]
    open: int
    concluded: int
    average_days_to_conclusion: float | None = None
