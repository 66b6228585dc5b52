from datetime import datetime

from pydantic import Field

from codema.modules.reports.models import ReportPriority, ReportStatus
from codema.shared.schemas import BaseSchema


class CategoryCreate(BaseSchema):
    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)
    icon: str | None = Field(None, max_length=50)


class CategoryUpdate(BaseSchema):
    description: str | None = Field(None, max_length=500)
    icon: str | None = Field(None, max_length=50)
    is_active: bool | None = None


class CategoryResponse(BaseSchema):
    id: int
    name: str
    description: str | None = None
    icon: str | None = None
    is_active: bool


class ReportCreate(BaseSchema):
    title: str = Field(..., min_length=10, max_length=100)
    description: str = Field(..., min_length=20, max_length=1000)
    location: str = Field(..., min_length=5, max_length=200)
    category_id: int | None = None
    priority: ReportPriority = ReportPriority.MEDIUM


class ReportUpdate(BaseSchema):
    title: str | None = Field(None, min_length=10, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=1000)
    location: str | None = Field(None, min_length=5, max_length=200)
    category_id: int | None = None
    priority: ReportPriority | None = None


class ReportStatusRequest(BaseSchema):
    status: ReportStatus
    staff_response: str | None = Field(None, max_length=2000)


class ReportResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool = False
    user_id: int
    reporter_name: str
    category_id: int | None = None
    category_name: str | None = None
    title: str
    description: str
    location: str
    priority: ReportPriority
    status: ReportStatus
    staff_response: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
