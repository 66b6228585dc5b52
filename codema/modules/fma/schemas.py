from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from codema.modules.fma.models import (
    ExpenseStatus,
    ExpenseType,
    ProjectAction,
    ProjectStatus,
    RevenueStatus,
    RevenueType,
)
from codema.shared.schemas import BaseSchema


# --- Revenues ---


class RevenueCreate(BaseSchema):
    revenue_type: RevenueType
    description: str = Field(..., min_length=3)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    received_on: date
    source: str | None = Field(None, max_length=255)
    document_number: str | None = Field(None, max_length=100)
    status: RevenueStatus = RevenueStatus.EXPECTED


class RevenueUpdate(BaseSchema):
    description: str | None = Field(None, min_length=3)
    amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    received_on: date | None = None
    source: str | None = Field(None, max_length=255)
    document_number: str | None = Field(None, max_length=100)
    status: RevenueStatus | None = None


class RevenueResponse(BaseSchema):
    id: int
    revenue_type: RevenueType
    description: str
    amount: Decimal
    received_on: date
    source: str | None = None
    document_number: str | None = None
    status: RevenueStatus
    created_at: datetime


# --- Projects ---


class ProjectCreate(BaseSchema):
    title: str = Field(..., min_length=5, max_length=255)
    description: str = Field(..., min_length=10)
    objectives: str | None = None
    proponent: str = Field(..., min_length=3, max_length=255)
    proponent_document: str | None = Field(None, max_length=20)
    area: str | None = Field(None, max_length=100)
    duration_months: int | None = Field(None, ge=1, le=120)
    requested_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)


class ProjectUpdate(BaseSchema):
    title: str | None = Field(None, min_length=5, max_length=255)
    description: str | None = Field(None, min_length=10)
    objectives: str | None = None
    area: str | None = Field(None, max_length=100)
    duration_months: int | None = Field(None, ge=1, le=120)
    requested_amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)


class ProjectActionRequest(BaseSchema):
    """approved_amount travels with approve; notes with any action."""

    action: ProjectAction
    approved_amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    notes: str | None = Field(None, max_length=2000)


class ProjectResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool = False
    title: str
    description: str
    objectives: str | None = None
    proponent: str
    proponent_document: str | None = None
    area: str | None = None
    duration_months: int | None = None
    requested_amount: Decimal
    approved_amount: Decimal | None = None
    status: ProjectStatus
    review_notes: str | None = None
    decided_on: date | None = None
    submitted_by_id: int
    created_at: datetime
    updated_at: datetime


# --- Expenses ---


class ExpenseCreate(BaseSchema):
    expense_type: ExpenseType
    supplier: str = Field(..., min_length=2, max_length=255)
    supplier_document: str | None = Field(None, max_length=20)
    description: str = Field(..., min_length=3)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    spent_on: date
    invoice_number: str | None = Field(None, max_length=100)


class ExpenseReviewRequest(BaseSchema):
    approve: bool
    rejection_reason: str | None = Field(None, max_length=2000)


class ExpenseResponse(BaseSchema):
    id: int
    project_id: int
    expense_type: ExpenseType
    supplier: str
    supplier_document: str | None = None
    description: str
    amount: Decimal
    spent_on: date
    invoice_number: str | None = None
    status: ExpenseStatus
    rejection_reason: str | None = None
    reviewed_by_id: int | None = None
    created_at: datetime


# --- Computed views ---


class ProjectExecution(BaseSchema):
    project_id: int
    approved_amount: Decimal
    executed: Decimal
    pending: Decimal
    balance: Decimal
    percent_executed: float
    by_type: dict[str, Decimal]


class FundSummary(BaseSchema):
    total_received: Decimal
    total_expected: Decimal
    total_requested: Decimal
    total_approved: Decimal
    available_balance: Decimal
    projects_in_progress: int
    projects_completed: int
    projects_by_status: dict[str, int]
