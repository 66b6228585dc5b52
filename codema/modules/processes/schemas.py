from datetime import date, datetime

from pydantic import Field

from codema.modules.processes.models import (
    ProcessAction,
    ProcessPriority,
    ProcessStatus,
    ProcessType,
)
from codema.shared.schemas import BaseSchema


class ProcessCreate(BaseSchema):
    process_type: ProcessType
    applicant: str = Field(..., min_length=3, max_length=255)
    applicant_document: str | None = Field(None, max_length=20)
    site_address: str | None = Field(None, max_length=500)
    activity_description: str = Field(..., min_length=10)
    priority: ProcessPriority = ProcessPriority.NORMAL
    filed_on: date | None = None
    notes: str | None = None


class ProcessUpdate(BaseSchema):
    applicant: str | None = Field(None, min_length=3, max_length=255)
    applicant_document: str | None = Field(None, max_length=20)
    site_address: str | None = Field(None, max_length=500)
    activity_description: str | None = Field(None, min_length=10)
    priority: ProcessPriority | None = None
    notes: str | None = None


class AssignRapporteurRequest(BaseSchema):
    rapporteur_id: int


class ProcessActionRequest(BaseSchema):
    """Workflow action; opinions and the vote result travel with the action that needs them."""

    action: ProcessAction
    technical_opinion: str | None = None
    rapporteur_opinion: str | None = None
    vote_result: str | None = Field(None, max_length=500)
    voted_on: date | None = None
    notes: str | None = Field(None, max_length=2000)


class ProcessResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool = False
    process_type: ProcessType
    applicant: str
    applicant_document: str | None = None
    site_address: str | None = None
    activity_description: str
    status: ProcessStatus
    priority: ProcessPriority
    rapporteur_id: int | None = None
    rapporteur_name: str | None = None
    technical_opinion: str | None = None
    rapporteur_opinion: str | None = None
    filed_on: date
    opinion_due_on: date
    overdue: bool = False
    voted_on: date | None = None
    vote_result: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ProcessSummary(BaseSchema):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    open: int
    overdue: int
    without_rapporteur: int
