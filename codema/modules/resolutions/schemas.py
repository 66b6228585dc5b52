from datetime import datetime

from pydantic import Field

from codema.modules.resolutions.models import ResolutionStatus
from codema.shared.schemas import BaseSchema


class ResolutionCreate(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    summary: str = Field(..., min_length=3)
    legal_basis: str | None = None
    body: str = Field(..., min_length=10)
    meeting_id: int | None = None


class ResolutionUpdate(BaseSchema):
    title: str | None = Field(None, min_length=3, max_length=255)
    summary: str | None = Field(None, min_length=3)
    legal_basis: str | None = None
    body: str | None = Field(None, min_length=10)
    meeting_id: int | None = None


class VoteResultRequest(BaseSchema):
    votes_for: int = Field(..., ge=0)
    votes_against: int = Field(..., ge=0)
    votes_abstain: int = Field(0, ge=0)


class RevokeRequest(BaseSchema):
    reason: str = Field(..., min_length=5, max_length=1000)


class ResolutionResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool = False
    title: str
    summary: str
    legal_basis: str | None = None
    body: str
    status: ResolutionStatus
    meeting_id: int | None = None
    votes_for: int
    votes_against: int
    votes_abstain: int
    voting_started_at: datetime | None = None
    approved_at: datetime | None = None
    published_at: datetime | None = None
    revoked_at: datetime | None = None
    revocation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
