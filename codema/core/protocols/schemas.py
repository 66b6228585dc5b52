from datetime import datetime

from pydantic import Field, field_validator

from codema.core.protocols.types import ProtocolType
from codema.shared.schemas import BaseSchema


class GeneratedProtocol(BaseSchema):
    """
    Result of issuing (or previewing) a protocol number.

    degraded=True means the counter was unreachable and the number is a
    provisional one that is not guaranteed unique.
    """

    number: str
    protocol_type: ProtocolType
    year: int
    sequence: int
    degraded: bool = False


class ProtocolTypeResponse(BaseSchema):
    code: ProtocolType
    name: str
    description: str


class GenerateRequest(BaseSchema):
    protocol_type: ProtocolType


class GenerateManyRequest(BaseSchema):
    protocol_type: ProtocolType
    quantity: int = Field(..., ge=1, le=50)


class ProtocolTextRequest(BaseSchema):
    number: str


class ValidateResponse(BaseSchema):
    number: str
    valid_format: bool
    recognized: bool


class ProtocolStatistics(BaseSchema):
    protocol_type: str
    year: int
    total_issued: int
    last_sequence: int
    last_updated: datetime | None


class ProtocolSequenceResponse(BaseSchema):
    id: int
    protocol_type: str
    year: int
    last_sequence: int
    total_issued: int
    created_at: datetime
    updated_at: datetime


class ResetSequenceRequest(BaseSchema):
    protocol_type: ProtocolType
    year: int | None = None
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 5:
            raise ValueError("Reason must be at least 5 characters")
        return v


class ReconcileRequest(BaseSchema):
    provisional_number: str


class ReconciliationResult(BaseSchema):
    provisional_number: str
    number: str
    updated_references: int


class ProvisionalReference(BaseSchema):
    table: str
    column: str
    entity_id: int
    number: str
