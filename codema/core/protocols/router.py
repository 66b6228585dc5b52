from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser, SuperAdminUser
from codema.core.database import get_db
from codema.core.exceptions import NotFoundError
from codema.core.protocols.generator import ProtocolGenerator
from codema.core.protocols.numbering import ProtocolNumber, parse_protocol, validate_format
from codema.core.protocols.schemas import (
    GenerateManyRequest,
    GenerateRequest,
    GeneratedProtocol,
    ProtocolSequenceResponse,
    ProtocolStatistics,
    ProtocolTypeResponse,
    ProvisionalReference,
    ReconcileRequest,
    ReconciliationResult,
    ResetSequenceRequest,
    ValidateResponse,
)
from codema.core.protocols.types import PROTOCOL_TYPE_INFO, ProtocolType
from codema.shared.schemas import ApiResponse

router = APIRouter(prefix="/protocols", tags=["Protocols"])

PROVISIONAL_WARNING = (
    "Protocol counter unavailable: provisional number issued, reconcile it before use"
)


@router.get("/types", response_model=ApiResponse[list[ProtocolTypeResponse]])
async def list_protocol_types(current_user: CurrentUser):
    """Catalog of recognized protocol types."""
    return ApiResponse(
        data=[
            ProtocolTypeResponse(code=code, name=info["name"], description=info["description"])
            for code, info in PROTOCOL_TYPE_INFO.items()
        ]
    )


@router.post("/generate", response_model=ApiResponse[GeneratedProtocol], status_code=201)
async def generate_protocol(
    data: GenerateRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Issue the next protocol number of a type for the current year."""
    generated = await ProtocolGenerator(db).generate(data.protocol_type)
    return ApiResponse(
        data=generated,
        message=PROVISIONAL_WARNING if generated.degraded else "Protocol issued",
    )


@router.post("/generate-many", response_model=ApiResponse[list[GeneratedProtocol]], status_code=201)
async def generate_many_protocols(
    data: GenerateManyRequest,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Issue several protocol numbers of one type."""
    generated = await ProtocolGenerator(db).generate_many(data.protocol_type, data.quantity)
    degraded = any(item.degraded for item in generated)
    return ApiResponse(
        data=generated,
        message=PROVISIONAL_WARNING if degraded else f"{len(generated)} protocols issued",
    )


@router.get("/next/{protocol_type}", response_model=ApiResponse[GeneratedProtocol])
async def peek_next_protocol(
    protocol_type: ProtocolType,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Preview the next number without consuming it."""
    preview = await ProtocolGenerator(db).peek_next(protocol_type)
    return ApiResponse(data=preview)


@router.get("/parse", response_model=ApiResponse[ProtocolNumber | None])
async def parse_protocol_number(
    current_user: CurrentUser,
    number: str = Query(..., max_length=40),
):
    """Split a protocol number into type, sequence and year."""
    parsed = parse_protocol(number)
    if parsed is None:
        return ApiResponse(data=None, message="Not a recognized protocol number")
    return ApiResponse(data=parsed)


@router.get("/validate", response_model=ApiResponse[ValidateResponse])
async def validate_protocol_number(
    current_user: CurrentUser,
    number: str = Query(..., max_length=40),
):
    """Format check, reported separately from type recognition."""
    return ApiResponse(
        data=ValidateResponse(
            number=number,
            valid_format=validate_format(number),
            recognized=parse_protocol(number) is not None,
        )
    )


@router.get("/statistics", response_model=ApiResponse[list[ProtocolStatistics]])
async def get_protocol_statistics(
    current_user: StaffUser,
    year: int | None = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    """Issued totals per type for a year (default: current year)."""
    stats = await ProtocolGenerator(db).get_statistics(year)
    return ApiResponse(data=stats)


@router.get(
    "/sequences/{protocol_type}/{year}",
    response_model=ApiResponse[ProtocolSequenceResponse],
)
async def get_protocol_sequence(
    protocol_type: ProtocolType,
    year: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Counter row for a type and year."""
    sequence_row = await ProtocolGenerator(db).get_sequence(protocol_type, year)
    if sequence_row is None:
        raise NotFoundError("Protocol sequence", f"{protocol_type.value}/{year}")
    return ApiResponse(data=ProtocolSequenceResponse.model_validate(sequence_row))


@router.post("/reset", response_model=ApiResponse[ProtocolSequenceResponse])
async def reset_protocol_sequence(
    data: ResetSequenceRequest,
    current_user: SuperAdminUser,
    db: AsyncSession = Depends(get_db),
):
    """
    Reset a counter to zero. SuperAdmin only, audited.

    The next number issued for that type and year is 001.
    """
    sequence_row = await ProtocolGenerator(db).reset_sequence(
        data.protocol_type,
        data.year,
        reset_by_id=current_user.id,
        reason=data.reason,
    )
    return ApiResponse(
        data=ProtocolSequenceResponse.model_validate(sequence_row),
        message="Protocol sequence reset",
    )


@router.get("/provisional", response_model=ApiResponse[list[ProvisionalReference]])
async def list_provisional_protocols(
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Records still carrying a provisional protocol number."""
    return ApiResponse(data=await ProtocolGenerator(db).find_provisional())


@router.post("/reconcile", response_model=ApiResponse[ReconciliationResult])
async def reconcile_protocol(
    data: ReconcileRequest,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Replace a provisional number with a real one everywhere it is used."""
    result = await ProtocolGenerator(db).reconcile(
        data.provisional_number, reconciled_by_id=current_user.id
    )
    return ApiResponse(data=result, message="Protocol reconciled")
