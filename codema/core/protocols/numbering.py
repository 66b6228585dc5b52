"""
Protocol number format: TYPE-NNN/YYYY.

The sequence is zero-padded to three digits and widens past 999
(PROC-1000/2025). Numbers issued without the sequence table carry a
provisional suffix (PROC-417/2025-P) and never match the canonical pattern.
"""

from __future__ import annotations

import re

from pydantic import ConfigDict

from codema.core.protocols.types import PROTOCOL_TYPE_INFO, ProtocolType, is_recognized_type
from codema.shared.schemas import BaseSchema

_PROTOCOL_RE = re.compile(r"^([A-Z]+)-(\d{3,})/(\d{4})$")
_PROVISIONAL_RE = re.compile(r"^([A-Z]+-\d{3,}/\d{4})-([A-Z]+)$")

SEQUENCE_WIDTH = 3


class ProtocolNumber(BaseSchema):
    """Structured form of a protocol number."""

    model_config = ConfigDict(frozen=True)

    protocol_type: ProtocolType
    year: int
    sequence: int
    formatted: str
    description: str


def format_protocol(protocol_type: str, sequence: int, year: int) -> str:
    """PROC, 7, 2025 -> PROC-007/2025."""
    return f"{protocol_type}-{sequence:0{SEQUENCE_WIDTH}d}/{year}"


def format_provisional(protocol_type: str, sequence: int, year: int, suffix: str) -> str:
    """PROC, 417, 2025, P -> PROC-417/2025-P."""
    return f"{format_protocol(protocol_type, sequence, year)}-{suffix}"


def validate_format(value: str) -> bool:
    """Pure format check; the type code does not need to be recognized."""
    if not isinstance(value, str):
        return False
    return _PROTOCOL_RE.match(value) is not None


def parse_protocol(value: str) -> ProtocolNumber | None:
    """
    Parse a canonical protocol number.

    Returns None when the text does not match the pattern or the type code
    is not a recognized protocol type.
    """
    if not isinstance(value, str):
        return None
    match = _PROTOCOL_RE.match(value)
    if not match:
        return None

    code, sequence, year = match.groups()
    if not is_recognized_type(code):
        return None

    protocol_type = ProtocolType(code)
    return ProtocolNumber(
        protocol_type=protocol_type,
        year=int(year),
        sequence=int(sequence),
        formatted=value,
        description=PROTOCOL_TYPE_INFO[protocol_type]["description"],
    )


def split_provisional(value: str) -> tuple[str, str] | None:
    """PROC-417/2025-P -> ("PROC-417/2025", "P"); None for anything else."""
    if not isinstance(value, str):
        return None
    match = _PROVISIONAL_RE.match(value)
    if not match:
        return None
    return match.group(1), match.group(2)


def is_provisional(value: str, suffix: str) -> bool:
    parts = split_provisional(value)
    return parts is not None and parts[1] == suffix
