from codema.core.protocols.generator import ProtocolGenerator, generate_protocol
from codema.core.protocols.models import ProtocolSequence
from codema.core.protocols.numbering import (
    ProtocolNumber,
    format_protocol,
    is_provisional,
    parse_protocol,
    validate_format,
)
from codema.core.protocols.registry import register_protocol_column
from codema.core.protocols.schemas import GeneratedProtocol
from codema.core.protocols.types import PROTOCOL_TYPE_INFO, ProtocolType

__all__ = [
    "GeneratedProtocol",
    "PROTOCOL_TYPE_INFO",
    "ProtocolGenerator",
    "ProtocolNumber",
    "ProtocolSequence",
    "ProtocolType",
    "format_protocol",
    "generate_protocol",
    "is_provisional",
    "parse_protocol",
    "register_protocol_column",
    "validate_format",
]
