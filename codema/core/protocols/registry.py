"""
Columns that store protocol numbers.

Domain models register their protocol columns at import time so that
provisional numbers can be found and rewritten when they are reconciled.
"""

from sqlalchemy.orm import InstrumentedAttribute

from codema.core.config import settings
from codema.core.protocols.numbering import is_provisional

# Keyed by (table name, column key); attributes compare as SQL expressions
_PROTOCOL_COLUMNS: dict[tuple[str, str], InstrumentedAttribute] = {}


def register_protocol_column(column: InstrumentedAttribute) -> InstrumentedAttribute:
    _PROTOCOL_COLUMNS[(column.class_.__tablename__, column.key)] = column
    return column


def protocol_columns() -> list[InstrumentedAttribute]:
    return list(_PROTOCOL_COLUMNS.values())


def holds_provisional(number: str | None) -> bool:
    """True when a stored protocol number is still provisional and awaits reconciliation."""
    return number is not None and is_provisional(number, settings.protocol_provisional_suffix)
