from datetime import datetime
from typing import Any

from codema.shared.schemas import BaseSchema


class AuditLogResponse(BaseSchema):
    """One audit trail entry."""

    id: int
    user_id: int | None
    user_full_name: str | None = None
    action: str
    entity_type: str
    entity_id: int
    entity_identifier: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    comment: str | None
    ip_address: str | None
    created_at: datetime
