from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit.models import AuditLog
from codema.core.auth.models import User


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"

    # Domain-specific actions
    ISSUE_PROTOCOL = "ISSUE_PROTOCOL"
    RESET_PROTOCOL_SEQUENCE = "RESET_PROTOCOL_SEQUENCE"
    RECONCILE_PROTOCOL = "RECONCILE_PROTOCOL"
    COMPLAINT_ACTION = "COMPLAINT_ACTION"
    SEND_CONVOCATION = "SEND_CONVOCATION"
    RECORD_ATTENDANCE = "RECORD_ATTENDANCE"
    SUBMIT_MINUTES = "SUBMIT_MINUTES"
    APPROVE_MINUTES = "APPROVE_MINUTES"
    START_VOTING = "START_VOTING"
    PUBLISH = "PUBLISH"
    REVOKE = "REVOKE"
    NEW_VERSION = "NEW_VERSION"
    PROCESS_ACTION = "PROCESS_ACTION"
    ASSIGN_RAPPORTEUR = "ASSIGN_RAPPORTEUR"
    CHANGE_STATUS = "CHANGE_STATUS"
    PROJECT_ACTION = "PROJECT_ACTION"


async def create_audit_log(
    session: AsyncSession,
    action: str | AuditAction,
    entity_type: str,
    entity_id: int,
    user_id: int | None = None,
    entity_identifier: str | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    comment: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        session: Database session
        action: Action performed (e.g., CREATE, PUBLISH, RESET_PROTOCOL_SEQUENCE)
        entity_type: Type of entity (e.g., Complaint, Meeting, ProtocolSequence)
        entity_id: ID of the entity
        user_id: ID of the user who performed the action
        entity_identifier: Human-readable identifier (usually the protocol number)
        old_values: State before change
        new_values: State after change
        comment: Additional comment (e.g. reason for a reset)
        ip_address: Client IP address
        user_agent: Client user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=str(action),
        entity_type=entity_type,
        entity_id=entity_id,
        entity_identifier=entity_identifier,
        old_values=old_values,
        new_values=new_values,
        comment=comment,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    session.add(audit_log)
    await session.flush()

    return audit_log


async def list_audit_entries(
    session: AsyncSession,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[tuple[AuditLog, str | None]], int]:
    """
    List audit log entries with optional filters, newest first.
    Returns (list of (AuditLog, user_full_name), total_count).
    """
    conditions = []
    if date_from is not None:
        conditions.append(AuditLog.created_at >= date_from)
    if date_to is not None:
        conditions.append(AuditLog.created_at <= date_to)
    if user_id is not None:
        conditions.append(AuditLog.user_id == user_id)
    if entity_type is not None:
        conditions.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        conditions.append(AuditLog.entity_id == entity_id)
    if action is not None:
        conditions.append(AuditLog.action == action)

    count_q = select(func.count()).select_from(AuditLog).where(*conditions)
    total = (await session.execute(count_q)).scalar_one()

    q = (
        select(AuditLog, User.full_name)
        .outerjoin(User, AuditLog.user_id == User.id)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await session.execute(q)).all()
    return [(row[0], row[1]) for row in rows], total
