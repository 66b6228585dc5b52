"""Ombudsman complaints (ouvidoria) and their status history."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import Base, BaseModel, BigIntPK
from codema.core.protocols.registry import register_protocol_column


class ComplaintStatus(StrEnum):
    RECEIVED = "Received"
    UNDER_INVESTIGATION = "UnderInvestigation"
    INSPECTION_SCHEDULED = "InspectionScheduled"
    INSPECTION_DONE = "InspectionDone"
    UPHELD = "Upheld"
    DISMISSED = "Dismissed"
    ARCHIVED = "Archived"


CLOSED_STATUSES = (ComplaintStatus.UPHELD, ComplaintStatus.DISMISSED, ComplaintStatus.ARCHIVED)


class ComplaintPriority(StrEnum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


class ComplaintAction(StrEnum):
    START_INVESTIGATION = "start_investigation"
    SCHEDULE_INSPECTION = "schedule_inspection"
    RECORD_INSPECTION = "record_inspection"
    CONCLUDE_UPHELD = "conclude_upheld"
    CONCLUDE_DISMISSED = "conclude_dismissed"
    ARCHIVE = "archive"


# action -> (statuses it may be applied from, resulting status)
TRANSITIONS: dict[ComplaintAction, tuple[tuple[ComplaintStatus, ...], ComplaintStatus]] = {
    ComplaintAction.START_INVESTIGATION: (
        (ComplaintStatus.RECEIVED,),
        ComplaintStatus.UNDER_INVESTIGATION,
    ),
    ComplaintAction.SCHEDULE_INSPECTION: (
        (ComplaintStatus.UNDER_INVESTIGATION, ComplaintStatus.INSPECTION_SCHEDULED),
        ComplaintStatus.INSPECTION_SCHEDULED,
    ),
    ComplaintAction.RECORD_INSPECTION: (
        (ComplaintStatus.INSPECTION_SCHEDULED,),
        ComplaintStatus.INSPECTION_DONE,
    ),
    ComplaintAction.CONCLUDE_UPHELD: (
        (ComplaintStatus.INSPECTION_DONE,),
        ComplaintStatus.UPHELD,
    ),
    ComplaintAction.CONCLUDE_DISMISSED: (
        (ComplaintStatus.UNDER_INVESTIGATION, ComplaintStatus.INSPECTION_DONE),
        ComplaintStatus.DISMISSED,
    ),
    ComplaintAction.ARCHIVE: (
        (ComplaintStatus.RECEIVED, ComplaintStatus.UPHELD, ComplaintStatus.DISMISSED),
        ComplaintStatus.ARCHIVED,
    ),
}


class Complaint(BaseModel):
    """
    Environmental complaint filed with the council's ombudsman.

    Anonymous complaints never store complainant contact data.
    """

    __tablename__ = "complaints"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    protocol_degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    complaint_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6), nullable=True)
    occurred_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    complainant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    complainant_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    complainant_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    submitted_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True, index=True
    )

    priority: Mapped[str] = mapped_column(
        String(20), default=ComplaintPriority.NORMAL.value, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(30), default=ComplaintStatus.RECEIVED.value, nullable=False, index=True
    )

    inspector_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True, index=True
    )
    inspection_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    inspection_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    concluded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    events: Mapped[list["ComplaintEvent"]] = relationship(
        "ComplaintEvent",
        back_populates="complaint",
        cascade="all, delete-orphan",
        order_by="ComplaintEvent.id",
    )


class ComplaintEvent(Base):
    """One status change (or note) on a complaint."""

    __tablename__ = "complaint_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    complaint_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    complaint: Mapped["Complaint"] = relationship("Complaint", back_populates="events")
    user: Mapped["User | None"] = relationship("User")


register_protocol_column(Complaint.protocol_number)


from codema.core.auth.models import User  # noqa: E402
