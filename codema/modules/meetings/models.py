"""Council meetings, per-councillor attendance and minutes (atas)."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class MeetingType(StrEnum):
    ORDINARY = "Ordinary"
    EXTRAORDINARY = "Extraordinary"


class MeetingStatus(StrEnum):
    SCHEDULED = "Scheduled"
    HELD = "Held"
    CANCELLED = "Cancelled"


class ConvocationStatus(StrEnum):
    PENDING = "Pending"
    SENT = "Sent"
    CONFIRMED = "Confirmed"
    DECLINED = "Declined"


class MinutesStatus(StrEnum):
    DRAFT = "Draft"
    IN_REVIEW = "InReview"
    APPROVED = "Approved"


class Meeting(BaseModel):
    __tablename__ = "meetings"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    convocation_protocol: Mapped[str | None] = mapped_column(String(40), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    meeting_type: Mapped[str] = mapped_column(
        String(20), default=MeetingType.ORDINARY.value, nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    agenda: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=MeetingStatus.SCHEDULED.value, nullable=False, index=True
    )
    secretary_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )
    # None: simple majority of the convoked councillors
    quorum_required: Mapped[int | None] = mapped_column(Integer, nullable=True)
    convocation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    held_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    attendances: Mapped[list["MeetingAttendance"]] = relationship(
        "MeetingAttendance", back_populates="meeting", cascade="all, delete-orphan"
    )
    minutes: Mapped["MeetingMinutes | None"] = relationship(
        "MeetingMinutes", back_populates="meeting", uselist=False
    )

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)

    @property
    def convocation_degraded(self) -> bool:
        return holds_provisional(self.convocation_protocol)


class MeetingAttendance(BaseModel):
    __tablename__ = "meeting_attendances"
    __table_args__ = (UniqueConstraint("meeting_id", "user_id", name="uq_meeting_attendance_user"),)

    meeting_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    convocation_status: Mapped[str] = mapped_column(
        String(20), default=ConvocationStatus.PENDING.value, nullable=False
    )
    present: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    arrived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    meeting: Mapped["Meeting"] = relationship("Meeting", back_populates="attendances")
    user: Mapped["User"] = relationship("User")


class MeetingMinutes(BaseModel):
    __tablename__ = "meeting_minutes"

    meeting_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=MinutesStatus.DRAFT.value, nullable=False, index=True
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )
    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    meeting: Mapped["Meeting"] = relationship("Meeting", back_populates="minutes")

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)


register_protocol_column(Meeting.protocol_number)
register_protocol_column(Meeting.convocation_protocol)
register_protocol_column(MeetingMinutes.protocol_number)


from codema.core.auth.models import User  # noqa: E402
