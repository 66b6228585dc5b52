"""Citizen reports (relatórios): problems reported to the council under REL protocols."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class ReportStatus(StrEnum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class ReportPriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


# status -> statuses staff may move it to; Closed is final
ALLOWED_TRANSITIONS: dict[ReportStatus, tuple[ReportStatus, ...]] = {
    ReportStatus.OPEN: (ReportStatus.IN_PROGRESS, ReportStatus.CLOSED),
    ReportStatus.IN_PROGRESS: (ReportStatus.OPEN, ReportStatus.RESOLVED),
    ReportStatus.RESOLVED: (ReportStatus.IN_PROGRESS, ReportStatus.CLOSED),
    ReportStatus.CLOSED: (),
}


class ReportCategory(BaseModel):
    """Service category a report is filed under (e.g. urban trees, waste, water)."""

    __tablename__ = "report_categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class CitizenReport(BaseModel):
    __tablename__ = "citizen_reports"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False, index=True
    )
    category_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("report_categories.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default=ReportPriority.MEDIUM.value, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ReportStatus.OPEN.value, nullable=False, index=True
    )
    staff_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    category: Mapped["ReportCategory | None"] = relationship("ReportCategory")
    user: Mapped["User"] = relationship("User")

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category else None

    @property
    def reporter_name(self) -> str:
        return self.user.full_name


register_protocol_column(CitizenReport.protocol_number)


from codema.core.auth.models import User  # noqa: E402
