"""In-app notifications and per-user notification preferences."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from codema.core.database.base import Base, BaseModel, BigIntPK


class NotificationKind(StrEnum):
    """What a notification is about; each kind maps to a preference toggle."""

    CONVOCATION = "convocation"
    COMPLAINT = "complaint"
    RESOLUTION = "resolution"
    MINUTES = "minutes"
    PROCESS = "process"
    REPORT = "report"
    FUND = "fund"
    SYSTEM = "system"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class NotificationPreference(BaseModel):
    """One row per user; missing row means defaults."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    convocations: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    complaints: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    resolutions: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reminder_hours_before: Mapped[int] = mapped_column(Integer, default=24, nullable=False)

    def allows(self, kind: str) -> bool:
        """True when an in-app notification of this kind should be created."""
        if not self.in_app_enabled:
            return False
        toggle = {
            NotificationKind.CONVOCATION.value: self.convocations,
            NotificationKind.COMPLAINT.value: self.complaints,
            NotificationKind.RESOLUTION.value: self.resolutions,
        }
        return toggle.get(kind, True)
