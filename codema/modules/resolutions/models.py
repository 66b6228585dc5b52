from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class ResolutionStatus(StrEnum):
    DRAFT = "Draft"
    VOTING = "Voting"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PUBLISHED = "Published"
    REVOKED = "Revoked"


class Resolution(BaseModel):
    """Council resolution: drafted, voted on, published and possibly revoked."""

    __tablename__ = "resolutions"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)  # ementa
    legal_basis: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ResolutionStatus.DRAFT.value, nullable=False, index=True
    )
    meeting_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("meetings.id"), nullable=True, index=True
    )

    votes_for: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    votes_against: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    votes_abstain: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    voting_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revocation_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    meeting: Mapped["Meeting | None"] = relationship("Meeting")

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)


register_protocol_column(Resolution.protocol_number)


from codema.modules.meetings.models import Meeting  # noqa: E402
