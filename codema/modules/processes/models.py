"""Environmental processes (licensing, public hearings, impact studies) under PROC protocols."""

from datetime import date
from enum import StrEnum

from sqlalchemy import BigInteger, Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class ProcessType(StrEnum):
    LICENSING = "Licensing"
    COMPLAINT = "Complaint"
    PUBLIC_HEARING = "PublicHearing"
    IMPACT_STUDY = "ImpactStudy"
    OTHER = "Other"


class ProcessPriority(StrEnum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


class ProcessStatus(StrEnum):
    FILED = "Filed"
    TECHNICAL_REVIEW = "TechnicalReview"
    RAPPORTEUR_REVIEW = "RapporteurReview"
    VOTING = "Voting"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ARCHIVED = "Archived"


CLOSED_STATUSES = (ProcessStatus.APPROVED, ProcessStatus.REJECTED, ProcessStatus.ARCHIVED)


class ProcessAction(StrEnum):
    START_TECHNICAL_REVIEW = "start_technical_review"
    SEND_TO_RAPPORTEUR = "send_to_rapporteur"
    START_VOTING = "start_voting"
    APPROVE = "approve"
    REJECT = "reject"
    ARCHIVE = "archive"


# action -> (statuses it may be applied from, resulting status)
TRANSITIONS: dict[ProcessAction, tuple[tuple[ProcessStatus, ...], ProcessStatus]] = {
    ProcessAction.START_TECHNICAL_REVIEW: (
        (ProcessStatus.FILED,),
        ProcessStatus.TECHNICAL_REVIEW,
    ),
    ProcessAction.SEND_TO_RAPPORTEUR: (
        (ProcessStatus.TECHNICAL_REVIEW,),
        ProcessStatus.RAPPORTEUR_REVIEW,
    ),
    ProcessAction.START_VOTING: (
        (ProcessStatus.RAPPORTEUR_REVIEW,),
        ProcessStatus.VOTING,
    ),
    ProcessAction.APPROVE: ((ProcessStatus.VOTING,), ProcessStatus.APPROVED),
    ProcessAction.REJECT: ((ProcessStatus.VOTING,), ProcessStatus.REJECTED),
    ProcessAction.ARCHIVE: (
        (ProcessStatus.FILED, ProcessStatus.APPROVED, ProcessStatus.REJECTED),
        ProcessStatus.ARCHIVED,
    ),
}


class EnvironmentalProcess(BaseModel):
    """
    A request the council must give an opinion on.

    The technical opinion is due opinion_due_on (filing date plus the
    configured deadline); a councillor acting as rapporteur then reports to
    the plenary, which votes.
    """

    __tablename__ = "environmental_processes"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    process_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    applicant: Mapped[str] = mapped_column(String(255), nullable=False)
    applicant_document: Mapped[str | None] = mapped_column(String(20), nullable=True)
    site_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    activity_description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(30), default=ProcessStatus.FILED.value, nullable=False, index=True
    )
    priority: Mapped[str] = mapped_column(
        String(20), default=ProcessPriority.NORMAL.value, nullable=False, index=True
    )

    rapporteur_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True, index=True
    )
    technical_opinion: Mapped[str | None] = mapped_column(Text, nullable=True)
    rapporteur_opinion: Mapped[str | None] = mapped_column(Text, nullable=True)

    filed_on: Mapped[date] = mapped_column(Date, nullable=False)
    opinion_due_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    voted_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    vote_result: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    rapporteur: Mapped["User | None"] = relationship("User", foreign_keys=[rapporteur_id])

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)

    @property
    def rapporteur_name(self) -> str | None:
        # rapporteur is eager-loaded by the service
        return self.rapporteur.full_name if self.rapporteur else None

    def is_overdue(self, today: date) -> bool:
        return self.opinion_due_on < today and self.status not in CLOSED_STATUSES


register_protocol_column(EnvironmentalProcess.protocol_number)


from codema.core.auth.models import User  # noqa: E402
