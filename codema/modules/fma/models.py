"""Municipal Environmental Fund (FMA): revenues, funded projects and their expenses."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class RevenueType(StrEnum):
    FINE = "Fine"
    LICENSING_FEE = "LicensingFee"
    TRANSFER = "Transfer"
    DONATION = "Donation"
    AGREEMENT = "Agreement"
    OTHER = "Other"


class RevenueStatus(StrEnum):
    EXPECTED = "Expected"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"


class ProjectStatus(StrEnum):
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ProjectAction(StrEnum):
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    START_EXECUTION = "start_execution"
    COMPLETE = "complete"
    CANCEL = "cancel"


# action -> (statuses it may be applied from, resulting status)
PROJECT_TRANSITIONS: dict[ProjectAction, tuple[tuple[ProjectStatus, ...], ProjectStatus]] = {
    ProjectAction.START_REVIEW: ((ProjectStatus.SUBMITTED,), ProjectStatus.UNDER_REVIEW),
    ProjectAction.APPROVE: ((ProjectStatus.UNDER_REVIEW,), ProjectStatus.APPROVED),
    ProjectAction.REJECT: ((ProjectStatus.UNDER_REVIEW,), ProjectStatus.REJECTED),
    ProjectAction.START_EXECUTION: ((ProjectStatus.APPROVED,), ProjectStatus.IN_PROGRESS),
    ProjectAction.COMPLETE: ((ProjectStatus.IN_PROGRESS,), ProjectStatus.COMPLETED),
    ProjectAction.CANCEL: (
        (
            ProjectStatus.SUBMITTED,
            ProjectStatus.UNDER_REVIEW,
            ProjectStatus.APPROVED,
            ProjectStatus.IN_PROGRESS,
        ),
        ProjectStatus.CANCELLED,
    ),
}

# Statuses whose approved amount is committed against the fund balance
COMMITTED_STATUSES = (ProjectStatus.APPROVED, ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED)


class ExpenseType(StrEnum):
    MATERIAL = "Material"
    SERVICE = "Service"
    PERSONNEL = "Personnel"
    EQUIPMENT = "Equipment"
    OTHER = "Other"


class ExpenseStatus(StrEnum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class FundRevenue(BaseModel):
    """Money entering the fund. Only Received revenues count towards the balance."""

    __tablename__ = "fund_revenues"

    revenue_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    received_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=RevenueStatus.EXPECTED.value, nullable=False, index=True
    )
    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)


class FundProject(BaseModel):
    """A project asking the fund for money, under a PROJ protocol number."""

    __tablename__ = "fund_projects"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    objectives: Mapped[str | None] = mapped_column(Text, nullable=True)
    proponent: Mapped[str] = mapped_column(String(255), nullable=False)
    proponent_document: Mapped[str | None] = mapped_column(String(20), nullable=True)
    area: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration_months: Mapped[int | None] = mapped_column(Integer, nullable=True)

    requested_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    approved_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ProjectStatus.SUBMITTED.value, nullable=False, index=True
    )
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    submitted_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    expenses: Mapped[list["ProjectExpense"]] = relationship(
        "ProjectExpense",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectExpense.spent_on",
    )

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)


class ProjectExpense(BaseModel):
    """Spending reported against a project in execution (prestação de contas)."""

    __tablename__ = "fund_project_expenses"

    project_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fund_projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expense_type: Mapped[str] = mapped_column(String(20), nullable=False)
    supplier: Mapped[str] = mapped_column(String(255), nullable=False)
    supplier_document: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    spent_on: Mapped[date] = mapped_column(Date, nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ExpenseStatus.PENDING.value, nullable=False, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )

    project: Mapped["FundProject"] = relationship("FundProject", back_populates="expenses")


register_protocol_column(FundProject.protocol_number)
