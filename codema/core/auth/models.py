from datetime import date, datetime
from enum import StrEnum

from sqlalchemy import Boolean, Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from codema.core.database.base import BaseModel


class UserRole(StrEnum):
    """User roles in the council system."""

    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    SECRETARY = "Secretary"
    COUNCILLOR = "Councillor"
    INSPECTOR = "Inspector"
    CITIZEN = "Citizen"


# Roles that run the council's day-to-day administration
STAFF_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.SECRETARY)


class User(BaseModel):
    """
    User account.

    Councillors are users with the Councillor role; they carry the entity
    they represent and their mandate dates. A user without password_hash
    cannot log in (e.g. a councillor registered only for attendance lists).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    represented_entity: Mapped[str | None] = mapped_column(String(200), nullable=True)
    mandate_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    mandate_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def has_role(self, *roles: UserRole) -> bool:
        """Check if user has any of the specified roles."""
        return self.role in [r.value for r in roles]

    @property
    def can_login(self) -> bool:
        """Check if user can login (has password set)."""
        return self.password_hash is not None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    @property
    def is_staff(self) -> bool:
        return self.has_role(*STAFF_ROLES)

    @property
    def is_councillor(self) -> bool:
        return self.role == UserRole.COUNCILLOR.value
