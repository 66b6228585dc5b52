from datetime import date, datetime

from pydantic import EmailStr, field_validator, model_validator

from codema.core.auth.models import UserRole
from codema.shared.schemas import BaseSchema


def _check_full_name(v: str | None) -> str | None:
    if v is not None:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
    return v


def _check_password(v: str | None) -> str | None:
    if v is not None and len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    return v


class UserCreate(BaseSchema):
    """Schema for creating a new user."""

    email: EmailStr
    password: str | None = None  # None = councillor listed on attendance sheets without system access
    full_name: str
    phone: str | None = None
    role: UserRole
    represented_entity: str | None = None
    mandate_start: date | None = None
    mandate_end: date | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return _check_full_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str | None:
        return _check_password(v)

    @model_validator(mode="after")
    def validate_mandate(self):
        if self.mandate_start and self.mandate_end and self.mandate_end < self.mandate_start:
            raise ValueError("Mandate end must not be before mandate start")
        return self


class UserUpdate(BaseSchema):
    """Schema for updating a user."""

    email: EmailStr | None = None
    full_name: str | None = None
    phone: str | None = None
    role: UserRole | None = None
    represented_entity: str | None = None
    mandate_start: date | None = None
    mandate_end: date | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str | None:
        return _check_full_name(v)


class SetPassword(BaseSchema):
    """Schema for setting/changing password."""

    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class ChangeOwnPassword(BaseSchema):
    """Schema for user changing their own password."""

    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


class UserResponse(BaseSchema):
    """Schema for user response."""

    id: int
    email: str
    full_name: str
    phone: str | None
    role: str
    represented_entity: str | None
    mandate_start: date | None
    mandate_end: date | None
    is_active: bool
    can_login: bool
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime


class CouncillorResponse(BaseSchema):
    id: int
    full_name: str
    represented_entity: str | None
    mandate_start: date | None
    mandate_end: date | None


class UserListFilters(BaseSchema):
    """Filters for user list."""

    role: UserRole | None = None
    is_active: bool | None = None
    search: str | None = None  # Search by name, email or represented entity
    page: int = 1
    limit: int = 20
