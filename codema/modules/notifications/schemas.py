from datetime import datetime

from pydantic import Field

from codema.shared.schemas import BaseSchema


class NotificationResponse(BaseSchema):
    id: int
    kind: str
    title: str
    message: str
    entity_type: str | None = None
    entity_id: int | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class UnreadCountResponse(BaseSchema):
    unread: int


class MarkAllReadResponse(BaseSchema):
    updated: int


class NotificationPreferenceResponse(BaseSchema):
    email_enabled: bool = True
    push_enabled: bool = False
    in_app_enabled: bool = True
    convocations: bool = True
    complaints: bool = True
    resolutions: bool = True
    reminder_hours_before: int = 24


class NotificationPreferenceUpdate(BaseSchema):
    email_enabled: bool | None = None
    push_enabled: bool | None = None
    in_app_enabled: bool | None = None
    convocations: bool | None = None
    complaints: bool | None = None
    resolutions: bool | None = None
    reminder_hours_before: int | None = Field(None, ge=1, le=168)
