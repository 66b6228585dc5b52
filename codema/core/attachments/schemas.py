"""Pydantic schemas for attachments."""

from datetime import datetime

from codema.shared.schemas import BaseSchema


class AttachmentResponse(BaseSchema):
    """Response after upload or get."""

    id: int
    file_name: str
    content_type: str
    file_size: int
    checksum: str
    created_at: datetime
