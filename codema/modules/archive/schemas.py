from datetime import date, datetime

from pydantic import Field

from codema.modules.archive.models import DocumentCategory, DocumentStatus, DocumentType
from codema.shared.schemas import BaseSchema


class DocumentMetadata(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    description: str | None = None
    document_type: DocumentType
    category: DocumentCategory = DocumentCategory.CURRENT
    document_date: date
    author: str | None = Field(None, max_length=200)
    issuing_body: str | None = Field(None, max_length=200)
    meeting_id: int | None = None
    tags: list[str] = []
    is_confidential: bool = False


class DocumentUpdate(BaseSchema):
    title: str | None = Field(None, min_length=3, max_length=255)
    description: str | None = None
    document_type: DocumentType | None = None
    category: DocumentCategory | None = None
    document_date: date | None = None
    author: str | None = Field(None, max_length=200)
    issuing_body: str | None = Field(None, max_length=200)
    tags: list[str] | None = None
    is_confidential: bool | None = None
    status: DocumentStatus | None = None


class DocumentSearch(BaseSchema):
    query: str | None = None
    document_types: list[DocumentType] | None = None
    categories: list[DocumentCategory] | None = None
    year: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    tags: list[str] | None = None
    is_confidential: bool | None = None
    statuses: list[DocumentStatus] | None = None


class DocumentResponse(BaseSchema):
    id: int
    protocol_number: str
    protocol_degraded: bool = False
    title: str
    description: str | None = None
    document_type: DocumentType
    category: DocumentCategory
    document_date: date
    year: int
    author: str | None = None
    issuing_body: str | None = None
    meeting_id: int | None = None
    tags: list[str]
    attachment_id: int
    file_name: str
    file_size: int
    content_type: str
    checksum: str
    status: DocumentStatus
    is_confidential: bool
    version: int
    previous_version_id: int | None = None
    created_by_id: int
    created_at: datetime
    updated_at: datetime


class ArchiveStats(BaseSchema):
    total_documents: int
    by_type: dict[str, int]
    by_category: dict[str, int]
    by_year: dict[str, int]
    total_size: int
    latest: list[DocumentResponse]


class DocumentValidation(BaseSchema):
    document_id: int
    valid: bool
    file_exists: bool
    checksum_match: bool
    issues: list[str]
