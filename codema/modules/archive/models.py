"""Document archive: protocolled files with versions and integrity checksums."""

from datetime import date
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codema.core.database.base import BaseModel
from codema.core.protocols.registry import holds_provisional, register_protocol_column


class DocumentType(StrEnum):
    MINUTES = "Minutes"
    RESOLUTION = "Resolution"
    CONVOCATION = "Convocation"
    LETTER = "Letter"
    OPINION = "Opinion"
    REPORT = "Report"
    LAW = "Law"
    DECREE = "Decree"
    OTHER = "Other"


class DocumentCategory(StrEnum):
    HISTORICAL = "Historical"
    CURRENT = "Current"
    DEAD_ARCHIVE = "DeadArchive"


class DocumentStatus(StrEnum):
    ACTIVE = "Active"
    ARCHIVED = "Archived"
    DELETED = "Deleted"


def tags_to_index(tags: list[str] | None) -> str:
    """Store tags as ',a,b,' so a single LIKE finds one tag."""
    cleaned = sorted({t.strip().lower() for t in tags or [] if t and t.strip()})
    return f",{','.join(cleaned)}," if cleaned else ""


class ArchiveDocument(BaseModel):
    __tablename__ = "archive_documents"

    protocol_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    category: Mapped[str] = mapped_column(
        String(20), default=DocumentCategory.CURRENT.value, nullable=False, index=True
    )
    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    author: Mapped[str | None] = mapped_column(String(200), nullable=True)
    issuing_body: Mapped[str | None] = mapped_column(String(200), nullable=True)
    meeting_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("meetings.id"), nullable=True, index=True
    )
    tags_index: Mapped[str] = mapped_column(Text, default="", nullable=False)

    attachment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("attachments.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DocumentStatus.ACTIVE.value, nullable=False, index=True
    )
    is_confidential: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    previous_version_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("archive_documents.id"), nullable=True
    )

    created_by_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    updated_by_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)

    attachment: Mapped["Attachment"] = relationship("Attachment")

    @property
    def tags(self) -> list[str]:
        return [t for t in (self.tags_index or "").split(",") if t]

    @property
    def protocol_degraded(self) -> bool:
        return holds_provisional(self.protocol_number)


register_protocol_column(ArchiveDocument.protocol_number)


from codema.core.attachments.models import Attachment  # noqa: E402
