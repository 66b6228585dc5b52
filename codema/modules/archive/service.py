"""Archive documents: upload, search, versions, statistics, export and integrity checks."""

import csv
import logging
from io import StringIO

from botocore.exceptions import ClientError
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.attachments.service import (
    compute_checksum,
    get_attachment,
    get_attachment_content,
    store_bytes,
)
from codema.core.audit import AuditAction, create_audit_log
from codema.core.exceptions import InvalidTransitionError, NotFoundError
from codema.core.protocols import ProtocolGenerator, ProtocolType
from codema.modules.archive.models import (
    ArchiveDocument,
    DocumentStatus,
    tags_to_index,
)
from codema.modules.archive.schemas import (
    ArchiveStats,
    DocumentMetadata,
    DocumentResponse,
    DocumentSearch,
    DocumentValidation,
)
from codema.modules.meetings.models import Meeting

logger = logging.getLogger(__name__)

EXPORT_LIMIT = 1000
_AUDITED_FIELDS = ("title", "document_type", "category", "status", "is_confidential", "tags_index")


class ArchiveService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_document(self, document_id: int, include_confidential: bool = True) -> ArchiveDocument:
        result = await self.db.execute(
            select(ArchiveDocument)
            .where(ArchiveDocument.id == document_id)
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if not document or (document.is_confidential and not include_confidential):
            raise NotFoundError("Document", document_id)
        return document

    async def upload_document(
        self,
        metadata: DocumentMetadata,
        *,
        file_name: str,
        content_type: str,
        content: bytes,
        uploaded_by_id: int,
        version: int = 1,
        previous_version_id: int | None = None,
    ) -> ArchiveDocument:
        """Store the file and register it under a new DOC protocol number."""
        if metadata.meeting_id is not None and await self.db.get(Meeting, metadata.meeting_id) is None:
            raise NotFoundError("Meeting", metadata.meeting_id)

        attachment = await store_bytes(
            self.db,
            file_name=file_name,
            content_type=content_type,
            content=content,
            created_by_id=uploaded_by_id,
            folder=f"archive/{metadata.document_date.year}",
        )
        protocol = await ProtocolGenerator(self.db).generate(ProtocolType.DOC)

        document = ArchiveDocument(
            protocol_number=protocol.number,
            title=metadata.title.strip(),
            description=metadata.description,
            document_type=metadata.document_type.value,
            category=metadata.category.value,
            document_date=metadata.document_date,
            year=metadata.document_date.year,
            author=metadata.author,
            issuing_body=metadata.issuing_body,
            meeting_id=metadata.meeting_id,
            tags_index=tags_to_index(metadata.tags),
            attachment_id=attachment.id,
            file_name=attachment.file_name,
            file_size=attachment.file_size,
            content_type=attachment.content_type,
            checksum=attachment.checksum,
            status=DocumentStatus.ACTIVE.value,
            is_confidential=metadata.is_confidential,
            version=version,
            previous_version_id=previous_version_id,
            created_by_id=uploaded_by_id,
        )
        self.db.add(document)
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE if version == 1 else AuditAction.NEW_VERSION,
            entity_type="ArchiveDocument",
            entity_id=document.id,
            user_id=uploaded_by_id,
            entity_identifier=document.protocol_number,
            new_values=document.snapshot("protocol_number", "version", "checksum", *_AUDITED_FIELDS),
        )
        if protocol.degraded:
            logger.warning("Document %s archived with provisional protocol", document.id)
        return await self.get_document(document.id)

    def _search_query(self, filters: DocumentSearch, include_confidential: bool):
        query = select(ArchiveDocument)

        if filters.statuses:
            query = query.where(ArchiveDocument.status.in_([s.value for s in filters.statuses]))
        else:
            query = query.where(ArchiveDocument.status != DocumentStatus.DELETED.value)
        if filters.query:
            pattern = f"%{filters.query.strip()}%"
            query = query.where(
                or_(
                    ArchiveDocument.title.ilike(pattern),
                    ArchiveDocument.description.ilike(pattern),
                    ArchiveDocument.protocol_number.ilike(pattern),
                    ArchiveDocument.tags_index.ilike(pattern),
                )
            )
        if filters.document_types:
            query = query.where(
                ArchiveDocument.document_type.in_([t.value for t in filters.document_types])
            )
        if filters.categories:
            query = query.where(ArchiveDocument.category.in_([c.value for c in filters.categories]))
        if filters.year is not None:
            query = query.where(ArchiveDocument.year == filters.year)
        if filters.date_from is not None:
            query = query.where(ArchiveDocument.document_date >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(ArchiveDocument.document_date <= filters.date_to)
        if filters.tags:
            query = query.where(
                or_(
                    *(
                        ArchiveDocument.tags_index.like(f"%,{tag.strip().lower()},%")
                        for tag in filters.tags
                        if tag.strip()
                    )
                )
            )
        if not include_confidential:
            query = query.where(ArchiveDocument.is_confidential.is_(False))
        elif filters.is_confidential is not None:
            query = query.where(ArchiveDocument.is_confidential.is_(filters.is_confidential))
        return query

    async def search_documents(
        self,
        filters: DocumentSearch,
        include_confidential: bool = True,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[ArchiveDocument], int]:
        """Filtered, paginated search; newest document date first. Deleted documents are hidden unless asked for."""
        query = self._search_query(filters, include_confidential)
        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        query = (
            query.order_by(ArchiveDocument.document_date.desc(), ArchiveDocument.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_document(self, document_id: int, data: dict, updated_by_id: int) -> ArchiveDocument:
        document = await self.get_document(document_id)
        if document.status == DocumentStatus.DELETED.value:
            raise InvalidTransitionError("document", "update", document.status)

        old_values = document.snapshot(*_AUDITED_FIELDS)
        for name, value in data.items():
            if value is None:
                continue
            if name == "tags":
                document.tags_index = tags_to_index(value)
            elif name == "document_date":
                document.document_date = value
                document.year = value.year
            else:
                setattr(document, name, value.value if hasattr(value, "value") else value)
        document.updated_by_id = updated_by_id
        await self.db.flush()

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE,
            entity_type="ArchiveDocument",
            entity_id=document.id,
            user_id=updated_by_id,
            entity_identifier=document.protocol_number,
            old_values=old_values,
            new_values=document.snapshot(*_AUDITED_FIELDS),
        )
        return await self.get_document(document_id)

    async def delete_document(self, document_id: int, deleted_by_id: int) -> ArchiveDocument:
        """Soft delete: the file and the protocol number are kept."""
        document = await self.get_document(document_id)
        if document.status == DocumentStatus.DELETED.value:
            raise InvalidTransitionError("document", "delete", document.status)
        old_status = document.status
        document.status = DocumentStatus.DELETED.value
        document.updated_by_id = deleted_by_id
        await self.db.flush()
        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE,
            entity_type="ArchiveDocument",
            entity_id=document.id,
            user_id=deleted_by_id,
            entity_identifier=document.protocol_number,
            old_values={"status": old_status},
            new_values={"status": document.status},
        )
        return await self.get_document(document_id)

    async def create_new_version(
        self,
        document_id: int,
        *,
        file_name: str,
        content_type: str,
        content: bytes,
        uploaded_by_id: int,
        description: str | None = None,
    ) -> ArchiveDocument:
        """
        Upload a new file for an active document.

        The new version keeps title, type, category, meeting and tags; the
        previous one is marked Archived.
        """
        previous = await self.get_document(document_id)
        if previous.status != DocumentStatus.ACTIVE.value:
            raise InvalidTransitionError("document", "create_new_version", previous.status)

        metadata = DocumentMetadata(
            title=previous.title,
            description=description if description is not None else previous.description,
            document_type=previous.document_type,
            category=previous.category,
            document_date=previous.document_date,
            author=previous.author,
            issuing_body=previous.issuing_body,
            meeting_id=previous.meeting_id,
            tags=previous.tags,
            is_confidential=previous.is_confidential,
        )
        new_version = await self.upload_document(
            metadata,
            file_name=file_name,
            content_type=content_type,
            content=content,
            uploaded_by_id=uploaded_by_id,
            version=previous.version + 1,
            previous_version_id=previous.id,
        )

        previous.status = DocumentStatus.ARCHIVED.value
        previous.updated_by_id = uploaded_by_id
        await self.db.flush()
        logger.info(
            "Document %s superseded by %s (version %s)",
            previous.protocol_number,
            new_version.protocol_number,
            new_version.version,
        )
        return new_version

    async def get_versions(self, document_id: int) -> list[ArchiveDocument]:
        """The document and every earlier version, newest first."""
        document = await self.get_document(document_id)
        versions = [document]
        seen = {document.id}
        previous_id = document.previous_version_id
        while previous_id is not None and previous_id not in seen:
            previous = (
                await self.db.execute(
                    select(ArchiveDocument)
                    .where(ArchiveDocument.id == previous_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if previous is None:
                break
            versions.append(previous)
            seen.add(previous.id)
            previous_id = previous.previous_version_id
        return sorted(versions, key=lambda d: d.version, reverse=True)

    async def get_stats(self, include_confidential: bool = True) -> ArchiveStats:
        """Totals over active documents plus the ten latest uploads."""
        conditions = [ArchiveDocument.status == DocumentStatus.ACTIVE.value]
        if not include_confidential:
            conditions.append(ArchiveDocument.is_confidential.is_(False))

        async def grouped(column) -> dict[str, int]:
            rows = (
                await self.db.execute(select(column, func.count()).where(*conditions).group_by(column))
            ).all()
            return {str(key): count for key, count in rows}

        total, total_size = (
            await self.db.execute(
                select(func.count(), func.coalesce(func.sum(ArchiveDocument.file_size), 0)).where(
                    *conditions
                )
            )
        ).one()
        latest = (
            await self.db.execute(
                select(ArchiveDocument)
                .where(*conditions)
                .order_by(ArchiveDocument.created_at.desc(), ArchiveDocument.id.desc())
                .limit(10)
            )
        ).scalars().all()

        return ArchiveStats(
            total_documents=total,
            by_type=await grouped(ArchiveDocument.document_type),
            by_category=await grouped(ArchiveDocument.category),
            by_year=await grouped(ArchiveDocument.year),
            total_size=int(total_size),
            latest=[DocumentResponse.model_validate(d) for d in latest],
        )

    async def get_related(
        self, document_id: int, limit: int = 5, include_confidential: bool = True
    ) -> list[ArchiveDocument]:
        """Active documents from the same meeting, else of the same type and year."""
        document = await self.get_document(document_id, include_confidential)
        query = select(ArchiveDocument).where(
            ArchiveDocument.status == DocumentStatus.ACTIVE.value,
            ArchiveDocument.id != document.id,
        )
        if document.meeting_id is not None:
            query = query.where(ArchiveDocument.meeting_id == document.meeting_id)
        else:
            query = query.where(
                ArchiveDocument.document_type == document.document_type,
                ArchiveDocument.year == document.year,
            )
        if not include_confidential:
            query = query.where(ArchiveDocument.is_confidential.is_(False))
        query = query.order_by(ArchiveDocument.document_date.desc()).limit(limit)
        return list((await self.db.execute(query)).scalars().all())

    async def export_csv(self, filters: DocumentSearch, include_confidential: bool = True) -> str:
        documents, _ = await self.search_documents(
            filters, include_confidential=include_confidential, page=1, limit=EXPORT_LIMIT
        )
        out = StringIO()
        writer = csv.writer(out)
        writer.writerow([
            "Protocol",
            "Title",
            "Type",
            "Category",
            "Document Date",
            "Size",
            "Tags",
            "Author",
            "Uploaded At",
        ])
        for d in documents:
            writer.writerow([
                d.protocol_number,
                d.title,
                d.document_type,
                d.category,
                d.document_date.isoformat(),
                d.file_size,
                ", ".join(d.tags),
                d.author or "",
                d.created_at.isoformat(),
            ])
        return out.getvalue()

    async def validate_document(self, document_id: int) -> DocumentValidation:
        """Check the stored file still exists and matches the recorded checksum."""
        document = await self.get_document(document_id)
        issues: list[str] = []
        attachment = await get_attachment(self.db, document.attachment_id)
        file_exists = True
        checksum_match = False
        try:
            content = await get_attachment_content(attachment)
        except (OSError, ClientError) as e:
            logger.warning("Archive file missing for %s: %s", document.protocol_number, e)
            file_exists = False
            issues.append("File not found in storage")
        else:
            checksum_match = compute_checksum(content) == document.checksum
            if not checksum_match:
                issues.append("Checksum mismatch: file may be corrupted")

        return DocumentValidation(
            document_id=document.id,
            valid=not issues,
            file_exists=file_exists,
            checksum_match=checksum_match,
            issues=issues,
        )
