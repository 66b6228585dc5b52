"""Tests for the document archive: upload, search, versions, export and integrity."""

from datetime import date
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.attachments.service import get_attachment
from codema.core.auth.models import User
from codema.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from codema.core.protocols.generator import ProtocolGenerator
from codema.core.protocols.numbering import is_provisional
from codema.modules.archive.models import DocumentStatus, DocumentType, tags_to_index
from codema.modules.archive.schemas import DocumentMetadata, DocumentSearch
from codema.modules.archive.service import ArchiveService


PDF_BYTES = b"%PDF-1.4 documento arquivado"


def _metadata(**overrides) -> DocumentMetadata:
    data = {
        "title": "Parecer técnico sobre a pedreira",
        "document_type": DocumentType.OPINION,
        "document_date": date(2024, 11, 5),
        "author": "Eng. Paula Lima",
        "tags": ["Mineração", "licenciamento"],
    }
    data.update(overrides)
    return DocumentMetadata(**data)


async def _upload(service: ArchiveService, user: User, content: bytes = PDF_BYTES, **overrides):
    return await service.upload_document(
        _metadata(**overrides),
        file_name="parecer.pdf",
        content_type="application/pdf",
        content=content,
        uploaded_by_id=user.id,
    )


class TestTagsIndex:
    def test_normalized_and_sorted(self):
        assert tags_to_index([" Rio ", "água", "rio", ""]) == ",rio,água,"

    def test_empty(self):
        assert tags_to_index([]) == ""
        assert tags_to_index(None) == ""


class TestArchiveService:
    """Archive operations against the service layer."""

    async def test_upload_assigns_doc_protocol(self, db_session: AsyncSession, secretary: User):
        document = await _upload(ArchiveService(db_session), secretary)

        assert document.protocol_number.startswith("DOC-001/")
        assert document.year == 2024
        assert document.tags == ["licenciamento", "mineração"]
        assert document.file_size == len(PDF_BYTES)
        assert document.status == DocumentStatus.ACTIVE
        assert document.version == 1

    async def test_upload_unknown_meeting(self, db_session: AsyncSession, secretary: User):
        with pytest.raises(NotFoundError):
            await _upload(ArchiveService(db_session), secretary, meeting_id=999)

    async def test_upload_rejects_disallowed_file(self, db_session: AsyncSession, secretary: User):
        with pytest.raises(ValidationError):
            await ArchiveService(db_session).upload_document(
                _metadata(),
                file_name="virus.exe",
                content_type="application/octet-stream",
                content=b"MZ",
                uploaded_by_id=secretary.id,
            )

    async def test_search_filters(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        await _upload(service, secretary)
        await _upload(
            service,
            secretary,
            title="Lei de proteção de nascentes",
            document_type=DocumentType.LAW,
            document_date=date(2019, 3, 1),
            tags=["água"],
        )

        by_tag, total = await service.search_documents(DocumentSearch(tags=["MINERAÇÃO"]))
        assert total == 1
        assert by_tag[0].document_type == "Opinion"

        by_type, _ = await service.search_documents(DocumentSearch(document_types=[DocumentType.LAW]))
        assert [d.title for d in by_type] == ["Lei de proteção de nascentes"]

        by_text, _ = await service.search_documents(DocumentSearch(query="nascentes"))
        assert len(by_text) == 1

        by_year, _ = await service.search_documents(DocumentSearch(year=2024))
        assert len(by_year) == 1

        newest_first, _ = await service.search_documents(DocumentSearch())
        assert [d.year for d in newest_first] == [2024, 2019]

    async def test_confidential_hidden_from_public(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        secret = await _upload(service, secretary, is_confidential=True)
        await _upload(service, secretary, title="Ofício público")

        _, public_total = await service.search_documents(DocumentSearch(), include_confidential=False)
        _, staff_total = await service.search_documents(DocumentSearch(), include_confidential=True)
        assert (public_total, staff_total) == (1, 2)

        with pytest.raises(NotFoundError):
            await service.get_document(secret.id, include_confidential=False)

    async def test_soft_delete(self, db_session: AsyncSession, secretary: User, admin: User):
        service = ArchiveService(db_session)
        document = await _upload(service, secretary)

        deleted = await service.delete_document(document.id, admin.id)
        assert deleted.status == DocumentStatus.DELETED

        _, total = await service.search_documents(DocumentSearch())
        assert total == 0
        _, deleted_total = await service.search_documents(
            DocumentSearch(statuses=[DocumentStatus.DELETED])
        )
        assert deleted_total == 1

        with pytest.raises(InvalidTransitionError):
            await service.update_document(document.id, {"title": "Novo título"}, admin.id)

    async def test_update_metadata(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        document = await _upload(service, secretary)

        updated = await service.update_document(
            document.id,
            {"tags": ["Pedreira"], "document_date": date(2023, 1, 9)},
            secretary.id,
        )

        assert updated.tags == ["pedreira"]
        assert updated.year == 2023
        assert updated.updated_by_id == secretary.id

    async def test_new_version_chain(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        original = await _upload(service, secretary)

        second = await service.create_new_version(
            original.id,
            file_name="parecer-v2.pdf",
            content_type="application/pdf",
            content=b"%PDF-1.4 versao 2",
            uploaded_by_id=secretary.id,
        )

        assert second.version == 2
        assert second.previous_version_id == original.id
        assert second.title == original.title
        assert second.tags == original.tags
        assert second.protocol_number != original.protocol_number

        versions = await service.get_versions(second.id)
        assert [(d.version, d.status) for d in versions] == [
            (2, DocumentStatus.ACTIVE),
            (1, DocumentStatus.ARCHIVED),
        ]

        with pytest.raises(InvalidTransitionError):
            await service.create_new_version(
                original.id,
                file_name="x.pdf",
                content_type="application/pdf",
                content=b"%PDF",
                uploaded_by_id=secretary.id,
            )

    async def test_stats_count_active_only(self, db_session: AsyncSession, secretary: User, admin: User):
        service = ArchiveService(db_session)
        kept = await _upload(service, secretary)
        removed = await _upload(service, secretary, document_type=DocumentType.LETTER)
        await service.delete_document(removed.id, admin.id)

        stats = await service.get_stats()

        assert stats.total_documents == 1
        assert stats.by_type == {"Opinion": 1}
        assert stats.by_year == {"2024": 1}
        assert stats.total_size == kept.file_size
        assert [d.id for d in stats.latest] == [kept.id]

    async def test_related_same_type_and_year(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        first = await _upload(service, secretary)
        second = await _upload(service, secretary, title="Outro parecer")
        await _upload(service, secretary, document_type=DocumentType.REPORT)

        related = await service.get_related(first.id)
        assert [d.id for d in related] == [second.id]

    async def test_export_csv(self, db_session: AsyncSession, secretary: User):
        service = ArchiveService(db_session)
        document = await _upload(service, secretary)

        content = await service.export_csv(DocumentSearch())

        lines = content.strip().splitlines()
        assert lines[0].startswith("Protocol,Title,Type")
        assert document.protocol_number in lines[1]
        assert "licenciamento, mineração" in lines[1]

    async def test_validate_detects_tampering(
        self, db_session: AsyncSession, secretary: User, storage_dir
    ):
        service = ArchiveService(db_session)
        document = await _upload(service, secretary)

        assert (await service.validate_document(document.id)).valid is True

        attachment = await get_attachment(db_session, document.attachment_id)
        stored = storage_dir / attachment.storage_path
        stored.write_bytes(b"%PDF-1.4 adulterado")
        tampered = await service.validate_document(document.id)
        assert tampered.file_exists is True
        assert tampered.checksum_match is False

        stored.unlink()
        missing = await service.validate_document(document.id)
        assert missing.file_exists is False
        assert missing.valid is False


class TestArchiveEndpoints:
    """Multipart upload and access rules on /archive."""

    async def _upload(self, client: AsyncClient, headers: dict, **fields) -> dict:
        data = {
            "title": "Ata da 3ª reunião",
            "document_type": "Minutes",
            "document_date": "2025-03-14",
            "tags": "ata, reunião",
        }
        data.update(fields)
        response = await client.post(
            "/api/v1/archive",
            data=data,
            files={"file": ("ata.pdf", PDF_BYTES, "application/pdf")},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    async def test_upload_search_download(
        self, client: AsyncClient, secretary: User, citizen: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        document = await self._upload(client, staff)
        assert document["tags"] == ["ata", "reunião"]

        public = await auth_headers(citizen)
        found = await client.get("/api/v1/archive", params={"tags": "ATA"}, headers=public)
        assert found.json()["data"]["total"] == 1

        download = await client.get(f"/api/v1/archive/{document['id']}/download", headers=public)
        assert download.status_code == 200
        assert download.content == PDF_BYTES

    async def test_short_title_rejected(self, client: AsyncClient, secretary: User, auth_headers):
        response = await client.post(
            "/api/v1/archive",
            data={"title": "A", "document_type": "Minutes", "document_date": "2025-03-14"},
            files={"file": ("ata.pdf", PDF_BYTES, "application/pdf")},
            headers=await auth_headers(secretary),
        )
        assert response.status_code == 422

    async def test_confidential_not_visible_to_citizen(
        self, client: AsyncClient, secretary: User, citizen: User, auth_headers
    ):
        document = await self._upload(
            client, await auth_headers(secretary), is_confidential="true"
        )

        response = await client.get(
            f"/api/v1/archive/{document['id']}", headers=await auth_headers(citizen)
        )
        assert response.status_code == 404

    async def test_delete_requires_admin(
        self, client: AsyncClient, secretary: User, admin: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        document = await self._upload(client, staff)

        denied = await client.delete(f"/api/v1/archive/{document['id']}", headers=staff)
        assert denied.status_code == 403

        deleted = await client.delete(
            f"/api/v1/archive/{document['id']}", headers=await auth_headers(admin)
        )
        assert deleted.json()["data"]["status"] == "Deleted"

    async def test_export_csv(self, client: AsyncClient, secretary: User, auth_headers):
        staff = await auth_headers(secretary)
        document = await self._upload(client, staff)

        response = await client.get("/api/v1/archive/export", headers=staff)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert document["protocol_number"] in response.text

    async def test_new_version_endpoint(self, client: AsyncClient, secretary: User, auth_headers):
        staff = await auth_headers(secretary)
        document = await self._upload(client, staff)

        response = await client.post(
            f"/api/v1/archive/{document['id']}/versions",
            files={"file": ("ata-v2.pdf", b"%PDF-1.4 v2", "application/pdf")},
            headers=staff,
        )
        assert response.status_code == 201
        assert response.json()["data"]["version"] == 2

        versions = await client.get(f"/api/v1/archive/{document['id']}/versions", headers=staff)
        assert [v["version"] for v in versions.json()["data"]] == [1]

    async def test_provisional_protocol_is_flagged(
        self, client: AsyncClient, secretary: User, auth_headers
    ):
        staff = await auth_headers(secretary)
        regular = await self._upload(client, staff)
        assert regular["protocol_degraded"] is False

        failure = OperationalError("INSERT INTO protocol_sequences", {}, Exception("connection lost"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            response = await client.post(
                "/api/v1/archive",
                data={"title": "Ata da 4ª reunião", "document_type": "Minutes", "document_date": "2025-04-11"},
                files={"file": ("ata.pdf", PDF_BYTES, "application/pdf")},
                headers=staff,
            )

        assert response.status_code == 201
        assert response.json()["message"] == "Document archived with a provisional protocol number"
        assert response.json()["data"]["protocol_degraded"] is True
        assert is_provisional(response.json()["data"]["protocol_number"], "P")
