from datetime import date

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.attachments.service import get_attachment, get_attachment_content
from codema.core.auth.dependencies import AdminUser, CurrentUser, StaffUser
from codema.core.database import get_db
from codema.core.exceptions import NotFoundError, ValidationError
from codema.modules.archive.models import DocumentCategory, DocumentStatus, DocumentType
from codema.modules.archive.schemas import (
    ArchiveStats,
    DocumentMetadata,
    DocumentResponse,
    DocumentSearch,
    DocumentUpdate,
    DocumentValidation,
)
from codema.modules.archive.service import ArchiveService
from codema.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/archive", tags=["Archive"])


def _split_tags(tags: str | None) -> list[str]:
    return [t.strip() for t in (tags or "").split(",") if t.strip()]


def _search_filters(
    query: str | None = Query(None, max_length=200),
    document_type: list[DocumentType] | None = Query(None),
    category: list[DocumentCategory] | None = Query(None),
    year: int | None = Query(None, ge=1900, le=9999),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    tags: str | None = Query(None, description="Comma-separated"),
    is_confidential: bool | None = Query(None),
    status: list[DocumentStatus] | None = Query(None),
) -> DocumentSearch:
    return DocumentSearch(
        query=query,
        document_types=document_type,
        categories=category,
        year=year,
        date_from=date_from,
        date_to=date_to,
        tags=_split_tags(tags) or None,
        is_confidential=is_confidential,
        statuses=status,
    )


@router.post("", response_model=ApiResponse[DocumentResponse], status_code=status.HTTP_201_CREATED)
async def upload_document(
    current_user: StaffUser,
    file: UploadFile = File(...),
    title: str = Form(...),
    document_type: DocumentType = Form(...),
    document_date: date = Form(...),
    category: DocumentCategory = Form(DocumentCategory.CURRENT),
    description: str | None = Form(None),
    author: str | None = Form(None),
    issuing_body: str | None = Form(None),
    meeting_id: int | None = Form(None),
    tags: str | None = Form(None),
    is_confidential: bool = Form(False),
    db: AsyncSession = Depends(get_db),
):
    """Archive a file. A DOC protocol number is assigned and the SHA-256 checksum recorded."""
    try:
        metadata = DocumentMetadata(
            title=title,
            description=description,
            document_type=document_type,
            category=category,
            document_date=document_date,
            author=author,
            issuing_body=issuing_body,
            meeting_id=meeting_id,
            tags=_split_tags(tags),
            is_confidential=is_confidential,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(first["msg"], field=str(first["loc"][0])) from e

    document = await ArchiveService(db).upload_document(
        metadata,
        file_name=file.filename or "",
        content_type=file.content_type or "",
        content=await file.read(),
        uploaded_by_id=current_user.id,
    )
    message = "Document archived"
    if document.protocol_degraded:
        message = "Document archived with a provisional protocol number"
    return ApiResponse(data=DocumentResponse.model_validate(document), message=message)


@router.get("", response_model=ApiResponse[PaginatedResponse[DocumentResponse]])
async def search_documents(
    current_user: CurrentUser,
    filters: DocumentSearch = Depends(_search_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    documents, total = await ArchiveService(db).search_documents(
        filters, include_confidential=current_user.is_staff, page=page, limit=limit
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[DocumentResponse.model_validate(d) for d in documents],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/stats", response_model=ApiResponse[ArchiveStats])
async def get_archive_stats(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    stats = await ArchiveService(db).get_stats(include_confidential=current_user.is_staff)
    return ApiResponse(data=stats)


@router.get("/export")
async def export_documents(
    current_user: StaffUser,
    filters: DocumentSearch = Depends(_search_filters),
    db: AsyncSession = Depends(get_db),
):
    """Document list as CSV (up to 1000 rows)."""
    content = await ArchiveService(db).export_csv(filters)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="archive_documents.csv"'},
    )


@router.get("/{document_id}", response_model=ApiResponse[DocumentResponse])
async def get_document(document_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    document = await ArchiveService(db).get_document(document_id, include_confidential=current_user.is_staff)
    return ApiResponse(data=DocumentResponse.model_validate(document))


@router.patch("/{document_id}", response_model=ApiResponse[DocumentResponse])
async def update_document(
    document_id: int,
    data: DocumentUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    document = await ArchiveService(db).update_document(
        document_id, data.model_dump(exclude_unset=True), current_user.id
    )
    return ApiResponse(data=DocumentResponse.model_validate(document), message="Document updated")


@router.delete("/{document_id}", response_model=ApiResponse[DocumentResponse])
async def delete_document(document_id: int, current_user: AdminUser, db: AsyncSession = Depends(get_db)):
    document = await ArchiveService(db).delete_document(document_id, current_user.id)
    return ApiResponse(data=DocumentResponse.model_validate(document), message="Document deleted")


@router.post(
    "/{document_id}/versions",
    response_model=ApiResponse[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_new_version(
    document_id: int,
    current_user: StaffUser,
    file: UploadFile = File(...),
    description: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
):
    document = await ArchiveService(db).create_new_version(
        document_id,
        file_name=file.filename or "",
        content_type=file.content_type or "",
        content=await file.read(),
        uploaded_by_id=current_user.id,
        description=description,
    )
    message = "New version archived"
    if document.protocol_degraded:
        message = "New version archived with a provisional protocol number"
    return ApiResponse(data=DocumentResponse.model_validate(document), message=message)


@router.get("/{document_id}/versions", response_model=ApiResponse[list[DocumentResponse]])
async def get_versions(document_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    versions = await ArchiveService(db).get_versions(document_id)
    return ApiResponse(data=[DocumentResponse.model_validate(d) for d in versions])


@router.get("/{document_id}/related", response_model=ApiResponse[list[DocumentResponse]])
async def get_related(
    document_id: int,
    current_user: CurrentUser,
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    related = await ArchiveService(db).get_related(
        document_id, limit=limit, include_confidential=current_user.is_staff
    )
    return ApiResponse(data=[DocumentResponse.model_validate(d) for d in related])


@router.get("/{document_id}/validate", response_model=ApiResponse[DocumentValidation])
async def validate_document(document_id: int, current_user: StaffUser, db: AsyncSession = Depends(get_db)):
    """File presence and checksum check."""
    return ApiResponse(data=await ArchiveService(db).validate_document(document_id))


@router.get("/{document_id}/download")
async def download_document(document_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    document = await ArchiveService(db).get_document(document_id, include_confidential=current_user.is_staff)
    attachment = await get_attachment(db, document.attachment_id)
    if attachment is None:
        raise NotFoundError("Attachment", document.attachment_id)
    content = await get_attachment_content(attachment)
    return Response(
        content=content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.file_name}"'},
    )
