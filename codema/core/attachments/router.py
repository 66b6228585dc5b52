"""API for uploading and downloading attachments."""

import io

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.attachments.schemas import AttachmentResponse
from codema.core.attachments.service import get_attachment, get_attachment_content, save_attachment
from codema.core.auth.dependencies import CurrentUser, require_roles
from codema.core.auth.models import User, UserRole
from codema.core.database import get_db
from codema.core.exceptions import NotFoundError
from codema.shared.schemas import ApiResponse

router = APIRouter(prefix="/attachments", tags=["Attachments"])


@router.post("", response_model=ApiResponse[AttachmentResponse], status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(
        require_roles(
            UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.SECRETARY, UserRole.INSPECTOR
        )
    ),
):
    """Upload a file (inspection evidence, supporting document). Returns its id."""
    attachment = await save_attachment(db, file, current_user.id)
    return ApiResponse(
        message="File uploaded",
        data=AttachmentResponse.model_validate(attachment),
    )


@router.get("/{attachment_id}", response_model=ApiResponse[AttachmentResponse])
async def get_attachment_info(
    attachment_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Get attachment metadata."""
    attachment = await get_attachment(db, attachment_id)
    if not attachment:
        raise NotFoundError("Attachment", attachment_id)
    return ApiResponse(data=AttachmentResponse.model_validate(attachment))


@router.get("/{attachment_id}/download")
async def download_attachment(
    attachment_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Download the stored file."""
    attachment = await get_attachment(db, attachment_id)
    if not attachment:
        raise NotFoundError("Attachment", attachment_id)
    try:
        content = await get_attachment_content(attachment)
    except FileNotFoundError:
        raise NotFoundError("Attachment file", attachment_id) from None
    return StreamingResponse(
        io.BytesIO(content),
        media_type=attachment.content_type,
        headers={"Content-Disposition": f'attachment; filename="{attachment.file_name}"'},
    )
