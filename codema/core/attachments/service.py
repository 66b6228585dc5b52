"""Service for storing and reading attachments (local folder or S3-compatible bucket)."""

import hashlib
import uuid
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.attachments.models import Attachment
from codema.core.config import settings
from codema.core.exceptions import ValidationError


ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.oasis.opendocument.text",
    "image/jpeg",
    "image/png",
    "image/webp",
    "text/plain",
    "text/csv",
}
MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB


def compute_checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def _s3_client():
    import aioboto3

    session = aioboto3.Session()
    return session.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        region_name=settings.s3_region,
    )


async def _upload_to_s3(key: str, content: bytes, content_type: str) -> None:
    """Upload bytes to the bucket."""
    async with _s3_client() as s3:
        await s3.put_object(
            Bucket=settings.s3_bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )


async def _download_from_s3(key: str) -> bytes:
    """Download object from the bucket."""
    async with _s3_client() as s3:
        response = await s3.get_object(Bucket=settings.s3_bucket, Key=key)
        async with response["Body"] as stream:
            return await stream.read()


async def store_bytes(
    db: AsyncSession,
    *,
    file_name: str,
    content_type: str,
    content: bytes,
    created_by_id: int,
    folder: str | None = None,
) -> Attachment:
    """Write content to storage and create the Attachment record."""
    if not file_name or not file_name.strip():
        raise ValidationError("File name is required", field="file")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"Allowed types: PDF, Word/ODT documents, images and text. Got: {content_type}",
            field="file",
        )
    if not content:
        raise ValidationError("File is empty", field="file")
    if len(content) > MAX_FILE_SIZE:
        raise ValidationError(
            f"File size must not exceed {MAX_FILE_SIZE // (1024 * 1024)} MB", field="file"
        )

    # Sanitize filename, keep extension
    base = Path(file_name).stem[:100] or "file"
    ext = Path(file_name).suffix[:20] or ""
    safe_name = f"{base}{ext}".replace("..", "").replace("/", "_")

    relative_path = f"{uuid.uuid4().hex[:12]}_{safe_name}"
    if folder:
        relative_path = f"{folder.strip('/')}/{relative_path}"

    if settings.use_s3:
        await _upload_to_s3(relative_path, content, content_type)
    else:
        full_path = Path(settings.storage_path) / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)

    attachment = Attachment(
        file_name=file_name[:255],
        content_type=content_type,
        storage_path=relative_path,
        file_size=len(content),
        checksum=compute_checksum(content),
        created_by_id=created_by_id,
    )
    db.add(attachment)
    await db.flush()
    await db.refresh(attachment)
    return attachment


async def save_attachment(
    db: AsyncSession,
    file: UploadFile,
    created_by_id: int,
    folder: str | None = None,
) -> Attachment:
    """Save an uploaded file to storage and create the Attachment record."""
    content = await file.read()
    return await store_bytes(
        db,
        file_name=file.filename or "",
        content_type=file.content_type or "",
        content=content,
        created_by_id=created_by_id,
        folder=folder,
    )


async def get_attachment_content(attachment: Attachment) -> bytes:
    """Read attachment bytes from storage (local or bucket)."""
    if settings.use_s3:
        return await _download_from_s3(attachment.storage_path)
    full_path = Path(settings.storage_path) / attachment.storage_path
    return full_path.read_bytes()


async def get_attachment(db: AsyncSession, attachment_id: int) -> Attachment | None:
    """Get attachment by id."""
    result = await db.execute(select(Attachment).where(Attachment.id == attachment_id))
    return result.scalar_one_or_none()
