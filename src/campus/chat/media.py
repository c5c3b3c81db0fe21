"""Chat media: presigned direct-to-bucket uploads on S3-compatible storage (R2)."""

from __future__ import annotations

import re
import secrets
import time
from typing import TYPE_CHECKING, Any

import aioboto3
import structlog
from sqlalchemy import select

from campus.config import get_settings
from campus.db.base import utcnow
from campus.db.models import MediaUpload
from campus.exceptions import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/webm",
        "video/quicktime",
        "video/x-msvideo",
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/ogg",
        "audio/webm",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def build_file_key(campus_id: str, user_id: str, file_name: str) -> str:
    sanitized = _UNSAFE_CHARS.sub("_", file_name)
    extension = sanitized.rsplit(".", 1)[-1] if "." in sanitized else "bin"
    return f"chat-media/{campus_id}/{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(8)}.{extension}"


async def presign_put(file_key: str, content_type: str) -> str:
    """Presigned PUT URL for ``file_key`` in the media bucket."""
    settings = get_settings()
    session = aioboto3.Session(
        aws_access_key_id=settings.media_access_key_id or None,
        aws_secret_access_key=settings.media_secret_access_key or None,
        region_name=settings.media_region,
    )
    async with session.client("s3", endpoint_url=settings.media_endpoint_url) as s3:
        return await s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": settings.media_bucket, "Key": file_key, "ContentType": content_type},
            ExpiresIn=settings.media_upload_url_expires_seconds,
        )


async def request_upload_url(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    *,
    file_name: str,
    file_type: str,
    file_size: int,
) -> dict[str, Any]:
    """Validate the file, reserve a key and hand back a presigned upload URL.

    Raises:
        ValueError: File too large or MIME type not allowed.
    """
    settings = get_settings()
    max_size = settings.media_max_file_size
    if file_size > max_size:
        msg = f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)}MB"
        raise ValueError(msg)
    if file_type not in ALLOWED_MIME_TYPES:
        msg = "File type not allowed for chat media"
        raise ValueError(msg)

    file_key = build_file_key(campus_id, user_id, file_name)
    upload_url = await presign_put(file_key, file_type)
    upload = MediaUpload(
        campus_id=campus_id,
        user_id=user_id,
        file_key=file_key,
        file_name=file_name,
        file_type=file_type,
        file_size=file_size,
        status="pending",
        meta_data={},
    )
    db.add(upload)
    await db.flush()
    logger.info("media_upload_url_issued", upload_id=upload.id, file_key=file_key, file_type=file_type)
    return {
        "upload_id": upload.id,
        "upload_url": upload_url,
        "file_key": file_key,
        "expires_in": settings.media_upload_url_expires_seconds,
        "max_file_size": max_size,
    }


async def complete_upload(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    upload_id: str,
    *,
    width: int | None = None,
    height: int | None = None,
    duration: float | None = None,
) -> dict[str, Any]:
    """Mark an upload confirmed and return its public (and thumbnail) URL."""
    upload = (
        await db.execute(
            select(MediaUpload).where(
                MediaUpload.id == upload_id,
                MediaUpload.campus_id == campus_id,
                MediaUpload.user_id == user_id,
            )
        )
    ).scalar_one_or_none()
    if upload is None:
        msg = "Upload not found"
        raise NotFoundError(msg)

    if upload.status != "confirmed":
        base = get_settings().media_public_base_url
        url = f"{base.rstrip('/')}/{upload.file_key}"
        upload.url = url
        if upload.file_type.startswith(("image/", "video/")):
            upload.thumbnail_url = f"{url}?width=200&height=200"
        upload.meta_data = {
            k: v for k, v in {"width": width, "height": height, "duration": duration}.items() if v is not None
        }
        upload.status = "confirmed"
        upload.confirmed_at = utcnow()
        await db.flush()
        logger.info("media_upload_confirmed", upload_id=upload.id, file_key=upload.file_key)

    return {
        "id": upload.id,
        "url": upload.url,
        "thumbnail_url": upload.thumbnail_url,
        "file_key": upload.file_key,
        "file_name": upload.file_name,
        "file_type": upload.file_type,
        "file_size": upload.file_size,
    }
