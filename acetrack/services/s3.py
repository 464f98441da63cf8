"""AWS S3: event banners and student avatars."""
import asyncio
import uuid

import boto3

from acetrack.config import settings

_s3 = None

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def get_s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )
    return _s3


def public_url(key: str) -> str:
    return f"https://{settings.s3_bucket_media}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _put_object_sync(body: bytes, key: str, content_type: str) -> None:
    get_s3().put_object(
        Bucket=settings.s3_bucket_media,
        Key=key,
        Body=body,
        ContentType=content_type or "image/jpeg",
    )


async def upload_image_to_s3(body: bytes, filename: str, content_type: str, *, folder: str) -> tuple[str, str]:
    """Upload an image under ``folder``; return (public_url, s3_key)."""
    ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "jpg"
    key = f"{folder}/{uuid.uuid4().hex}.{ext}"
    await asyncio.to_thread(_put_object_sync, body, key, content_type or "image/jpeg")
    return public_url(key), key
