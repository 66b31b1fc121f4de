"""
File storage for uploads (profile images, KYC papers, stamp documents, blog images).

Files go to S3 when ``S3_BUCKET`` is configured and to ``UPLOAD_DIR`` on
local disk otherwise.
"""

import logging
import mimetypes
import os
import uuid
from pathlib import Path
from typing import Iterable, Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile

from vidhanto.config import (
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    AWS_REGION,
    S3_BUCKET,
    UPLOAD_DIR,
    MAX_UPLOAD_BYTES,
)

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("image/",)
DOCUMENT_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".txt", ".rtf",
    ".jpg", ".jpeg", ".png", ".gif",
}


class StorageError(Exception):
    pass


def get_s3_client():
    """Get configured boto3 client for S3"""
    return boto3.client(
        "s3",
        aws_access_key_id=AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY or None,
        region_name=AWS_REGION,
    )


class StorageService:
    def __init__(self, bucket: str = S3_BUCKET, upload_dir: str = UPLOAD_DIR):
        self.bucket = bucket
        self.upload_dir = Path(upload_dir)
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    async def save(self, content: bytes, folder: str, filename: str, content_type: Optional[str] = None) -> str:
        """Store bytes and return a URL (S3) or a relative path (local)."""
        extension = Path(filename or "").suffix.lower()
        key = f"{folder}/{uuid.uuid4()}{extension}"
        content_type = content_type or mimetypes.guess_type(filename or "")[0] or "application/octet-stream"

        if self.bucket:
            try:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
            except (BotoCoreError, ClientError) as e:
                logger.error(f"S3 upload failed: {e}", extra={"key": key})
                raise StorageError(f"File upload failed: {e}") from e
            return f"https://{self.bucket}.s3.{AWS_REGION}.amazonaws.com/{key}"

        path = self.upload_dir / key
        os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        return f"/{self.upload_dir.as_posix().strip('/')}/{key}"


async def read_upload(
    file: UploadFile,
    max_bytes: int = MAX_UPLOAD_BYTES,
    content_types: Optional[Iterable[str]] = None,
    extensions: Optional[Iterable[str]] = None,
) -> bytes:
    """Read an upload after checking its type and size."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    if content_types and not any((file.content_type or "").startswith(t) for t in content_types):
        raise HTTPException(status_code=400, detail="Unsupported file type")
    if extensions and Path(file.filename).suffix.lower() not in set(extensions):
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed. Allowed types: {', '.join(sorted(extensions))}",
        )

    content = await file.read()
    if len(content) > max_bytes:
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB")
    return content


storage_service = StorageService()


def get_storage_service() -> StorageService:
    return storage_service
