"""
Blob storage for uploaded images and prescription PDFs (S3-compatible bucket).
"""

import logging
import re
import time
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException

from config import (
    BLOB_ACCESS_KEY_ID,
    BLOB_BUCKET_NAME,
    BLOB_ENDPOINT_URL,
    BLOB_PUBLIC_URL,
    BLOB_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/gif",
]
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def safe_filename(filename: Optional[str]) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]", "_", filename or "file")
    return name.lstrip(".")[:100] or "file"


def timestamped_key(prefix: str, filename: Optional[str]) -> str:
    """products/1700000000000_photo.jpg style key."""
    return f"{prefix.rstrip('/')}/{int(time.time() * 1000)}_{safe_filename(filename)}"


def validate_image(content_type: Optional[str], size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Only PNG, JPEG, WebP and GIF images are allowed.")
    if size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File is too large (max 10MB)")


class BlobStorage:
    def __init__(self, client=None, bucket: str = BLOB_BUCKET_NAME, public_url: str = BLOB_PUBLIC_URL):
        self._client = client
        self.bucket = bucket
        self.public_url = public_url

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=BLOB_ENDPOINT_URL,
                aws_access_key_id=BLOB_ACCESS_KEY_ID,
                aws_secret_access_key=BLOB_SECRET_ACCESS_KEY,
                config=Config(signature_version="s3v4"),
                region_name="auto",
            )
        return self._client

    def url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Recover the object key from a public URL, or None for foreign URLs."""
        prefix = f"{self.public_url}/"
        if url and url.startswith(prefix):
            return url[len(prefix):].split("?")[0]
        return None

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        """Store an object and return its public URL."""
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise HTTPException(status_code=502, detail="Failed to upload file. Please try again.")
        logger.info(f"Uploaded {key} ({len(content)} bytes)")
        return self.url_for(key)

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info(f"Deleted {key}")

    def delete_quietly(self, key: Optional[str]) -> bool:
        """Delete an object, logging instead of raising. Returns success."""
        if not key:
            return False
        try:
            self.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Failed to delete blob {key}: {e}")
            return False


_storage: Optional[BlobStorage] = None


def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        _storage = BlobStorage()
    return _storage
