"""
Storage abstraction for S3 and in-memory testing, plus upload validation.
"""

from __future__ import annotations

import io
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from wallpaper_plus.errors import StorageError, ValidationError
from wallpaper_plus.records import now_iso

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("image/jpeg", "image/jpg", "image/png", "image/webp")
MAX_FILE_SIZE = 10 * 1024 * 1024
KEY_PREFIX = "wallpapers"


def validate_file(
    content_type: Optional[str], size: int, max_size: int = MAX_FILE_SIZE
) -> Optional[str]:
    """Error message for an unacceptable upload, or None."""
    if content_type not in SUPPORTED_FORMATS:
        return f"Unsupported file format. Supported formats: {', '.join(SUPPORTED_FORMATS)}"
    if size > max_size:
        return f"File size too large. Maximum size: {max_size // (1024 * 1024)}MB"
    return None


def generate_file_key(file_name: str, user_id: str) -> str:
    extension = file_name.rsplit(".", 1)[-1].lower() if file_name else ""
    timestamp = int(time.time() * 1000)
    return f"{KEY_PREFIX}/{user_id}/{timestamp}_{uuid.uuid4()}.{extension}"


def upload_metadata(file_name: str, user_id: str) -> dict[str, str]:
    return {
        "originalName": file_name,
        "uploadedBy": user_id,
        "uploadedAt": now_iso(),
    }


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: Optional[str]

    @property
    def resolution(self) -> str:
        long_side, short_side = max(self.width, self.height), min(self.width, self.height)
        if long_side >= 3840 and short_side >= 2160:
            return "4K"
        if long_side >= 2560 and short_side >= 1440:
            return "QHD"
        if long_side >= 1920 and short_side >= 1080:
            return "Full HD"
        return "HD"


def inspect_image(data: bytes) -> ImageInfo:
    """Decode the header and check the payload is a real image."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError("File is not a valid image") from e
    return ImageInfo(width=width, height=height, format=image_format)


def public_object_url(bucket: str, key: str) -> str:
    return f"https://{bucket}.s3.amazonaws.com/{key}"


def extract_key_from_url(url: str, bucket: str) -> Optional[str]:
    """Object key from a virtual-hosted or path-style S3 URL of `bucket`."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    if bucket and bucket in (parsed.hostname or ""):
        return parsed.path[1:] or None
    parts = parsed.path.split("/")
    if len(parts) > 2 and parts[1] == bucket:
        return "/".join(parts[2:]) or None
    return None


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    bucket: str

    def upload_bytes(
        self, key: str, data: bytes, content_type: str, metadata: Optional[dict] = None
    ) -> None:
        ...

    def presign_put(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict] = None,
        expires_in: int = 3600,
    ) -> str:
        ...

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        ...

    def delete(self, key: str) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...

    def extract_key_from_url(self, url: str) -> Optional[str]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "test-bucket"
    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(
        self, key: str, data: bytes, content_type: str, metadata: Optional[dict] = None
    ) -> None:
        self.stored_objects[key] = {
            "body": bytes(data),
            "content_type": content_type,
            "metadata": dict(metadata or {}),
        }

    def presign_put(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict] = None,
        expires_in: int = 3600,
    ) -> str:
        return f"{self.base_url}/{key}?op=put&expires={expires_in}"

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{key}?op=get&expires={expires_in}"

    def delete(self, key: str) -> None:
        self.stored_objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return public_object_url(self.bucket, key)

    def extract_key_from_url(self, url: str) -> Optional[str]:
        return extract_key_from_url(url, self.bucket)


@dataclass
class S3StorageClient:
    """
    Amazon S3 (or an S3-compatible endpoint such as MinIO for local development).
    """

    bucket: str
    region: str
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    def __post_init__(self):
        # Custom endpoints are usually local emulators without virtual hosts.
        config = Config(
            s3={"addressing_style": "path" if self.endpoint else "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def upload_bytes(
        self, key: str, data: bytes, content_type: str, metadata: Optional[dict] = None
    ) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload error for %s: %s", key, e)
            raise StorageError(f"Upload failed: {e}") from e

    def presign_put(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict] = None,
        expires_in: int = 3600,
    ) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="put_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "ContentType": content_type,
                    "Metadata": metadata or {},
                },
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Presigned URL generation error for %s: %s", key, e)
            raise StorageError(f"Failed to generate upload URL: {e}") from e

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Presigned download URL generation error for %s: %s", key, e)
            raise StorageError(f"Failed to generate download URL: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 delete error for %s: %s", key, e)
            raise StorageError(f"Delete failed: {e}") from e

    def public_url(self, key: str) -> str:
        return public_object_url(self.bucket, key)

    def extract_key_from_url(self, url: str) -> Optional[str]:
        return extract_key_from_url(url, self.bucket)
