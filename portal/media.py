"""
Media host abstraction for uploaded course files.

Uploads go to an S3-compatible bucket; the public object URL is what the
portal stores as a file's ``filePath``. The in-memory client mirrors the same
URL scheme for tests.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class MediaHostError(Exception):
    """Raised when the media host rejects an operation."""


@dataclass(frozen=True)
class UploadedMedia:
    url: str
    key: str


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", file_name)


def build_media_key(folder: str, file_name: str, now_ms: Optional[int] = None) -> str:
    """Object key for a new upload: ``<folder>/<epoch-ms>-<sanitized name>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{folder.strip('/')}/{now_ms}-{sanitize_file_name(file_name)}"


def attachment_disposition(file_name: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(file_name)}"


def key_from_url(url: str, base_url: Optional[str]) -> Optional[str]:
    """
    Recover the object key from a stored media URL.

    Only URLs under ``base_url`` are ours; anything else (e.g. links written
    by an earlier media host) yields ``None``.
    """
    if not url or not base_url:
        return None
    prefix = base_url.rstrip("/") + "/"
    if not url.startswith(prefix):
        return None
    return urlparse(url[len(prefix):]).path or None


class MediaClient(Protocol):
    """Defines the operations the API needs from the media host."""

    def upload(
        self, content: bytes, key: str, content_type: Optional[str] = None
    ) -> UploadedMedia:
        ...

    def destroy(self, key: str) -> None:
        ...

    def key_from_url(self, url: str) -> Optional[str]:
        ...

    def presign_get(
        self, key: str, expires_in: int = 3600, download_name: Optional[str] = None
    ) -> str:
        ...


@dataclass
class InMemoryMediaClient:
    """Test double for media host interactions."""

    base_url: str = "https://example.test/media"
    stored_objects: dict = None
    fail_uploads: bool = False

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload(
        self, content: bytes, key: str, content_type: Optional[str] = None
    ) -> UploadedMedia:
        if self.fail_uploads:
            raise MediaHostError("upload rejected")
        self.stored_objects[key] = (bytes(content), content_type)
        return UploadedMedia(url=f"{self.base_url}/{key}", key=key)

    def destroy(self, key: str) -> None:
        self.stored_objects.pop(key, None)

    def key_from_url(self, url: str) -> Optional[str]:
        return key_from_url(url, self.base_url)

    def presign_get(
        self, key: str, expires_in: int = 3600, download_name: Optional[str] = None
    ) -> str:
        url = f"{self.base_url}/{key}?op=get&expires={expires_in}"
        if download_name:
            url += f"&download={quote(download_name)}"
        return url


@dataclass
class S3MediaClient:
    """
    S3-compatible media host client.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )
        if not self.public_base_url:
            self.public_base_url = self._default_public_base_url()

    def _default_public_base_url(self) -> str:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            return f"{parsed.scheme or 'https'}://{self.bucket}.{parsed.netloc}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com"

    def upload(
        self, content: bytes, key: str, content_type: Optional[str] = None
    ) -> UploadedMedia:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as exc:
            raise MediaHostError(str(exc)) from exc
        url = f"{self.public_base_url.rstrip('/')}/{key}"
        logger.info("Media upload success: %s", url)
        return UploadedMedia(url=url, key=key)

    def destroy(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise MediaHostError(str(exc)) from exc

    def key_from_url(self, url: str) -> Optional[str]:
        return key_from_url(url, self.public_base_url)

    def presign_get(
        self, key: str, expires_in: int = 3600, download_name: Optional[str] = None
    ) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if download_name:
            params["ResponseContentDisposition"] = attachment_disposition(download_name)
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params=params,
            ExpiresIn=expires_in,
        )
