"""Object-storage uploader for finished HLS trees.

Talks to the bucket through the S3-compatible API (Google Cloud Storage
interoperability endpoint by default, or any S3/MinIO endpoint). Every
object is written with a one-year public cache header: a rendered asset
is never modified in place, a new video gets a new job directory.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePath
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from .config import ServerConfig, get_config
from .models.pipeline import UploadResult

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"
VIDEO_PREFIX = "vid"

_CONTENT_TYPES: dict[str, str] = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/MP2T",
    ".m2ts": "video/MP2T",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".mp4": "video/mp4",
}


def object_key(prefix: str, relative: str | PurePath) -> str:
    """Join *prefix* and a local relative path into a forward-slash object key."""
    rel = str(relative).replace("\\", "/").lstrip("/")
    return f"{prefix.rstrip('/')}/{rel}" if prefix else rel


def video_prefix(name: str) -> str:
    """Storage prefix for a job's or video's output tree."""
    return f"{VIDEO_PREFIX}/{name}"


def _make_client(cfg: ServerConfig) -> Any:
    session = boto3.session.Session(
        aws_access_key_id=cfg.storage_access_key or None,
        aws_secret_access_key=cfg.storage_secret_key or None,
        region_name=cfg.storage_region or None,
    )
    return session.client(
        "s3",
        endpoint_url=cfg.storage_endpoint_url or None,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


class StorageUploader:
    """Uploads files and directory trees to one bucket."""

    def __init__(self, bucket: str, *, public_base_url: str, client: Any) -> None:
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client

    @classmethod
    def from_config(cls, cfg: ServerConfig | None = None) -> StorageUploader:
        cfg = cfg or get_config()
        return cls(
            cfg.gcs_bucket_name,
            public_base_url=cfg.storage_public_base_url,
            client=_make_client(cfg),
        )

    def public_url(self, key: str) -> str:
        """Public HTTP URL of an object in this bucket."""
        return f"{self.public_base_url}/{self.bucket}/{key}"

    async def upload_file(self, local_path: Path, key: str) -> bool:
        """Upload one file; failures are logged and reported as False."""
        extra = {"CacheControl": CACHE_CONTROL}
        content_type = _CONTENT_TYPES.get(local_path.suffix.lower())
        if content_type:
            extra["ContentType"] = content_type
        try:
            await asyncio.to_thread(
                self._client.upload_file, str(local_path), self.bucket, key, ExtraArgs=extra,
            )
        except Exception as exc:
            logger.error("Failed to upload %s: %s", local_path, exc)
            return False
        logger.debug("Uploaded %s → %s/%s", local_path, self.bucket, key)
        return True

    async def upload_directory(self, local_dir: Path, prefix: str) -> UploadResult:
        """Mirror every file under *local_dir* to ``<prefix>/<relative path>``.

        Never stops early: each file is attempted, and the result lists the
        ones that failed.
        """
        result = UploadResult(prefix=prefix)
        if not local_dir.is_dir():
            result.success = False
            result.errors.append(f"Failed to read directory: {local_dir} does not exist")
            return result
        try:
            files = sorted(p for p in local_dir.rglob("*") if p.is_file())
        except OSError as exc:
            logger.error("Error reading directory %s: %s", local_dir, exc)
            result.success = False
            result.errors.append(f"Failed to read directory: {exc}")
            return result

        logger.info("Uploading %d file(s) from %s to %s/%s", len(files), local_dir, self.bucket, prefix)
        for path in files:
            rel = path.relative_to(local_dir)
            key = object_key(prefix, rel.as_posix())
            if await self.upload_file(path, key):
                result.uploaded_files.append(key)
            else:
                result.success = False
                result.errors.append(f"Failed to upload {rel.as_posix()}")

        if result.success:
            logger.info("Uploaded all %d file(s)", len(result.uploaded_files))
        else:
            logger.warning("Upload completed with %d error(s)", len(result.errors))
        return result

    async def upload_video_directory(self, local_dir: Path, name: str) -> UploadResult:
        """Upload an HLS tree under ``vid/<name>/``."""
        return await self.upload_directory(local_dir, video_prefix(name))

    async def test_connection(self) -> bool:
        """Return True when the bucket exists and is reachable."""
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
        except Exception as exc:
            logger.error("Bucket %r is not accessible: %s", self.bucket, exc)
            return False
        logger.info("Connected to storage bucket %s", self.bucket)
        return True


def create_uploader(cfg: ServerConfig | None = None) -> StorageUploader | None:
    """Build an uploader when uploading is enabled, else None."""
    cfg = cfg or get_config()
    if not cfg.upload_enabled:
        logger.info("Storage upload disabled, outputs stay local")
        return None
    return StorageUploader.from_config(cfg)
