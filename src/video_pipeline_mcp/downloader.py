"""Fetch a generated clip into per-job local staging."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from .errors import DownloadError
from .retry import with_retry

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 300.0
CHUNK_SIZE = 1 << 20


def _local_source(url: str) -> Path | None:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    return None


async def _stream_to(url: str, target: Path, transport: httpx.AsyncBaseTransport | None) -> int:
    written = 0
    async with httpx.AsyncClient(
        follow_redirects=True, timeout=DOWNLOAD_TIMEOUT_SECONDS, transport=transport,
    ) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with target.open("wb") as fh:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    fh.write(chunk)
                    written += len(chunk)
    return written


async def download_video(
    url: str,
    target: Path,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Path:
    """Save *url* to *target*, retrying transient HTTP failures.

    ``file://`` URLs point at clips an adapter staged locally; those are
    moved into place so no second copy is left behind.

    Raises:
        DownloadError: When the clip cannot be fetched or is empty.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    source = _local_source(url)
    try:
        if source is not None:
            await asyncio.to_thread(shutil.move, source, target)
            size = target.stat().st_size
        else:
            size = await with_retry(lambda: _stream_to(url, target, transport), label=f"GET {url}")
    except (httpx.HTTPError, OSError) as exc:
        target.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download video from {url}: {exc}") from exc

    if size == 0:
        target.unlink(missing_ok=True)
        raise DownloadError(f"Downloaded video from {url} is empty")
    logger.info("Downloaded %s (%d bytes) to %s", url, size, target)
    return target
