"""Offline stand-in used when a provider has no credential configured."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from urllib.parse import quote

from ..models.generation import GenerationRequest, GenerationResult
from ..types import Provenance
from .base import VideoProvider
from .catalog import format_seconds

logger = logging.getLogger(__name__)

SAMPLE_VIDEO_URL = "https://sample-videos.com/zip/10/mp4/720/{duration}s-sample.mp4"
PLACEHOLDER_THUMBNAIL_URL = "https://via.placeholder.com/640x360/000000/FFFFFF?text={text}"


def mock_job_id(request: GenerationRequest) -> str:
    """Stable ID derived from the request, so identical input gives identical output."""
    digest = hashlib.sha1(request.model_dump_json().encode()).hexdigest()
    return f"mock-{digest[:12]}"


class MockVideoProvider(VideoProvider):
    """Returns synthetic URLs after a short delay; never touches the network."""

    provenance: Provenance = "mock"

    def __init__(self, provider_id: str, *, delay: float = 0.0) -> None:
        super().__init__(provider_id)
        self._delay = delay

    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        logger.info("Mock generating video: %r (%ss)", request.prompt[:60], format_seconds(request.duration))
        if self._delay:
            await asyncio.sleep(self._delay)

        video_url = SAMPLE_VIDEO_URL.format(duration=format_seconds(request.duration))
        return GenerationResult(
            success=True,
            video_url=video_url,
            audio_url=video_url.replace(".mp4", "-audio.mp3") if request.provider == "veo3" else None,
            thumbnail_url=PLACEHOLDER_THUMBNAIL_URL.format(text=quote(request.prompt[:20])),
            duration=request.duration,
            job_id=mock_job_id(request),
            estimated_time=0,
            provenance="mock",
        )

    async def _check_status(self, job_id: str) -> GenerationResult:
        return GenerationResult(success=True, job_id=job_id, provenance="mock")
