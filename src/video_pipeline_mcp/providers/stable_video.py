"""Stable Video Diffusion adapter (synchronous image-to-video)."""

from __future__ import annotations

import asyncio
import base64
import uuid
from pathlib import Path

from ..models.generation import GenerationRequest, GenerationResult
from .base import HTTPVideoProvider

MOTION_BUCKETS = {"low": 40, "medium": 127, "high": 180}
CFG_SCALE = "1.8"
CLIP_SECONDS = 2


def _decode_data_uri(uri: str) -> tuple[bytes, str]:
    header, _, payload = uri.partition(",")
    mime = header[5:].split(";")[0] or "application/octet-stream"
    if ";base64" in header:
        return base64.b64decode(payload), mime
    return payload.encode(), mime


class StableVideoProvider(HTTPVideoProvider):
    """Posts the reference image and stages the returned video bytes locally.

    The vendor answers with the video itself rather than a URL, so the
    bytes are written under *staging_dir* and exposed as a ``file://`` URL
    the downloader moves into the job input path.
    """

    def __init__(self, api_key: str, *, staging_dir: Path, **kwargs) -> None:
        super().__init__("stable-video", api_key, **kwargs)
        self._staging_dir = staging_dir

    async def _load_image(self, reference: str) -> tuple[bytes, str]:
        if reference.startswith("data:"):
            return _decode_data_uri(reference)
        response = await self._http.get(reference)
        response.raise_for_status()
        return response.content, response.headers.get("content-type", "image/png")

    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        reference = request.first_reference_image
        if not reference:
            raise ValueError("Stable Video requires a reference image")

        image, mime = await self._load_image(reference)
        response = await self._http.post(
            "/generation/image-to-video",
            headers={**self._auth, "Accept": "video/*"},
            files={"image": ("image", image, mime)},
            data={
                "cfg_scale": CFG_SCALE,
                "motion_bucket_id": str(MOTION_BUCKETS[request.motion or "medium"]),
                "seed": "0",
            },
        )
        self._raise_for_status(response)

        self._staging_dir.mkdir(parents=True, exist_ok=True)
        target = self._staging_dir / f"stable-video-{uuid.uuid4().hex[:12]}.mp4"
        await asyncio.to_thread(target.write_bytes, response.content)
        return GenerationResult(
            success=True,
            video_url=target.resolve().as_uri(),
            estimated_time=self.spec.base_generation_seconds,
            duration=CLIP_SECONDS,
        )
