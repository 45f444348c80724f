"""Google Veo 3 adapter driven through the google-genai SDK.

``generate_videos`` returns a long-running operation whose name is the
job ID; ``check_status`` re-fetches it by name. Generated files sit behind
the API key, so a finished clip is pulled through the SDK and staged
locally as a ``file://`` URL instead of handing out an authenticated URI.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any

from google.genai import types

from ..client import GenAIClient
from ..models.generation import GenerationRequest, GenerationResult
from .base import STILL_RUNNING, VideoProvider

logger = logging.getLogger(__name__)

_SDK_RESOLUTIONS = {"720p", "1080p"}


def reference_image(reference: str) -> types.Image:
    """Convert a data URI or ``gs://`` URI into an SDK image.

    Raises:
        ValueError: For any other kind of reference.
    """
    if reference.startswith("gs://"):
        return types.Image(gcs_uri=reference)
    if reference.startswith("data:"):
        header, _, payload = reference.partition(",")
        mime = header[5:].split(";")[0] or "image/png"
        return types.Image(image_bytes=base64.b64decode(payload), mime_type=mime)
    raise ValueError("Veo 3 reference images must be data: or gs:// URIs")


class Veo3Provider(VideoProvider):
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        staging_dir: Path,
        client: Any = None,
    ) -> None:
        super().__init__("veo3")
        self._api_key = api_key
        self._model = model
        self._staging_dir = staging_dir
        self._client = client

    def _genai(self) -> Any:
        return self._client or GenAIClient.get(self._api_key)

    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        config = types.GenerateVideosConfig(
            number_of_videos=1,
            duration_seconds=max(1, round(request.duration)),
            aspect_ratio=request.aspect_ratio,
            generate_audio=True,
        )
        if request.resolution in _SDK_RESOLUTIONS:
            config.resolution = request.resolution
        image = reference_image(request.first_reference_image) if request.first_reference_image else None

        operation = await self._genai().aio.models.generate_videos(
            model=self._model,
            prompt=request.prompt,
            image=image,
            config=config,
        )
        logger.info("Veo 3 operation started: %s", operation.name)
        if operation.done:
            return await self._finished(operation)
        return GenerationResult(
            success=True,
            job_id=operation.name,
            estimated_time=self.spec.base_generation_seconds,
        )

    async def _check_status(self, job_id: str) -> GenerationResult:
        operation = await self._genai().aio.operations.get(
            types.GenerateVideosOperation(name=job_id)
        )
        if not operation.done:
            return GenerationResult.failure(STILL_RUNNING, pending=True)
        return await self._finished(operation)

    async def _finished(self, operation: Any) -> GenerationResult:
        if operation.error:
            message = operation.error.get("message") if isinstance(operation.error, dict) else operation.error
            return GenerationResult.failure(f"Veo 3 operation failed: {message}")
        videos = operation.response.generated_videos if operation.response else None
        if not videos:
            return GenerationResult.failure("Veo 3 operation finished without a video")

        video = videos[0].video
        data = video.video_bytes
        if not data:
            data = await self._genai().aio.files.download(file=video)
        self._staging_dir.mkdir(parents=True, exist_ok=True)
        name = operation.name.rsplit("/", 1)[-1] if operation.name else "veo3"
        target = self._staging_dir / f"veo3-{name}.mp4"
        await asyncio.to_thread(target.write_bytes, data)
        return GenerationResult(
            success=True,
            job_id=operation.name,
            video_url=target.resolve().as_uri(),
        )
