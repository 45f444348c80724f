"""Pika Labs adapter (async job API with keyframe support)."""

from __future__ import annotations

from ..models.generation import GenerationRequest, GenerationResult
from .base import STILL_RUNNING, HTTPVideoProvider


class PikaProvider(HTTPVideoProvider):
    def __init__(self, api_key: str, **kwargs) -> None:
        super().__init__("pika", api_key, **kwargs)

    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        options: dict = {
            "duration": request.duration,
            "aspect_ratio": request.aspect_ratio,
        }
        if request.first_reference_image:
            options["image"] = request.first_reference_image
        if request.start_frame and request.end_frame:
            options["keyframes"] = {"start": request.start_frame, "end": request.end_frame}

        body = await self._post_json("/generate", {"prompt": request.prompt, "options": options})
        output = body.get("output") or {}
        return GenerationResult(
            success=True,
            job_id=body.get("id"),
            estimated_time=self.spec.base_generation_seconds,
            video_url=output.get("video_url"),
            thumbnail_url=output.get("thumbnail_url"),
        )

    async def _check_status(self, job_id: str) -> GenerationResult:
        body = await self._get_json(f"/jobs/{job_id}")
        status = body.get("status")
        if status == "completed":
            output = body.get("output") or {}
            return GenerationResult(
                success=True,
                job_id=job_id,
                video_url=output.get("video_url"),
                thumbnail_url=output.get("thumbnail_url"),
            )
        if status == "failed":
            return GenerationResult.failure(f"Pika job failed: {body.get('error') or 'no reason given'}")
        return GenerationResult.failure(STILL_RUNNING, pending=True)
