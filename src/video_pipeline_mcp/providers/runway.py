"""Runway Gen-4 adapter (async task API)."""

from __future__ import annotations

from ..models.generation import GenerationRequest, GenerationResult
from .base import STILL_RUNNING, HTTPVideoProvider

MOTION_SCORES = {"low": 0.3, "medium": 0.6, "high": 0.9}


def _first_artifact_url(body: dict) -> str | None:
    artifacts = body.get("artifacts") or []
    return artifacts[0].get("url") if artifacts else None


def _first_output(body: dict) -> str | None:
    output = body.get("output") or []
    return output[0] if output else None


class RunwayProvider(HTTPVideoProvider):
    """Submits ``gen4`` tasks and polls ``/tasks/<id>``."""

    def __init__(self, api_key: str, **kwargs) -> None:
        super().__init__("runway", api_key, **kwargs)

    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        options: dict = {
            "text_prompt": request.prompt,
            "duration": request.duration,
            "ratio": request.aspect_ratio,
        }
        if request.first_reference_image:
            options["image_prompt"] = request.first_reference_image
        if request.motion:
            options["motion_score"] = MOTION_SCORES[request.motion]

        body = await self._post_json(
            "/tasks",
            {"taskType": "gen4", "internal": False, "options": options},
        )
        return GenerationResult(
            success=True,
            job_id=body.get("id"),
            estimated_time=self.spec.base_generation_seconds,
            video_url=_first_output(body),
            thumbnail_url=_first_artifact_url(body),
        )

    async def _check_status(self, job_id: str) -> GenerationResult:
        body = await self._get_json(f"/tasks/{job_id}")
        status = body.get("status")
        if status == "SUCCEEDED":
            return GenerationResult(
                success=True,
                job_id=job_id,
                video_url=_first_output(body),
                thumbnail_url=_first_artifact_url(body),
            )
        if status == "FAILED":
            reason = body.get("failure") or body.get("error") or "no reason given"
            return GenerationResult.failure(f"Runway task failed: {reason}")
        return GenerationResult.failure(STILL_RUNNING, pending=True)
