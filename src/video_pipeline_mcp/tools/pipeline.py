"""Pipeline tools: 6 tools on a FastMCP sub-server.

The tools are methods on ``PipelineTools`` so that the orchestrator built at
startup is passed in explicitly; ``create_pipeline_server`` registers the
bound methods on a fresh sub-server.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from ..errors import make_tool_error
from ..models.generation import GenerationRequest
from ..orchestrator import PipelineOrchestrator
from ..tracing import trace
from ..types import (
    AspectRatio,
    DurationSeconds,
    JobId,
    LocalVideoPath,
    MotionLevel,
    ProjectId,
    PromptText,
    ProviderId,
    ResolutionHint,
)

_READ_ONLY = ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=False,
)


class PipelineTools:
    """MCP-facing wrappers; every failure comes back as a ToolError dict."""

    def __init__(self, orchestrator: PipelineOrchestrator) -> None:
        self._orchestrator = orchestrator

    @trace(name="pipeline_submit", span_type="TOOL")
    async def pipeline_submit(
        self,
        project_id: ProjectId,
        provider: ProviderId,
        prompt: PromptText,
        duration: DurationSeconds,
        aspect_ratio: AspectRatio = "16:9",
        reference_images: Annotated[list[str] | None, Field(
            description="Reference image URLs or data URIs; the first one is used",
        )] = None,
        start_frame: Annotated[str | None, Field(description="Start keyframe image (Pika)")] = None,
        end_frame: Annotated[str | None, Field(description="End keyframe image (Pika)")] = None,
        resolution: ResolutionHint | None = None,
        motion: MotionLevel | None = None,
        style: Annotated[str | None, Field(description="Free-form style hint")] = None,
    ) -> dict:
        """Generate a video and run it through transcoding and upload.

        Returns immediately; poll ``pipeline_status`` with the returned job ID.

        Args:
            project_id: Project that owns the job.
            provider: Generation backend — "veo3", "runway", "pika", or "stable-video".
            prompt: Text prompt.
            duration: Clip length in seconds (checked against the provider maximum).
            aspect_ratio: Output ratio or layout.
            reference_images: Optional reference images.
            start_frame: Optional start keyframe.
            end_frame: Optional end keyframe.
            resolution: Optional resolution hint.
            motion: Optional motion intensity.
            style: Optional style hint.

        Returns:
            Dict with ``job`` (snapshot) and ``estimated_completion_seconds``.
        """
        try:
            request = GenerationRequest(
                provider=provider,
                prompt=prompt,
                duration=duration,
                aspect_ratio=aspect_ratio,
                reference_images=tuple(reference_images or ()),
                start_frame=start_frame,
                end_frame=end_frame,
                resolution=resolution,
                motion=motion,
                style=style,
            )
            return await self._orchestrator.submit(project_id, request)
        except ValidationError as exc:
            return make_tool_error(ValueError(str(exc)))
        except Exception as exc:
            return make_tool_error(exc)

    @trace(name="pipeline_status", span_type="TOOL")
    async def pipeline_status(self, job_id: JobId) -> dict:
        """Current snapshot of one pipeline job.

        Args:
            job_id: ID returned by ``pipeline_submit``.

        Returns:
            Job dict with status, progress, output URLs and error.
        """
        try:
            return self._orchestrator.get_job(job_id).to_dict()
        except Exception as exc:
            return make_tool_error(exc)

    @trace(name="pipeline_jobs", span_type="TOOL")
    async def pipeline_jobs(
        self,
        project_id: Annotated[str | None, Field(description="Only jobs of this project")] = None,
    ) -> dict:
        """List tracked jobs, oldest first."""
        jobs = self._orchestrator.list_jobs(project_id)
        return {"count": len(jobs), "jobs": [j.to_dict() for j in jobs]}

    @trace(name="pipeline_cleanup", span_type="TOOL")
    async def pipeline_cleanup(
        self,
        max_age_hours: Annotated[float | None, Field(
            gt=0, description="Age threshold in hours (default: PIPELINE_JOB_MAX_AGE_HOURS)",
        )] = None,
    ) -> dict:
        """Remove completed/failed jobs that finished more than *max_age_hours* ago.

        Args:
            max_age_hours: Age threshold; the configured job retention when omitted.
        """
        try:
            return {"removed": self._orchestrator.cleanup_old_jobs(max_age_hours)}
        except Exception as exc:
            return make_tool_error(exc)

    @trace(name="provider_info", span_type="TOOL")
    async def provider_info(
        self,
        provider: ProviderId | None = None,
        duration: Annotated[float | None, Field(
            gt=0, description="Clip length for the cost/time estimate (default: provider max)",
        )] = None,
    ) -> dict:
        """Capabilities, live/mock mode, and cost/time estimates per provider.

        Args:
            provider: Limit to one provider; all four when omitted.
            duration: Clip length used for estimates.

        Returns:
            Dict with a ``providers`` list.
        """
        try:
            return {"providers": self._orchestrator.provider_info(provider, duration)}
        except Exception as exc:
            return make_tool_error(exc)

    @trace(name="transcode_local", span_type="TOOL")
    async def transcode_local(
        self,
        file_path: LocalVideoPath,
        name: Annotated[str | None, Field(
            description="Output/storage name (default: file name without extension)",
        )] = None,
    ) -> dict:
        """Transcode a local video into adaptive HLS, uploading when storage is enabled.

        Args:
            file_path: Local source video.
            name: Output directory and ``vid/<name>/`` storage prefix.

        Returns:
            Dict with the transcode report and, after upload, public URLs.
        """
        try:
            return await self._orchestrator.transcode_local(Path(file_path).expanduser(), name)
        except Exception as exc:
            return make_tool_error(exc)


def create_pipeline_server(orchestrator: PipelineOrchestrator) -> FastMCP:
    """Sub-server exposing the pipeline tools for *orchestrator*."""
    server = FastMCP("pipeline")
    tools = PipelineTools(orchestrator)
    server.tool(
        tools.pipeline_submit,
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
    )
    server.tool(tools.pipeline_status, annotations=_READ_ONLY)
    server.tool(tools.pipeline_jobs, annotations=_READ_ONLY)
    server.tool(
        tools.pipeline_cleanup,
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
    )
    server.tool(tools.provider_info, annotations=_READ_ONLY)
    server.tool(
        tools.transcode_local,
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
    )
    return server
