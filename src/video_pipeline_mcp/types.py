"""Shared type aliases for provider requests and tool parameters."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

# ── Literal enums ────────────────────────────────────────────────────────────

ProviderId = Literal["veo3", "runway", "pika", "stable-video"]
MotionLevel = Literal["low", "medium", "high"]
ResolutionHint = Literal["720p", "1080p", "4K"]
Provenance = Literal["live", "mock"]

PROVIDER_IDS: tuple[str, ...] = ("veo3", "runway", "pika", "stable-video")

# ── Annotated aliases ────────────────────────────────────────────────────────

ProjectId = Annotated[str, Field(min_length=1, max_length=200, description="Owning project ID")]
JobId = Annotated[str, Field(min_length=1, description="Pipeline job ID returned by pipeline_submit")]
PromptText = Annotated[str, Field(min_length=1, max_length=4000, description="Text prompt for the video")]
DurationSeconds = Annotated[float, Field(gt=0, le=60, description="Target clip duration in seconds")]
AspectRatio = Annotated[str, Field(
    min_length=3,
    description='Aspect ratio or layout, e.g. "16:9", "9:16", "1:1", "1024x576"',
)]
LocalVideoPath = Annotated[str, Field(
    min_length=1,
    description="Path to a local video file (mp4, avi, mov, mkv, webm, flv, wmv)",
)]
