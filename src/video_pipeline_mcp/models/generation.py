"""Provider request/response models.

``GenerationRequest`` is the canonical, provider-neutral input; every
adapter normalises its vendor response into ``GenerationResult``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..types import MotionLevel, Provenance, ProviderId, ResolutionHint


class GenerationRequest(BaseModel):
    """Immutable description of one clip to generate."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderId
    prompt: str = Field(min_length=1)
    reference_images: tuple[str, ...] = ()
    start_frame: str | None = None
    end_frame: str | None = None
    duration: float = Field(gt=0)
    aspect_ratio: str = "16:9"
    resolution: ResolutionHint | None = None
    motion: MotionLevel | None = None
    style: str | None = None

    @property
    def first_reference_image(self) -> str | None:
        return self.reference_images[0] if self.reference_images else None


class GenerationResult(BaseModel):
    """Outcome of a generate or status-check call.

    Async providers first return ``success=True`` with only ``job_id`` set;
    the caller polls ``check_status`` until ``video_url`` appears. A poll
    that finds the job still running comes back with ``pending=True``.
    """

    success: bool
    video_url: str | None = None
    audio_url: str | None = None
    thumbnail_url: str | None = None
    job_id: str | None = None
    estimated_time: int | None = None
    duration: float | None = None
    error: str | None = None
    pending: bool = False
    provenance: Provenance = "live"

    @classmethod
    def failure(cls, error: str, *, pending: bool = False) -> GenerationResult:
        return cls(success=False, error=error, pending=pending)

    @property
    def is_ready(self) -> bool:
        """True when a downloadable video exists."""
        return self.success and bool(self.video_url)

    @property
    def is_mock(self) -> bool:
        return self.provenance == "mock"
