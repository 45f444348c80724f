"""Stage result models for the transcoder and storage uploader."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RenditionOutcome(BaseModel):
    """Result of encoding one streaming profile."""

    suffix: str
    name: str
    success: bool
    error: str = ""
    duration_seconds: float = 0.0


class TranscodeResult(BaseModel):
    """Output of a transcode run that produced at least one rendition and a poster."""

    output_dir: str
    source_width: int | None = None
    source_height: int | None = None
    renditions: list[str] = Field(default_factory=list, description="Suffixes listed in master.m3u8")
    failed: list[RenditionOutcome] = Field(default_factory=list)
    master_playlist_path: str
    poster_path: str
    duration_seconds: float = 0.0

    @property
    def warnings(self) -> list[str]:
        """One line per failed rendition."""
        return [f"{o.suffix}: {o.error}" for o in self.failed]


class UploadResult(BaseModel):
    """Aggregate outcome of mirroring a directory into object storage.

    ``success`` is True only when every file landed; ``errors`` lists one
    entry per file that did not.
    """

    success: bool = True
    uploaded_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    prefix: str = ""
