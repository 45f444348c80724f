"""In-memory pipeline job tracking.

``JobRegistry`` is the only structure shared between concurrently running
jobs. Every mutation goes through it so the state-machine rules hold:
status only moves forward along pending → downloading → transcoding →
uploading → completed (stages may be skipped), ``failed`` is reachable from
any non-terminal state, progress never decreases, progress is 100 only once
completed, and the metadata snapshot is frozen at creation.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from .errors import InvalidTransitionError, JobNotFoundError
from .models.generation import GenerationRequest

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Pipeline job lifecycle states."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    TRANSCODING = "transcoding"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ORDER: dict[JobStatus, int] = {
    JobStatus.PENDING: 0,
    JobStatus.DOWNLOADING: 1,
    JobStatus.TRANSCODING: 2,
    JobStatus.UPLOADING: 3,
    JobStatus.COMPLETED: 4,
}

# Fields the orchestrator may record as stages finish.
_RECORDABLE = frozenset({
    "original_video_url",
    "local_video_path",
    "transcoded_path",
    "gcs_path",
    "playlist_url",
    "poster_url",
    "renditions",
    "warnings",
    "synthetic",
})


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobMetadata:
    """Request snapshot copied onto the job at creation."""

    provider: str
    prompt: str
    duration: float
    aspect_ratio: str

    @classmethod
    def from_request(cls, request: GenerationRequest) -> JobMetadata:
        return cls(
            provider=request.provider,
            prompt=request.prompt,
            duration=request.duration,
            aspect_ratio=request.aspect_ratio,
        )


@dataclass
class PipelineJob:
    """One generation → download → transcode → upload run."""

    job_id: str
    project_id: str
    metadata: JobMetadata
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    original_video_url: str = ""
    local_video_path: str = ""
    transcoded_path: str = ""
    gcs_path: str = ""
    playlist_url: str = ""
    poster_url: str = ""
    renditions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    synthetic: bool = False
    error: str = ""
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used by the MCP tools."""
        return {
            "job_id": self.job_id,
            "project_id": self.project_id,
            "status": self.status.value,
            "progress": self.progress,
            "original_video_url": self.original_video_url,
            "local_video_path": self.local_video_path,
            "transcoded_path": self.transcoded_path,
            "gcs_path": self.gcs_path,
            "playlist_url": self.playlist_url,
            "poster_url": self.poster_url,
            "renditions": list(self.renditions),
            "warnings": list(self.warnings),
            "synthetic": self.synthetic,
            "error": self.error or None,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "metadata": {
                "provider": self.metadata.provider,
                "prompt": self.metadata.prompt,
                "duration": self.metadata.duration,
                "aspect_ratio": self.metadata.aspect_ratio,
            },
        }


class JobRegistry:
    """Thread-safe map of job ID → PipelineJob.

    Readers always receive deep copies, so a snapshot handed to a caller
    never changes underneath it.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, PipelineJob] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _require(self, job_id: str) -> PipelineJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def create(self, project_id: str, request: GenerationRequest) -> PipelineJob:
        """Register a new pending job and return its snapshot."""
        job = PipelineJob(
            job_id=f"pipeline-{uuid.uuid4().hex[:12]}",
            project_id=project_id,
            metadata=JobMetadata.from_request(request),
        )
        with self._lock:
            self._jobs[job.job_id] = job
            return copy.deepcopy(job)

    def get(self, job_id: str) -> PipelineJob | None:
        """Snapshot of *job_id*, or None when unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def list_jobs(self, project_id: str | None = None) -> list[PipelineJob]:
        """Snapshots of all jobs (optionally for one project), oldest first."""
        with self._lock:
            jobs = [
                copy.deepcopy(j) for j in self._jobs.values()
                if project_id is None or j.project_id == project_id
            ]
        return sorted(jobs, key=lambda j: j.started_at)

    def advance(self, job_id: str, status: JobStatus, progress: int | None = None) -> PipelineJob:
        """Move *job_id* forward to *status*.

        Re-asserting the current status is allowed (progress-only update).
        Progress is clamped so it never decreases and stays below 100 until
        the job completes; completing forces 100 and stamps ``ended_at``.

        Raises:
            JobNotFoundError: Unknown job.
            InvalidTransitionError: Backwards move, move out of a terminal
                state, or ``status`` is FAILED (use :meth:`fail`).
        """
        if status is JobStatus.FAILED:
            raise InvalidTransitionError("Use fail() to mark a job as failed")
        with self._lock:
            job = self._require(job_id)
            if job.status.is_terminal:
                raise InvalidTransitionError(
                    f"Job {job_id} is already {job.status.value}; cannot move to {status.value}"
                )
            if _ORDER[status] < _ORDER[job.status]:
                raise InvalidTransitionError(
                    f"Job {job_id} cannot move back from {job.status.value} to {status.value}"
                )
            job.status = status
            if status is JobStatus.COMPLETED:
                job.progress = 100
                job.ended_at = _now()
            elif progress is not None:
                job.progress = max(job.progress, min(int(progress), 99))
            logger.info("Job %s: %s (%d%%)", job_id, status.value, job.progress)
            return copy.deepcopy(job)

    def update_progress(self, job_id: str, progress: int) -> PipelineJob:
        """Raise progress within the current stage; lower values are ignored."""
        with self._lock:
            job = self._require(job_id)
            if not job.status.is_terminal:
                job.progress = max(job.progress, min(int(progress), 99))
            return copy.deepcopy(job)

    def record(self, job_id: str, **fields: Any) -> PipelineJob:
        """Store stage outputs (paths, URLs, rendition names) on the job.

        Raises:
            ValueError: If a field is not a recordable output field.
        """
        unknown = set(fields) - _RECORDABLE
        if unknown:
            raise ValueError(f"Cannot record job fields: {', '.join(sorted(unknown))}")
        with self._lock:
            job = self._require(job_id)
            for name, value in fields.items():
                setattr(job, name, list(value) if isinstance(value, (list, tuple)) else value)
            return copy.deepcopy(job)

    def fail(self, job_id: str, error: str) -> PipelineJob:
        """Mark a non-terminal job as failed, keeping its progress and outputs."""
        with self._lock:
            job = self._require(job_id)
            if job.status.is_terminal:
                raise InvalidTransitionError(
                    f"Job {job_id} is already {job.status.value}; cannot fail it"
                )
            job.status = JobStatus.FAILED
            job.error = error or "Unknown error"
            job.ended_at = _now()
            logger.error("Job %s failed at %d%%: %s", job_id, job.progress, job.error)
            return copy.deepcopy(job)

    def cleanup(self, max_age: timedelta, *, now: datetime | None = None) -> int:
        """Drop terminal jobs whose ``ended_at`` is older than *max_age*. Returns count."""
        cutoff = (now or _now()) - max_age
        with self._lock:
            stale = [
                jid for jid, j in self._jobs.items()
                if j.status.is_terminal and j.ended_at is not None and j.ended_at < cutoff
            ]
            for jid in stale:
                del self._jobs[jid]
        for jid in stale:
            logger.info("Cleaned up old job: %s", jid)
        return len(stale)

    def clear(self) -> int:
        """Remove all tracked jobs. Returns count cleared."""
        with self._lock:
            count = len(self._jobs)
            self._jobs.clear()
        return count
