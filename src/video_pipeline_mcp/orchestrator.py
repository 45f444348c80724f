"""Pipeline orchestrator: generation → download → transcode → upload.

One ``PipelineOrchestrator`` is built at process start and handed to the
MCP tools and the CLI. It owns the job registry, the provider adapters, the
shared transcoder and the optional uploader. Each job runs as its own
sequential coroutine; jobs only share the registry.

Stage exceptions are caught at the stage boundary and turn the job
``failed``. Nothing is retried at the job level: a fresh submission gets a
fresh job ID.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

from .config import ServerConfig, get_config
from .downloader import download_video
from .errors import (
    GenerationError,
    GenerationTimeoutError,
    JobNotFoundError,
    PipelineError,
    UploadError,
)
from .jobs import JobRegistry, JobStatus, PipelineJob
from .models.generation import GenerationRequest, GenerationResult
from .providers import (
    PROVIDER_SPECS,
    VideoProvider,
    build_providers,
    estimate_cost,
    estimate_processing_time,
    get_spec,
)
from .renditions import MASTER_PLAYLIST, POSTER_FILE
from .storage import StorageUploader, create_uploader, video_prefix
from .transcoder import Transcoder

logger = logging.getLogger(__name__)

PROGRESS_GENERATING = 10
PROGRESS_POLL_CEILING = 20
PROGRESS_DOWNLOADING = 25
PROGRESS_TRANSCODING = 50
PROGRESS_TRANSCODE_CEILING = 75
PROGRESS_UPLOADING = 80

Downloader = Callable[[str, Path], Awaitable[Path]]


class PipelineOrchestrator:
    """Runs pipeline jobs and answers status queries about them."""

    def __init__(
        self,
        *,
        providers: dict[str, VideoProvider],
        transcoder: Transcoder,
        uploader: StorageUploader | None = None,
        registry: JobRegistry | None = None,
        downloader: Downloader | None = None,
        cfg: ServerConfig | None = None,
    ) -> None:
        self._cfg = cfg or get_config()
        self._providers = providers
        self._transcoder = transcoder
        self._uploader = uploader
        self._registry = registry or JobRegistry()
        self._download = downloader or download_video
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def upload_enabled(self) -> bool:
        return self._uploader is not None

    async def start(self) -> None:
        """Check storage connectivity; an unreachable bucket disables upload."""
        if self._uploader is None:
            return
        if not await self._uploader.test_connection():
            logger.warning("Storage connection failed, upload disabled for this process")
            self._uploader = None

    async def aclose(self) -> None:
        """Cancel in-flight jobs and close provider connections."""
        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        for provider in self._providers.values():
            await provider.aclose()

    # ── Job lifecycle ───────────────────────────────────────────────────────

    async def submit(self, project_id: str, request: GenerationRequest) -> dict[str, Any]:
        """Register a job, start it in the background, and return at once.

        Returns:
            Dict with the job snapshot and ``estimated_completion_seconds``.
        """
        job = self._registry.create(project_id, request)
        task = asyncio.create_task(self.run_job(job.job_id, request), name=job.job_id)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        await asyncio.sleep(0)
        snapshot = self._registry.get(job.job_id) or job
        return {
            "job": snapshot.to_dict(),
            "estimated_completion_seconds": estimate_processing_time(request.provider, request.duration),
        }

    async def process(self, project_id: str, request: GenerationRequest) -> PipelineJob:
        """Create a job and run it to a terminal state in the caller's task."""
        job = self._registry.create(project_id, request)
        return await self.run_job(job.job_id, request)

    async def run_job(self, job_id: str, request: GenerationRequest) -> PipelineJob:
        """Drive *job_id* through every stage. Never raises for stage failures."""
        stage = "generation"
        try:
            self._registry.advance(job_id, JobStatus.DOWNLOADING, PROGRESS_GENERATING)
            result = await self._generate(job_id, request)
            self._registry.record(job_id, original_video_url=result.video_url or "")

            if result.is_mock:
                return await self._complete_synthetic(job_id, result)

            stage = "download"
            self._registry.update_progress(job_id, PROGRESS_DOWNLOADING)
            local_path = await self._download(
                result.video_url, self._cfg.resolved_input_dir / f"{job_id}.mp4",
            )
            self._registry.record(job_id, local_video_path=str(local_path))

            stage = "transcode"
            self._registry.advance(job_id, JobStatus.TRANSCODING, PROGRESS_TRANSCODING)
            output_dir = self._cfg.resolved_output_dir / job_id
            transcoded = await self._transcoder.transcode(
                local_path, output_dir, on_progress=self._transcode_progress(job_id),
            )
            self._registry.record(
                job_id,
                transcoded_path=transcoded.output_dir,
                renditions=transcoded.renditions,
                warnings=transcoded.warnings,
            )

            if self._uploader is not None:
                stage = "upload"
                self._registry.advance(job_id, JobStatus.UPLOADING, PROGRESS_UPLOADING)
                self._registry.record(job_id, **await self._upload(output_dir, job_id))

            return self._registry.advance(job_id, JobStatus.COMPLETED)
        except asyncio.CancelledError:
            self._registry.fail(job_id, f"Cancelled during {stage}")
            raise
        except PipelineError as exc:
            return self._registry.fail(job_id, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error in job %s during %s", job_id, stage)
            return self._registry.fail(job_id, f"Unexpected error during {stage}: {exc}")

    async def _generate(self, job_id: str, request: GenerationRequest) -> GenerationResult:
        provider = self._providers.get(request.provider)
        if provider is None:
            raise GenerationError(f"Unsupported provider: {request.provider}")
        result = await provider.generate(request)
        if not result.success:
            raise GenerationError(result.error or "Video generation failed")
        if result.is_ready:
            return result
        if not result.job_id:
            raise GenerationError("Provider returned neither a video nor a job ID")
        return await self._poll(job_id, provider, result.job_id)

    async def _poll(self, job_id: str, provider: VideoProvider, provider_job: str) -> GenerationResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._cfg.poll_timeout
        progress = PROGRESS_GENERATING
        while loop.time() < deadline:
            await asyncio.sleep(self._cfg.poll_interval)
            status = await provider.check_status(provider_job)
            if status.is_ready:
                return status
            if not status.pending:
                raise GenerationError(status.error or "Video generation failed")
            progress = min(progress + 1, PROGRESS_POLL_CEILING)
            self._registry.update_progress(job_id, progress)
        raise GenerationTimeoutError(
            f"{provider.spec.display_name} job {provider_job} did not finish "
            f"within {self._cfg.poll_timeout}s"
        )

    def _transcode_progress(self, job_id: str) -> Callable[[int, int], None]:
        span = PROGRESS_TRANSCODE_CEILING - PROGRESS_TRANSCODING

        def report(settled: int, total: int) -> None:
            self._registry.update_progress(job_id, PROGRESS_TRANSCODING + span * settled // total)

        return report

    async def _upload(self, output_dir: Path, name: str) -> dict[str, str]:
        result = await self._uploader.upload_video_directory(output_dir, name)
        if not result.success:
            raise UploadError(
                f"Upload failed for {len(result.errors)} file(s): " + "; ".join(result.errors),
                failed_files=result.errors,
            )
        prefix = video_prefix(name)
        return {
            "gcs_path": prefix,
            "playlist_url": self._uploader.public_url(f"{prefix}/{MASTER_PLAYLIST}"),
            "poster_url": self._uploader.public_url(f"{prefix}/{POSTER_FILE}"),
        }

    async def _complete_synthetic(self, job_id: str, result: GenerationResult) -> PipelineJob:
        """Walk the remaining states with synthetic outputs instead of real media work."""
        logger.info("Mock result for job %s, skipping download/transcode/upload", job_id)
        step = self._cfg.mock_delay / 2
        self._registry.record(job_id, synthetic=True)
        self._registry.update_progress(job_id, PROGRESS_DOWNLOADING)
        await asyncio.sleep(step)
        self._registry.advance(job_id, JobStatus.TRANSCODING, PROGRESS_TRANSCODING)
        await asyncio.sleep(step)
        if self._uploader is not None:
            self._registry.advance(job_id, JobStatus.UPLOADING, PROGRESS_UPLOADING)
            await asyncio.sleep(step)
        self._registry.record(
            job_id,
            playlist_url=(result.video_url or "").replace(".mp4", ".m3u8"),
            poster_url=result.thumbnail_url or "",
            gcs_path=f"mock/{video_prefix(job_id)}",
        )
        return self._registry.advance(job_id, JobStatus.COMPLETED)

    # ── Queries ─────────────────────────────────────────────────────────────

    def get_job(self, job_id: str) -> PipelineJob:
        """Snapshot of *job_id*.

        Raises:
            JobNotFoundError: Unknown job.
        """
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, project_id: str | None = None) -> list[PipelineJob]:
        return self._registry.list_jobs(project_id)

    def cleanup_old_jobs(self, max_age_hours: float | None = None) -> int:
        """Drop finished jobs older than *max_age_hours* (config default when omitted)."""
        hours = self._cfg.job_max_age_hours if max_age_hours is None else max_age_hours
        return self._registry.cleanup(timedelta(hours=hours))

    # ── Providers ───────────────────────────────────────────────────────────

    def provider_info(self, provider: str | None = None, duration: float | None = None) -> list[dict]:
        """Capability rows for one or all providers, with estimates for *duration*."""
        ids = [get_spec(provider).provider_id] if provider else list(PROVIDER_SPECS)
        rows = []
        for pid in ids:
            spec = PROVIDER_SPECS[pid]
            clip = duration if duration is not None else spec.max_duration
            adapter = self._providers.get(pid)
            rows.append({
                "provider": pid,
                "display_name": spec.display_name,
                "max_duration": spec.max_duration,
                "supported_formats": list(spec.supported_formats),
                "features": list(spec.features),
                "requires_reference_image": spec.requires_reference_image,
                "asynchronous": spec.is_async,
                "mode": adapter.provenance if adapter is not None else "unavailable",
                "duration": clip,
                "estimated_generation_seconds": spec.base_generation_seconds,
                "estimated_completion_seconds": estimate_processing_time(pid, clip),
                "estimated_cost": estimate_cost(pid, clip),
            })
        return rows

    async def test_provider(self, provider: str) -> bool:
        """Minimal round trip against *provider*."""
        adapter = self._providers.get(get_spec(provider).provider_id)
        return adapter is not None and await adapter.test_provider()

    # ── Standalone transcoding ──────────────────────────────────────────────

    async def transcode_local(
        self,
        file_path: Path,
        name: str | None = None,
        *,
        output_root: Path | None = None,
        upload: bool | None = None,
    ) -> dict[str, Any]:
        """Transcode (and optionally upload) a local file without a job.

        Raises:
            FileNotFoundError: *file_path* does not exist.
            TranscodeError: No rendition or no poster could be produced.
            UploadError: Upload was enabled and at least one file failed.
        """
        if not file_path.is_file():
            raise FileNotFoundError(f"Video file not found: {file_path}")
        name = name or file_path.stem
        output_dir = (output_root or self._cfg.resolved_output_dir) / name
        transcoded = await self._transcoder.transcode(file_path, output_dir)
        report: dict[str, Any] = {"name": name, "transcode": transcoded.model_dump(mode="json")}

        should_upload = self.upload_enabled if upload is None else upload and self.upload_enabled
        if should_upload:
            report.update(await self._upload(output_dir, name))
        return report


def build_orchestrator(cfg: ServerConfig | None = None) -> PipelineOrchestrator:
    """Wire providers, transcoder and uploader from configuration."""
    cfg = cfg or get_config()
    return PipelineOrchestrator(
        providers=build_providers(cfg),
        transcoder=Transcoder(max_concurrent=cfg.max_concurrent_encodes, adaptive=cfg.adaptive),
        uploader=create_uploader(cfg),
        cfg=cfg,
    )
