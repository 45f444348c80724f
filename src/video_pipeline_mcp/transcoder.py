"""Adaptive HLS transcoding engine.

One call turns a local video into::

    <output_dir>/
      <suffix>/playlist.m3u8
      <suffix>/segment_%03d.ts
      master.m3u8
      poster.jpg

Renditions are encoded concurrently and settle independently: the run
succeeds when at least one rendition and the poster were produced, and
``master.m3u8`` lists only the renditions that succeeded.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from .config import get_config
from .errors import PosterError, TranscodeError
from .ffmpeg import (
    SubprocessResult,
    build_poster_command,
    build_rendition_command,
    probe_dimensions,
    run_ffmpeg,
)
from .models.pipeline import RenditionOutcome, TranscodeResult
from .renditions import (
    MASTER_PLAYLIST,
    POSTER_FILE,
    SOURCE_PROFILE,
    StreamingProfile,
    master_playlist,
    select_profiles,
)

logger = logging.getLogger(__name__)

Runner = Callable[[list[str]], Awaitable[SubprocessResult]]
Prober = Callable[[Path], Awaitable[tuple[int, int]]]
ProgressCallback = Callable[[int, int], None]


class Transcoder:
    """Encodes renditions with a shared bound on concurrent ffmpeg processes.

    Construct once per process; the semaphore then caps encodes across all
    jobs, not just within one.
    """

    def __init__(
        self,
        *,
        max_concurrent: int | None = None,
        adaptive: bool | None = None,
        runner: Runner | None = None,
        prober: Prober | None = None,
    ) -> None:
        cfg = get_config()
        self._semaphore = asyncio.Semaphore(max_concurrent or cfg.max_concurrent_encodes)
        self._adaptive = cfg.adaptive if adaptive is None else adaptive
        self._ffmpeg = cfg.ffmpeg_binary
        self._run = runner or run_ffmpeg
        self._probe = prober or probe_dimensions

    async def plan(self, input_path: Path) -> tuple[list[StreamingProfile], tuple[int, int] | None]:
        """Choose renditions for *input_path*; legacy mode skips probing."""
        if not self._adaptive:
            return [SOURCE_PROFILE], None
        try:
            width, height = await self._probe(input_path)
        except TranscodeError:
            raise
        except Exception as exc:
            raise TranscodeError(f"Could not probe {input_path.name}: {exc}") from exc
        return select_profiles(width, height), (width, height)

    async def _encode(self, profile: StreamingProfile, input_path: Path, output_dir: Path) -> RenditionOutcome:
        variant_dir = output_dir / profile.suffix
        async with self._semaphore:
            start = time.monotonic()
            try:
                variant_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Generating %s (%s)", profile.name, profile.suffix)
                await self._run(build_rendition_command(profile, input_path, variant_dir, binary=self._ffmpeg))
            except Exception as exc:
                logger.warning("Rendition %s failed: %s", profile.suffix, exc)
                shutil.rmtree(variant_dir, ignore_errors=True)
                return RenditionOutcome(
                    suffix=profile.suffix,
                    name=profile.name,
                    success=False,
                    error=str(exc) or type(exc).__name__,
                    duration_seconds=round(time.monotonic() - start, 2),
                )
        return RenditionOutcome(
            suffix=profile.suffix,
            name=profile.name,
            success=True,
            duration_seconds=round(time.monotonic() - start, 2),
        )

    async def _poster(self, input_path: Path, output_dir: Path) -> Exception | None:
        try:
            await self._run(build_poster_command(input_path, output_dir, binary=self._ffmpeg))
        except Exception as exc:
            logger.error("Poster generation failed for %s: %s", input_path.name, exc)
            return exc
        return None

    async def transcode(
        self,
        input_path: Path,
        output_dir: Path,
        profiles: Sequence[StreamingProfile] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TranscodeResult:
        """Produce the HLS tree for *input_path* under *output_dir*.

        Args:
            input_path: Local source video.
            output_dir: Per-job output directory (created if missing).
            profiles: Explicit renditions; when omitted they are planned
                from the source dimensions.
            on_progress: Called with ``(settled, total)`` each time a
                rendition finishes, whether it succeeded or not.

        Raises:
            TranscodeError: Source could not be probed or every rendition failed.
            PosterError: The poster frame could not be extracted.
        """
        start = time.monotonic()
        dimensions = None
        if profiles is None:
            profiles, dimensions = await self.plan(input_path)
        if not profiles:
            raise TranscodeError("No streaming profiles to encode")

        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Transcoding %s into %d rendition(s): %s",
            input_path.name,
            len(profiles),
            ", ".join(p.suffix for p in profiles),
        )

        total = len(profiles)
        settled = 0

        async def encode_and_report(profile: StreamingProfile) -> RenditionOutcome:
            nonlocal settled
            outcome = await self._encode(profile, input_path, output_dir)
            settled += 1
            if on_progress is not None:
                on_progress(settled, total)
            return outcome

        outcomes, poster_error = await asyncio.gather(
            asyncio.gather(*[encode_and_report(p) for p in profiles]),
            self._poster(input_path, output_dir),
        )

        succeeded = [p for p, o in zip(profiles, outcomes) if o.success]
        failed = [o for o in outcomes if not o.success]
        if failed:
            logger.warning(
                "%d/%d rendition(s) failed: %s",
                len(failed),
                len(outcomes),
                "; ".join(f"{o.suffix}: {o.error}" for o in failed),
            )
        if not succeeded:
            raise TranscodeError(
                "All streaming profiles failed to generate: "
                + "; ".join(f"{o.suffix}: {o.error}" for o in failed)
            )
        if poster_error is not None:
            raise PosterError(f"Poster generation failed: {poster_error}")

        master_path = output_dir / MASTER_PLAYLIST
        master_path.write_text(master_playlist(succeeded))

        elapsed = round(time.monotonic() - start, 2)
        logger.info(
            "Transcoding completed in %.1fs (%d/%d profiles)",
            elapsed,
            len(succeeded),
            len(outcomes),
        )
        return TranscodeResult(
            output_dir=str(output_dir),
            source_width=dimensions[0] if dimensions else None,
            source_height=dimensions[1] if dimensions else None,
            renditions=[p.suffix for p in succeeded],
            failed=failed,
            master_playlist_path=str(master_path),
            poster_path=str(output_dir / POSTER_FILE),
            duration_seconds=elapsed,
        )
