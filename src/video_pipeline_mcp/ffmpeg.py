"""ffmpeg/ffprobe argument builders and the async subprocess boundary.

The ``build_*`` functions are pure: they map a profile and paths to an
argument list and never touch the filesystem. ``run_ffmpeg`` is the only
place a process is spawned, so tests patch it (or
``asyncio.create_subprocess_exec``) instead of needing a real encoder.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from .config import get_config
from .errors import SubprocessError, TranscodeError
from .renditions import (
    HLS_SEGMENT_SECONDS,
    MEDIA_PLAYLIST,
    POSTER_FILE,
    SEGMENT_PATTERN,
    StreamingProfile,
)

logger = logging.getLogger(__name__)

SIGTERM_GRACE_SECONDS = 5


@dataclass(frozen=True)
class SubprocessResult:
    """Immutable result of a subprocess execution."""

    stdout: str
    stderr: str
    returncode: int
    duration_seconds: float
    command: list[str]


def build_rendition_command(
    profile: StreamingProfile,
    input_path: Path,
    variant_dir: Path,
    *,
    binary: str = "ffmpeg",
) -> list[str]:
    """Arguments that encode *input_path* into an HLS rendition under *variant_dir*."""
    cmd = [
        binary, "-y", "-hide_banner", "-loglevel", "error",
        "-i", str(input_path),
        "-c:v", "libx264",
        "-preset", "fast",
        "-profile:v", "high",
        "-level", "4.0",
        "-x264-params", "nal-hrd=cbr:force-cfr=1",
        "-b:v", profile.video_bitrate,
        "-maxrate", profile.maxrate,
        "-bufsize", profile.bufsize,
        "-c:a", "aac",
        "-b:a", profile.audio_bitrate,
        "-ar", str(profile.audio_sample_rate),
        "-ac", str(profile.audio_channels),
        "-f", "hls",
        "-hls_time", str(HLS_SEGMENT_SECONDS),
        "-hls_playlist_type", "vod",
        "-hls_flags", "independent_segments",
        "-hls_list_size", "0",
        "-hls_segment_filename", str(variant_dir / SEGMENT_PATTERN),
    ]
    if profile.scale:
        cmd.extend(["-vf", profile.scale])
    cmd.append(str(variant_dir / MEDIA_PLAYLIST))
    return cmd


def build_poster_command(input_path: Path, output_dir: Path, *, binary: str = "ffmpeg") -> list[str]:
    """Arguments that grab the first frame of *input_path* as ``poster.jpg``."""
    return [
        binary, "-y", "-hide_banner", "-loglevel", "error",
        "-ss", "0",
        "-i", str(input_path),
        "-frames:v", "1",
        "-qscale:v", "2",
        str(output_dir / POSTER_FILE),
    ]


def build_probe_command(input_path: Path, *, binary: str = "ffprobe") -> list[str]:
    """Arguments that print the first video stream's width/height as JSON."""
    return [
        binary, "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json",
        str(input_path),
    ]


async def _stop(proc: asyncio.subprocess.Process, name: str) -> None:
    """SIGTERM *proc*, then SIGKILL if it outlives the grace period."""
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.communicate(), timeout=SIGTERM_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("%s did not exit after SIGTERM, sending SIGKILL", name)
        proc.kill()
        await proc.communicate()


async def run_ffmpeg(cmd: list[str], *, timeout: int | None = None) -> SubprocessResult:
    """Run an encoder command.

    Uses ``asyncio.create_subprocess_exec`` with an argument list (never
    shell=True). On timeout or cancellation, sends SIGTERM, waits 5s, then
    SIGKILL, so no encoder outlives the task that started it.

    Raises:
        SubprocessError: On non-zero exit code.
        FileNotFoundError: When the binary is not installed.
        asyncio.TimeoutError: When the process exceeds *timeout*.
    """
    if timeout is None:
        timeout = get_config().encode_timeout

    logger.debug("Running: %s (timeout=%ds)", " ".join(cmd), timeout)
    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"{cmd[0]} not found: {exc}") from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %ds, sending SIGTERM", cmd[0], timeout)
        await _stop(proc, cmd[0])
        raise
    except asyncio.CancelledError:
        logger.warning("%s cancelled, stopping encoder", cmd[0])
        await _stop(proc, cmd[0])
        raise

    result = SubprocessResult(
        stdout=stdout_bytes.decode("utf-8", errors="replace"),
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
        returncode=proc.returncode or 0,
        duration_seconds=round(time.monotonic() - start, 2),
        command=cmd,
    )
    if result.returncode != 0:
        logger.error(
            "%s failed (exit %d): %s",
            cmd[0],
            result.returncode,
            result.stderr[:500],
        )
        raise SubprocessError(cmd, result.returncode, result.stdout, result.stderr)
    return result


async def probe_dimensions(input_path: Path) -> tuple[int, int]:
    """Return (width, height) of the first video stream in *input_path*.

    Raises:
        TranscodeError: When ffprobe output has no usable video stream.
    """
    cfg = get_config()
    result = await run_ffmpeg(
        build_probe_command(input_path, binary=cfg.ffprobe_binary),
        timeout=60,
    )
    try:
        streams = json.loads(result.stdout or "{}").get("streams", [])
    except json.JSONDecodeError as exc:
        raise TranscodeError(f"Unreadable ffprobe output for {input_path.name}") from exc
    for stream in streams:
        width, height = stream.get("width"), stream.get("height")
        if width and height:
            return int(width), int(height)
    raise TranscodeError(f"Could not get video dimensions for {input_path.name}")
