"""Tests for encoder argument builders and the subprocess boundary."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from video_pipeline_mcp.config import update_config
from video_pipeline_mcp.errors import SubprocessError, TranscodeError
from video_pipeline_mcp.ffmpeg import (
    SubprocessResult,
    build_poster_command,
    build_probe_command,
    build_rendition_command,
    probe_dimensions,
    run_ffmpeg,
)
from video_pipeline_mcp.renditions import ADAPTIVE_PROFILES, SOURCE_PROFILE


def _flag(cmd: list[str], name: str) -> str:
    return cmd[cmd.index(name) + 1]


class TestBuildRenditionCommand:
    def test_h264_and_aac_settings(self):
        profile = ADAPTIVE_PROFILES[0]
        cmd = build_rendition_command(profile, Path("/in/clip.mp4"), Path("/out/job/240p"))

        assert cmd[0] == "ffmpeg"
        assert _flag(cmd, "-i") == "/in/clip.mp4"
        assert _flag(cmd, "-c:v") == "libx264"
        assert _flag(cmd, "-preset") == "fast"
        assert _flag(cmd, "-profile:v") == "high"
        assert _flag(cmd, "-level") == "4.0"
        assert _flag(cmd, "-b:v") == "400k"
        assert _flag(cmd, "-maxrate") == "400k"
        assert _flag(cmd, "-bufsize") == "800k"
        assert _flag(cmd, "-c:a") == "aac"
        assert _flag(cmd, "-b:a") == "64k"
        assert _flag(cmd, "-ar") == "44100"
        assert _flag(cmd, "-ac") == "2"

    def test_hls_segmenting(self):
        cmd = build_rendition_command(ADAPTIVE_PROFILES[4], Path("in.mp4"), Path("out/720p"))
        assert _flag(cmd, "-f") == "hls"
        assert _flag(cmd, "-hls_time") == "6"
        assert _flag(cmd, "-hls_playlist_type") == "vod"
        assert _flag(cmd, "-hls_flags") == "independent_segments"
        assert _flag(cmd, "-hls_list_size") == "0"
        assert _flag(cmd, "-hls_segment_filename") == str(Path("out/720p") / "segment_%03d.ts")
        assert cmd[-1] == str(Path("out/720p") / "playlist.m3u8")

    def test_scale_filter(self):
        cmd = build_rendition_command(ADAPTIVE_PROFILES[5], Path("in.mp4"), Path("out/1080p"))
        assert _flag(cmd, "-vf") == "scale=-2:1080"

    def test_source_profile_is_not_scaled(self):
        cmd = build_rendition_command(SOURCE_PROFILE, Path("in.mp4"), Path("out/source"))
        assert "-vf" not in cmd

    def test_custom_binary(self):
        cmd = build_rendition_command(SOURCE_PROFILE, Path("in.mp4"), Path("o"), binary="/opt/ffmpeg")
        assert cmd[0] == "/opt/ffmpeg"


class TestOtherBuilders:
    def test_poster(self):
        cmd = build_poster_command(Path("in.mp4"), Path("out/job"))
        assert _flag(cmd, "-ss") == "0"
        assert _flag(cmd, "-frames:v") == "1"
        assert _flag(cmd, "-qscale:v") == "2"
        assert cmd[-1] == str(Path("out/job") / "poster.jpg")
        assert cmd.index("-ss") < cmd.index("-i")

    def test_probe(self):
        cmd = build_probe_command(Path("in.mp4"), binary="ffprobe")
        assert cmd[0] == "ffprobe"
        assert _flag(cmd, "-select_streams") == "v:0"
        assert _flag(cmd, "-of") == "json"
        assert cmd[-1] == "in.mp4"


class TestRunFfmpeg:
    async def test_success(self, mock_subprocess):
        proc = mock_subprocess(returncode=0, stdout=b"done", stderr=b"")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as mock_exec:
            result = await run_ffmpeg(["ffmpeg", "-i", "in.mp4", "out.m3u8"], timeout=10)
        assert isinstance(result, SubprocessResult)
        assert result.stdout == "done"
        assert mock_exec.call_args.args == ("ffmpeg", "-i", "in.mp4", "out.m3u8")

    async def test_non_zero_exit(self, mock_subprocess):
        proc = mock_subprocess(returncode=1, stderr=b"Invalid data found when processing input")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(SubprocessError) as exc_info:
                await run_ffmpeg(["ffmpeg", "-i", "bad.mp4"], timeout=10)
        assert exc_info.value.returncode == 1
        assert "Invalid data" in exc_info.value.stderr

    async def test_missing_binary(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError(2, "No such file"))):
            with pytest.raises(FileNotFoundError, match="ffmpeg not found"):
                await run_ffmpeg(["ffmpeg", "-version"], timeout=10)

    async def test_timeout_terminates_then_kills(self):
        proc = MagicMock()
        proc.terminate = MagicMock()
        proc.kill = MagicMock()
        calls = 0

        async def communicate():
            nonlocal calls
            calls += 1
            if calls <= 2:
                raise asyncio.TimeoutError()
            return (b"", b"")

        proc.communicate = communicate
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(asyncio.TimeoutError):
                await run_ffmpeg(["ffmpeg", "-i", "long.mp4"], timeout=1)
        proc.terminate.assert_called_once()
        proc.kill.assert_called_once()

    async def test_cancel_terminates_encoder(self):
        proc = MagicMock()
        started = asyncio.Event()
        calls = 0

        async def communicate():
            nonlocal calls
            calls += 1
            if calls == 1:
                started.set()
                await asyncio.Event().wait()
            return (b"", b"")

        proc.communicate = communicate
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            task = asyncio.create_task(run_ffmpeg(["ffmpeg", "-i", "long.mp4"], timeout=60))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        proc.terminate.assert_called_once()
        proc.kill.assert_not_called()

    async def test_cancel_kills_encoder_ignoring_sigterm(self):
        proc = MagicMock()
        started = asyncio.Event()
        calls = 0

        async def communicate():
            nonlocal calls
            calls += 1
            if calls == 1:
                started.set()
            if calls <= 2:
                await asyncio.Event().wait()
            return (b"", b"")

        proc.communicate = communicate
        with (
            patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)),
            patch("video_pipeline_mcp.ffmpeg.SIGTERM_GRACE_SECONDS", 0.01),
        ):
            task = asyncio.create_task(run_ffmpeg(["ffmpeg", "-i", "long.mp4"], timeout=60))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        proc.terminate.assert_called_once()
        proc.kill.assert_called_once()

    async def test_default_timeout_from_config(self, mock_subprocess):
        update_config(encode_timeout=42)
        proc = mock_subprocess()
        with (
            patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)),
            patch("video_pipeline_mcp.ffmpeg.asyncio.wait_for", wraps=asyncio.wait_for) as wait_for,
        ):
            await run_ffmpeg(["ffmpeg"])
        assert wait_for.call_args.kwargs["timeout"] == 42


class TestProbeDimensions:
    async def test_reads_first_video_stream(self, mock_subprocess):
        payload = json.dumps({"streams": [{"width": 1280, "height": 720}]}).encode()
        proc = mock_subprocess(stdout=payload)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert await probe_dimensions(Path("clip.mp4")) == (1280, 720)

    async def test_uses_configured_ffprobe(self, mock_subprocess):
        update_config(ffprobe_binary="/usr/local/bin/ffprobe")
        proc = mock_subprocess(stdout=b'{"streams": [{"width": 640, "height": 360}]}')
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as mock_exec:
            await probe_dimensions(Path("clip.mp4"))
        assert mock_exec.call_args.args[0] == "/usr/local/bin/ffprobe"

    @pytest.mark.parametrize("stdout", [b'{"streams": []}', b"not json", b'{"streams": [{"width": 0}]}'])
    async def test_missing_dimensions(self, mock_subprocess, stdout):
        proc = mock_subprocess(stdout=stdout)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(TranscodeError):
                await probe_dimensions(Path("audio-only.m4a"))
