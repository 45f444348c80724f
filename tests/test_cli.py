"""Tests for the batch transcoding command line."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from video_pipeline_mcp.cli import find_videos, main, transcode_directory


@pytest.fixture()
def videos(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    for name in ("b.MOV", "a.mp4", "notes.txt", "c.webm"):
        (src / name).write_bytes(b"data")
    (src / "nested").mkdir()
    (src / "nested" / "d.mp4").write_bytes(b"data")
    return src


class TestFindVideos:
    def test_filters_and_sorts(self, videos):
        assert [p.name for p in find_videos(videos)] == ["a.mp4", "b.MOV", "c.webm"]

    def test_empty_directory(self, tmp_path):
        assert find_videos(tmp_path) == []


class TestTranscodeDirectory:
    async def test_counts_failures_and_continues(self, videos, tmp_path, fake_ffmpeg, fake_prober):
        async def _fail_b(cmd, **kwargs):
            if "b.MOV" in " ".join(cmd):
                raise RuntimeError("corrupt input")
            return await fake_ffmpeg(cmd, **kwargs)

        out = tmp_path / "out"
        with (
            patch("video_pipeline_mcp.transcoder.run_ffmpeg", AsyncMock(side_effect=_fail_b)),
            patch("video_pipeline_mcp.transcoder.probe_dimensions", fake_prober),
        ):
            failures = await transcode_directory(videos, out, upload=False)

        assert failures == 1
        assert (out / "a" / "master.m3u8").exists()
        assert (out / "c" / "master.m3u8").exists()
        assert not (out / "b" / "master.m3u8").exists()

    async def test_no_videos(self, tmp_path):
        assert await transcode_directory(tmp_path, tmp_path / "out", upload=False) == 0


class TestMain:
    def test_success_exit_code(self, videos, tmp_path):
        with patch("video_pipeline_mcp.cli.transcode_directory", AsyncMock(return_value=0)) as run:
            assert main([str(videos), "--output", str(tmp_path / "o")]) == 0
        assert run.await_args.kwargs == {"upload": False}
        assert (tmp_path / "o").is_dir()

    def test_failure_exit_code(self, videos, tmp_path):
        with patch("video_pipeline_mcp.cli.transcode_directory", AsyncMock(return_value=2)):
            assert main([str(videos), "--output", str(tmp_path / "o")]) == 1

    def test_upload_requires_bucket(self, videos):
        with pytest.raises(SystemExit) as exc_info:
            main([str(videos), "--upload"])
        assert exc_info.value.code == 2

    def test_upload_with_bucket(self, videos, tmp_path, monkeypatch):
        monkeypatch.setenv("GCS_BUCKET_NAME", "media-bucket")
        monkeypatch.setenv("ENABLE_GCS_UPLOAD", "false")
        with patch("video_pipeline_mcp.cli.transcode_directory", AsyncMock(return_value=0)) as run:
            assert main([str(videos), "--upload", "--output", str(tmp_path / "o")]) == 0
        assert run.await_args.kwargs == {"upload": True}

    def test_missing_input_dir(self, tmp_path):
        with pytest.raises(SystemExit):
            main([str(tmp_path / "nope")])
