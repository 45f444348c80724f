"""Tests for the MCP pipeline tools and the root app."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import pytest
from fastmcp import Client

from video_pipeline_mcp.config import get_config, update_config
from video_pipeline_mcp.orchestrator import PipelineOrchestrator
from video_pipeline_mcp.providers import build_providers
from video_pipeline_mcp.server import create_app
from video_pipeline_mcp.tools.pipeline import PipelineTools, create_pipeline_server
from video_pipeline_mcp.transcoder import Transcoder

TOOL_NAMES = {
    "pipeline_submit",
    "pipeline_status",
    "pipeline_jobs",
    "pipeline_cleanup",
    "provider_info",
    "transcode_local",
}


@pytest.fixture()
def orchestrator(fake_ffmpeg, fake_prober) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        providers=build_providers(get_config()),
        transcoder=Transcoder(adaptive=True, runner=fake_ffmpeg, prober=fake_prober),
    )


@pytest.fixture()
def tools(orchestrator) -> PipelineTools:
    return PipelineTools(orchestrator)


async def _drain(orchestrator: PipelineOrchestrator) -> None:
    await asyncio.gather(*orchestrator._background_tasks)


class TestPipelineSubmit:
    async def test_returns_job_and_estimate(self, tools, orchestrator):
        out = await tools.pipeline_submit(
            project_id="proj-1", provider="veo3", prompt="A koi pond in the rain", duration=6,
        )
        assert out["job"]["project_id"] == "proj-1"
        assert out["job"]["metadata"]["provider"] == "veo3"
        assert out["estimated_completion_seconds"] == 30 + 6 * 20
        await _drain(orchestrator)

        status = await tools.pipeline_status(out["job"]["job_id"])
        assert status["status"] == "completed"
        assert status["synthetic"] is True
        assert status["progress"] == 100

    async def test_invalid_request_is_error_dict(self, tools):
        out = await tools.pipeline_submit(project_id="p", provider="runway", prompt="", duration=5)
        assert out["category"] == "INVALID_ARGUMENT"
        assert "error" in out

    async def test_duration_over_limit_fails_job(self, tools, orchestrator):
        out = await tools.pipeline_submit(
            project_id="p", provider="stable-video", prompt="Zoom", duration=5,
        )
        await _drain(orchestrator)
        status = await tools.pipeline_status(out["job"]["job_id"])
        assert status["status"] == "failed"
        assert status["error"] == "Duration 5s exceeds maximum 2s for stable-video"


class TestQueryTools:
    async def test_unknown_job(self, tools):
        out = await tools.pipeline_status("pipeline-doesnotexist")
        assert out["category"] == "JOB_NOT_FOUND"
        assert out["retryable"] is False

    async def test_jobs_and_cleanup(self, tools, orchestrator):
        await tools.pipeline_submit(project_id="a", provider="pika", prompt="x", duration=2)
        await tools.pipeline_submit(project_id="b", provider="pika", prompt="y", duration=2)
        await _drain(orchestrator)

        assert (await tools.pipeline_jobs())["count"] == 2
        only_a = await tools.pipeline_jobs("a")
        assert only_a["count"] == 1
        assert only_a["jobs"][0]["project_id"] == "a"
        assert await tools.pipeline_cleanup(24) == {"removed": 0}

    async def test_cleanup_defaults_to_configured_retention(self, fake_ffmpeg, fake_prober):
        update_config(job_max_age_hours=1)
        orchestrator = PipelineOrchestrator(
            providers=build_providers(get_config()),
            transcoder=Transcoder(adaptive=True, runner=fake_ffmpeg, prober=fake_prober),
        )
        tools = PipelineTools(orchestrator)
        out = await tools.pipeline_submit(project_id="a", provider="pika", prompt="x", duration=2)
        await _drain(orchestrator)
        orchestrator.registry._jobs[out["job"]["job_id"]].ended_at -= timedelta(hours=2)

        assert await tools.pipeline_cleanup(24) == {"removed": 0}
        assert await tools.pipeline_cleanup() == {"removed": 1}

    async def test_provider_info(self, tools):
        out = await tools.provider_info()
        assert len(out["providers"]) == 4
        one = await tools.provider_info("stable-video", 2)
        (row,) = one["providers"]
        assert row["requires_reference_image"] is True
        assert row["estimated_cost"] == "$0.06"

    async def test_provider_info_unknown(self, tools):
        out = await tools.provider_info("sora")
        assert out["category"] == "PROVIDER_UNSUPPORTED"


class TestTranscodeLocalTool:
    async def test_success(self, tools, tmp_path):
        source = tmp_path / "teaser.mp4"
        source.write_bytes(b"mp4")
        out = await tools.transcode_local(str(source), name="teaser-v2")
        assert out["name"] == "teaser-v2"
        assert out["transcode"]["renditions"]

    async def test_missing_file(self, tools, tmp_path):
        out = await tools.transcode_local(str(tmp_path / "missing.mp4"))
        assert out["category"] == "FILE_NOT_FOUND"

    async def test_all_renditions_failed(self, tools, fake_ffmpeg, tmp_path):
        fake_ffmpeg.fail_suffixes = {"240p", "360p", "480p", "540p", "720p", "1080p"}
        source = tmp_path / "broken.mp4"
        source.write_bytes(b"mp4")
        out = await tools.transcode_local(str(source))
        assert out["category"] == "TRANSCODE_FAILED"


class TestRegistration:
    async def test_sub_server_exposes_tools(self, orchestrator):
        async with Client(create_pipeline_server(orchestrator)) as client:
            tools = {t.name: t for t in await client.list_tools()}
        assert set(tools) == TOOL_NAMES
        assert tools["pipeline_status"].annotations.readOnlyHint is True
        assert tools["pipeline_cleanup"].annotations.destructiveHint is True

    async def test_root_app_mounts_pipeline(self, orchestrator):
        async with Client(create_app(orchestrator)) as client:
            names = {t.name for t in await client.list_tools()}
            result = await client.call_tool("pipeline_jobs", {})
        assert TOOL_NAMES <= names
        assert json.loads(result.content[0].text) == {"count": 0, "jobs": []}
