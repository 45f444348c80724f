"""Shared test fixtures for video-pipeline-mcp."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from video_pipeline_mcp.errors import SubprocessError
from video_pipeline_mcp.ffmpeg import SubprocessResult

_ENV_VARS = (
    "GOOGLE_CLOUD_API_KEY",
    "RUNWAY_API_KEY",
    "PIKA_API_KEY",
    "STABILITY_API_KEY",
    "GCS_BUCKET_NAME",
    "ENABLE_GCS_UPLOAD",
    "MLFLOW_TRACKING_URI",
    "PIPELINE_ADAPTIVE",
)


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/video-pipeline-mcp/.env."""
    monkeypatch.setattr(
        "video_pipeline_mcp.dotenv.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def _pipeline_env(tmp_path, monkeypatch):
    """Credential-free, upload-free config with staging under tmp_path and no delays."""
    import video_pipeline_mcp.config as cfg_mod

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PIPELINE_TRACING_ENABLED", "false")
    monkeypatch.setenv("PIPELINE_MOCK_DELAY", "0")
    monkeypatch.setenv("PIPELINE_POLL_INTERVAL", "0.01")
    monkeypatch.setenv("PIPELINE_INPUT_DIR", str(tmp_path / "in"))
    monkeypatch.setenv("PIPELINE_OUTPUT_DIR", str(tmp_path / "out"))
    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import video_pipeline_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


class FakeFFmpeg:
    """Stands in for ``run_ffmpeg``: records commands and writes the expected outputs.

    Renditions whose directory name is in ``fail_suffixes`` fail, as does the
    poster when ``fail_poster`` is set.
    """

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.fail_suffixes: set[str] = set()
        self.fail_poster = False

    async def __call__(self, cmd: list[str], **kwargs) -> SubprocessResult:
        self.commands.append(cmd)
        target = Path(cmd[-1])
        if target.name == "poster.jpg":
            if self.fail_poster:
                raise SubprocessError(cmd, 1, "", "poster extraction failed")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"\xff\xd8jpeg")
        else:
            if target.parent.name in self.fail_suffixes:
                raise SubprocessError(cmd, 1, "", "encoder exploded")
            target.parent.mkdir(parents=True, exist_ok=True)
            (target.parent / "segment_000.ts").write_bytes(b"ts-data")
            target.write_text("#EXTM3U\n#EXTINF:6.0,\nsegment_000.ts\n")
        return SubprocessResult(stdout="", stderr="", returncode=0, duration_seconds=0.0, command=cmd)

    @property
    def rendition_commands(self) -> list[list[str]]:
        return [c for c in self.commands if not c[-1].endswith("poster.jpg")]


@pytest.fixture()
def fake_ffmpeg() -> FakeFFmpeg:
    return FakeFFmpeg()


@pytest.fixture()
def fake_prober() -> AsyncMock:
    """1920x1080 source."""
    return AsyncMock(return_value=(1920, 1080))


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client."""

    def __init__(self) -> None:
        self.uploads: dict[str, dict] = {}
        self.fail_suffixes: set[str] = set()
        self.reachable = True

    def upload_file(self, filename: str, bucket: str, key: str, ExtraArgs: dict | None = None) -> None:
        if any(key.endswith(s) for s in self.fail_suffixes):
            raise RuntimeError(f"upload rejected: {key}")
        self.uploads[key] = {"filename": filename, "bucket": bucket, "extra": ExtraArgs or {}}

    def head_bucket(self, Bucket: str) -> dict:
        if not self.reachable:
            raise RuntimeError(f"NoSuchBucket: {Bucket}")
        return {}


@pytest.fixture()
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture()
def uploader(fake_s3):
    from video_pipeline_mcp.storage import StorageUploader

    return StorageUploader("test-bucket", public_base_url="https://storage.googleapis.com", client=fake_s3)


@pytest.fixture()
def mock_genai_client():
    """MagicMock google-genai client with async ``aio`` surfaces."""
    client = MagicMock()
    client.aio.models.generate_videos = AsyncMock()
    client.aio.operations.get = AsyncMock()
    client.aio.files.download = AsyncMock(return_value=b"veo-bytes")
    return client


@pytest.fixture()
def mock_subprocess():
    """Factory for a mock ``asyncio`` subprocess with canned output."""
    def _factory(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        proc = AsyncMock()
        proc.returncode = returncode
        proc.communicate = AsyncMock(return_value=(stdout, stderr))
        proc.terminate = MagicMock()
        proc.kill = MagicMock()
        return proc

    return _factory
