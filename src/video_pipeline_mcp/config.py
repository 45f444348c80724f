"""Server configuration via environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

PROVIDER_KEY_ENV: dict[str, str] = {
    "veo3": "GOOGLE_CLOUD_API_KEY",
    "runway": "RUNWAY_API_KEY",
    "pika": "PIKA_API_KEY",
    "stable-video": "STABILITY_API_KEY",
}

_PROVIDER_KEY_FIELDS: dict[str, str] = {
    "veo3": "google_cloud_api_key",
    "runway": "runway_api_key",
    "pika": "pika_api_key",
    "stable-video": "stability_api_key",
}

DEFAULT_PUBLIC_BASE_URL = "https://storage.googleapis.com"


def _env_flag(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip().lower()


def _resolve_upload_enabled(flag_value: str, bucket: str) -> bool:
    """Derive upload_enabled from env vars.

    - No bucket → always disabled.
    - ``ENABLE_GCS_UPLOAD=false`` (or ``0``/``no``) → disabled even with a bucket.
    - Anything else → enabled when a bucket is configured.
    """
    if not bucket:
        return False
    return flag_value not in ("false", "0", "no")


def _resolve_tracing_enabled(flag_value: str, tracking_uri: str) -> bool:
    """Tracing is on when a tracking URI is set, unless explicitly disabled."""
    if flag_value == "false":
        return False
    return bool(tracking_uri)


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment.

    Empty-string credentials mean "not configured": providers without a key
    fall back to the mock adapter and an empty bucket disables uploading.
    """

    google_cloud_api_key: str = Field(default="")
    runway_api_key: str = Field(default="")
    pika_api_key: str = Field(default="")
    stability_api_key: str = Field(default="")
    veo_model: str = Field(default="veo-3.0-generate-001")

    input_dir: str = Field(default="")
    output_dir: str = Field(default="")
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    max_concurrent_encodes: int = Field(default=4)
    encode_timeout: int = Field(default=1800)
    adaptive: bool = Field(default=True)

    poll_interval: float = Field(default=5.0)
    poll_timeout: int = Field(default=600)
    mock_delay: float = Field(default=2.0)

    gcs_bucket_name: str = Field(default="")
    storage_endpoint_url: str = Field(default=DEFAULT_PUBLIC_BASE_URL)
    storage_access_key: str = Field(default="")
    storage_secret_key: str = Field(default="")
    storage_region: str = Field(default="auto")
    storage_public_base_url: str = Field(default=DEFAULT_PUBLIC_BASE_URL)
    upload_enabled: bool = Field(default=False)

    job_max_age_hours: int = Field(default=24)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=30.0)

    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="video-pipeline-mcp")

    @field_validator(
        "max_concurrent_encodes", "encode_timeout", "poll_timeout",
        "job_max_age_hours", "retry_max_attempts",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("poll_interval", "retry_base_delay", "retry_max_delay")
    @classmethod
    def validate_positive_delays(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Delay values must be > 0")
        return value

    @field_validator("mock_delay")
    @classmethod
    def validate_mock_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("mock_delay must be >= 0")
        return value

    def provider_api_key(self, provider: str) -> str:
        """Return the configured credential for *provider* ("" when absent)."""
        field_name = _PROVIDER_KEY_FIELDS.get(provider)
        return getattr(self, field_name) if field_name else ""

    @property
    def resolved_input_dir(self) -> Path:
        """Download staging root, defaulting to the user cache directory."""
        if self.input_dir:
            return Path(self.input_dir)
        return Path.home() / ".cache" / "video-pipeline-mcp" / "in"

    @property
    def resolved_output_dir(self) -> Path:
        """Transcode output root, defaulting to the user cache directory."""
        if self.output_dir:
            return Path(self.output_dir)
        return Path.home() / ".cache" / "video-pipeline-mcp" / "out"

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        bucket = os.getenv("GCS_BUCKET_NAME", "").strip()
        return cls(
            google_cloud_api_key=os.getenv(PROVIDER_KEY_ENV["veo3"], ""),
            runway_api_key=os.getenv(PROVIDER_KEY_ENV["runway"], ""),
            pika_api_key=os.getenv(PROVIDER_KEY_ENV["pika"], ""),
            stability_api_key=os.getenv(PROVIDER_KEY_ENV["stable-video"], ""),
            veo_model=os.getenv("VEO_MODEL", "veo-3.0-generate-001"),
            input_dir=os.getenv("PIPELINE_INPUT_DIR", ""),
            output_dir=os.getenv("PIPELINE_OUTPUT_DIR", ""),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
            ffprobe_binary=os.getenv("FFPROBE_BINARY", "ffprobe"),
            max_concurrent_encodes=int(os.getenv("PIPELINE_MAX_CONCURRENT_ENCODES", "4")),
            encode_timeout=int(os.getenv("PIPELINE_ENCODE_TIMEOUT", "1800")),
            adaptive=_env_flag("PIPELINE_ADAPTIVE", "true") not in ("false", "0", "no"),
            poll_interval=float(os.getenv("PIPELINE_POLL_INTERVAL", "5")),
            poll_timeout=int(os.getenv("PIPELINE_POLL_TIMEOUT", "600")),
            mock_delay=float(os.getenv("PIPELINE_MOCK_DELAY", "2.0")),
            gcs_bucket_name=bucket,
            storage_endpoint_url=os.getenv("STORAGE_ENDPOINT_URL", DEFAULT_PUBLIC_BASE_URL),
            storage_access_key=os.getenv("STORAGE_ACCESS_KEY", ""),
            storage_secret_key=os.getenv("STORAGE_SECRET_KEY", ""),
            storage_region=os.getenv("STORAGE_REGION", "auto"),
            storage_public_base_url=os.getenv("STORAGE_PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL),
            upload_enabled=_resolve_upload_enabled(_env_flag("ENABLE_GCS_UPLOAD"), bucket),
            job_max_age_hours=int(os.getenv("PIPELINE_JOB_MAX_AGE_HOURS", "24")),
            retry_max_attempts=int(os.getenv("PIPELINE_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("PIPELINE_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("PIPELINE_RETRY_MAX_DELAY", "30.0")),
            tracing_enabled=_resolve_tracing_enabled(
                _env_flag("PIPELINE_TRACING_ENABLED"),
                os.getenv("MLFLOW_TRACKING_URI", ""),
            ),
            mlflow_tracking_uri=os.getenv("MLFLOW_TRACKING_URI", ""),
            mlflow_experiment_name=os.getenv("MLFLOW_EXPERIMENT_NAME", "video-pipeline-mcp"),
        )


# Singleton, initialised on first access.
_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/video-pipeline-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        import logging

        from .dotenv import load_dotenv

        injected = load_dotenv()
        if injected:
            logging.getLogger(__name__).info(
                "Loaded %d var(s) from config: %s",
                len(injected),
                ", ".join(injected.keys()),
            )
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config."""
    global _config
    data = get_config().model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config
