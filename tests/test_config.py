"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

import video_pipeline_mcp.config as cfg_mod
from video_pipeline_mcp.config import ServerConfig, get_config, update_config


class TestFromEnv:
    def test_defaults_without_credentials(self):
        """GIVEN no credentials THEN every provider key is empty and upload is off."""
        cfg = ServerConfig.from_env()
        assert cfg.provider_api_key("veo3") == ""
        assert cfg.provider_api_key("stable-video") == ""
        assert cfg.upload_enabled is False
        assert cfg.max_concurrent_encodes == 4
        assert cfg.encode_timeout == 1800
        assert cfg.adaptive is True

    def test_provider_keys(self, monkeypatch):
        monkeypatch.setenv("RUNWAY_API_KEY", "rw-key")
        monkeypatch.setenv("STABILITY_API_KEY", "sk-stab")
        cfg = ServerConfig.from_env()
        assert cfg.provider_api_key("runway") == "rw-key"
        assert cfg.provider_api_key("stable-video") == "sk-stab"
        assert cfg.provider_api_key("pika") == ""

    def test_unknown_provider_has_no_key(self):
        assert ServerConfig.from_env().provider_api_key("sora") == ""

    def test_bucket_enables_upload(self, monkeypatch):
        monkeypatch.setenv("GCS_BUCKET_NAME", "videos")
        assert ServerConfig.from_env().upload_enabled is True

    def test_storage_settings(self, monkeypatch):
        monkeypatch.setenv("GCS_BUCKET_NAME", "videos")
        monkeypatch.setenv("STORAGE_REGION", "europe-west4")
        monkeypatch.setenv("GCS_PROJECT_ID", "ignored-project")
        cfg = ServerConfig.from_env()
        assert cfg.gcs_bucket_name == "videos"
        assert cfg.storage_region == "europe-west4"
        assert "gcs_project_id" not in ServerConfig.model_fields

    @pytest.mark.parametrize("flag", ["false", "0", "no", "FALSE"])
    def test_flag_disables_upload_with_bucket(self, monkeypatch, flag):
        monkeypatch.setenv("GCS_BUCKET_NAME", "videos")
        monkeypatch.setenv("ENABLE_GCS_UPLOAD", flag)
        assert ServerConfig.from_env().upload_enabled is False

    def test_flag_alone_does_not_enable_upload(self, monkeypatch):
        """GIVEN ENABLE_GCS_UPLOAD=true but no bucket THEN upload stays off."""
        monkeypatch.setenv("ENABLE_GCS_UPLOAD", "true")
        assert ServerConfig.from_env().upload_enabled is False

    def test_legacy_mode(self, monkeypatch):
        monkeypatch.setenv("PIPELINE_ADAPTIVE", "false")
        assert ServerConfig.from_env().adaptive is False

    def test_tracing_needs_uri(self, monkeypatch):
        monkeypatch.delenv("PIPELINE_TRACING_ENABLED", raising=False)
        assert ServerConfig.from_env().tracing_enabled is False
        monkeypatch.setenv("MLFLOW_TRACKING_URI", "http://127.0.0.1:5001")
        assert ServerConfig.from_env().tracing_enabled is True
        monkeypatch.setenv("PIPELINE_TRACING_ENABLED", "false")
        assert ServerConfig.from_env().tracing_enabled is False


class TestValidation:
    @pytest.mark.parametrize("field", ["max_concurrent_encodes", "encode_timeout", "poll_timeout"])
    def test_rejects_non_positive_limits(self, field):
        with pytest.raises(ValidationError):
            ServerConfig(**{field: 0})

    def test_rejects_non_positive_poll_interval(self):
        with pytest.raises(ValidationError):
            ServerConfig(poll_interval=0)

    def test_mock_delay_may_be_zero(self):
        assert ServerConfig(mock_delay=0).mock_delay == 0

    def test_negative_mock_delay_rejected(self):
        with pytest.raises(ValidationError):
            ServerConfig(mock_delay=-1)


class TestDirectories:
    def test_explicit_dirs(self, tmp_path):
        cfg = get_config()
        assert cfg.resolved_input_dir == tmp_path / "in"
        assert cfg.resolved_output_dir == tmp_path / "out"

    def test_default_dirs_under_user_cache(self):
        cfg = ServerConfig()
        assert cfg.resolved_input_dir == Path.home() / ".cache" / "video-pipeline-mcp" / "in"
        assert cfg.resolved_output_dir == Path.home() / ".cache" / "video-pipeline-mcp" / "out"


class TestSingleton:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_update_config_overrides(self):
        cfg = update_config(max_concurrent_encodes=2, mock_delay=0)
        assert cfg.max_concurrent_encodes == 2
        assert get_config() is cfg

    def test_update_config_ignores_none(self):
        before = get_config().encode_timeout
        assert update_config(encode_timeout=None).encode_timeout == before

    def test_dotenv_loaded_on_first_access(self, tmp_path, monkeypatch):
        """GIVEN a key only in the shared .env THEN get_config() sees it."""
        env = tmp_path / "shared.env"
        env.write_text("PIKA_API_KEY=from-file\n")
        monkeypatch.setattr("video_pipeline_mcp.dotenv.DEFAULT_ENV_PATH", env)
        monkeypatch.setenv("PIKA_API_KEY", "")
        cfg_mod._config = None
        assert get_config().pika_api_key == "from-file"
