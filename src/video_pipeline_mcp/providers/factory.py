"""Adapter construction: the one place that decides live vs mock."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from ..config import ServerConfig, get_config
from .base import VideoProvider
from .catalog import PROVIDER_SPECS, get_spec
from .mock import MockVideoProvider
from .pika import PikaProvider
from .runway import RunwayProvider
from .stable_video import StableVideoProvider
from .veo3 import Veo3Provider

logger = logging.getLogger(__name__)

LiveBuilder = Callable[[str, ServerConfig, "httpx.AsyncBaseTransport | None"], VideoProvider]

_LIVE_BUILDERS: dict[str, LiveBuilder] = {
    "veo3": lambda key, cfg, transport: Veo3Provider(
        key, model=cfg.veo_model, staging_dir=cfg.resolved_input_dir,
    ),
    "runway": lambda key, cfg, transport: RunwayProvider(key, transport=transport),
    "pika": lambda key, cfg, transport: PikaProvider(key, transport=transport),
    "stable-video": lambda key, cfg, transport: StableVideoProvider(
        key, staging_dir=cfg.resolved_input_dir, transport=transport,
    ),
}


def build_provider(
    provider_id: str,
    cfg: ServerConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> VideoProvider:
    """Return the live adapter when a credential is configured, else the mock.

    Raises:
        ValueError: If *provider_id* is not a supported provider.
    """
    get_spec(provider_id)
    cfg = cfg or get_config()
    api_key = cfg.provider_api_key(provider_id)
    if not api_key:
        logger.warning("No API key for %s, using mock generation", provider_id)
        return MockVideoProvider(provider_id, delay=cfg.mock_delay)
    return _LIVE_BUILDERS[provider_id](api_key, cfg, transport)


def build_providers(
    cfg: ServerConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, VideoProvider]:
    """One adapter per supported provider, keyed by provider ID."""
    cfg = cfg or get_config()
    return {pid: build_provider(pid, cfg, transport=transport) for pid in PROVIDER_SPECS}
