"""Shared google-genai client pool used by the Veo 3 adapter."""

from __future__ import annotations

import logging

from google import genai

from .config import get_config

logger = logging.getLogger(__name__)


class GenAIClient:
    """Process-wide google-genai client pool (one client per API key)."""

    _clients: dict[str, genai.Client] = {}

    @classmethod
    def get(cls, api_key: str | None = None) -> genai.Client:
        """Return (or create) the shared client for *api_key*."""
        key = api_key or get_config().google_cloud_api_key
        if not key:
            raise ValueError("No Google Cloud API key, set GOOGLE_CLOUD_API_KEY")
        if key not in cls._clients:
            cls._clients[key] = genai.Client(api_key=key)
            logger.info("Created google-genai client (key …%s)", key[-4:])
        return cls._clients[key]

    @classmethod
    async def close_all(cls) -> int:
        """Shut down all shared clients. Returns count closed."""
        count = 0
        for client in list(cls._clients.values()):
            try:
                await client.aio.aclose()
            except Exception as exc:
                logger.debug("Async client close failed: %s", exc)
            try:
                client.close()
            except Exception as exc:
                logger.debug("Sync client close failed: %s", exc)
            count += 1
        cls._clients.clear()
        logger.info("Closed %d google-genai client(s)", count)
        return count
