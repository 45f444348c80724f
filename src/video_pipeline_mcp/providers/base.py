"""Common contract for video-generation providers.

Every adapter exposes ``generate(request)`` and ``check_status(job_id)``
and returns a ``GenerationResult`` from both; vendor and network errors
are converted to ``success=False`` results here and never propagate.
Adapters hold no per-job state, so a single instance serves every job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from ..models.generation import GenerationRequest, GenerationResult
from ..types import Provenance
from .catalog import ProviderSpec, format_seconds, get_spec

logger = logging.getLogger(__name__)

STILL_RUNNING = "Job still in progress"
HTTP_TIMEOUT_SECONDS = 60.0


def duration_error(request: GenerationRequest, spec: ProviderSpec) -> str | None:
    """Message for a request longer than the provider allows, else None."""
    if request.duration > spec.max_duration:
        return (
            f"Duration {format_seconds(request.duration)}s exceeds maximum "
            f"{format_seconds(spec.max_duration)}s for {spec.provider_id}"
        )
    return None


class VideoProvider(ABC):
    """Base adapter: validation and error normalisation around vendor calls."""

    provenance: Provenance = "live"

    def __init__(self, provider_id: str) -> None:
        self.spec = get_spec(provider_id)

    @property
    def provider_id(self) -> str:
        return self.spec.provider_id

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Submit *request*; duration is checked before anything leaves the process."""
        if request.provider != self.provider_id:
            return GenerationResult.failure(
                f"Request for {request.provider} sent to the {self.provider_id} adapter"
            )
        error = duration_error(request, self.spec)
        if error:
            logger.warning(error)
            return GenerationResult.failure(error)
        try:
            return await self._generate(request)
        except Exception as exc:
            logger.warning("%s generation failed: %s", self.spec.display_name, exc)
            return GenerationResult.failure(str(exc) or type(exc).__name__)

    async def check_status(self, job_id: str) -> GenerationResult:
        """Poll a long-running job; ``pending=True`` means ask again later."""
        try:
            return await self._check_status(job_id)
        except Exception as exc:
            logger.warning("%s status check failed: %s", self.spec.display_name, exc)
            return GenerationResult.failure(str(exc) or type(exc).__name__)

    async def test_provider(self) -> bool:
        """Issue a minimal 1-second request and report whether it was accepted."""
        probe = GenerationRequest(
            provider=self.provider_id,
            prompt="Test connection",
            duration=1,
            aspect_ratio="1:1",
        )
        result = await self.generate(probe)
        return result.success

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    @abstractmethod
    async def _generate(self, request: GenerationRequest) -> GenerationResult:
        ...

    async def _check_status(self, job_id: str) -> GenerationResult:
        return GenerationResult.failure(
            f"{self.spec.display_name} does not support job status checking"
        )


class HTTPVideoProvider(VideoProvider):
    """Adapter for vendors reached over a bearer-token JSON/HTTP API."""

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(provider_id)
        self._auth = {"Authorization": f"Bearer {api_key}"}
        self._http = httpx.AsyncClient(
            base_url=self.spec.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def _post_json(self, path: str, payload: dict) -> dict:
        response = await self._http.post(path, json=payload, headers=self._auth)
        self._raise_for_status(response)
        return response.json()

    async def _get_json(self, path: str) -> dict:
        response = await self._http.get(path, headers=self._auth)
        self._raise_for_status(response, prefix="Status check failed")
        return response.json()

    def _raise_for_status(self, response: httpx.Response, *, prefix: str | None = None) -> None:
        if response.is_success:
            return
        label = prefix or f"{self.spec.display_name} API error"
        raise httpx.HTTPStatusError(
            f"{label}: {response.status_code} {response.reason_phrase}",
            request=response.request,
            response=response,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
