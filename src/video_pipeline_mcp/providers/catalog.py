"""Static provider capabilities and the cost/time estimates derived from them."""

from __future__ import annotations

from dataclasses import dataclass

TRANSCODE_SECONDS_PER_CLIP_SECOND = 15
UPLOAD_SECONDS_PER_CLIP_SECOND = 5
UNKNOWN_PROVIDER_BASE_SECONDS = 45


@dataclass(frozen=True)
class ProviderSpec:
    """Capabilities of one video-generation vendor."""

    provider_id: str
    display_name: str
    base_url: str
    max_duration: float
    supported_formats: tuple[str, ...]
    features: tuple[str, ...]
    base_generation_seconds: int
    cost_per_second: float
    is_async: bool = True
    requires_reference_image: bool = False


PROVIDER_SPECS: dict[str, ProviderSpec] = {
    "veo3": ProviderSpec(
        provider_id="veo3",
        display_name="Google Veo 3",
        base_url="https://generativelanguage.googleapis.com",
        max_duration=8,
        supported_formats=("16:9", "9:16", "1:1"),
        features=("native-audio", "reference-images", "image-to-video", "text-to-video"),
        base_generation_seconds=30,
        cost_per_second=0.40,
    ),
    "runway": ProviderSpec(
        provider_id="runway",
        display_name="Runway Gen-4",
        base_url="https://api.runwayml.com/v1",
        max_duration=10,
        supported_formats=("16:9", "9:16", "1:1", "4:3"),
        features=("text-to-video", "image-to-video", "video-to-video", "motion-control"),
        base_generation_seconds=60,
        cost_per_second=0.50,
    ),
    "pika": ProviderSpec(
        provider_id="pika",
        display_name="Pika Labs 2.2",
        base_url="https://api.pikapikapika.io/v1",
        max_duration=10,
        supported_formats=("16:9", "9:16", "1:1"),
        features=("pikaframes", "keyframing", "text-to-video", "image-to-video"),
        base_generation_seconds=45,
        cost_per_second=0.11,
    ),
    "stable-video": ProviderSpec(
        provider_id="stable-video",
        display_name="Stable Video Diffusion",
        base_url="https://api.stability.ai/v1",
        max_duration=2,
        supported_formats=("1024x576", "768x768", "576x1024"),
        features=("motion-control", "image-to-video", "multiple-layouts"),
        base_generation_seconds=20,
        cost_per_second=0.03,
        is_async=False,
        requires_reference_image=True,
    ),
}


def get_spec(provider: str) -> ProviderSpec:
    """Return the capability record for *provider*.

    Raises:
        ValueError: If the provider is not one of the supported vendors.
    """
    try:
        return PROVIDER_SPECS[provider]
    except KeyError:
        allowed = ", ".join(PROVIDER_SPECS)
        raise ValueError(f"Unsupported provider: {provider!r}. Allowed: {allowed}") from None


def format_seconds(value: float) -> str:
    """Render a duration without a trailing ``.0`` for whole seconds."""
    return str(int(value)) if float(value).is_integer() else str(value)


def display_name(provider: str) -> str:
    spec = PROVIDER_SPECS.get(provider)
    return spec.display_name if spec else provider


def estimate_processing_time(provider: str, duration: float) -> int:
    """Seconds until a job should complete: generation + transcode + upload."""
    spec = PROVIDER_SPECS.get(provider)
    base = spec.base_generation_seconds if spec else UNKNOWN_PROVIDER_BASE_SECONDS
    return round(
        base
        + duration * TRANSCODE_SECONDS_PER_CLIP_SECOND
        + duration * UPLOAD_SECONDS_PER_CLIP_SECOND
    )


def estimate_cost(provider: str, duration: float) -> str:
    """Approximate generation price as ``$X.YY``; unknown providers cost nothing."""
    spec = PROVIDER_SPECS.get(provider)
    rate = spec.cost_per_second if spec else 0.0
    return f"${rate * duration:.2f}"
