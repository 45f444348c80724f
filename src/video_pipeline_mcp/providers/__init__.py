"""Video-generation provider adapters.

Re-exports the adapter contract, the capability catalog, and the factory
so callers can write ``from .providers import build_providers``.
"""

from .base import VideoProvider
from .catalog import (
    PROVIDER_SPECS,
    ProviderSpec,
    display_name,
    estimate_cost,
    estimate_processing_time,
    get_spec,
)
from .factory import build_provider, build_providers
from .mock import MockVideoProvider

__all__ = [
    "MockVideoProvider",
    "PROVIDER_SPECS",
    "ProviderSpec",
    "VideoProvider",
    "build_provider",
    "build_providers",
    "display_name",
    "estimate_cost",
    "estimate_processing_time",
    "get_spec",
]
