"""Optional MLflow tracing for the MCP tool entry points.

The ``trace()`` decorator wraps tools in ``TOOL`` spans; Veo 3 calls made
through google-genai are captured by ``mlflow.gemini.autolog()`` as child
spans. ``mlflow-tracing`` is an optional extra; without it every helper
here is a no-op.

Env vars (all optional):
    MLFLOW_TRACKING_URI: Where to store traces. Empty = tracing disabled.
    MLFLOW_EXPERIMENT_NAME: Experiment name (default ``video-pipeline-mcp``).
    PIPELINE_TRACING_ENABLED: Set to ``"false"`` to force-disable even with a URI.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

try:
    import mlflow
    import mlflow.gemini

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False


def is_enabled() -> bool:
    if not _HAS_MLFLOW:
        return False
    from .config import get_config

    return get_config().tracing_enabled


def trace(
    func: Callable | None = None,
    *,
    name: str | None = None,
    span_type: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable:
    """Wrap *func* in an MLflow span, or hand it back untouched when tracing is off.

    Usable bare (``@trace``) or with arguments (``@trace(name=..., span_type="TOOL")``).
    """
    if is_enabled():
        return mlflow.trace(func, name=name, span_type=span_type, attributes=attributes)
    if func is None:
        return lambda f: f
    return func


def setup() -> None:
    """Bind MLflow to the configured tracking server and experiment.

    google-genai autologging is switched on only when Veo 3 runs live; the
    other adapters talk plain HTTP and produce no client spans. A tracking
    server that cannot be reached is logged and otherwise ignored.
    """
    if not is_enabled():
        return
    from .config import get_config

    cfg = get_config()
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
        veo_live = bool(cfg.google_cloud_api_key)
        if veo_live:
            mlflow.gemini.autolog()
    except Exception:
        logger.warning("Tracing unavailable at %s, spans will not be recorded", cfg.mlflow_tracking_uri, exc_info=True)
        return
    logger.info(
        "Tracing to %s (experiment %s, veo autolog %s)",
        cfg.mlflow_tracking_uri,
        cfg.mlflow_experiment_name,
        "on" if veo_live else "off",
    )


def shutdown() -> None:
    if not is_enabled():
        return
    try:
        mlflow.flush_trace_async_logging()
    except Exception:
        logger.warning("Pending spans could not be flushed", exc_info=True)
