"""Main FastMCP server — builds the orchestrator and mounts the pipeline tools."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .client import GenAIClient
from .orchestrator import PipelineOrchestrator, build_orchestrator
from .tools.pipeline import create_pipeline_server

logger = logging.getLogger(__name__)


def create_app(orchestrator: PipelineOrchestrator | None = None) -> FastMCP:
    """Build the root server around *orchestrator* (one is built from config when omitted)."""
    orchestrator = orchestrator or build_orchestrator()

    @asynccontextmanager
    async def _lifespan(server: FastMCP):
        """Startup/shutdown hook — storage check, then client teardown."""
        tracing.setup()
        await orchestrator.start()
        yield {}
        await orchestrator.aclose()
        closed = await GenAIClient.close_all()
        tracing.shutdown()
        logger.info("Lifespan shutdown: closed %d client(s)", closed)

    app = FastMCP(
        "video-pipeline",
        instructions=(
            "AI video generation pipeline — generate clips with Veo 3, Runway, "
            "Pika or Stable Video, transcode them to adaptive HLS, and publish "
            "them to object storage. Submit with pipeline_submit, then poll "
            "pipeline_status."
        ),
        lifespan=_lifespan,
    )
    app.mount(create_pipeline_server(orchestrator))
    return app


def main() -> None:
    """Entry-point for ``video-pipeline-mcp`` console script."""
    create_app().run()


if __name__ == "__main__":
    main()
