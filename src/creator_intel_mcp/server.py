"""Main FastMCP server — mounts all sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .client import GeminiClient
from .store import close_store
from .tools.intelligence import intelligence_server
from .tools.quality import quality_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook — enables tracing, then tears down the store and Gemini clients."""
    tracing.setup()
    yield {}
    await close_store()
    closed = await GeminiClient.close_all()
    tracing.shutdown()
    logger.info("Lifespan shutdown: closed %d client(s)", closed)


app = FastMCP(
    "creator-intel",
    instructions=(
        "Creator content intelligence — turns video transcripts into reusable "
        "semantic records and ranked product topics, and scores generated "
        "product artifacts against five quality gates."
    ),
    lifespan=_lifespan,
)

app.mount(intelligence_server)
app.mount(quality_server)


def main() -> None:
    """Entry-point for ``creator-intel-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
