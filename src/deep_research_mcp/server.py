"""Main FastMCP server — mounts all sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from .client import ResponsesClient
from .tools.infra import infra_server
from .tools.jobs import jobs_server
from .tools.research import research_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook — tears down pooled Responses clients."""
    yield {}
    closed = await ResponsesClient.close_all()
    logger.info("Lifespan shutdown: closed %d client(s)", closed)


app = FastMCP(
    "deep-research",
    instructions=(
        "Web research agent on the OpenAI Responses API — plans queries, "
        "gathers and ranks cited facts, and answers with [F#] citations. "
        "Deep-research models run as resumable background jobs."
    ),
    lifespan=_lifespan,
)

app.mount(research_server)
app.mount(jobs_server)
app.mount(infra_server)


def main() -> None:
    """Entry-point for ``deep-research-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
