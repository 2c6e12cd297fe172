"""Background job tools — 2 tools on a FastMCP sub-server."""

from __future__ import annotations

from fastmcp import FastMCP
from mcp.types import ToolAnnotations

from .. import engine
from ..errors import make_tool_error
from ..types import JobIdParam

jobs_server = FastMCP("jobs")


@jobs_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def job_status(job_id: JobIdParam) -> dict:
    """Fetch the current status of a background job once, without waiting.

    Args:
        job_id: Id returned by research_run.

    Returns:
        Dict with ok, job_id, status and the raw provider payload under data.
    """
    try:
        snapshot = await engine.get_job_status(job_id)
        return snapshot.model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@jobs_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=True,
    )
)
async def job_cancel(job_id: JobIdParam) -> dict:
    """Request cancellation of a background job.

    A research_run or research_resume still polling the job sees the
    cancelled status on its next fetch.

    Args:
        job_id: Id returned by research_run.

    Returns:
        Dict with ok, job_id and the status the provider reports after cancelling.
    """
    try:
        snapshot = await engine.cancel_job(job_id)
        return snapshot.model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)
