"""Infrastructure tools — 2 tools on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..config import get_config, update_config
from ..errors import make_tool_error

infra_server = FastMCP("infra")
_SENSITIVE_CONFIG_FIELDS = {"openai_api_key"}
SERVICE_NAME = "deep-research-agent"


def _redacted_config() -> dict:
    """Return runtime config with secret-bearing fields removed."""
    return get_config().model_dump(exclude=_SENSITIVE_CONFIG_FIELDS)


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def infra_configure(
    model: Annotated[str | None, Field(description="Default Responses model id")] = None,
    poll_interval: Annotated[float | None, Field(
        gt=0, description="Seconds between background job polls",
    )] = None,
    poll_max_wait: Annotated[float | None, Field(
        gt=0, description="Seconds a single run or resume keeps polling",
    )] = None,
) -> dict:
    """Reconfigure the server at runtime — default model or polling limits.

    Changes take effect immediately for all subsequent tool calls.

    Args:
        model: Model used when research_run is called without one.
        poll_interval: Delay between background status fetches.
        poll_max_wait: Polling window per call before timing out.

    Returns:
        Dict with current_config reflecting the updated settings.
    """
    try:
        update_config(
            default_model=model,
            poll_interval=poll_interval,
            poll_max_wait=poll_max_wait,
        )
        return {"current_config": _redacted_config()}
    except Exception as exc:
        return make_tool_error(exc)


@infra_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
async def infra_health() -> dict:
    """Report whether the server is configured, without calling the provider.

    Returns:
        Dict with ok, service, api_key_configured and default_model.
    """
    cfg = get_config()
    return {
        "ok": True,
        "service": SERVICE_NAME,
        "api_key_configured": bool(cfg.openai_api_key),
        "default_model": cfg.default_model,
    }
