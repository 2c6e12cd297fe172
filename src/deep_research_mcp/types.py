"""Shared type aliases and helpers for tool parameters."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field


def coerce_json_param(value: str | dict | list | None, expected_type: type) -> dict | list | None:
    """Parse MCP JSON-RPC string params back to dict/list.

    Some MCP hosts serialize dict/list arguments as JSON strings; pydantic
    rejects those, so tools call this before validating.

    Returns:
        Parsed value if coercion succeeded, original value otherwise.
    """
    if not isinstance(value, str):
        return value
    try:
        parsed = json.loads(value)
        if isinstance(parsed, expected_type):
            return parsed
    except (json.JSONDecodeError, TypeError):
        pass
    return value

# ── Literal enums ────────────────────────────────────────────────────────────

ReasoningEffort = Literal["low", "medium", "high"]
ReasoningSummary = Literal["auto", "concise", "detailed"]
WebContextSize = Literal["low", "medium", "high"]

# ── Annotated aliases ────────────────────────────────────────────────────────

RESPONSE_ID_PATTERN = r"^resp_[A-Za-z0-9_]+$"

QuestionParam = Annotated[str, Field(min_length=3, max_length=4000, description="Research question")]
JobIdParam = Annotated[str, Field(
    min_length=1,
    pattern=RESPONSE_ID_PATTERN,
    description="Background response id returned by research_run (e.g. resp_abc123)",
)]
