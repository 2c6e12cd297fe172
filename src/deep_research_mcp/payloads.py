"""Tool lists and request options derived from :class:`ResearchOptions`."""

from __future__ import annotations

from typing import Any

from .models.options import DEFAULT_MAX_TOOL_CALLS, ResearchOptions
from .types import WebContextSize


def build_web_search_tool(options: ResearchOptions, context_size: WebContextSize | None = None) -> dict:
    """``web_search_preview`` tool; deep-research models only accept medium context."""
    if options.deep_research:
        size = "medium"
    else:
        size = context_size or options.web_context_size
    tool: dict[str, Any] = {"type": "web_search_preview", "search_context_size": size}
    if options.user_location is not None:
        tool["user_location"] = options.user_location.to_tool_param()
    return tool


def build_tools(options: ResearchOptions, context_size: WebContextSize | None = None) -> list[dict]:
    tools = [build_web_search_tool(options, context_size)]
    if options.deep_research and options.code_interpreter:
        tools.append({"type": "code_interpreter", "container": {"type": "auto"}})
    return tools


def build_payload_options(options: ResearchOptions) -> dict:
    """Sampling, reasoning and background fields shared by every request.

    Unset options are omitted so the provider applies its own defaults.
    """
    opts: dict[str, Any] = {}
    if options.temperature is not None:
        opts["temperature"] = options.temperature
    if options.top_p is not None:
        opts["top_p"] = options.top_p
    if options.max_output_tokens is not None:
        opts["max_output_tokens"] = options.max_output_tokens
    if options.instructions:
        opts["instructions"] = options.instructions
    if options.store is False:
        opts["store"] = False

    reasoning: dict[str, str] = {}
    if options.reasoning_effort:
        reasoning["effort"] = options.reasoning_effort
    if options.reasoning_summary:
        reasoning["summary"] = options.reasoning_summary
    if reasoning:
        opts["reasoning"] = reasoning

    if options.deep_research:
        if options.background:
            opts["background"] = True
        opts["max_tool_calls"] = options.max_tool_calls or DEFAULT_MAX_TOOL_CALLS
    return opts
