"""Research tools — 2 tools on a FastMCP sub-server."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .. import engine
from ..errors import make_tool_error
from ..types import (
    JobIdParam,
    QuestionParam,
    ReasoningEffort,
    ReasoningSummary,
    WebContextSize,
    coerce_json_param,
)

logger = logging.getLogger(__name__)
research_server = FastMCP("research")


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_run(
    question: QuestionParam,
    model: Annotated[str | None, Field(
        description="Responses model id; a deep-research model runs as a background job",
    )] = None,
    max_search_rounds: Annotated[int | None, Field(description="Search rounds, clamped to 1-10")] = None,
    max_facts: Annotated[int | None, Field(description="Fact budget, clamped to 5-50")] = None,
    min_new_facts_per_round: Annotated[int | None, Field(
        description="Rounds adding fewer new facts count toward stagnation (0-10)",
    )] = None,
    web_context_size: WebContextSize | None = None,
    force_domains: Annotated[list[str] | None, Field(
        description="Only keep facts from these hosts; '.gov' style entries match by suffix",
    )] = None,
    user_location: Annotated[dict | None, Field(
        description="Approximate location: country (2 letters), city, region, timezone",
    )] = None,
    temperature: Annotated[float | None, Field(description="Sampling temperature (0.0-2.0)")] = None,
    top_p: Annotated[float | None, Field(description="Nucleus sampling (0.0-1.0)")] = None,
    max_output_tokens: Annotated[int | None, Field(description="Output token cap per call")] = None,
    reasoning_effort: ReasoningEffort | None = None,
    reasoning_summary: ReasoningSummary | None = None,
    instructions: Annotated[str | None, Field(description="System instructions for every call")] = None,
    store: bool = True,
    background: bool = False,
    code_interpreter: bool = False,
    max_tool_calls: Annotated[int | None, Field(
        description="Tool call budget for deep-research models (1-1000, default 50)",
    )] = None,
    max_retries: Annotated[int | None, Field(description="Retries per call on 429/5xx (0-5)")] = None,
    wait: Annotated[bool, Field(
        description="Deep-research only: poll until done (True) or return once queued (False)",
    )] = True,
) -> dict:
    """Research a question on the web and answer with [F#] citations.

    Standard models run plan -> search/extract rounds -> synthesize -> validate
    and return the ranked fact table. Deep-research models are submitted as a
    single background response and polled; if polling times out or is rate
    limited the result carries a job_id for research_resume.

    Args:
        question: The question to research.
        model: Model id; defaults to OPENAI_MODEL.
        force_domains: Restrict accepted sources to these domains.
        user_location: Location hint forwarded to web search.
        wait: Whether to block on background jobs.

    Returns:
        Dict with answer, fact_table, conflicts, validation and trace, or a
        deep-research job result with job_id, status and answer.
    """
    force_domains = coerce_json_param(force_domains, list)
    user_location = coerce_json_param(user_location, dict)

    raw = {
        "model": model,
        "max_search_rounds": max_search_rounds,
        "max_facts": max_facts,
        "min_new_facts_per_round": min_new_facts_per_round,
        "web_context_size": web_context_size,
        "force_domains": force_domains,
        "user_location": user_location,
        "temperature": temperature,
        "top_p": top_p,
        "max_output_tokens": max_output_tokens,
        "reasoning_effort": reasoning_effort,
        "reasoning_summary": reasoning_summary,
        "instructions": instructions,
        "store": store,
        "background": background,
        "code_interpreter": code_interpreter,
        "max_tool_calls": max_tool_calls,
        "max_retries": max_retries,
    }
    try:
        result = await engine.run_research(
            question, {k: v for k, v in raw.items() if v is not None}, wait=wait,
        )
        return result.model_dump(mode="json")
    except Exception as exc:
        logger.error("research_run failed: %s", exc)
        return make_tool_error(exc)


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_resume(job_id: JobIdParam) -> dict:
    """Resume waiting on a background deep-research job by id.

    Works after a restart: only the id is needed. A finished job returns at
    once; a running one is polled with a fresh wait window.

    Args:
        job_id: Id returned by research_run.

    Returns:
        Dict with ok, job_id, status, answer, failure and resume_hint.
    """
    try:
        result = await engine.resume_job(job_id)
        return result.model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)
