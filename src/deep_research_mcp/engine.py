"""Core operations: run research, resume, status and cancel.

Standard models go through the synchronous :class:`ResearchLoop`;
deep-research models are submitted as one background response and tracked
by :class:`BackgroundJobManager`. Config and client are resolved here and
handed down explicitly, so everything below is testable with fakes.
"""

from __future__ import annotations

import logging
from typing import Any

from .client import CompletionRequest, ResponsesClient
from .config import ServerConfig, get_config
from .errors import ProviderError, make_tool_error
from .jobs import BackgroundJobManager, JobClient
from .loop import ResearchLoop
from .models.jobs import JobResult, StatusSnapshot
from .models.options import ResearchOptions
from .models.research import ResearchResult
from .payloads import build_payload_options, build_tools
from .prompts.research import DEEP_RESEARCH
from .stages import PipelineStages
from .tracing import Trace, utc_now

logger = logging.getLogger(__name__)


def make_job_manager(client: JobClient, config: ServerConfig) -> BackgroundJobManager:
    return BackgroundJobManager(
        client,
        poll_interval=config.poll_interval,
        max_wait=config.poll_max_wait,
        max_consecutive_errors=config.poll_max_consecutive_errors,
        default_retry_after=config.rate_limit_default_delay,
    )


def _resolve(config: ServerConfig | None, client: Any) -> tuple[ServerConfig, Any]:
    config = config or get_config()
    return config, client or ResponsesClient.shared(config)


async def _run_deep_research(
    question: str,
    options: ResearchOptions,
    manager: BackgroundJobManager,
    trace: Trace,
    *,
    wait: bool,
) -> JobResult:
    started_at = utc_now()
    request = CompletionRequest(
        model=options.model,
        input=DEEP_RESEARCH.format(question=question),
        tools=build_tools(options),
        options=build_payload_options(options),
    )
    trace.record("request", model=options.model, background=options.background)
    try:
        result = await manager.submit(
            request, wait=wait, max_retries=options.max_retries, trace=trace,
        )
    except ProviderError as exc:
        logger.error("Deep research submission failed: %s", exc)
        trace.record("error", error=str(exc), status_code=exc.status)
        result = JobResult(
            ok=False,
            job_id="",
            error=exc.provider_message or str(exc),
            error_code=exc.code,
            status_code=exc.status,
            finished_at=utc_now(),
            trace=trace.events,
        )
    result.question = question
    result.config = options.model_dump(mode="json")
    result.started_at = started_at
    return result


async def run_research(
    question: str,
    options: ResearchOptions | dict | None = None,
    *,
    config: ServerConfig | None = None,
    client: Any = None,
    wait: bool = True,
) -> ResearchResult | JobResult:
    """Answer ``question`` with cited evidence.

    Provider failures never raise from here: the synchronous path returns
    ``ResearchResult(ok=False)`` with the categorized error and the trace
    gathered so far.

    Args:
        question: The research question.
        options: ``ResearchOptions`` or a loose request dict.
        config: Server config; defaults to the global singleton.
        client: Responses client; defaults to the pooled one for ``config``.
        wait: Deep-research models only. When False, return as soon as the
            background job is queued.
    """
    config, client = _resolve(config, client)
    if not isinstance(options, ResearchOptions):
        options = ResearchOptions.from_request(options, default_model=config.default_model)

    trace = Trace()
    if options.deep_research:
        return await _run_deep_research(
            question, options, make_job_manager(client, config), trace, wait=wait,
        )

    started_at = utc_now()
    loop = ResearchLoop(PipelineStages(client, options, trace), options, trace)
    try:
        return await loop.run(question)
    except ProviderError as exc:
        logger.error("Research aborted by provider error: %s", exc)
        trace.record("error", error=str(exc), status_code=exc.status)
        return ResearchResult(
            ok=False,
            question=question,
            started_at=started_at,
            finished_at=utc_now(),
            config=options.model_dump(mode="json"),
            rounds=sum(1 for e in trace.events if e["phase"] == "extract"),
            error=make_tool_error(exc),
            trace=trace.events,
        )


async def resume_job(
    job_id: str, *, config: ServerConfig | None = None, client: Any = None,
) -> JobResult:
    """Pick a background job back up from its id alone."""
    config, client = _resolve(config, client)
    return await make_job_manager(client, config).resume(job_id)


async def get_job_status(
    job_id: str, *, config: ServerConfig | None = None, client: Any = None,
) -> StatusSnapshot:
    config, client = _resolve(config, client)
    return await make_job_manager(client, config).status(job_id)


async def cancel_job(
    job_id: str, *, config: ServerConfig | None = None, client: Any = None,
) -> StatusSnapshot:
    config, client = _resolve(config, client)
    return await make_job_manager(client, config).cancel(job_id)
