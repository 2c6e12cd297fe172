"""Pipeline stages — one Responses call each, with typed parse-and-fallback.

Provider failures propagate as :class:`~.errors.ProviderError`. Output
that does not fit a stage's schema never does: it is logged, recorded in
the trace as ``parse_failure`` and replaced by the stage's default.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from .client import CompletionRequest, ProviderResponse
from .errors import StageParseError
from .models.evidence import Conflict, ExtractionResult, Fact
from .models.options import ResearchOptions
from .models.research import ResearchPlan, SearchOutcome, ValidationResult
from .parsing import parse_stage_output
from .payloads import build_payload_options, build_tools
from .prompts.research import EXTRACT, PLANNER, SEARCH, SYNTHESIZE, VALIDATE
from .tracing import Trace
from .types import WebContextSize

logger = logging.getLogger(__name__)

# Stages that only reason over text already gathered keep web search cheap.
AUXILIARY_CONTEXT: WebContextSize = "low"


class CompletionClient(Protocol):
    async def complete(self, request: CompletionRequest, *, max_retries: int = 3) -> ProviderResponse: ...


def format_fact_lines(facts: list[Fact]) -> str:
    """``[F1] claim (src: url)`` lines, numbered in the given order."""
    return "\n".join(f"[F{i}] {f.text} (src: {f.url})" for i, f in enumerate(facts, start=1))


class PipelineStages:
    """Plan, search, extract, synthesize and validate for one research run."""

    def __init__(self, client: CompletionClient, options: ResearchOptions, trace: Trace) -> None:
        self.client = client
        self.options = options
        self.trace = trace

    async def _call(self, prompt: str, context_size: WebContextSize | None = None) -> ProviderResponse:
        request = CompletionRequest(
            model=self.options.model,
            input=prompt,
            tools=build_tools(self.options, context_size),
            options=build_payload_options(self.options),
        )
        return await self.client.complete(request, max_retries=self.options.max_retries)

    def _parse_failed(self, stage: str, exc: StageParseError) -> None:
        logger.warning("%s output unparseable, using default: %s", stage, exc)
        self.trace.record("parse_failure", stage=stage, error=str(exc))

    async def plan(self, question: str) -> ResearchPlan:
        resp = await self._call(PLANNER.format(question=question), AUXILIARY_CONTEXT)
        try:
            plan = parse_stage_output(resp.text, ResearchPlan)
        except StageParseError as exc:
            self._parse_failed("plan", exc)
            return ResearchPlan.fallback(question)
        if not plan.queries:
            plan = plan.model_copy(update={"queries": [question]})
        return plan

    async def search(self, query: str) -> SearchOutcome:
        resp = await self._call(SEARCH.format(query=query))
        return SearchOutcome(
            query=query,
            response_id=resp.id,
            text=resp.text,
            results=resp.search_results,
        )

    async def extract(self, question: str, snippets: str) -> ExtractionResult:
        resp = await self._call(
            EXTRACT.format(question=question, snippets=snippets), AUXILIARY_CONTEXT,
        )
        try:
            return parse_stage_output(resp.text, ExtractionResult)
        except StageParseError as exc:
            self._parse_failed("extract", exc)
            return ExtractionResult()

    async def synthesize(self, question: str, facts: list[Fact], conflicts: list[Conflict]) -> str:
        prompt = SYNTHESIZE.format(
            question=question,
            fact_lines=format_fact_lines(facts),
            conflicts_json=json.dumps([c.model_dump() for c in conflicts], indent=2),
        )
        resp = await self._call(prompt, AUXILIARY_CONTEXT)
        return resp.text

    async def validate(self, question: str, facts: list[Fact], draft: str) -> ValidationResult:
        prompt = VALIDATE.format(
            question=question, fact_lines=format_fact_lines(facts), draft=draft,
        )
        resp = await self._call(prompt, AUXILIARY_CONTEXT)
        try:
            return parse_stage_output(resp.text, ValidationResult)
        except StageParseError as exc:
            self._parse_failed("validate", exc)
            return ValidationResult.fallback(draft)
