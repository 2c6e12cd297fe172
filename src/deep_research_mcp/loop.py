"""Bounded search/extract loop that accumulates evidence, then answers.

Rounds are strictly sequential. After each extraction the stop rules are
checked in priority order (fact budget, coverage, stagnation); when none
fires the loop moves on until ``max_search_rounds`` is spent.
"""

from __future__ import annotations

import logging

from .evidence import EvidenceSet, fact_table, filter_acceptable, normalize_candidate, rank
from .models.options import ResearchOptions
from .models.research import ResearchPlan, ResearchResult, StopCondition
from .stages import PipelineStages
from .tracing import Trace, utc_now

logger = logging.getLogger(__name__)

STOP_MAX_FACTS = "max_facts_reached"
STOP_COVERAGE = "coverage_reached"
STOP_STAGNATION = "stagnation"
STOP_ROUND_BUDGET = "round_budget_exhausted"


def next_stagnation(counter: int, new_facts: int, min_new_facts: int) -> int:
    """Consecutive sub-threshold rounds; any round meeting the threshold resets to 0."""
    return counter + 1 if new_facts < min_new_facts else 0


def check_stop(
    *,
    fact_count: int,
    source_count: int,
    stagnant_rounds: int,
    max_facts: int,
    stop: StopCondition,
) -> str | None:
    """First stop reason that applies, or None to keep searching."""
    if fact_count >= max_facts:
        return STOP_MAX_FACTS
    if source_count >= stop.min_distinct_sources and fact_count >= stop.min_facts:
        return STOP_COVERAGE
    if stagnant_rounds >= stop.no_new_facts_rounds:
        return STOP_STAGNATION
    return None


def query_for_round(plan: ResearchPlan, round_no: int, question: str) -> str:
    """Plan queries are reused cyclically when rounds outnumber them."""
    if not plan.queries:
        return question
    return plan.queries[(round_no - 1) % len(plan.queries)]


class ResearchLoop:
    """Drives :class:`PipelineStages` for one question and owns its evidence."""

    def __init__(self, stages: PipelineStages, options: ResearchOptions, trace: Trace) -> None:
        self.stages = stages
        self.options = options
        self.trace = trace
        self.evidence = EvidenceSet()

    async def _round(self, question: str, plan: ResearchPlan, round_no: int) -> int:
        """Search, extract and merge once. Returns the number of new facts."""
        query = query_for_round(plan, round_no, question)
        search = await self.stages.search(query)
        snippets = search.evidence_text
        self.trace.record(
            "search",
            round=round_no,
            query=query,
            response_id=search.response_id,
            snippets_len=len(snippets),
            results=len(search.results),
        )

        extracted = await self.stages.extract(question, snippets)
        normalized = [f for f in map(normalize_candidate, extracted.facts) if f is not None]
        accepted = filter_acceptable(normalized, self.options.force_domains)
        new_facts = self.evidence.merge(accepted)
        self.evidence.add_conflicts(extracted.conflicts)

        self.trace.record(
            "extract",
            round=round_no,
            raw_fact_count=len(extracted.facts),
            filtered_fact_count=len(accepted),
            new_facts=new_facts,
            total_facts=self.evidence.fact_count,
            distinct_sources=self.evidence.source_count,
            conflicts=len(extracted.conflicts),
        )
        return new_facts

    async def run(self, question: str) -> ResearchResult:
        started_at = utc_now()
        plan = await self.stages.plan(question)
        self.trace.record("plan", plan=plan.model_dump())

        stagnant = 0
        rounds = 0
        stop_reason = STOP_ROUND_BUDGET
        for round_no in range(1, self.options.max_search_rounds + 1):
            rounds = round_no
            new_facts = await self._round(question, plan, round_no)
            stagnant = next_stagnation(stagnant, new_facts, self.options.min_new_facts_per_round)
            reason = check_stop(
                fact_count=self.evidence.fact_count,
                source_count=self.evidence.source_count,
                stagnant_rounds=stagnant,
                max_facts=self.options.max_facts,
                stop=plan.stop_when,
            )
            if reason:
                stop_reason = reason
                break
        self.trace.record("stop", reason=stop_reason, round=rounds)
        logger.info("Research stopped after %d round(s): %s", rounds, stop_reason)

        ranked = rank(self.evidence.facts)
        draft = await self.stages.synthesize(question, ranked, self.evidence.conflicts)
        self.trace.record("draft", draft_len=len(draft))

        validation = await self.stages.validate(question, ranked, draft)
        self.trace.record("validate", supported=validation.supported, issues=validation.issues)

        return ResearchResult(
            ok=True,
            question=question,
            started_at=started_at,
            finished_at=utc_now(),
            config=self.options.model_dump(mode="json"),
            plan=plan,
            fact_table=fact_table(ranked),
            conflicts=list(self.evidence.conflicts),
            answer=validation.final_answer(draft),
            validation=validation,
            stop_reason=stop_reason,
            rounds=rounds,
            trace=self.trace.events,
        )
