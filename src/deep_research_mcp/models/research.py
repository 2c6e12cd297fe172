"""Research pipeline models — plan, search, validation and final result.

``ResearchPlan`` and ``ValidationResult`` are the structured outputs the
planner and validator stages parse model text into. ``ResearchResult`` is
what ``run_research`` hands back to the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, field_validator

from .evidence import Conflict, FactRow

MAX_PLAN_QUERIES = 10


def _positive_or(default: int) -> Callable[[Any], int]:
    def _coerce(value: Any) -> int:
        try:
            n = int(float(value))
        except (TypeError, ValueError):
            return default
        return n if n > 0 else default

    return _coerce


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


class StopCondition(BaseModel):
    """When the planner considers coverage sufficient."""

    min_distinct_sources: Annotated[int, BeforeValidator(_positive_or(3))] = 3
    min_facts: Annotated[int, BeforeValidator(_positive_or(8))] = 8
    no_new_facts_rounds: Annotated[int, BeforeValidator(_positive_or(2))] = 2


class ResearchPlan(BaseModel):
    """Output schema of the planning stage."""

    queries: list[str] = Field(default_factory=list)
    preferred_source_types: list[str] = Field(default_factory=list)
    must_answer: list[str] = Field(default_factory=list)
    avoid: list[str] = Field(default_factory=list)
    stop_when: StopCondition = Field(default_factory=StopCondition)

    @field_validator("queries", mode="before")
    @classmethod
    def _cap_queries(cls, value: Any) -> list[str]:
        return _str_list(value)[:MAX_PLAN_QUERIES]

    @field_validator("preferred_source_types", "must_answer", "avoid", mode="before")
    @classmethod
    def _clean_lists(cls, value: Any) -> list[str]:
        return _str_list(value)

    @field_validator("stop_when", mode="before")
    @classmethod
    def _stop_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, StopCondition)) else {}

    @classmethod
    def fallback(cls, question: str) -> ResearchPlan:
        """Plan used when the planner output cannot be parsed."""
        return cls(
            queries=[question],
            preferred_source_types=[
                "official docs", "gov/edu", "standards/specs", "peer-reviewed", "reputable news",
            ],
            must_answer=["Answer the question with citations"],
            avoid=["low-quality blogs", "social posts unless corroborated"],
        )


class SearchHit(BaseModel):
    """One web search result surfaced in a ``web_search_call`` output item."""

    url: str
    title: str | None = None
    snippet: str | None = None


class SearchOutcome(BaseModel):
    """Output of the search stage: model summary plus raw hits."""

    query: str
    response_id: str | None = None
    text: str = ""
    results: list[SearchHit] = Field(default_factory=list)

    @property
    def evidence_text(self) -> str:
        """Summary text followed by a block listing every hit, for the extractor."""
        blob = self.text
        if self.results:
            blob += "\n\n--- Web Search Results ---\n"
            for hit in self.results:
                blob += (
                    f"\nSource: {hit.url}\nTitle: {hit.title or 'Unknown'}\n"
                    f"Snippet: {hit.snippet or ''}\n"
                )
        return blob


class ValidationResult(BaseModel):
    """Output schema of the validation stage."""

    supported: bool = Field(
        default=False, validation_alias=AliasChoices("supported", "ok"),
    )
    issues: list[str] = Field(default_factory=list)
    revised_answer: str = ""

    @field_validator("issues", mode="before")
    @classmethod
    def _clean_issues(cls, value: Any) -> list[str]:
        return _str_list(value)

    @field_validator("revised_answer", mode="before")
    @classmethod
    def _revised_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @classmethod
    def fallback(cls, draft: str) -> ValidationResult:
        return cls(supported=False, issues=["parse failure"], revised_answer=draft)

    def final_answer(self, draft: str) -> str:
        """The draft when supported, otherwise the revision (or the draft if empty)."""
        if self.supported:
            return draft
        return self.revised_answer.strip() or draft


class ResearchResult(BaseModel):
    """Outcome of one synchronous research run."""

    ok: bool = True
    mode: str = "research"
    question: str
    started_at: str
    finished_at: str | None = None
    config: dict = Field(default_factory=dict)
    plan: ResearchPlan | None = None
    fact_table: list[FactRow] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    answer: str = ""
    validation: ValidationResult | None = None
    stop_reason: str | None = None
    rounds: int = 0
    error: dict | None = None
    trace: list[dict] = Field(default_factory=list)
