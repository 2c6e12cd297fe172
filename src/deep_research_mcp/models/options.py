"""Per-request research options.

Every numeric option is clamped into its valid range instead of being
rejected, and unknown enum strings fall back to the default, so a sloppy
caller still gets a run with sane limits.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..types import ReasoningEffort, ReasoningSummary, WebContextSize

DEEP_RESEARCH_MARKER = "deep-research"
DEFAULT_MAX_TOOL_CALLS = 50


def is_deep_research_model(model: str | None) -> bool:
    """Deep-research models run as one long background response."""
    return bool(model) and DEEP_RESEARCH_MARKER in model


def clamp_int(value: Any, lo: int, hi: int) -> int:
    """Truncate to int and clamp; non-numeric input yields ``lo``."""
    try:
        n = float(value)
    except (TypeError, ValueError):
        return lo
    if not math.isfinite(n):
        return lo
    return max(lo, min(hi, int(n)))


def clamp_float(value: Any, lo: float, hi: float) -> float | None:
    """Clamp to ``[lo, hi]``; missing or non-numeric input yields None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(n):
        return None
    return max(lo, min(hi, n))


def _choice(value: Any, allowed: tuple[str, ...]) -> str | None:
    if not value:
        return None
    s = str(value).strip().lower()
    return s if s in allowed else None


class UserLocation(BaseModel):
    """Approximate user location forwarded to the web search tool."""

    type: str = "approximate"
    country: str | None = None
    city: str | None = None
    region: str | None = None
    timezone: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> UserLocation | None:
        """Normalize a loose dict; returns None when no usable field is present."""
        if not isinstance(raw, dict):
            return None
        fields: dict[str, str] = {}
        country = raw.get("country")
        if isinstance(country, str) and country.strip():
            fields["country"] = country.strip().upper()[:2]
        for key in ("city", "region", "timezone"):
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                fields[key] = value.strip()
        return cls(**fields) if fields else None

    def to_tool_param(self) -> dict:
        return self.model_dump(exclude_none=True)


class ResearchOptions(BaseModel):
    """Effective configuration of one research invocation."""

    model: str
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    reasoning_effort: ReasoningEffort | None = None
    instructions: str | None = None

    max_search_rounds: int = 4
    max_facts: int = 18
    min_new_facts_per_round: int = 2

    web_context_size: WebContextSize = "medium"
    force_domains: list[str] = Field(default_factory=list)
    user_location: UserLocation | None = None

    store: bool = True

    background: bool = False
    code_interpreter: bool = False
    max_tool_calls: int | None = None
    reasoning_summary: ReasoningSummary | None = None

    max_retries: int = 3

    @field_validator("temperature", mode="before")
    @classmethod
    def _clamp_temperature(cls, value: Any) -> float | None:
        return clamp_float(value, 0.0, 2.0)

    @field_validator("top_p", mode="before")
    @classmethod
    def _clamp_top_p(cls, value: Any) -> float | None:
        return clamp_float(value, 0.0, 1.0)

    @field_validator("max_output_tokens", mode="before")
    @classmethod
    def _clamp_max_output_tokens(cls, value: Any) -> int | None:
        return clamp_int(value, 1, 128000) if value else None

    @field_validator("max_tool_calls", mode="before")
    @classmethod
    def _clamp_max_tool_calls(cls, value: Any) -> int | None:
        return clamp_int(value, 1, 1000) if value else None

    @field_validator("reasoning_effort", mode="before")
    @classmethod
    def _normalize_effort(cls, value: Any) -> str | None:
        return _choice(value, ("low", "medium", "high"))

    @field_validator("reasoning_summary", mode="before")
    @classmethod
    def _normalize_summary(cls, value: Any) -> str | None:
        return _choice(value, ("auto", "concise", "detailed"))

    @field_validator("web_context_size", mode="before")
    @classmethod
    def _normalize_context_size(cls, value: Any) -> str:
        return _choice(value, ("low", "medium", "high")) or "medium"

    @field_validator("max_search_rounds", mode="before")
    @classmethod
    def _clamp_rounds(cls, value: Any) -> int:
        return clamp_int(4 if value is None else value, 1, 10)

    @field_validator("max_facts", mode="before")
    @classmethod
    def _clamp_max_facts(cls, value: Any) -> int:
        return clamp_int(18 if value is None else value, 5, 50)

    @field_validator("min_new_facts_per_round", mode="before")
    @classmethod
    def _clamp_min_new(cls, value: Any) -> int:
        return clamp_int(2 if value is None else value, 0, 10)

    @field_validator("max_retries", mode="before")
    @classmethod
    def _clamp_retries(cls, value: Any) -> int:
        return clamp_int(3 if value is None else value, 0, 5)

    @field_validator("force_domains", mode="before")
    @classmethod
    def _clean_domains(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [d.strip().lower() for d in value if isinstance(d, str) and d.strip()]

    @field_validator("user_location", mode="before")
    @classmethod
    def _normalize_location(cls, value: Any) -> UserLocation | None:
        if isinstance(value, UserLocation) or value is None:
            return value
        return UserLocation.from_raw(value)

    @field_validator("instructions", mode="before")
    @classmethod
    def _clean_instructions(cls, value: Any) -> str | None:
        return value if isinstance(value, str) and value.strip() else None

    @field_validator("store", mode="before")
    @classmethod
    def _store_default_true(cls, value: Any) -> bool:
        return value is not False

    @field_validator("background", "code_interpreter", mode="before")
    @classmethod
    def _strict_flags(cls, value: Any) -> bool:
        return value is True

    @model_validator(mode="after")
    def _deep_research_defaults(self) -> ResearchOptions:
        if self.deep_research:
            self.web_context_size = "medium"
            if self.max_tool_calls is None:
                self.max_tool_calls = DEFAULT_MAX_TOOL_CALLS
        return self

    @property
    def deep_research(self) -> bool:
        return is_deep_research_model(self.model)

    @classmethod
    def from_request(cls, raw: dict | None, *, default_model: str) -> ResearchOptions:
        """Build options from a loose request dict (camelCase or snake_case keys)."""
        raw = dict(raw or {})
        aliases = {
            "maxSearchRounds": "max_search_rounds",
            "maxFacts": "max_facts",
            "minNewFactsPerRound": "min_new_facts_per_round",
            "webContextSize": "web_context_size",
            "forceDomains": "force_domains",
            "userLocation": "user_location",
            "codeInterpreter": "code_interpreter",
            "maxToolCalls": "max_tool_calls",
            "reasoningSummary": "reasoning_summary",
            "maxRetries": "max_retries",
        }
        data: dict[str, Any] = {}
        for key, value in raw.items():
            name = aliases.get(key, key)
            if name in cls.model_fields:
                data[name] = value
        model = data.get("model")
        data["model"] = model.strip() if isinstance(model, str) and model.strip() else default_model
        return cls(**data)
