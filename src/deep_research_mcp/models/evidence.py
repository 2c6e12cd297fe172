"""Evidence models — extracted facts and conflicting claims.

``CandidateFact`` and ``ExtractionResult`` mirror the JSON the extraction
stage asks the model for and are deliberately lenient (every field
optional). ``Fact`` is the normalized, scored record that survives into
the accumulated evidence set.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_confidence(value: Any) -> int:
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return 1
    return max(1, min(5, n))


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class CandidateFact(BaseModel):
    """A fact as returned by the extractor, before scoring and filtering."""

    fact: str | None = None
    url: str | None = None
    title: str | None = None
    date: str | None = None
    confidence: int = 1

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> int:
        return _coerce_confidence(value)

    @field_validator("fact", "url", "title", "date", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        return _blank_to_none(value)


class Conflict(BaseModel):
    """Two sources disagreeing about one topic."""

    topic: str = ""
    claim_a: str = ""
    source_a: str = ""
    claim_b: str = ""
    source_b: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)


class ExtractionResult(BaseModel):
    """Output schema of the extraction stage."""

    facts: list[CandidateFact] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)

    @field_validator("facts", "conflicts", mode="before")
    @classmethod
    def _objects_only(cls, value: Any) -> list[dict]:
        """Null or non-list becomes []; stray non-object entries are dropped."""
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, dict)]


class Fact(BaseModel):
    """A normalized, scored claim. Immutable once accepted."""

    model_config = ConfigDict(frozen=True)

    text: str
    url: str
    title: str | None = None
    date: str | None = None
    confidence: int = Field(ge=1, le=5)
    source_quality: int = Field(ge=1, le=5)


class FactRow(BaseModel):
    """One row of the ranked fact table; ``id`` matches the ``[F#]`` citations."""

    id: str
    fact: str
    url: str
    title: str | None = None
    date: str | None = None
    confidence: int
    source_quality: int
