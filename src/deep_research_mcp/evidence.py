"""Evidence scoring, filtering, deduplication and ranking.

Everything here is pure: the research loop owns one :class:`EvidenceSet`
per request and feeds it the facts each extraction round produces.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .models.evidence import CandidateFact, Conflict, Fact, FactRow

MIN_ACCEPTED_CONFIDENCE = 2
LOW_TRUST_MAX_CONFIDENCE = 3

# Checked top to bottom; the first tier with a matching substring wins.
_QUALITY_TIERS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (4, ("standards", "ietf.org", "iso.org", "w3.org", "docs.", "developer.", "api-reference")),
    (4, ("acm.org", "ieee.org", "nature.com", "science.org", "arxiv.org")),
    (3, ("wikipedia.org", "britannica.com")),
    (2, ("medium.com", "substack.com", "blogspot", "wordpress")),
    (1, ("x.com", "twitter.com", "reddit.com", "tiktok.com")),
)
_TRUSTED_SUFFIXES = (".gov", ".edu")
UNKNOWN_SOURCE_QUALITY = 2


def _hostname(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def score_source_quality(url: str | None) -> int:
    """Deterministic 1-5 trust score for a source URL.

    gov/edu → 5, standards/docs/research publishers → 4, encyclopedias → 3,
    blog platforms → 2, social media → 1, anything else → 2.
    """
    u = (url or "").strip().lower()
    host = _hostname(u) or ""
    for suffix in _TRUSTED_SUFFIXES:
        if u.endswith(suffix) or f"{suffix}/" in u or host.endswith(suffix):
            return 5
    for score, signals in _QUALITY_TIERS:
        if any(s in u for s in signals):
            return score
    return UNKNOWN_SOURCE_QUALITY


def is_absolute_http_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def url_allowed(url: str, force_domains: Iterable[str]) -> bool:
    """Whether ``url``'s host is permitted by ``force_domains``.

    An empty list allows everything. Entries starting with ``.`` match as a
    plain host suffix; other entries match the exact host or any subdomain.
    Unparseable URLs are rejected once a restriction is in place.
    """
    domains = [d.strip().lower() for d in force_domains if d and d.strip()]
    if not domains:
        return True
    host = _hostname(url)
    if not host:
        return False
    for d in domains:
        if d.startswith("."):
            if host.endswith(d):
                return True
        elif host == d or host.endswith("." + d):
            return True
    return False


def normalize_candidate(candidate: CandidateFact) -> Fact | None:
    """Score a raw extracted fact; None when it lacks claim text or a URL.

    Low-trust sources (quality <= 2) cannot carry confidence above 3.
    """
    text = (candidate.fact or "").strip()
    url = (candidate.url or "").strip()
    if not text or not url:
        return None
    quality = score_source_quality(url)
    confidence = candidate.confidence
    if quality <= 2 and confidence > LOW_TRUST_MAX_CONFIDENCE:
        confidence = LOW_TRUST_MAX_CONFIDENCE
    return Fact(
        text=text,
        url=url,
        title=candidate.title,
        date=candidate.date,
        confidence=confidence,
        source_quality=quality,
    )


def filter_acceptable(facts: Iterable[Fact], force_domains: Iterable[str] = ()) -> list[Fact]:
    """Keep facts with text, an absolute http(s) URL, confidence >= 2 and an allowed host."""
    domains = list(force_domains)
    return [
        f for f in facts
        if f.text.strip()
        and is_absolute_http_url(f.url)
        and f.confidence >= MIN_ACCEPTED_CONFIDENCE
        and url_allowed(f.url, domains)
    ]


def dedupe_key(text: str) -> str:
    return " ".join(text.split()).lower()


def dedupe(facts: Iterable[Fact]) -> list[Fact]:
    """Stable, first occurrence wins; empty claims are dropped."""
    seen: set[str] = set()
    out: list[Fact] = []
    for f in facts:
        key = dedupe_key(f.text)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(f)
    return out


def rank(facts: Iterable[Fact]) -> list[Fact]:
    """Stable sort: source quality descending, then confidence descending."""
    return sorted(facts, key=lambda f: (-f.source_quality, -f.confidence))


def fact_table(ranked: list[Fact]) -> list[FactRow]:
    """Number ranked facts ``F1..Fn`` in the order the synthesizer cites them."""
    return [
        FactRow(
            id=f"F{i}",
            fact=f.text,
            url=f.url,
            title=f.title,
            date=f.date,
            confidence=f.confidence,
            source_quality=f.source_quality,
        )
        for i, f in enumerate(ranked, start=1)
    ]


@dataclass
class EvidenceSet:
    """Facts, conflicts and distinct sources accumulated by one research run."""

    facts: list[Fact] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    sources: set[str] = field(default_factory=set)

    def merge(self, new_facts: Iterable[Fact]) -> int:
        """Dedupe ``new_facts`` into the set; returns how many were actually added."""
        before = len(self.facts)
        self.facts = dedupe([*self.facts, *new_facts])
        self.sources.update(f.url for f in self.facts)
        return len(self.facts) - before

    def add_conflicts(self, conflicts: Iterable[Conflict]) -> None:
        self.conflicts.extend(conflicts)

    @property
    def fact_count(self) -> int:
        return len(self.facts)

    @property
    def source_count(self) -> int:
        return len(self.sources)
