"""Tests for evidence scoring, filtering, dedupe and ranking."""

from __future__ import annotations

import pytest

from deep_research_mcp.evidence import (
    EvidenceSet,
    dedupe,
    fact_table,
    filter_acceptable,
    normalize_candidate,
    rank,
    score_source_quality,
    url_allowed,
)
from deep_research_mcp.models.evidence import CandidateFact, Conflict, Fact


def _fact(text="claim", url="https://example.org/a", confidence=3, quality=2, **kw) -> Fact:
    return Fact(text=text, url=url, confidence=confidence, source_quality=quality, **kw)


class TestScoreSourceQuality:
    @pytest.mark.parametrize("url,score", [
        ("https://nist.gov/x", 5),
        ("https://www.nasa.gov", 5),
        ("https://cs.stanford.edu/people", 5),
        ("https://www.w3.org/TR/html", 4),
        ("https://docs.python.org/3/", 4),
        ("https://arxiv.org/abs/1234", 4),
        ("https://en.wikipedia.org/wiki/X", 3),
        ("https://example.medium.com/post", 2),
        ("https://someone.substack.com/p/1", 2),
        ("https://x.com/user/status/1", 1),
        ("https://www.reddit.com/r/a", 1),
        ("https://unknown-site.io/page", 2),
        ("", 2),
    ])
    def test_tiers(self, url, score):
        assert score_source_quality(url) == score

    def test_deterministic(self):
        url = "https://developer.mozilla.org/en-US/docs/Web"
        assert score_source_quality(url) == score_source_quality(url) == 4

    def test_first_matching_tier_wins(self):
        """A gov host outranks a blog-looking path."""
        assert score_source_quality("https://data.gov/wordpress/post") == 5


class TestUrlAllowed:
    def test_empty_allows_everything(self):
        assert url_allowed("not a url", []) is True

    def test_dot_suffix(self):
        assert url_allowed("https://epa.gov/report", [".gov"]) is True
        assert url_allowed("https://epa.com/report", [".gov"]) is False

    def test_exact_host_or_subdomain(self):
        assert url_allowed("https://nih.gov/a", ["nih.gov"]) is True
        assert url_allowed("https://www.ncbi.nih.gov/a", ["nih.gov"]) is True
        assert url_allowed("https://fakenih.gov/a", ["nih.gov"]) is False

    def test_case_insensitive(self):
        assert url_allowed("https://Docs.Python.org/3", ["PYTHON.org"]) is True

    def test_unparseable_rejected_when_restricted(self):
        assert url_allowed("not a url", ["example.com"]) is False


class TestNormalizeCandidate:
    def test_trims_and_scores(self):
        fact = normalize_candidate(
            CandidateFact(fact=" water boils ", url="  https://x.edu/page ", confidence=4)
        )
        assert fact is not None
        assert fact.text == "water boils"
        assert fact.url == "https://x.edu/page"
        assert fact.source_quality == 5
        assert fact.confidence == 4

    def test_low_trust_confidence_capped(self):
        fact = normalize_candidate(
            CandidateFact(fact="hot take", url="https://x.com/u/status/1", confidence=5)
        )
        assert fact.source_quality == 1
        assert fact.confidence == 3

    def test_missing_text_or_url(self):
        assert normalize_candidate(CandidateFact(fact="x", url=None)) is None
        assert normalize_candidate(CandidateFact(fact="  ", url="https://a.gov")) is None

    def test_confidence_coerced_from_loose_values(self):
        assert CandidateFact(confidence="4").confidence == 4
        assert CandidateFact(confidence=9).confidence == 5
        assert CandidateFact(confidence=None).confidence == 1


class TestFilterAcceptable:
    def test_requires_confidence_two(self):
        kept = filter_acceptable([_fact("a", confidence=1), _fact("b", confidence=2)])
        assert [f.text for f in kept] == ["b"]

    def test_requires_absolute_http_url(self):
        kept = filter_acceptable([_fact(url="/relative"), _fact(url="ftp://a.org/x"), _fact("ok")])
        assert [f.text for f in kept] == ["ok"]

    def test_force_domains(self):
        facts = [
            _fact("gov", url="https://epa.gov/report", quality=5),
            _fact("com", url="https://epa.com/report"),
        ]
        assert [f.text for f in filter_acceptable(facts, [".gov"])] == ["gov"]

    def test_no_retained_low_trust_fact_exceeds_three(self):
        candidates = [
            CandidateFact(fact=f"c{i}", url=url, confidence=5)
            for i, url in enumerate([
                "https://x.com/a", "https://medium.com/b", "https://nist.gov/c", "https://unknown.io/d",
            ])
        ]
        kept = filter_acceptable(f for f in map(normalize_candidate, candidates) if f)
        assert kept
        assert not [f for f in kept if f.source_quality <= 2 and f.confidence > 3]


class TestDedupe:
    def test_first_occurrence_wins(self):
        first = _fact("The Sky is Blue", url="https://a.org")
        dup = _fact("  the sky   is blue ", url="https://b.org")
        other = _fact("Grass is green")
        assert dedupe([first, dup, other]) == [first, other]

    def test_keys_unique_after_dedupe(self):
        facts = [_fact(t) for t in ["A b", "a B", "a  b", "c"]]
        keys = [" ".join(f.text.split()).lower() for f in dedupe(facts)]
        assert len(keys) == len(set(keys))


class TestRank:
    def test_quality_then_confidence_stable(self):
        a = _fact("a", quality=5, confidence=3)
        b = _fact("b", quality=5, confidence=4)
        c = _fact("c", quality=2, confidence=5)
        assert rank([a, b, c]) == [b, a, c]

    def test_ties_keep_input_order(self):
        a = _fact("a", quality=4, confidence=3)
        b = _fact("b", quality=4, confidence=3)
        assert rank([a, b]) == [a, b]

    def test_fact_table_ids(self):
        rows = fact_table([_fact("a", title="T"), _fact("b")])
        assert [r.id for r in rows] == ["F1", "F2"]
        assert rows[0].fact == "a"
        assert rows[0].title == "T"


class TestEvidenceSet:
    def test_merge_counts_only_new(self):
        ev = EvidenceSet()
        assert ev.merge([_fact("a", url="https://a.org"), _fact("b", url="https://b.org")]) == 2
        assert ev.merge([_fact("A", url="https://c.org"), _fact("c", url="https://a.org")]) == 1
        assert ev.fact_count == 3
        assert ev.sources == {"https://a.org", "https://b.org"}

    def test_conflicts_accumulate_without_dedupe(self):
        ev = EvidenceSet()
        conflict = Conflict(topic="t", claim_a="x", source_a="a", claim_b="y", source_b="b")
        ev.add_conflicts([conflict])
        ev.add_conflicts([conflict])
        assert len(ev.conflicts) == 2
