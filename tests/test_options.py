"""Tests for per-request option clamping and payload building."""

from __future__ import annotations

from deep_research_mcp.models.options import ResearchOptions, UserLocation, is_deep_research_model
from deep_research_mcp.payloads import build_payload_options, build_tools, build_web_search_tool


def _opts(**raw) -> ResearchOptions:
    return ResearchOptions.from_request(raw, default_model="gpt-4o-mini")


class TestResearchOptions:
    def test_defaults(self):
        opts = _opts()
        assert opts.model == "gpt-4o-mini"
        assert opts.max_search_rounds == 4
        assert opts.max_facts == 18
        assert opts.min_new_facts_per_round == 2
        assert opts.web_context_size == "medium"
        assert opts.store is True
        assert opts.max_retries == 3
        assert opts.max_tool_calls is None

    def test_integers_clamped(self):
        opts = _opts(maxSearchRounds=99, maxFacts=1, minNewFactsPerRound=-3, maxRetries=12)
        assert opts.max_search_rounds == 10
        assert opts.max_facts == 5
        assert opts.min_new_facts_per_round == 0
        assert opts.max_retries == 5

    def test_non_numeric_clamps_to_minimum(self):
        assert _opts(max_search_rounds="many").max_search_rounds == 1

    def test_floats_clamped_or_dropped(self):
        opts = _opts(temperature=5, top_p=-1)
        assert opts.temperature == 2.0
        assert opts.top_p == 0.0
        assert _opts(temperature="hot").temperature is None

    def test_unknown_enums_fall_back(self):
        opts = _opts(reasoning_effort="max", reasoningSummary="DETAILED", webContextSize="huge")
        assert opts.reasoning_effort is None
        assert opts.reasoning_summary == "detailed"
        assert opts.web_context_size == "medium"

    def test_user_location_normalized(self):
        opts = _opts(userLocation={"country": "gbr", "city": " London ", "region": 4})
        assert opts.user_location == UserLocation(country="GB", city="London")
        assert _opts(userLocation={}).user_location is None

    def test_force_domains_cleaned(self):
        assert _opts(forceDomains=[" .GOV ", "", None, "nih.gov"]).force_domains == [".gov", "nih.gov"]

    def test_deep_research_defaults(self):
        opts = _opts(model="o3-deep-research", webContextSize="low")
        assert is_deep_research_model(opts.model)
        assert opts.deep_research is True
        assert opts.web_context_size == "medium"
        assert opts.max_tool_calls == 50

    def test_max_tool_calls_clamped(self):
        assert _opts(model="o3-deep-research", maxToolCalls=5000).max_tool_calls == 1000


class TestPayloadBuilders:
    def test_standard_model_tools(self):
        opts = _opts(userLocation={"country": "us"})
        tool = build_web_search_tool(opts, "low")
        assert tool == {
            "type": "web_search_preview",
            "search_context_size": "low",
            "user_location": {"type": "approximate", "country": "US"},
        }
        assert build_tools(_opts(codeInterpreter=True)) == [
            {"type": "web_search_preview", "search_context_size": "medium"},
        ]

    def test_deep_research_tools(self):
        opts = _opts(model="o4-mini-deep-research", codeInterpreter=True)
        tools = build_tools(opts, "low")
        assert tools[0]["search_context_size"] == "medium"
        assert tools[1] == {"type": "code_interpreter", "container": {"type": "auto"}}

    def test_payload_options_minimal(self):
        assert build_payload_options(_opts()) == {}

    def test_payload_options_full(self):
        opts = _opts(
            temperature=0.3,
            top_p=0.9,
            max_output_tokens=2000,
            instructions="Be terse",
            store=False,
            reasoning_effort="high",
            reasoning_summary="auto",
        )
        assert build_payload_options(opts) == {
            "temperature": 0.3,
            "top_p": 0.9,
            "max_output_tokens": 2000,
            "instructions": "Be terse",
            "store": False,
            "reasoning": {"effort": "high", "summary": "auto"},
        }

    def test_payload_options_deep_research(self):
        opts = _opts(model="o3-deep-research", background=True)
        assert build_payload_options(opts) == {"background": True, "max_tool_calls": 50}
