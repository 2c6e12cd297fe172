"""Research pipeline prompt templates — plan, search, extract, synthesize, validate."""

from __future__ import annotations

PLANNER = """\
You are a research planner. Create a web research plan for the user question.

User question:
{question}

Return VALID JSON ONLY with this schema:
{{
  "queries": ["..."],
  "preferred_source_types": ["official docs", "gov/edu", "standards/specs", "peer-reviewed", "reputable news"],
  "must_answer": ["..."],
  "avoid": ["low-quality blogs", "social posts unless corroborated"],
  "stop_when": {{
    "min_distinct_sources": 3,
    "min_facts": 8,
    "no_new_facts_rounds": 2
  }}
}}

Rules:
- 6 to 10 queries.
- Queries should be specific and varied.
- Put the most important query first."""

SEARCH = """\
Search for: {query}

After searching, provide a structured summary of what you found. \
For each piece of information, include the source URL."""

EXTRACT = """\
You are a careful fact extractor. Use ONLY the provided snippets.

User question:
{question}

Snippets:
{snippets}

Return VALID JSON ONLY with this schema:
{{
  "facts": [
    {{
      "fact": "one precise factual statement",
      "url": "source url",
      "title": "source title if available",
      "date": "publication date if available else null",
      "confidence": 1
    }}
  ],
  "conflicts": [
    {{
      "topic": "what conflicts",
      "claim_a": "short claim",
      "source_a": "url",
      "claim_b": "short claim",
      "source_b": "url"
    }}
  ]
}}

Rules:
- Facts must be atomic and verifiable.
- Skip opinions and speculation.
- confidence: 1-5 based on snippet clarity and authority.
- Do not invent titles or dates if absent."""

SYNTHESIZE = """\
You are a deep research synthesizer.
Answer the user's question using ONLY the provided facts.
Cite evidence inline with [F#] markers.

User question:
{question}

Facts:
{fact_lines}

Conflicts:
{conflicts_json}

Write the best possible answer:
- Use short, direct sections.
- If sources conflict, say so explicitly and cite both.
- Do not add facts not present above."""

VALIDATE = """\
You are a strict validator.

User question:
{question}

Allowed evidence (facts):
{fact_lines}

Draft answer:
{draft}

Task:
1) Identify any claim in the draft that is not supported by the facts.
2) If unsupported claims exist, rewrite the answer to remove or adjust them.
3) Keep citations inline like [F#] after the sentence they support.

Return VALID JSON ONLY:
{{
  "supported": true,
  "issues": ["..."],
  "revised_answer": "..."
}}"""

DEEP_RESEARCH = """\
Research and answer this question thoroughly with citations:

{question}"""
