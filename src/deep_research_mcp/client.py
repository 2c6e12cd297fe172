"""Shared Responses API client with retry and response normalization."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from pydantic import BaseModel, Field

from .config import DEFAULT_BASE_URL, ServerConfig
from .errors import (
    MalformedResponseError,
    TransientProviderError,
    provider_error_from_response,
)
from .models.research import SearchHit
from .retry import with_retry
from .types import RESPONSE_ID_PATTERN

logger = logging.getLogger(__name__)

_TEXT_SEGMENT_TYPES = ("output_text", "text")
_RESPONSE_ID_RE = re.compile(RESPONSE_ID_PATTERN)


def extract_text(data: dict) -> str:
    """User-visible text of a response.

    Prefers the aggregated ``output_text`` field; otherwise joins every
    text-bearing content segment of ``output`` in order.
    """
    if not isinstance(data, dict):
        return ""
    output_text = data.get("output_text")
    if isinstance(output_text, str) and output_text:
        return output_text.strip()

    chunks: list[str] = []
    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if isinstance(content, list):
            for part in content:
                if (
                    isinstance(part, dict)
                    and part.get("type") in _TEXT_SEGMENT_TYPES
                    and isinstance(part.get("text"), str)
                    and part["text"]
                ):
                    chunks.append(part["text"])
        elif isinstance(content, str) and content:
            chunks.append(content)
    return "\n".join(chunks).strip()


def _hits_from(entries: Any) -> list[SearchHit]:
    hits: list[SearchHit] = []
    if not isinstance(entries, list):
        return hits
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("url"):
            continue
        hits.append(
            SearchHit(
                url=str(entry["url"]),
                title=entry.get("title") or None,
                snippet=entry.get("snippet") or entry.get("text") or None,
            )
        )
    return hits


def _hits_from_call(call: dict) -> list[SearchHit]:
    hits = _hits_from(call.get("results"))
    action = call.get("action")
    if isinstance(action, dict):
        hits.extend(_hits_from(action.get("sources")))
    return hits


def extract_search_results(data: dict) -> list[SearchHit]:
    """Search hits from every ``web_search_call`` segment, in document order."""
    results: list[SearchHit] = []
    if not isinstance(data, dict):
        return results
    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        if item.get("type") == "web_search_call":
            results.extend(_hits_from_call(item))
        content = item.get("content")
        if isinstance(content, list):
            for part in content:
                if isinstance(part, dict) and part.get("type") == "web_search_call":
                    results.extend(_hits_from_call(part))
    return results


class CompletionRequest(BaseModel):
    """One call to ``POST /responses``: model, input, tools and stage options."""

    model: str
    input: str
    tools: list[dict] = Field(default_factory=list)
    options: dict = Field(default_factory=dict)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"model": self.model, "input": self.input}
        if self.tools:
            payload["tools"] = self.tools
        payload.update(self.options)
        return payload


class ProviderResponse(BaseModel):
    """Normalized view over a Responses API object."""

    id: str | None = None
    status: str | None = None
    raw: dict = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict) -> ProviderResponse:
        return cls(
            id=data.get("id") if isinstance(data.get("id"), str) else None,
            status=data.get("status") if isinstance(data.get("status"), str) else None,
            raw=data,
        )

    @property
    def text(self) -> str:
        return extract_text(self.raw)

    @property
    def search_results(self) -> list[SearchHit]:
        return extract_search_results(self.raw)


def _response_path(response_id: str) -> str:
    """``/responses/{id}`` for a well-formed id; anything else never reaches the URL."""
    if not isinstance(response_id, str) or not _RESPONSE_ID_RE.fullmatch(response_id):
        raise ValueError(f"Invalid response id: {response_id!r}")
    return f"/responses/{response_id}"


class ResponsesClient:
    """Thin async wrapper over the Responses API.

    ``complete`` retries transient failures with exponential backoff;
    ``retrieve`` and ``cancel`` are single attempts because the background
    job manager applies its own polling policy.
    """

    _pool: dict[tuple[str, str], ResponsesClient] = {}

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 600.0,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("No OpenAI API key — set OPENAI_API_KEY or pass api_key explicitly")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    @classmethod
    def shared(cls, config: ServerConfig) -> ResponsesClient:
        """Return (or create) the pooled client for the config's key and base URL."""
        key = (config.openai_api_key, config.base_url)
        if key not in cls._pool:
            cls._pool[key] = cls(
                config.openai_api_key,
                base_url=config.base_url,
                timeout=config.request_timeout,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            )
            logger.info("Created Responses client (key …%s)", config.openai_api_key[-4:])
        return cls._pool[key]

    @classmethod
    async def close_all(cls) -> int:
        """Shut down all pooled clients. Returns count closed."""
        count = 0
        for client in list(cls._pool.values()):
            await client.aclose()
            count += 1
        cls._pool.clear()
        logger.info("Closed %d Responses client(s)", count)
        return count

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(self, method: str, path: str, payload: dict | None = None) -> ProviderResponse:
        """Exactly one HTTP call; every failure becomes a ProviderError."""
        try:
            response = await self._http.request(method, path, json=payload)
        except httpx.TransportError as exc:
            raise TransientProviderError(
                f"Transport error calling {path}: {exc}", detail={"type": type(exc).__name__},
            ) from exc

        if response.is_error:
            raise provider_error_from_response(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Non-JSON body from {path}",
                status=response.status_code,
                detail={"raw": response.text[:500]},
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Unexpected body from {path}", status=response.status_code, detail={"raw": data},
            )
        return ProviderResponse.from_payload(data)

    async def complete(self, request: CompletionRequest, *, max_retries: int = 3) -> ProviderResponse:
        """Create a response, retrying 429/5xx/transport failures with backoff."""
        payload = request.to_payload()
        return await with_retry(
            lambda: self._send("POST", "/responses", payload),
            max_retries=max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )

    async def retrieve(self, response_id: str) -> ProviderResponse:
        """Fetch the current state of a (background) response by id."""
        return await self._send("GET", _response_path(response_id))

    async def cancel(self, response_id: str) -> ProviderResponse:
        """Ask the provider to cancel a background response."""
        return await self._send("POST", f"{_response_path(response_id)}/cancel")
