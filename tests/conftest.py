"""Shared test fixtures for deep-research-mcp."""

from __future__ import annotations

from typing import Any

import pytest

from deep_research_mcp.client import CompletionRequest, ProviderResponse


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


def response_payload(
    text: str = "",
    *,
    response_id: str = "resp_test",
    status: str = "completed",
    search_results: list[dict] | None = None,
    error: dict | None = None,
) -> dict:
    """Build a Responses API object with one message and optional search call."""
    output: list[dict] = []
    if search_results is not None:
        output.append({"type": "web_search_call", "status": "completed", "results": search_results})
    if text:
        output.append({
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": text}],
        })
    payload: dict = {"id": response_id, "object": "response", "status": status, "output": output}
    if error is not None:
        payload["error"] = error
    return payload


def text_response(text: str = "", **kwargs: Any) -> ProviderResponse:
    return ProviderResponse.from_payload(response_payload(text, **kwargs))


class FakeResponsesClient:
    """Scripted stand-in for ResponsesClient.

    Each queue holds ProviderResponse objects or exceptions, consumed in
    order; every call is recorded so tests can assert on what was sent.
    """

    def __init__(
        self,
        completions: list[Any] | None = None,
        retrievals: list[Any] | None = None,
        cancels: list[Any] | None = None,
    ) -> None:
        self.completions = list(completions or [])
        self.retrievals = list(retrievals or [])
        self.cancels = list(cancels or [])
        self.requests: list[CompletionRequest] = []
        self.max_retries: list[int] = []
        self.retrieved: list[str] = []
        self.cancelled: list[str] = []

    @staticmethod
    def _next(queue: list[Any], what: str) -> ProviderResponse:
        if not queue:
            raise AssertionError(f"unexpected {what} call")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def complete(self, request: CompletionRequest, *, max_retries: int = 3) -> ProviderResponse:
        self.requests.append(request)
        self.max_retries.append(max_retries)
        return self._next(self.completions, "complete")

    async def retrieve(self, response_id: str) -> ProviderResponse:
        self.retrieved.append(response_id)
        return self._next(self.retrievals, "retrieve")

    async def cancel(self, response_id: str) -> ProviderResponse:
        self.cancelled.append(response_id)
        return self._next(self.cancels, "cancel")


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable."""
    import importlib
    import pkgutil

    import deep_research_mcp.tools as tools_pkg

    for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + "."):
        mod = importlib.import_module(info.name)
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """Ensure tests never hit the real OpenAI API."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-not-real")


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/deep-research-mcp/.env."""
    monkeypatch.setattr(
        "deep_research_mcp.config.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import deep_research_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def fake_client() -> FakeResponsesClient:
    return FakeResponsesClient()
