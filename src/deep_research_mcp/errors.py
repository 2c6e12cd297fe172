"""Structured error handling — provider failures, categories, and tool error model."""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel


class ProviderError(Exception):
    """A failed call to the Responses API.

    ``detail`` is the provider's error envelope (or raw body) and is kept
    opaque; only ``status`` and ``retry_after`` drive retry decisions.
    """

    transient = False

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        detail: Any = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail
        self.retry_after = retry_after

    @property
    def is_rate_limit(self) -> bool:
        return self.status == 429

    @property
    def code(self) -> str | None:
        """Machine-readable ``error.code`` from the envelope, if any."""
        error = self.detail.get("error") if isinstance(self.detail, dict) else None
        if isinstance(error, dict) and error.get("code"):
            return str(error["code"])
        return None

    @property
    def provider_message(self) -> str | None:
        error = self.detail.get("error") if isinstance(self.detail, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return None


class TransientProviderError(ProviderError):
    """429, 5xx, or a transport-level failure — safe to retry."""

    transient = True


class PermanentProviderError(ProviderError):
    """Any other 4xx or a malformed request — retrying will not help."""


class MalformedResponseError(PermanentProviderError):
    """The provider answered 2xx with a body that is not a JSON object."""


class StageParseError(ValueError):
    """A pipeline stage returned text that does not fit its schema."""


def is_transient_status(status: int) -> bool:
    """429 and every 5xx are retryable."""
    return status == 429 or 500 <= status < 600


def parse_retry_after(headers: httpx.Headers | dict | None) -> float | None:
    """Read ``retry-after-ms`` / ``retry-after`` (seconds) from response headers."""
    if not headers:
        return None
    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        try:
            return max(0.0, float(raw_ms) / 1000.0)
        except ValueError:
            pass
    raw = headers.get("retry-after")
    if raw:
        try:
            return max(0.0, float(raw))
        except ValueError:
            return None
    return None


def provider_error_from_response(response: httpx.Response) -> ProviderError:
    """Build the right ProviderError subclass for a non-2xx response."""
    try:
        detail: Any = response.json()
    except ValueError:
        detail = {"raw": response.text}

    status = response.status_code
    message = f"Responses API returned HTTP {status}"
    error = detail.get("error") if isinstance(detail, dict) else None
    if isinstance(error, dict) and error.get("message"):
        message = f"{message}: {error['message']}"

    cls = TransientProviderError if is_transient_status(status) else PermanentProviderError
    return cls(
        message,
        status=status,
        detail=detail,
        retry_after=parse_retry_after(response.headers),
    )


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    API_AUTH = "API_AUTH"
    API_RATE_LIMITED = "API_RATE_LIMITED"
    API_INVALID_ARGUMENT = "API_INVALID_ARGUMENT"
    API_NOT_FOUND = "API_NOT_FOUND"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    CONFIG_MISSING = "CONFIG_MISSING"
    UNKNOWN = "UNKNOWN"


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False
    retry_after_seconds: float | None = None
    status_code: int | None = None
    error_code: str | None = None


def _categorize_status(status: int) -> tuple[ErrorCategory, str]:
    if status in (401, 403):
        return (
            ErrorCategory.API_AUTH,
            "API key rejected — check OPENAI_API_KEY and project permissions",
        )
    if status == 429:
        return (
            ErrorCategory.API_RATE_LIMITED,
            "Rate limit hit — wait and retry, or lower max_tool_calls",
        )
    if status == 404:
        return (
            ErrorCategory.API_NOT_FOUND,
            "Response not found — the id is wrong or the provider no longer stores it",
        )
    if 500 <= status < 600:
        return (
            ErrorCategory.API_SERVER_ERROR,
            "Provider error — retry later",
        )
    return (
        ErrorCategory.API_INVALID_ARGUMENT,
        "Bad request — check model name and option values",
    )


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    if isinstance(error, MalformedResponseError):
        return (
            ErrorCategory.MALFORMED_RESPONSE,
            "Provider returned a non-JSON body — retry or check OPENAI_BASE_URL",
        )
    if isinstance(error, ProviderError):
        if error.status is not None:
            return _categorize_status(error.status)
        return (
            ErrorCategory.NETWORK_ERROR,
            "Could not reach the provider — check connectivity and retry",
        )
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or raise RESEARCH_REQUEST_TIMEOUT",
        )
    if isinstance(error, httpx.TransportError):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Could not reach the provider — check connectivity and retry",
        )

    s = str(error).lower()
    if "api key" in s:
        return (
            ErrorCategory.CONFIG_MISSING,
            "No API key — set OPENAI_API_KEY in the environment or ~/.config/deep-research-mcp/.env",
        )
    if "429" in s or "rate limit" in s:
        return (
            ErrorCategory.API_RATE_LIMITED,
            "Rate limit hit — wait and retry",
        )
    if "timeout" in s or "timed out" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or check connectivity",
        )

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.API_RATE_LIMITED,
        ErrorCategory.API_SERVER_ERROR,
        ErrorCategory.NETWORK_ERROR,
    }
    retry_after: float | None = None
    status_code: int | None = None
    error_code: str | None = None
    if isinstance(error, ProviderError):
        retry_after = error.retry_after
        status_code = error.status
        error_code = error.code
    if retry_after is None and cat == ErrorCategory.API_RATE_LIMITED:
        retry_after = 60
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=retryable,
        retry_after_seconds=retry_after,
        status_code=status_code,
        error_code=error_code,
    ).model_dump(mode="json")
