"""Server configuration via environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_ENV_PATH = Path.home() / ".config" / "deep-research-mcp" / ".env"


def load_env_file(path: Path | None = None) -> dict[str, str]:
    """Copy vars from the shared ``.env`` file into ``os.environ``.

    Only variables that are unset or blank in the process environment are
    injected, so a host's launch config always wins over the file.

    Returns:
        Dict of vars that were actually injected.
    """
    values = dotenv_values(path or DEFAULT_ENV_PATH)
    injected: dict[str, str] = {}
    for key, value in values.items():
        if value is None or os.environ.get(key, "").strip():
            continue
        os.environ[key] = value
        injected[key] = value
    return injected


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    openai_api_key: str = Field(default="")
    default_model: str = Field(default=DEFAULT_MODEL)
    base_url: str = Field(default=DEFAULT_BASE_URL)
    request_timeout: float = Field(default=600.0)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=60.0)
    poll_interval: float = Field(default=5.0)
    poll_max_wait: float = Field(default=1800.0)
    poll_max_consecutive_errors: int = Field(default=3)
    rate_limit_default_delay: float = Field(default=5.0)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        return value or DEFAULT_BASE_URL

    @field_validator("default_model")
    @classmethod
    def validate_model(cls, value: str) -> str:
        value = value.strip()
        return value or DEFAULT_MODEL

    @field_validator(
        "request_timeout",
        "retry_base_delay",
        "retry_max_delay",
        "poll_interval",
        "poll_max_wait",
        "rate_limit_default_delay",
    )
    @classmethod
    def validate_positive_floats(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Delays and time limits must be > 0")
        return value

    @field_validator("poll_max_consecutive_errors")
    @classmethod
    def validate_error_bound(cls, value: int) -> int:
        if value < 1:
            raise ValueError("poll_max_consecutive_errors must be >= 1")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            default_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            base_url=os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL),
            request_timeout=float(os.getenv("RESEARCH_REQUEST_TIMEOUT", "600")),
            retry_base_delay=float(os.getenv("RESEARCH_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("RESEARCH_RETRY_MAX_DELAY", "60.0")),
            poll_interval=float(os.getenv("RESEARCH_POLL_INTERVAL", "5.0")),
            poll_max_wait=float(os.getenv("RESEARCH_POLL_MAX_WAIT", "1800")),
            poll_max_consecutive_errors=int(os.getenv("RESEARCH_POLL_MAX_ERRORS", "3")),
            rate_limit_default_delay=float(os.getenv("RESEARCH_RATE_LIMIT_DELAY", "5.0")),
        )


# Singleton — initialised on first access.
_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/deep-research-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        injected = load_env_file()
        if injected:
            logger.info(
                "Loaded %d var(s) from config: %s",
                len(injected),
                ", ".join(injected.keys()),
            )
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config (used by ``infra_configure`` tool)."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config
