"""Tests for configuration parsing and env file loading."""

from __future__ import annotations

import os

import pytest

import deep_research_mcp.config as cfg_mod
from deep_research_mcp.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    ServerConfig,
    get_config,
    load_env_file,
    update_config,
)


class TestServerConfigFromEnv:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OPENAI_MODEL", raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.openai_api_key == "sk-test-not-real"
        assert cfg.default_model == DEFAULT_MODEL
        assert cfg.base_url == DEFAULT_BASE_URL
        assert cfg.poll_interval == 5.0
        assert cfg.poll_max_wait == 1800.0
        assert cfg.poll_max_consecutive_errors == 3

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "o4-mini-deep-research")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.example.com/v1/")
        monkeypatch.setenv("RESEARCH_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("RESEARCH_POLL_MAX_ERRORS", "5")
        cfg = ServerConfig.from_env()
        assert cfg.default_model == "o4-mini-deep-research"
        assert cfg.base_url == "https://proxy.example.com/v1"
        assert cfg.poll_interval == 2.5
        assert cfg.poll_max_consecutive_errors == 5

    def test_blank_model_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "   ")
        assert ServerConfig.from_env().default_model == DEFAULT_MODEL

    def test_non_positive_delay_rejected(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_POLL_INTERVAL", "0")
        with pytest.raises(ValueError):
            ServerConfig.from_env()

    def test_error_bound_must_be_positive(self):
        with pytest.raises(ValueError):
            ServerConfig(poll_max_consecutive_errors=0)


class TestLoadEnvFile:
    def test_injects_only_unset_vars(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=from-file\nOPENAI_MODEL=gpt-from-file\n")
        monkeypatch.setenv("OPENAI_MODEL", "")

        injected = load_env_file(env_file)

        assert injected == {"OPENAI_MODEL": "gpt-from-file"}
        assert os.environ["OPENAI_API_KEY"] == "sk-test-not-real"
        assert os.environ["OPENAI_MODEL"] == "gpt-from-file"

    def test_blank_process_var_is_filled(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=from-file\n")
        monkeypatch.setenv("OPENAI_API_KEY", "")

        assert load_env_file(env_file) == {"OPENAI_API_KEY": "from-file"}

    def test_missing_file_is_noop(self, tmp_path):
        assert load_env_file(tmp_path / "missing.env") == {}


class TestSingleton:
    def test_get_config_reads_default_env_file(self, tmp_path, monkeypatch, clean_config):
        env_file = tmp_path / "shared.env"
        env_file.write_text("RESEARCH_POLL_MAX_WAIT=60\n")
        monkeypatch.setenv("RESEARCH_POLL_MAX_WAIT", "")
        monkeypatch.setattr(cfg_mod, "DEFAULT_ENV_PATH", env_file)

        assert get_config().poll_max_wait == 60.0
        assert get_config() is get_config()

    def test_update_config_ignores_none(self, clean_config):
        before = get_config().poll_interval
        cfg = update_config(default_model="gpt-4.1", poll_interval=None)
        assert cfg.default_model == "gpt-4.1"
        assert cfg.poll_interval == before
        assert get_config() is cfg
