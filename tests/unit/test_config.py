"""Tests for environment-driven settings."""

import pytest

from backend.core.config import MCPServerConfig, MCPUnconfigured, Settings, load_mcp_config


def test_mcp_configured(monkeypatch):
    monkeypatch.setenv("ZAPIER_MCP_API_KEY", "zap")
    monkeypatch.setenv("ZAPIER_MCP_URL", "https://mcp.zapier.test/api/")
    config = load_mcp_config()
    assert isinstance(config, MCPServerConfig)
    assert config.server_url == "https://mcp.zapier.test/api"
    assert config.health_timeout == 5.0


def test_missing_key_is_unconfigured(monkeypatch):
    monkeypatch.delenv("ZAPIER_MCP_API_KEY", raising=False)
    monkeypatch.setenv("ZAPIER_MCP_URL", "https://mcp.zapier.test")
    config = load_mcp_config()
    assert isinstance(config, MCPUnconfigured)
    assert "ZAPIER_MCP_API_KEY" in config.reason


def test_missing_url_is_unconfigured(monkeypatch):
    monkeypatch.setenv("ZAPIER_MCP_API_KEY", "zap")
    monkeypatch.delenv("ZAPIER_MCP_URL", raising=False)
    assert load_mcp_config() == MCPUnconfigured("ZAPIER_MCP_URL is not set")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("RATE_LIMIT_PER_MIN", "5")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:8501, http://example.com")
    settings = Settings.from_env()
    assert settings.openai_api_key == "sk-test"
    assert settings.openai_model == "gpt-4o-mini"
    assert settings.rate_limit_per_min == 5
    assert settings.cors_origins == ["http://localhost:8501", "http://example.com"]


def test_defaults(monkeypatch):
    for var in ("OPENAI_API_KEY", "OPENAI_MODEL", "ZAPIER_MCP_API_KEY", "CORS_ORIGINS"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings.from_env()
    assert settings.openai_model == "gpt-4o"
    assert settings.cors_origins == ["*"]
    assert isinstance(settings.mcp, MCPUnconfigured)


def test_bad_number_names_variable(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_PER_MIN", "lots")
    with pytest.raises(ValueError, match="RATE_LIMIT_PER_MIN"):
        Settings.from_env()
