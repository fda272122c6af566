"""Shared pytest fixtures and configuration."""

import pytest
from unittest.mock import Mock

from models.config_models import Config, CredentialsConfig


@pytest.fixture
def test_env(monkeypatch):
    """
    Set valid test environment variables.

    Config can be loaded during tests without requiring real credentials.
    """
    monkeypatch.setenv("SUPABASE_URL", "https://test-project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test_supabase_key_1234567890")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test_token_1234567890")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    return {
        "supabase_url": "https://test-project.supabase.co",
        "supabase_key": "test_supabase_key_1234567890",
        "anthropic_api_key": "sk-ant-test",
        "github_token": "ghp_test_token_1234567890",
        "log_level": "DEBUG",
    }


@pytest.fixture
def invalid_env(monkeypatch):
    """Set up invalid/missing environment variables for testing validation."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)


@pytest.fixture
def test_config():
    """A valid Config object built directly (no environment involved)."""
    return Config(
        credentials=CredentialsConfig(
            supabase_url="https://test-project.supabase.co",
            supabase_key="test_supabase_key",
            anthropic_api_key="sk-ant-test",
        ),
        environment="development",
    )


@pytest.fixture
def mock_supabase():
    """Mock SupabaseClient; tests set return values on the methods they use."""
    return Mock()
