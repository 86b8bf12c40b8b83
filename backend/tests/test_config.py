"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from job_tracker.config import AppConfig

_ENV_VARS = (
    "GMAIL_USER",
    "GMAIL_APP_PASSWORD",
    "NOTION_TOKEN",
    "NOTION_DB_ID",
    "OPENAI_API_KEY",
    "USE_GEMINI",
    "GEMINI_API_KEY",
    "LLM_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GMAIL_USER", "candidate@gmail.com")
    monkeypatch.setenv("GMAIL_APP_PASSWORD", "app-password")
    monkeypatch.setenv("NOTION_TOKEN", "ntn_token")
    monkeypatch.setenv("NOTION_DB_ID", "db123")


def test_openai_is_default_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    cfg = AppConfig(_env_file=None)

    assert cfg.llm_provider == "openai"
    assert cfg.imap_host == "imap.gmail.com"
    assert cfg.imap_port == 993
    assert cfg.email_folder == "INBOX"
    assert cfg.lookback_days == 7
    assert cfg.prompt_path == "prompt.txt"


def test_use_gemini_requires_literal_true(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    monkeypatch.setenv("USE_GEMINI", "true")
    assert AppConfig(_env_file=None).llm_provider == "gemini"

    monkeypatch.setenv("USE_GEMINI", "1")
    assert AppConfig(_env_file=None).llm_provider == "openai"


def test_missing_openai_key_is_fatal() -> None:
    with pytest.raises(ValidationError, match="OPENAI_API_KEY"):
        AppConfig(_env_file=None)


def test_missing_gemini_key_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_GEMINI", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with pytest.raises(ValidationError, match="GEMINI_API_KEY"):
        AppConfig(_env_file=None)


def test_llm_disabled_needs_no_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_ENABLED", "false")
    assert AppConfig(_env_file=None).llm_enabled is False


def test_missing_gmail_credentials_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("GMAIL_APP_PASSWORD")
    with pytest.raises(ValidationError):
        AppConfig(_env_file=None)
