"""Application configuration with Pydantic Settings validation."""

from __future__ import annotations

from typing import Optional

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """All application settings, loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── IMAP ──────────────────────────────────────────────
    gmail_user: str
    gmail_app_password: SecretStr
    imap_host: str = "imap.gmail.com"
    imap_port: int = 993
    email_folder: str = "INBOX"
    imap_timeout_sec: int = 30
    imap_fetch_batch_size: int = 50
    lookback_days: int = 7

    # ── Notion ────────────────────────────────────────────
    notion_token: SecretStr
    notion_db_id: str
    notion_api_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    notion_timeout_sec: int = 20
    notion_page_size: int = 100

    # ── LLM ───────────────────────────────────────────────
    llm_enabled: bool = True
    use_gemini: bool = False
    openai_api_key: SecretStr = SecretStr("")
    openai_model: str = "gpt-4o"
    gemini_api_key: SecretStr = SecretStr("")
    gemini_model: str = "gemini-2.0-flash-lite"
    llm_timeout_sec: int = 45
    prompt_path: str = "prompt.txt"

    # ── Logging ───────────────────────────────────────────
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # ── Validators ────────────────────────────────────────
    @field_validator("llm_enabled", mode="before")
    @classmethod
    def parse_bool(cls, v: object) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in {"1", "true", "yes", "on"}
        return bool(v)

    @field_validator("use_gemini", mode="before")
    @classmethod
    def parse_use_gemini(cls, v: object) -> bool:
        """Only the literal string ``true`` switches to Gemini."""
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)

    @field_validator("lookback_days")
    @classmethod
    def check_lookback(cls, v: int) -> int:
        if v < 1:
            raise ValueError("lookback_days must be at least 1")
        return v

    @field_validator("imap_fetch_batch_size")
    @classmethod
    def check_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("imap_fetch_batch_size must be at least 1")
        return v

    @model_validator(mode="after")
    def _require_provider_key(self) -> "AppConfig":
        if not self.llm_enabled:
            return self
        if self.use_gemini and not self.gemini_api_key.get_secret_value():
            raise ValueError("GEMINI_API_KEY missing (USE_GEMINI=true)")
        if not self.use_gemini and not self.openai_api_key.get_secret_value():
            raise ValueError("OPENAI_API_KEY missing")
        return self

    @property
    def llm_provider(self) -> str:
        return "gemini" if self.use_gemini else "openai"


def get_config() -> AppConfig:
    """Load and return validated application config."""
    return AppConfig()  # type: ignore[call-arg]
