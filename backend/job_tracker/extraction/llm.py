"""LLM-based field extraction with provider abstraction."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from job_tracker.config import AppConfig
from job_tracker.schemas import LLMResponse

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You're a helpful assistant that extracts job application data from emails. "
    "Always respond with only JSON, no explanation."
)


class LLMOutputError(ValueError):
    """Raised when the model output holds no usable JSON object."""


class LLMProvider(Protocol):
    """Protocol that any LLM provider must implement."""

    def parse(self, prompt: str) -> LLMResponse: ...


# ── JSON recovery ─────────────────────────────────────────

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


def recover_json(output: str) -> dict[str, Any]:
    """Pull the JSON object out of raw model output.

    Accepts a fenced ```json block or, failing that, the widest ``{...}`` span.
    """
    raw = (output or "").strip()
    fenced = _FENCED_JSON_RE.search(raw)
    if fenced:
        candidate = fenced.group(1)
    else:
        bare = _BARE_JSON_RE.search(raw)
        candidate = bare.group(0) if bare else ""

    if not candidate:
        raise LLMOutputError("no valid JSON block found in LLM output")

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise LLMOutputError(f"failed to parse JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMOutputError("LLM JSON is not an object")
    return parsed


def parse_llm_output(output: str) -> LLMResponse:
    """Recover JSON from *output* and validate it into an ``LLMResponse``."""
    data = recover_json(output)
    try:
        return LLMResponse.model_validate(data)
    except ValidationError as exc:
        raise LLMOutputError(f"LLM JSON has invalid fields: {exc.error_count()} error(s)") from exc


# ── OpenAI Provider ───────────────────────────────────────


class OpenAIProvider:
    """OpenAI Chat Completions backed extraction (GPT-4o by default)."""

    def __init__(self, config: AppConfig) -> None:
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "openai package is required for the OpenAI provider: pip install openai"
            ) from exc

        self._model = config.openai_model
        self._client = OpenAI(
            api_key=config.openai_api_key.get_secret_value(),
            timeout=config.llm_timeout_sec,
            max_retries=0,
        )

    def parse(self, prompt: str) -> LLMResponse:
        resp = self._client.chat.completions.create(
            model=self._model,
            temperature=0,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        if not resp.choices:
            raise LLMOutputError("OpenAI returned no choices")
        content = resp.choices[0].message.content or ""
        logger.debug("llm_raw_output", provider="openai", output=content[:200])
        return parse_llm_output(content)


# ── Gemini Provider ───────────────────────────────────────


class GeminiProvider:
    """Google Gemini ``generateContent`` backed extraction."""

    def __init__(self, config: AppConfig) -> None:
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise RuntimeError(
                "google-generativeai package is required for the Gemini provider: "
                "pip install google-generativeai"
            ) from exc

        genai.configure(api_key=config.gemini_api_key.get_secret_value())
        self._timeout = config.llm_timeout_sec
        self._model = genai.GenerativeModel(
            config.gemini_model,
            system_instruction=SYSTEM_PROMPT,
            generation_config={"temperature": 0},
        )

    def parse(self, prompt: str) -> LLMResponse:
        resp = self._model.generate_content(prompt, request_options={"timeout": self._timeout})
        candidates = getattr(resp, "candidates", None) or []
        if not candidates:
            raise LLMOutputError("Gemini returned no candidates")

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        text = "".join(getattr(part, "text", "") or "" for part in parts)
        if not text:
            raise LLMOutputError("Gemini response contained no text parts")
        logger.debug("llm_raw_output", provider="gemini", output=text[:200])
        return parse_llm_output(text)


# ── Factory ───────────────────────────────────────────────

_PROVIDERS: dict[str, type] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def create_llm_provider(config: AppConfig) -> LLMProvider:
    """Instantiate the configured LLM provider."""
    provider_cls = _PROVIDERS[config.llm_provider]
    provider = provider_cls(config)
    logger.info("llm_provider_ready", provider=config.llm_provider)
    return provider
