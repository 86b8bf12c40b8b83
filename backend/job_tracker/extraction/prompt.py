"""Prompt template loading and rendering."""

from __future__ import annotations

from pathlib import Path
from string import Template

import structlog

logger = structlog.get_logger(__name__)

PLACEHOLDERS: frozenset[str] = frozenset({"SUBJECT", "BODY", "EMAIL"})


class PromptTemplateError(ValueError):
    """Raised when the prompt template cannot be loaded or rendered."""


class PromptTemplate:
    """A ``$SUBJECT`` / ``$BODY`` / ``$EMAIL`` template read from disk.

    The template is validated up front: malformed ``$`` placeholders or
    placeholders other than the three known names are rejected, so a broken
    template fails at startup instead of silently on every email.
    """

    def __init__(self, text: str, source: str = "<string>") -> None:
        template = Template(text)
        if not template.is_valid():
            raise PromptTemplateError(f"Malformed placeholder in prompt template {source}")
        unknown = set(template.get_identifiers()) - PLACEHOLDERS
        if unknown:
            raise PromptTemplateError(
                f"Prompt template {source} references unknown placeholders: "
                f"{', '.join(sorted(unknown))}"
            )
        self._template = template
        self.source = source

    @classmethod
    def load(cls, path: str | Path) -> "PromptTemplate":
        file_path = Path(path)
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PromptTemplateError(f"Cannot read prompt template {file_path}: {exc}") from exc
        logger.info("prompt_template_loaded", path=str(file_path), length=len(text))
        return cls(text, source=str(file_path))

    def render(self, subject: str, body: str, email: str) -> str:
        """Substitute the email fields verbatim."""
        try:
            return self._template.substitute(SUBJECT=subject, BODY=body, EMAIL=email)
        except (KeyError, ValueError) as exc:
            raise PromptTemplateError(f"Prompt render failed: {exc}") from exc
