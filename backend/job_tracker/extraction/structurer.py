"""Turn a triaged email into a ``Job`` via the LLM, with the rule-based fallback."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from job_tracker.extraction.llm import LLMProvider
from job_tracker.extraction.prompt import PromptTemplate
from job_tracker.extraction.rules import fallback_parse
from job_tracker.models import Job, RawEmail, Stage
from job_tracker.schemas import LLMResponse

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_job(response: LLMResponse, raw: RawEmail, now: datetime) -> Job:
    """Copy the extracted fields; ``response_date`` is stamped only past Applied."""
    return Job(
        company=response.company,
        position=response.position,
        job_url=response.job_url,
        apply_date=raw.date,
        referral=response.referral,
        response_date=now if response.stage != Stage.APPLIED else None,
        stage=response.stage,
        source=raw,
    )


class Structurer:
    """Renders the prompt, asks the provider, and falls back to regex rules on failure.

    ``provider`` may be None, in which case every email goes straight to the
    fallback extractor.
    """

    def __init__(
        self,
        provider: Optional[LLMProvider],
        template: Optional[PromptTemplate],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if provider is not None and template is None:
            raise ValueError("A prompt template is required when an LLM provider is set")
        self._provider = provider
        self._template = template
        self._clock = clock
        self.fallback_count = 0

    def extract(self, raw: RawEmail) -> LLMResponse:
        if self._provider is None or self._template is None:
            self.fallback_count += 1
            return fallback_parse(raw.subject, raw.body)

        try:
            prompt = self._template.render(subject=raw.subject, body=raw.body, email=raw.sender_email)
            return self._provider.parse(prompt)
        except Exception as exc:
            logger.warning("llm_fallback", subject=raw.subject[:80], error=str(exc))
            self.fallback_count += 1
            return fallback_parse(raw.subject, raw.body)

    def structure(self, raw: RawEmail) -> Job:
        return build_job(self.extract(raw), raw, self._clock())
