"""Keyword-based triage deciding if an email subject looks like job-application mail."""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)

# ── Signal keywords (case-insensitive substrings) ─────────
JOB_SUBJECT_KEYWORDS: tuple[str, ...] = (
    "applied",
    "application",
    "thanks for applying",
    "thanks from",
    "follow-up",
    "update",
    "recruiting",
    "thank you for applying",
)


def is_job_email(subject: str) -> bool:
    """Return True if the lower-cased subject contains any trigger keyword."""
    searchable = (subject or "").lower()
    matched = any(kw in searchable for kw in JOB_SUBJECT_KEYWORDS)
    if matched:
        logger.debug("classifier_match", subject=subject[:80])
    return matched
