"""Regex/keyword fallback extraction used when the LLM path fails."""

from __future__ import annotations

import re

from job_tracker.models import Stage
from job_tracker.schemas import LLMResponse

# ── Stage keywords (tested in this order) ─────────────────

REJECTED_KEYWORDS: tuple[str, ...] = (
    "rejected",
    "not selected",
    "unfortunately",
    "declined",
)

INTERVIEW_KEYWORDS: tuple[str, ...] = (
    "interview",
    "phone screen",
    "zoom",
    "call scheduled",
    "recruiter will reach out",
)

REFERRAL_KEYWORDS: tuple[str, ...] = ("referred", "referral")

# ── Patterns ──────────────────────────────────────────────

URL_RE = re.compile(r"https?://[^\s]+")
POSITION_AT_COMPANY_RE = re.compile(r"application.*?for (.+?) position at (.+)", re.IGNORECASE)
APPLICATION_TO_COMPANY_RE = re.compile(r"application (?:at|to) ([\w\s-]+)", re.IGNORECASE)
# One careers-style subdomain is skipped so the employer label is captured:
# jobs.acme.com -> acme. A hosted ATS under such a prefix yields the ATS name
# (apply.workday.com -> workday). Subject matches take precedence over the URL.
URL_COMPANY_RE = re.compile(
    r"https?://(?:(?:www|jobs?|careers?|apply|boards)\.)?([a-zA-Z0-9-]+)\."
)


def extract_stage(text: str) -> Stage:
    """Rejected beats Interview beats Applied."""
    lowered = text.lower()
    if any(kw in lowered for kw in REJECTED_KEYWORDS):
        return Stage.REJECTED
    if any(kw in lowered for kw in INTERVIEW_KEYWORDS):
        return Stage.INTERVIEW
    return Stage.APPLIED


def extract_job_url(body: str) -> str:
    matched = URL_RE.search(body or "")
    return matched.group(0) if matched else ""


def extract_position_and_company(subject: str, job_url: str = "") -> tuple[str, str]:
    """Return ``(position, company)`` from the subject, falling back to the URL host."""
    position = company = ""

    matched = POSITION_AT_COMPANY_RE.search(subject)
    if matched:
        position = matched.group(1).strip()
        company = matched.group(2).strip()

    if not company:
        matched = APPLICATION_TO_COMPANY_RE.search(subject)
        if matched:
            company = matched.group(1).strip()

    if not company and job_url:
        matched = URL_COMPANY_RE.search(job_url)
        if matched:
            company = matched.group(1).strip()

    return position, company


def fallback_parse(subject: str, body: str) -> LLMResponse:
    """Deterministically build an ``LLMResponse`` from subject and body."""
    subject = subject or ""
    body = body or ""
    full_text = f"{subject} {body}".lower()

    job_url = extract_job_url(body)
    position, company = extract_position_and_company(subject, job_url)

    return LLMResponse(
        company=company,
        position=position,
        stage=extract_stage(full_text),
        referral=any(kw in full_text for kw in REFERRAL_KEYWORDS),
        job_url=job_url,
    )
