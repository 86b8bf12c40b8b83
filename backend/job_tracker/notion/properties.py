"""Mapping between ``Job`` records and Notion database properties."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from job_tracker.models import Job, Stage

logger = structlog.get_logger(__name__)

# ── Column names (schema is preconfigured in Notion) ──────
COL_COMPANY = "Company"
COL_POSITION = "Position"
COL_STAGE = "Stage"
COL_REFERRAL = "Referral?"
COL_JOB_URL = "JobURL"
COL_APPLY_DATE = "Apply date"
COL_RESPONSE_DATE = "Response date"

REFERRED_OPTION = "Referred!"
NOT_REFERRED_OPTION = "No"


def stage_option(stage: Stage | str) -> dict[str, str]:
    """Map a stage to its status option by exact name; unknown names become Applied."""
    name = stage.value if isinstance(stage, Stage) else str(stage)
    if name not in {s.value for s in Stage}:
        logger.warning("unknown_stage_defaulted", stage=name)
        name = Stage.APPLIED.value
    return {"name": name}


def referral_option(referral: bool) -> dict[str, str]:
    return {"name": REFERRED_OPTION if referral else NOT_REFERRED_OPTION}


def _date(value: datetime) -> dict[str, Any]:
    return {"date": {"start": value.isoformat()}}


def _text(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def build_properties(job: Job) -> dict[str, Any]:
    """Properties written on both update and create."""
    props: dict[str, Any] = {
        COL_STAGE: {"status": stage_option(job.stage)},
        COL_REFERRAL: {"select": referral_option(job.referral)},
    }
    if job.job_url:
        props[COL_JOB_URL] = {"url": job.job_url}
    if job.apply_date is not None:
        props[COL_APPLY_DATE] = _date(job.apply_date)
    if job.response_date is not None:
        props[COL_RESPONSE_DATE] = _date(job.response_date)
    return props


def build_identity_properties(job: Job) -> dict[str, Any]:
    """Title and rich-text identity columns, only set when a row is created."""
    return {
        COL_COMPANY: {"title": _text(job.company)},
        COL_POSITION: {"rich_text": _text(job.position)},
    }


def _segments_text(segments: list[dict[str, Any]]) -> str:
    pieces = []
    for seg in segments or []:
        text = seg.get("plain_text")
        if text is None:
            text = (seg.get("text") or {}).get("content", "")
        pieces.append(text)
    return "".join(pieces)


def read_title(page: dict[str, Any], column: str) -> str:
    prop = (page.get("properties") or {}).get(column) or {}
    return _segments_text(prop.get("title", []))


def read_rich_text(page: dict[str, Any], column: str) -> str:
    prop = (page.get("properties") or {}).get(column) or {}
    return _segments_text(prop.get("rich_text", []))
