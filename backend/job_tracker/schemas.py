"""Pydantic schema for structured extraction results."""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, field_validator

from job_tracker.models import Stage

logger = structlog.get_logger(__name__)


class LLMResponse(BaseModel):
    """Fields extracted from one email, by the LLM or the fallback parser.

    Unknown keys are ignored and missing or null keys fall back to zero values,
    so a partial JSON object from the model still validates.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    company: str = ""
    position: str = ""
    stage: Stage = Stage.APPLIED
    referral: bool = False
    job_url: str = ""

    @field_validator("company", "position", "job_url", mode="before")
    @classmethod
    def _none_to_empty(cls, v: object) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("referral", mode="before")
    @classmethod
    def _none_to_false(cls, v: object) -> object:
        return False if v is None else v

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, v: object) -> Stage:
        stage = Stage.parse(v)
        if stage is None:
            if v not in (None, ""):
                logger.warning("unknown_stage_coerced", stage=str(v)[:40])
            return Stage.APPLIED
        return stage
