"""Core records flowing through the ingest pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Stage(str, Enum):
    """Lifecycle phase of an application (closed set)."""

    APPLIED = "Applied"
    INTERVIEW = "Interview"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: object) -> Optional["Stage"]:
        """Return the matching stage (case-insensitive), or None if unknown."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for stage in cls:
            if stage.value.lower() == text:
                return stage
        return None


@dataclass(frozen=True)
class RawEmail:
    """A triaged email whose subject looked like job-application mail."""

    subject: str
    body: str
    sender_email: str
    date: Optional[datetime]


@dataclass(frozen=True)
class Job:
    """Canonical record of one application-tracking event."""

    company: str
    position: str
    job_url: str = ""
    apply_date: Optional[datetime] = None
    referral: bool = False
    response_date: Optional[datetime] = None
    stage: Stage = Stage.APPLIED
    # Originating email, kept for failure diagnostics only
    source: Optional[RawEmail] = field(default=None, compare=False, repr=False)

    @property
    def identity(self) -> tuple[str, str]:
        """Upsert key: (company, position) compared case-insensitively."""
        return self.company.casefold(), self.position.casefold()

    @property
    def is_empty(self) -> bool:
        return not self.company and not self.position


@dataclass(frozen=True)
class FailedJob:
    """A job that could not be placed in the row store."""

    subject: str
    body: str
    sender_email: str
    date: Optional[datetime]
    reason: str
    company: str = ""
    position: str = ""

    @classmethod
    def from_job(cls, job: Job, reason: str) -> "FailedJob":
        src = job.source
        return cls(
            subject=src.subject if src else "",
            body=src.body if src else "",
            sender_email=src.sender_email if src else "",
            date=src.date if src else job.apply_date,
            reason=reason,
            company=job.company,
            position=job.position,
        )
