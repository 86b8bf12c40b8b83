"""Tests for subject-line triage."""

from __future__ import annotations

import pytest

from job_tracker.email.classifier import JOB_SUBJECT_KEYWORDS, is_job_email


@pytest.mark.parametrize(
    "subject",
    [
        "We received your application",
        "You APPLIED to Acme",
        "Thanks for applying to Globex",
        "Thank You For Applying!",
        "Thanks from the Initech team",
        "Follow-up on your candidacy",
        "An update on your status",
        "Acme Recruiting",
    ],
)
def test_trigger_subjects_match(subject: str) -> None:
    assert is_job_email(subject)


@pytest.mark.parametrize(
    "subject",
    ["Lunch Friday?", "Your weekly digest", "", "Invoice #4411", "Follow up tomorrow"],
)
def test_other_subjects_are_dropped(subject: str) -> None:
    assert not is_job_email(subject)


def test_keyword_set_is_closed() -> None:
    assert len(JOB_SUBJECT_KEYWORDS) == 8
    assert all(kw == kw.lower() for kw in JOB_SUBJECT_KEYWORDS)
