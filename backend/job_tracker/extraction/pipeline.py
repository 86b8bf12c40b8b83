"""Ingest pipeline: fetch → triage → structure → upsert over bounded queues.

Fetcher, Triage and Structurer each run on their own thread; the Upserter
runs on the calling thread. Stages hand records over ``queue.Queue(maxsize=1)``
and signal end-of-stream with a ``None`` sentinel, always sent from a
``finally`` block so a downstream stage terminates even when upstream fails.
"""

from __future__ import annotations

import contextvars
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import structlog

from job_tracker.email.classifier import is_job_email
from job_tracker.email.client import FetchedMessage
from job_tracker.email.parser import extract_body_text, sender_email
from job_tracker.extraction.structurer import Structurer
from job_tracker.models import FailedJob, Job, RawEmail
from job_tracker.notion.upsert import JobUpserter, UpsertOutcome

logger = structlog.get_logger(__name__)

CHANNEL_CAPACITY = 1


@dataclass
class PipelineSummary:
    """Result summary after a pipeline run."""

    emails_scanned: int = 0
    emails_matched: int = 0
    jobs_parsed: int = 0
    jobs_dropped: int = 0
    llm_fallbacks: int = 0
    rows_created: int = 0
    rows_updated: int = 0
    failures: list[FailedJob] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False


def triage_message(fetched: FetchedMessage) -> Optional[RawEmail]:
    """Return a ``RawEmail`` for job-looking messages, None for everything else."""
    envelope = fetched.envelope
    if envelope is None or fetched.message is None:
        return None
    if not is_job_email(envelope.subject):
        return None
    return RawEmail(
        subject=envelope.subject,
        body=extract_body_text(fetched.message),
        sender_email=sender_email(envelope),
        date=envelope.date,
    )


class _Pipeline:
    def __init__(
        self,
        structurer: Structurer,
        upserter: JobUpserter,
        should_cancel: Optional[Callable[[], bool]],
    ) -> None:
        self._structurer = structurer
        self._upserter = upserter
        self._should_cancel = should_cancel
        self._msg_q: queue.Queue[Optional[FetchedMessage]] = queue.Queue(maxsize=CHANNEL_CAPACITY)
        self._raw_q: queue.Queue[Optional[RawEmail]] = queue.Queue(maxsize=CHANNEL_CAPACITY)
        self._job_q: queue.Queue[Optional[Job]] = queue.Queue(maxsize=CHANNEL_CAPACITY)
        self.cancel_event = threading.Event()
        self.fetch_error: Optional[BaseException] = None
        self.summary = PipelineSummary()

    # ── Task F ────────────────────────────────────────────
    def fetch(self, messages: Iterable[FetchedMessage]) -> None:
        try:
            for fetched in messages:
                if self.cancel_event.is_set() or (self._should_cancel and self._should_cancel()):
                    logger.warning("pipeline_cancelled", scanned=self.summary.emails_scanned)
                    self.summary.cancelled = True
                    break
                self.summary.emails_scanned += 1
                self._msg_q.put(fetched)
        except Exception as exc:
            logger.error("fetch_failed", error=str(exc))
            self.fetch_error = exc
            self.summary.errors.append(f"fetch: {exc}")
        finally:
            self._msg_q.put(None)

    # ── Task T ────────────────────────────────────────────
    def triage(self) -> None:
        try:
            while True:
                fetched = self._msg_q.get()
                if fetched is None:
                    break
                try:
                    raw = triage_message(fetched)
                except Exception as exc:
                    logger.error("triage_failed", uid=fetched.uid, error=str(exc))
                    self.summary.errors.append(f"uid={fetched.uid}: {exc}")
                    continue
                if raw is None:
                    continue
                self.summary.emails_matched += 1
                logger.info("email_matched", uid=fetched.uid, subject=raw.subject[:80], sender=raw.sender_email)
                self._raw_q.put(raw)
        finally:
            self._raw_q.put(None)

    # ── Task S ────────────────────────────────────────────
    def structure(self) -> None:
        try:
            while True:
                raw = self._raw_q.get()
                if raw is None:
                    break
                try:
                    job = self._structurer.structure(raw)
                except Exception as exc:
                    logger.error("structure_failed", subject=raw.subject[:80], error=str(exc))
                    self.summary.errors.append(f"structure: {exc}")
                    continue
                self.summary.jobs_parsed += 1
                logger.info(
                    "job_parsed",
                    company=job.company,
                    position=job.position,
                    stage=job.stage.value,
                    referral=job.referral,
                    job_url=job.job_url,
                )
                if job.is_empty:
                    self.summary.jobs_dropped += 1
                    logger.info("job_dropped_empty", subject=raw.subject[:80])
                    continue
                self._job_q.put(job)
        finally:
            self._job_q.put(None)

    # ── Task U ────────────────────────────────────────────
    def upsert(self) -> None:
        while True:
            job = self._job_q.get()
            if job is None:
                break
            outcome = self._upserter.upsert(job)
            if outcome is UpsertOutcome.CREATED:
                self.summary.rows_created += 1
            elif outcome is UpsertOutcome.UPDATED:
                self.summary.rows_updated += 1


def run_pipeline(
    messages: Iterable[FetchedMessage],
    structurer: Structurer,
    upserter: JobUpserter,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PipelineSummary:
    """Run all four stages to completion and return the summary.

    Messages already delivered downstream are fully processed before a fetch
    error is re-raised.

    Args:
        messages: Lazy message source, consumed on the fetcher thread.
        structurer: Email → Job converter.
        upserter: Row-store writer, driven from the calling thread.
        should_cancel: Optional callable; when it returns True the fetcher stops.
    """
    pipe = _Pipeline(structurer, upserter, should_cancel)
    # Each worker runs in its own copy of the caller's context so bound log fields follow it
    threads = [
        threading.Thread(target=contextvars.copy_context().run, args=(target, *args), name=name, daemon=True)
        for name, target, args in (
            ("fetcher", pipe.fetch, (messages,)),
            ("triage", pipe.triage, ()),
            ("structurer", pipe.structure, ()),
        )
    ]
    for t in threads:
        t.start()

    try:
        pipe.upsert()
    except KeyboardInterrupt:
        pipe.cancel_event.set()
        raise
    for t in threads:
        t.join()

    summary = pipe.summary
    summary.llm_fallbacks = structurer.fallback_count
    summary.failures = list(upserter.failures)

    for failed in summary.failures:
        logger.warning(
            "upsert_failure",
            company=failed.company,
            position=failed.position,
            subject=failed.subject[:80],
            sender=failed.sender_email,
            reason=failed.reason,
        )
    logger.info(
        "pipeline_complete",
        scanned=summary.emails_scanned,
        matched=summary.emails_matched,
        parsed=summary.jobs_parsed,
        dropped=summary.jobs_dropped,
        fallbacks=summary.llm_fallbacks,
        created=summary.rows_created,
        updated=summary.rows_updated,
        failed=len(summary.failures),
        cancelled=summary.cancelled,
    )

    if pipe.fetch_error is not None:
        raise pipe.fetch_error
    return summary
