"""Idempotent upsert of jobs into the row store, keyed by (company, position)."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol

import structlog

from job_tracker.models import FailedJob, Job
from job_tracker.notion.client import NotionAPIError
from job_tracker.notion.properties import (
    COL_COMPANY,
    COL_POSITION,
    build_identity_properties,
    build_properties,
    read_rich_text,
    read_title,
)

logger = structlog.get_logger(__name__)


class RowStore(Protocol):
    """What the upserter needs from the remote table."""

    def query_rows(self) -> list[dict[str, Any]]: ...

    def update_row(self, page_id: str, properties: dict[str, Any]) -> dict[str, Any]: ...

    def create_row(self, properties: dict[str, Any]) -> dict[str, Any]: ...


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


class JobUpserter:
    """Update-if-exists-else-create, one job at a time.

    Failures never raise; they are appended to ``failures`` for in-process
    inspection. Not thread-safe: feed it from a single thread.
    """

    def __init__(self, store: RowStore) -> None:
        self._store = store
        self.failures: list[FailedJob] = []

    def find_matching_row(self, job: Job) -> Optional[dict[str, Any]]:
        """First row whose Company and Position equal the job's, ignoring case."""
        wanted = job.identity
        for page in self._store.query_rows():
            found = (
                read_title(page, COL_COMPANY).casefold(),
                read_rich_text(page, COL_POSITION).casefold(),
            )
            if found == wanted:
                return page
        return None

    def _fail(self, job: Job, reason: str) -> UpsertOutcome:
        self.failures.append(FailedJob.from_job(job, reason))
        return UpsertOutcome.FAILED

    def upsert(self, job: Job) -> UpsertOutcome:
        """Write *job*; any error becomes a ``FailedJob`` instead of propagating."""
        try:
            return self._upsert(job)
        except Exception as exc:
            logger.exception("notion_upsert_crashed", company=job.company, position=job.position)
            return self._fail(job, f"upsert failed: {type(exc).__name__}: {exc}")

    def _upsert(self, job: Job) -> UpsertOutcome:
        try:
            page = self.find_matching_row(job)
        except NotionAPIError as exc:
            logger.error("notion_lookup_failed", company=job.company, position=job.position, error=str(exc))
            return self._fail(job, f"lookup failed: {exc}")

        try:
            props = build_properties(job)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.error("notion_mapping_failed", company=job.company, position=job.position, error=str(exc))
            return self._fail(job, f"mapping failed: {exc}")

        if page is not None:
            page_id = str(page.get("id", ""))
            logger.info("notion_row_updating", company=job.company, position=job.position, page_id=page_id)
            try:
                self._store.update_row(page_id, props)
            except NotionAPIError as exc:
                logger.error("notion_update_failed", page_id=page_id, error=str(exc))
                return self._fail(job, f"update failed: {exc}")
            return UpsertOutcome.UPDATED

        logger.info("notion_row_creating", company=job.company, position=job.position)
        props.update(build_identity_properties(job))
        try:
            self._store.create_row(props)
        except NotionAPIError as exc:
            logger.error("notion_create_failed", company=job.company, position=job.position, error=str(exc))
            return self._fail(job, f"create failed: {exc}")
        return UpsertOutcome.CREATED
