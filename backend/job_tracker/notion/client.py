"""Thin Notion REST client for the job-tracking database."""

from __future__ import annotations

from typing import Any, Optional

import requests
import structlog

from job_tracker.config import AppConfig

logger = structlog.get_logger(__name__)


class NotionAPIError(RuntimeError):
    """A Notion request failed, either in transport or with an HTTP error status."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotionClient:
    """Query, update and create rows (pages) of one Notion database."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self._base_url = config.notion_api_url.rstrip("/")
        self._database_id = config.notion_db_id
        self._timeout = config.notion_timeout_sec
        self._page_size = config.notion_page_size
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.notion_token.get_secret_value()}",
                "Notion-Version": config.notion_version,
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            r = self._session.request(method, url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise NotionAPIError(f"Notion {method} {path} failed: {exc}") from exc
        if r.status_code >= 400:
            raise NotionAPIError(
                f"Notion {method} {path} failed: {r.status_code} {r.text[:300]}",
                status_code=r.status_code,
            )
        try:
            return r.json()
        except ValueError as exc:
            raise NotionAPIError(
                f"Notion {method} {path} returned non-JSON body: {r.text[:300]}",
                status_code=r.status_code,
            ) from exc

    def query_rows(self) -> list[dict[str, Any]]:
        """Return every page of the database, following pagination cursors."""
        rows: list[dict[str, Any]] = []
        payload: dict[str, Any] = {"page_size": self._page_size}
        while True:
            data = self._request("POST", f"/databases/{self._database_id}/query", payload)
            rows.extend(data.get("results", []))
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
            payload = {"page_size": self._page_size, "start_cursor": cursor}
        logger.debug("notion_rows_queried", count=len(rows))
        return rows

    def update_row(self, page_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", {"properties": properties})

    def create_row(self, properties: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST",
            "/pages",
            {"parent": {"database_id": self._database_id}, "properties": properties},
        )
