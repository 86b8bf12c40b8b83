"""Notion row store: REST client, property mapping and job upsert."""

from job_tracker.notion.client import NotionAPIError, NotionClient
from job_tracker.notion.upsert import JobUpserter, RowStore, UpsertOutcome

__all__ = [
    "NotionAPIError",
    "NotionClient",
    "JobUpserter",
    "RowStore",
    "UpsertOutcome",
]
