"""IMAP email client with read-only fetch and context-manager support."""

from __future__ import annotations

import email as email_lib
import imaplib
import re
import socket
from dataclasses import dataclass
from datetime import datetime, timedelta
from email.message import Message
from typing import Iterable, Iterator, List, Optional, Sequence

import structlog

from job_tracker.config import AppConfig
from job_tracker.email.parser import Envelope, envelope_from_message

logger = structlog.get_logger(__name__)

_UID_RE = re.compile(rb"UID (\d+)")


class IMAPFetchError(RuntimeError):
    """Raised when an IMAP SEARCH or FETCH command is rejected."""


@dataclass(frozen=True)
class FetchedMessage:
    """One fetched message; ``envelope`` is None when the server sent no payload."""

    uid: int
    envelope: Optional[Envelope]
    message: Optional[Message]


class IMAPClient:
    """IMAP connection wrapper with timeout and context-manager support.

    Usage::

        with IMAPClient(config) as client:
            uids = client.search_recent(days=7)
            for fetched in client.iter_messages(uids):
                ...
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._mail: imaplib.IMAP4_SSL | None = None

    # ── Context manager ───────────────────────────────────
    def __enter__(self) -> "IMAPClient":
        self.connect()
        return self

    def __exit__(self, *exc: object) -> None:
        self.disconnect()

    # ── Connection ────────────────────────────────────────
    def connect(self) -> None:
        """Establish the TLS session, log in and select the folder read-only."""
        cfg = self._config
        socket.setdefaulttimeout(cfg.imap_timeout_sec)

        logger.info("imap_connecting", host=cfg.imap_host, port=cfg.imap_port)
        self._mail = imaplib.IMAP4_SSL(cfg.imap_host, cfg.imap_port)

        logger.info("imap_logging_in", username=cfg.gmail_user)
        self._mail.login(cfg.gmail_user, cfg.gmail_app_password.get_secret_value())

        status, _ = self._mail.select(cfg.email_folder, readonly=True)
        if status != "OK":
            raise RuntimeError(f"Cannot select folder: {cfg.email_folder}")
        logger.info("imap_folder_selected", folder=cfg.email_folder)

    def disconnect(self) -> None:
        """Safely close the IMAP connection."""
        if self._mail is not None:
            try:
                self._mail.logout()
                logger.debug("imap_disconnected")
            except (imaplib.IMAP4.error, OSError):
                pass
            finally:
                self._mail = None

    # ── Searching ─────────────────────────────────────────
    def _ensure_connected(self) -> imaplib.IMAP4_SSL:
        if self._mail is None:
            raise RuntimeError("IMAP client not connected, call connect() first")
        return self._mail

    def search_recent(self, days: int, now: Optional[datetime] = None) -> List[int]:
        """Return UIDs of messages received within the last *days* days."""
        mail = self._ensure_connected()
        since = (now or datetime.now()) - timedelta(days=days)
        criteria = f'(SINCE {since.strftime("%d-%b-%Y")})'

        status, data = mail.uid("SEARCH", None, criteria)
        if status != "OK":
            raise IMAPFetchError("IMAP UID SEARCH failed")

        uid_tokens = (data[0] or b"").split()
        uids = sorted(int(t) for t in uid_tokens)
        logger.info("imap_uids_found", count=len(uids), since=since.date().isoformat())
        return uids

    # ── Fetching ──────────────────────────────────────────
    def fetch_batch(self, uids: Sequence[int]) -> List[FetchedMessage]:
        """Fetch *uids* with one ``UID FETCH`` without setting the \\Seen flag.

        Results come back in the order of *uids*; a UID the server sent no
        payload for yields a ``FetchedMessage`` with ``envelope=None``.
        """
        mail = self._ensure_connected()
        if not uids:
            return []

        uid_set = ",".join(str(uid) for uid in uids)
        status, fetched = mail.uid("FETCH", uid_set, "(BODY.PEEK[])")
        if status != "OK":
            raise IMAPFetchError(f"IMAP FETCH failed for uid={uid_set}")

        payloads: dict[int, bytes] = {}
        unlabelled: list[bytes] = []
        for item in fetched or []:
            # Payload arrives as (b'<seq> (UID <uid> BODY[] {n}', b'<bytes>')
            if not (isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], bytes)):
                continue
            matched = _UID_RE.search(item[0] or b"")
            if matched:
                payloads[int(matched.group(1))] = item[1]
            else:
                unlabelled.append(item[1])

        # Servers that omit UID from the header answer in request order
        for uid in uids:
            if uid not in payloads and unlabelled:
                payloads[uid] = unlabelled.pop(0)

        results: List[FetchedMessage] = []
        for uid in uids:
            raw_email = payloads.get(uid)
            if not raw_email:
                logger.warning("imap_empty_payload", uid=uid)
                results.append(FetchedMessage(uid=uid, envelope=None, message=None))
                continue
            msg = email_lib.message_from_bytes(raw_email)
            results.append(FetchedMessage(uid=uid, envelope=envelope_from_message(msg), message=msg))
        return results

    def fetch_message(self, uid: int) -> FetchedMessage:
        """Fetch one message by UID without setting the \\Seen flag."""
        return self.fetch_batch([uid])[0]

    def iter_messages(self, uids: Iterable[int]) -> Iterator[FetchedMessage]:
        """Lazily fetch *uids* in order, ``imap_fetch_batch_size`` per round trip.

        A failed FETCH ends the sequence with an error.
        """
        batch_size = self._config.imap_fetch_batch_size
        batch: List[int] = []
        for uid in uids:
            batch.append(uid)
            if len(batch) >= batch_size:
                yield from self.fetch_batch(batch)
                batch = []
        if batch:
            yield from self.fetch_batch(batch)
