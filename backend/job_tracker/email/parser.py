"""Email MIME parsing: envelope headers, sender address and body extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from email.header import decode_header, make_header
from email.message import Message
from email.utils import getaddresses, parsedate_to_datetime
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Address:
    """One envelope address split the way IMAP reports it."""

    mailbox: str
    host: str


@dataclass(frozen=True)
class Envelope:
    """Subset of the IMAP envelope the pipeline needs."""

    subject: str
    from_: tuple[Address, ...] = field(default_factory=tuple)
    date: Optional[datetime] = None


# ── MIME helpers ──────────────────────────────────────────


def decode_mime_text(value: Optional[str]) -> str:
    """Decode a MIME-encoded header value to a plain string."""
    if not value:
        return ""
    try:
        return str(make_header(decode_header(value))).strip()
    except Exception:
        return value.strip()


def parse_date(date_raw: str) -> Optional[datetime]:
    """Parse a raw email date into a timezone-aware datetime, or None."""
    if not date_raw:
        return None
    try:
        dt = parsedate_to_datetime(date_raw)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def parse_addresses(value: Optional[str]) -> tuple[Address, ...]:
    addresses: list[Address] = []
    for _, addr in getaddresses([value or ""]):
        if not addr:
            continue
        mailbox, _, host = addr.rpartition("@")
        if not mailbox:
            # No "@": the whole token is the mailbox name
            mailbox, host = host, ""
        addresses.append(Address(mailbox=mailbox, host=host))
    return tuple(addresses)


def envelope_from_message(msg: Message) -> Envelope:
    """Build an ``Envelope`` from the message headers."""
    return Envelope(
        subject=decode_mime_text(msg.get("Subject", "")),
        from_=parse_addresses(str(msg.get("From", "") or "")),
        date=parse_date(str(msg.get("Date", "") or "")),
    )


def sender_email(envelope: Optional[Envelope]) -> str:
    """Return ``mailbox@host`` of the first sender, or ``""`` when absent."""
    if envelope is None or not envelope.from_:
        logger.debug("sender_missing")
        return ""
    first = envelope.from_[0]
    return f"{first.mailbox}@{first.host}"


# ── Body extraction ───────────────────────────────────────

_TAG_RE = re.compile(r"<[^>]*>")


def strip_html_tags(html: str) -> str:
    """Drop every ``<...>`` tag, decode ``&nbsp;`` and trim."""
    text = _TAG_RE.sub("", html)
    text = text.replace("&nbsp;", " ")
    return text.strip()


def _decode_payload(part: Message) -> str:
    payload = part.get_payload(decode=True) or b""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def extract_body_text(msg: Message) -> str:
    """Return the first ``text/plain`` part, else the stripped first ``text/html`` part.

    Parts are walked in order. Returns ``""`` when the message carries neither.
    """
    html_body: Optional[str] = None

    for part in msg.walk():
        if part.is_multipart():
            continue
        cdisp = str(part.get("Content-Disposition", "")).lower()
        if "attachment" in cdisp:
            continue
        media_type = part.get_content_type()
        if media_type.startswith("text/plain"):
            body = _decode_payload(part)
            logger.debug("body_plain_text", length=len(body))
            return body
        if media_type.startswith("text/html") and html_body is None:
            html_body = _decode_payload(part)

    if html_body is not None:
        logger.debug("body_html_fallback")
        return strip_html_tags(html_body)

    logger.debug("body_not_found")
    return ""
