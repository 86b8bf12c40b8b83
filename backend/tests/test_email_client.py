"""Tests for the read-only IMAP client against a stub IMAP4_SSL server."""

from __future__ import annotations

from datetime import datetime
from email.mime.text import MIMEText
from typing import Any

import pytest

from job_tracker.config import AppConfig
from job_tracker.email import client as client_module
from job_tracker.email.client import IMAPClient, IMAPFetchError


class _StubIMAP:
    """Records commands and answers UID SEARCH/FETCH from canned replies."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.commands: list[tuple[Any, ...]] = []
        self.search_reply: tuple[str, list[Any]] = ("OK", [b""])
        self.fetch_replies: dict[str, tuple[str, list[Any]]] = {}
        self.logged_out = False

    def login(self, user: str, password: str) -> tuple[str, list[bytes]]:
        self.commands.append(("LOGIN", user, password))
        return "OK", [b"LOGIN completed"]

    def select(self, mailbox: str, readonly: bool = False) -> tuple[str, list[bytes]]:
        self.commands.append(("SELECT", mailbox, readonly))
        return "OK", [b"3"]

    def uid(self, command: str, *args: Any) -> tuple[str, list[Any]]:
        self.commands.append(("UID", command, *args))
        if command == "SEARCH":
            return self.search_reply
        return self.fetch_replies.get(args[0], ("OK", [None]))

    def logout(self) -> tuple[str, list[bytes]]:
        self.logged_out = True
        return "BYE", [b"LOGOUT"]


@pytest.fixture()
def stub_imap(monkeypatch: pytest.MonkeyPatch) -> list[_StubIMAP]:
    servers: list[_StubIMAP] = []

    def _connect(host: str, port: int) -> _StubIMAP:
        server = _StubIMAP(host, port)
        servers.append(server)
        return server

    monkeypatch.setattr(client_module.imaplib, "IMAP4_SSL", _connect)
    monkeypatch.setattr(client_module.socket, "setdefaulttimeout", lambda timeout: None)
    return servers


def _make_config(**overrides: Any) -> AppConfig:
    fields: dict[str, Any] = {
        "gmail_user": "candidate@gmail.com",
        "gmail_app_password": "app-password",
        "notion_token": "ntn_token",
        "notion_db_id": "db123",
        "llm_enabled": False,
    }
    fields.update(overrides)
    return AppConfig(_env_file=None, **fields)


def _raw_message(subject: str) -> bytes:
    mime = MIMEText("Thanks for applying", "plain", "utf-8")
    mime["Subject"] = subject
    mime["From"] = "Acme Careers <jobs@acme.com>"
    mime["Date"] = "Fri, 27 Feb 2026 10:00:00 +0000"
    return mime.as_bytes()


def _fetch_item(seq: int, uid: int, raw: bytes) -> tuple[bytes, bytes]:
    return (f"{seq} (UID {uid} BODY[] {{{len(raw)}}}".encode(), raw)


def test_connect_logs_in_and_selects_read_only(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()):
        server = stub_imap[0]
        assert (server.host, server.port) == ("imap.gmail.com", 993)
        assert server.commands == [
            ("LOGIN", "candidate@gmail.com", "app-password"),
            ("SELECT", "INBOX", True),
        ]
    assert server.logged_out


def test_search_uses_since_lookback(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()) as client:
        stub_imap[0].search_reply = ("OK", [b"12 3 7"])
        uids = client.search_recent(days=7, now=datetime(2026, 3, 8, 9, 30))

    assert uids == [3, 7, 12]
    assert stub_imap[0].commands[-1] == ("UID", "SEARCH", None, "(SINCE 01-Mar-2026)")


def test_rejected_search_raises(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()) as client:
        stub_imap[0].search_reply = ("NO", [b"SEARCH failed"])
        with pytest.raises(IMAPFetchError):
            client.search_recent(days=7)


def test_fetch_picks_payload_out_of_response_tuples(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()) as client:
        stub_imap[0].fetch_replies["3,7"] = (
            "OK",
            [
                _fetch_item(1, 3, _raw_message("Application to Acme")),
                b")",
                _fetch_item(2, 7, _raw_message("Interview at Globex")),
                b")",
            ],
        )
        fetched = client.fetch_batch([3, 7])

    assert [f.uid for f in fetched] == [3, 7]
    assert [f.envelope.subject for f in fetched] == ["Application to Acme", "Interview at Globex"]
    assert stub_imap[0].commands[-1] == ("UID", "FETCH", "3,7", "(BODY.PEEK[])")


def test_empty_payload_has_no_envelope(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()) as client:
        stub_imap[0].fetch_replies["9"] = ("OK", [None])
        fetched = client.fetch_message(9)

    assert fetched.uid == 9
    assert fetched.envelope is None
    assert fetched.message is None


def test_rejected_fetch_raises(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config()) as client:
        stub_imap[0].fetch_replies["4"] = ("NO", [b"FETCH failed"])
        with pytest.raises(IMAPFetchError, match="uid=4"):
            client.fetch_message(4)


def test_iter_messages_fetches_in_batches(stub_imap: list[_StubIMAP]) -> None:
    with IMAPClient(_make_config(imap_fetch_batch_size=2)) as client:
        server = stub_imap[0]
        server.fetch_replies["3,7"] = (
            "OK",
            [_fetch_item(1, 7, _raw_message("second")), _fetch_item(2, 3, _raw_message("first"))],
        )
        server.fetch_replies["9"] = ("OK", [_fetch_item(3, 9, _raw_message("third"))])
        fetched = list(client.iter_messages([3, 7, 9]))

    assert [f.envelope.subject for f in fetched] == ["first", "second", "third"]
    fetches = [c for c in server.commands if c[:2] == ("UID", "FETCH")]
    assert [c[2] for c in fetches] == ["3,7", "9"]


def test_payload_without_uid_label_follows_request_order(stub_imap: list[_StubIMAP]) -> None:
    raw = _raw_message("Application update")
    with IMAPClient(_make_config()) as client:
        stub_imap[0].fetch_replies["5"] = ("OK", [(f"1 (BODY[] {{{len(raw)}}}".encode(), raw), b" UID 5)"])
        fetched = client.fetch_message(5)

    assert fetched.envelope is not None
    assert fetched.envelope.subject == "Application update"


def test_calls_before_connect_raise() -> None:
    with pytest.raises(RuntimeError, match="not connected"):
        IMAPClient(_make_config()).search_recent(days=7)
