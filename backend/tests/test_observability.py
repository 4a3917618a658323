"""
Unit tests for secret redaction and the health endpoint body.

Run: pytest backend/tests/test_observability.py -v
"""
from __future__ import annotations

import json

from shared.utils.health_server import health_body, start_health_server
from shared.utils.http_client import is_quota_message
from shared.utils.logging import key_hint, redact_secrets


def test_key_hint_shows_only_the_tail() -> None:
    assert key_hint("abcdef123456") == "…3456"
    assert key_hint("") == "<none>"


def test_redact_secrets_masks_known_keys() -> None:
    event = {"event": "x", "apikey": "super-secret-9999", "x-rapidapi-key": 42, "provider": "cricapi"}
    out = redact_secrets(None, "info", event)
    assert out["apikey"] == "…9999"
    assert out["x-rapidapi-key"] == "<redacted>"
    assert out["provider"] == "cricapi"


def test_quota_messages() -> None:
    assert is_quota_message("Blocked for 15 minutes")
    assert is_quota_message("You have exceeded the DAILY quota")
    assert not is_quota_message("Match not found")
    assert not is_quota_message(None)


def test_health_body_merges_details() -> None:
    body = json.loads(health_body("scheduler", lambda: {"loops": ["scorecard_sync"]}))
    assert body == {"status": "ok", "service": "scheduler", "loops": ["scorecard_sync"]}


def test_health_body_survives_failing_details() -> None:
    def broken() -> dict:
        raise RuntimeError("no tick yet")

    body = json.loads(health_body("scheduler", broken))
    assert body["status"] == "ok"
    assert body["details_error"] == "no tick yet"


def test_health_server_needs_port(monkeypatch) -> None:
    monkeypatch.delenv("PORT", raising=False)
    assert start_health_server("scheduler") is None
