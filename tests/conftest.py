"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from ecom_mailer.config import Settings
from ecom_mailer.health.engine import CheckDef, CheckResult, Status


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any .env file, with every endpoint filled in."""
    values: dict[str, Any] = {
        "smtp_user": "shop@example.com",
        "smtp_pass": "s3cret",
        "imap_host": "imap.example.com",
        "imap_port": 993,
        "imap_tls": True,
        "imap_tls_verify": False,
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_secure": False,
        "db_url": "postgresql://shop:pw@db.example.com:5432/shop",
        "ollama_base_url": "http://ollama:11434",
        "service_name": "ecom-mailer",
        "heartbeat_interval_seconds": 60.0,
        "check_timeout_seconds": 5.0,
        "log_level": "INFO",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


def fake_check(
    check_id: str,
    label: str,
    up: bool = True,
    message: str = "",
    calls: list[str] | None = None,
) -> CheckDef:
    """A CheckDef whose runner returns a canned result and records the call."""

    async def runner(_settings: Settings) -> CheckResult:
        if calls is not None:
            calls.append(check_id)
        return CheckResult(
            check_id=check_id, label=label,
            status=Status.UP if up else Status.DOWN,
            latency_ms=1.0, message=message,
        )

    return CheckDef(check_id, label, runner)


def fake_checks(down: set[str] | None = None, calls: list[str] | None = None) -> list[CheckDef]:
    """The four standard checks, with the ids in ``down`` failing."""
    down = down or set()
    specs = [
        ("imap", "IMAP", "[AUTHENTICATIONFAILED] Invalid credentials"),
        ("smtp", "SMTP", "Connection unexpectedly closed"),
        ("postgres", "PostgreSQL", "connect ECONNREFUSED 127.0.0.1:5432"),
        ("ollama", "Ollama", "All connection attempts failed"),
    ]
    return [
        fake_check(cid, label, up=cid not in down, message=err if cid in down else "OK", calls=calls)
        for cid, label, err in specs
    ]
