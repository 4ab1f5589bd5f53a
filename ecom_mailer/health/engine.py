"""Connectivity check engine — one handshake per external endpoint.

Supports: IMAP login, SMTP EHLO/STARTTLS/AUTH, PostgreSQL pooled query,
Ollama model listing over HTTP.
Each check acquires one resource, releases it on every path, and folds any
failure into a CheckResult instead of raising.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

import asyncpg
import httpx
from imapclient import IMAPClient

if TYPE_CHECKING:
    from ..config import Settings

OLLAMA_TAGS_PATH = "/api/tags"


# ── Models ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Outcome of a single connectivity check."""

    check_id: str
    label: str
    status: Status
    latency_ms: float
    message: str = ""
    details: dict[str, Any] | None = None
    timestamp: str = ""

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def ok(self) -> bool:
        return self.status == Status.UP


@dataclass(frozen=True)
class CheckDef:
    id: str
    label: str
    runner: Callable[[Settings], Awaitable[CheckResult]]


class NotConfiguredError(Exception):
    """An endpoint setting required by a check is empty."""


def _elapsed_ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 1)


def error_message(exc: BaseException) -> str:
    """Underlying error text, or the exception type when it has none."""
    return str(exc) or type(exc).__name__


def _down(check_id: str, label: str, t0: float, exc: BaseException) -> CheckResult:
    return CheckResult(
        check_id=check_id, label=label, status=Status.DOWN,
        latency_ms=_elapsed_ms(t0), message=error_message(exc),
        details={"error_type": type(exc).__name__},
    )


def _require(value: Any, name: str) -> None:
    if not value:
        raise NotConfiguredError(f"{name} is not configured")


# ── IMAP ─────────────────────────────────────────────────────────────────────


def _imap_ssl_context(verify: bool) -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if not verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _imap_handshake(settings: Settings) -> dict[str, Any]:
    client = IMAPClient(
        settings.imap_host,
        port=settings.imap_port,
        ssl=settings.imap_tls,
        ssl_context=_imap_ssl_context(settings.imap_tls_verify) if settings.imap_tls else None,
        timeout=settings.check_timeout_seconds,
    )
    logged_in = False
    try:
        client.login(settings.smtp_user, settings.smtp_pass)
        logged_in = True
        welcome = client.welcome
        return {"welcome": welcome.decode(errors="replace") if isinstance(welcome, bytes) else welcome}
    finally:
        if logged_in:
            client.logout()
        else:
            client.shutdown()


async def run_imap_check(settings: Settings) -> CheckResult:
    """Open an authenticated IMAP session and close it again."""
    t0 = time.perf_counter()
    try:
        _require(settings.imap_host, "IMAP_HOST")
        loop = asyncio.get_running_loop()
        details = await loop.run_in_executor(None, _imap_handshake, settings)
        return CheckResult(
            check_id="imap", label="IMAP", status=Status.UP,
            latency_ms=_elapsed_ms(t0), message="login OK", details=details,
        )
    except Exception as e:
        return _down("imap", "IMAP", t0, e)


# ── SMTP ─────────────────────────────────────────────────────────────────────


def _smtp_verify(settings: Settings) -> dict[str, Any]:
    """Connection + capability handshake, same as a transport ``verify()``.

    No message is sent.
    """
    timeout = settings.check_timeout_seconds
    if settings.smtp_secure:
        smtp: smtplib.SMTP = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=timeout)
    else:
        smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=timeout)

    with smtp:
        smtp.ehlo()
        tls = settings.smtp_secure
        if not tls and smtp.has_extn("starttls"):
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
            tls = True
        authenticated = False
        if settings.smtp_user:
            smtp.login(settings.smtp_user, settings.smtp_pass)
            authenticated = True
    return {"tls": tls, "authenticated": authenticated}


async def run_smtp_check(settings: Settings) -> CheckResult:
    """Verify the SMTP relay accepts a connection and our credentials."""
    t0 = time.perf_counter()
    try:
        _require(settings.smtp_host, "SMTP_HOST")
        loop = asyncio.get_running_loop()
        details = await loop.run_in_executor(None, _smtp_verify, settings)
        return CheckResult(
            check_id="smtp", label="SMTP", status=Status.UP,
            latency_ms=_elapsed_ms(t0), message="handshake OK", details=details,
        )
    except Exception as e:
        return _down("smtp", "SMTP", t0, e)


# ── PostgreSQL ───────────────────────────────────────────────────────────────


async def run_postgres_check(settings: Settings) -> CheckResult:
    """Pool → acquire → SELECT NOW() → release → close pool."""
    t0 = time.perf_counter()
    try:
        _require(settings.db_url, "DB_URL")
        pool = await asyncpg.create_pool(
            dsn=settings.db_url,
            min_size=1,
            max_size=1,
            timeout=settings.check_timeout_seconds,
            command_timeout=settings.check_timeout_seconds,
        )
        try:
            async with pool.acquire() as conn:
                now = await conn.fetchval("SELECT NOW()")
        finally:
            await pool.close()
        return CheckResult(
            check_id="postgres", label="PostgreSQL", status=Status.UP,
            latency_ms=_elapsed_ms(t0), message="query OK",
            details={"server_time": now.isoformat() if hasattr(now, "isoformat") else str(now)},
        )
    except Exception as e:
        return _down("postgres", "PostgreSQL", t0, e)


# ── Ollama ───────────────────────────────────────────────────────────────────


async def run_ollama_check(settings: Settings) -> CheckResult:
    """GET /api/tags on the inference server; any non-2xx is a failure."""
    t0 = time.perf_counter()
    try:
        _require(settings.ollama_base_url, "OLLAMA_BASE_URL")
        url = f"{settings.ollama_base_url}{OLLAMA_TAGS_PATH}"
        async with httpx.AsyncClient(timeout=settings.check_timeout_seconds) as client:
            resp = await client.get(url)
            resp.raise_for_status()

        details: dict[str, Any] = {"status_code": resp.status_code}
        try:
            body = resp.json()
            if isinstance(body, dict) and isinstance(body.get("models"), list):
                details["models"] = len(body["models"])
        except ValueError:
            pass

        return CheckResult(
            check_id="ollama", label="Ollama", status=Status.UP,
            latency_ms=_elapsed_ms(t0), message=f"{resp.status_code} OK", details=details,
        )
    except Exception as e:
        return _down("ollama", "Ollama", t0, e)


# Fixed execution order
CHECKS: tuple[CheckDef, ...] = (
    CheckDef("imap", "IMAP", run_imap_check),
    CheckDef("smtp", "SMTP", run_smtp_check),
    CheckDef("postgres", "PostgreSQL", run_postgres_check),
    CheckDef("ollama", "Ollama", run_ollama_check),
)

CHECK_IDS: tuple[str, ...] = tuple(c.id for c in CHECKS)


def get_check(check_id: str) -> CheckDef | None:
    for check in CHECKS:
        if check.id == check_id:
            return check
    return None


async def execute_check(check_id: str, settings: Settings) -> CheckResult:
    """Run a check by id."""
    check = get_check(check_id)
    if not check:
        return CheckResult(
            check_id=check_id, label=check_id, status=Status.UNKNOWN,
            latency_ms=0, message=f"Unknown check: {check_id}",
        )
    return await check.runner(settings)
