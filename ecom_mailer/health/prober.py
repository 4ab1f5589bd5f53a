"""Connectivity prober — runs every check once, in order, and logs the outcome.

Checks are awaited one after another (no fan-out). A failing, raising or
hanging check is turned into a DOWN result so the remaining checks always run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from .engine import CHECKS, CheckDef, CheckResult, Status, error_message

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class ConnectivityProber:
    """Sequential one-shot probe over a fixed list of checks.

    Usage:
        prober = ConnectivityProber(settings)
        results = await prober.run_all()
    """

    def __init__(
        self,
        settings: Settings,
        checks: Sequence[CheckDef] = CHECKS,
        on_result: Callable[[CheckResult], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.checks = tuple(checks)
        self.on_result = on_result
        self.timeout = settings.check_timeout_seconds

    async def run_all(self) -> list[CheckResult]:
        """Run every check in order; never raises on a check failure."""
        logger.info("Testing connections...")
        results = []
        for check in self.checks:
            results.append(await self._run_and_report(check))
        return results

    async def run_only(self, check_ids: Iterable[str]) -> list[CheckResult]:
        """Run a subset of checks, still in the fixed order.

        Ids that match no check come back as UNKNOWN results, after the
        known ones.
        """
        wanted = list(dict.fromkeys(check_ids))
        known = {c.id for c in self.checks}

        logger.info("Testing connections: %s", ", ".join(wanted))
        results = []
        for check in self.checks:
            if check.id in wanted:
                results.append(await self._run_and_report(check))
        for check_id in wanted:
            if check_id not in known:
                result = CheckResult(
                    check_id=check_id, label=check_id, status=Status.UNKNOWN,
                    latency_ms=0, message=f"Unknown check: {check_id}",
                )
                logger.warning("? %s: %s", check_id, result.message)
                results.append(result)
        return results

    # -- internals -------------------------------------------------------------

    async def _run_and_report(self, check: CheckDef) -> CheckResult:
        result = await self._run_one(check)
        self._log_result(result)
        if self.on_result:
            try:
                self.on_result(result)
            except Exception:
                logger.exception("Result callback error")
        return result

    async def _run_one(self, check: CheckDef) -> CheckResult:
        t0 = time.perf_counter()
        try:
            return await asyncio.wait_for(check.runner(self.settings), timeout=self.timeout)
        except asyncio.TimeoutError:
            return CheckResult(
                check_id=check.id, label=check.label, status=Status.DOWN,
                latency_ms=round(self.timeout * 1000, 1),
                message=f"timed out after {self.timeout:g}s",
            )
        except Exception as e:
            # Runners catch their own errors; this covers a broken runner.
            return CheckResult(
                check_id=check.id, label=check.label, status=Status.DOWN,
                latency_ms=round((time.perf_counter() - t0) * 1000, 1),
                message=error_message(e),
            )

    @staticmethod
    def _log_result(result: CheckResult) -> None:
        if result.ok:
            logger.info("✓ %s connection successful", result.label)
        else:
            logger.error("✗ %s connection failed: %s", result.label, result.message)
        logger.debug(
            "Check %s: %s (%.1fms) %s",
            result.check_id, result.status.value, result.latency_ms, result.details or "",
        )
