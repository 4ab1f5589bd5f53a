"""Service lifecycle: one-shot startup probe, then heartbeat until shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

from ..health.prober import ConnectivityProber
from .heartbeat import HeartbeatScheduler

if TYPE_CHECKING:
    from ..config import Settings
    from ..health.engine import CheckResult

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows / non-main thread: rely on KeyboardInterrupt instead
            logger.debug("Signal handler for %s not available", sig.name)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run_service(
    settings: Settings,
    stop_event: asyncio.Event | None = None,
    prober: ConnectivityProber | None = None,
    heartbeat: HeartbeatScheduler | None = None,
) -> list[CheckResult]:
    """Probe every endpoint once, then emit heartbeats until ``stop_event`` is set.

    When no ``stop_event`` is given, SIGINT/SIGTERM set one. Check failures
    are logged by the prober and never end the service.
    """
    logger.info("Starting %s service...", settings.service_name)

    prober = prober or ConnectivityProber(settings)
    heartbeat = heartbeat or HeartbeatScheduler(
        settings.service_name, interval=settings.heartbeat_interval_seconds,
    )

    installed: list[signal.Signals] = []
    if stop_event is None:
        stop_event = asyncio.Event()
        installed = _install_signal_handlers(stop_event)

    probe = asyncio.create_task(prober.run_all(), name=f"{settings.service_name}-probe")
    stopped = asyncio.create_task(stop_event.wait())
    results: list[CheckResult] = []
    try:
        # A shutdown request must not wait for the remaining checks
        await asyncio.wait({probe, stopped}, return_when=asyncio.FIRST_COMPLETED)
        if probe.done():
            results = probe.result()
            failed = [r.label for r in results if not r.ok]
            if failed:
                logger.warning("%d of %d checks failed: %s", len(failed), len(results), ", ".join(failed))

            await heartbeat.start()
            await stopped
        else:
            logger.info("Shutdown requested during startup probe")
        logger.info("Shutting down %s service", settings.service_name)
    finally:
        for task in (probe, stopped):
            task.cancel()
        await asyncio.gather(probe, stopped, return_exceptions=True)
        await heartbeat.stop()
        _remove_signal_handlers(installed)

    return results
