"""Heartbeat scheduler — periodic liveness line for an external supervisor.

Runs as its own asyncio task after the startup probe. It has a single
running state and only ends when the service shuts down.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# How often the heartbeat fires (seconds)
DEFAULT_HEARTBEAT_INTERVAL = 60.0


class HeartbeatScheduler:
    """Logs ``Service running: <name>`` every ``interval`` seconds.

    Lifecycle:
        heartbeat = HeartbeatScheduler("ecom-mailer")
        await heartbeat.start()
        ...
        await heartbeat.stop()
    """

    def __init__(
        self,
        service_name: str,
        interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        on_beat: Callable[[int], Any] | None = None,
    ) -> None:
        self.service_name = service_name
        self.interval = interval
        self.on_beat = on_beat
        self.beats = 0
        self.last_beat: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(
            self._heartbeat_loop(), name=f"{self.service_name}-heartbeat"
        )
        logger.info("Heartbeat started (interval=%gs)", self.interval)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Heartbeat stopped after %d beats", self.beats)

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "beats": self.beats,
            "interval": self.interval,
            "last_beat": self.last_beat,
        }

    # -- core loop -------------------------------------------------------------

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                if not self._running:
                    break
                self._beat()
            except asyncio.CancelledError:
                break

    def _beat(self) -> None:
        self.beats += 1
        self.last_beat = datetime.now(timezone.utc).isoformat()
        logger.info("Service running: %s", self.service_name)
        if self.on_beat:
            try:
                self.on_beat(self.beats)
            except Exception:
                logger.exception("Heartbeat callback error")
