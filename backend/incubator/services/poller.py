"""Background telemetry polling loop."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..device_client import DeviceClient, DeviceLinkError
from ..state import ConnectivityChange, ConnectivityTracker, TelemetrySnapshot

logger = logging.getLogger(__name__)

Publisher = Callable[[str, dict[str, Any]], Awaitable[None]]

DEFAULT_POLL_INTERVAL = 1.0


class TelemetryPoller:
    """Polls ``/telemetry`` on a fixed grid and feeds the connectivity tracker.

    Polls never overlap: each tick awaits the previous request, which is
    itself bounded by the client timeout. Ticks that elapse while a slow poll
    is in flight are skipped rather than queued, and failures are retried on
    the next tick without backoff.
    """

    def __init__(
        self,
        client: DeviceClient,
        tracker: ConnectivityTracker,
        publish: Publisher,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._client = client
        self._tracker = tracker
        self._publish = publish
        self._interval = interval
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()
        self._consecutive_failures = 0
        self._skipped_ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="telemetry_poller")

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    async def poll_once(self) -> Optional[TelemetrySnapshot]:
        """Run a single poll; returns the new snapshot or ``None`` on failure."""

        try:
            payload = await self._client.fetch_telemetry()
            snapshot = TelemetrySnapshot.from_device(payload)
        except DeviceLinkError as exc:
            await self._handle_failure(exc)
            return None
        except Exception as exc:  # pragma: no cover - safeguard
            logger.exception("Unexpected telemetry poll failure")
            await self._handle_failure(exc)
            return None

        self._consecutive_failures = 0
        change = self._tracker.record_success(snapshot)
        if change is not None:
            logger.info("Device connected (%s -> %s)", change.previous.value, change.current.value)
            await self._publish_status(change)
        await self._publish("telemetry", snapshot.to_payload())
        return snapshot

    async def _handle_failure(self, exc: BaseException) -> None:
        self._consecutive_failures += 1
        change = self._tracker.record_failure(exc)
        if change is not None:
            logger.warning("Device disconnected: %s", exc)
            await self._publish_status(change)
        else:
            logger.debug("Telemetry poll failed (%d in a row): %s", self._consecutive_failures, exc)

    async def _publish_status(self, change: ConnectivityChange) -> None:
        await self._publish("arduino-status", {"connected": change.connected})

    async def _run(self) -> None:
        logger.info("Telemetry poller started (interval=%.2fs)", self._interval)
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not self._stop_event.is_set():
            await self.poll_once()

            next_tick += self._interval
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self._interval) + 1
                self._skipped_ticks += missed
                next_tick += missed * self._interval
                logger.debug("Poll overran its slot; skipping %d tick(s)", missed)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                continue

        logger.info("Telemetry poller stopped")


__all__ = ["Publisher", "TelemetryPoller"]
