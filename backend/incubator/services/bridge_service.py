"""Core business logic for the incubator bridge."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Set

from pydantic import ValidationError

from ..commands import IntentError, translate
from ..config import BridgeSettings
from ..device_client import DeviceClient, DeviceLinkError, DeviceStatus
from ..models.api import ControlCommand
from ..state import ConnectivityTracker, format_timestamp
from .broadcaster import ClientSession, Event, SessionBroadcaster
from .mode_gate import ModeGate, OperatingMode
from .poller import TelemetryPoller

logger = logging.getLogger("incubator.service")

EMPTY_TELEMETRY: Dict[str, Any] = {
    "temperature": None,
    "humidity": None,
    "age_ms": None,
    "timestamp": None,
}


@dataclass(frozen=True)
class CommandOutcome:
    """Result of one intent, reported to the requesting client only."""

    intent: str
    command: str
    success: bool
    reason: str = "ok"
    error: Optional[str] = None
    response: Any = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "command": self.command,
            "type": self.intent,
            "reason": self.reason,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.success:
            payload["resp"] = self.response
        return payload


class BridgeService:
    """Async facade over the device client with background telemetry polling."""

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        client: Optional[DeviceClient] = None,
    ) -> None:
        self._settings = settings or BridgeSettings.from_env()
        self._owns_client = client is None
        self._client = client or DeviceClient(
            self._settings.device_url,
            timeout=self._settings.http_timeout,
        )
        self._tracker = ConnectivityTracker()
        self._gate = ModeGate(
            self._settings.default_mode,
            safety_intents=self._settings.safety_intents,
        )
        self._broadcaster = SessionBroadcaster()
        self._poller = TelemetryPoller(
            self._client,
            self._tracker,
            self._broadcaster.publish,
            interval=self._settings.poll_interval,
        )
        self._command_tasks: Set[asyncio.Task[None]] = set()

    @property
    def settings(self) -> BridgeSettings:
        return self._settings

    @property
    def tracker(self) -> ConnectivityTracker:
        return self._tracker

    @property
    def gate(self) -> ModeGate:
        return self._gate

    @property
    def broadcaster(self) -> SessionBroadcaster:
        return self._broadcaster

    @property
    def poller(self) -> TelemetryPoller:
        return self._poller

    # ------------------------------------------------------------------
    async def start(self) -> None:
        logger.info("Bridging to device at %s", self._client.base_url)
        await self._poller.start()

    async def stop(self) -> None:
        await self._poller.stop()
        if self._command_tasks:
            await asyncio.gather(*self._command_tasks, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    def _replay(self) -> Iterator[Event]:
        view = self._tracker.view()
        yield "arduino-status", {"connected": view.connected}
        yield "mode-status", {"mode": self._gate.mode.value}
        if view.snapshot is not None:
            yield "telemetry", view.snapshot.to_payload()

    async def attach_client(self) -> ClientSession:
        return await self._broadcaster.attach(self._replay)

    async def detach_client(self, session: ClientSession) -> None:
        await self._broadcaster.detach(session)

    # ------------------------------------------------------------------
    async def handle_intent(self, intent_type: Any, value: Any = None) -> CommandOutcome:
        """Gate, translate and send one intent.

        Device and intent failures are folded into the returned outcome; this
        path never changes connectivity state.
        """

        name = intent_type if isinstance(intent_type, str) else str(intent_type)

        if not self._gate.authorize(name):
            message = self._gate.denial_message(name)
            logger.info("Denied intent %s: %s", name, message)
            return CommandOutcome(
                intent=name,
                command="",
                success=False,
                reason="denied_by_mode",
                error=message,
            )

        try:
            command = translate(intent_type, value)
        except IntentError as exc:
            logger.info("Rejected intent %s: %s", name, exc)
            return CommandOutcome(
                intent=name,
                command="",
                success=False,
                reason=exc.reason,
                error=str(exc),
            )

        if name == "mode":
            await self._apply_mode(value)

        try:
            response = await self._client.send_command(command)
        except DeviceLinkError as exc:
            logger.warning("Command %s failed: %s", command, exc)
            return CommandOutcome(
                intent=name,
                command=command,
                success=False,
                reason=exc.reason,
                error=str(exc),
            )

        logger.info("Command %s sent", command)
        return CommandOutcome(intent=name, command=command, success=True, response=response)

    async def _apply_mode(self, value: Any) -> None:
        previous = self._gate.mode
        mode = self._gate.set_mode(value)
        if mode is not previous:
            await self._broadcaster.publish("mode-status", {"mode": mode.value})

    async def submit(self, session: ClientSession, payload: Any) -> CommandOutcome:
        """Handle an inbound ``control-command`` and answer that session only."""

        try:
            request = ControlCommand.model_validate(payload)
        except ValidationError as exc:
            outcome = CommandOutcome(
                intent="",
                command="",
                success=False,
                reason="invalid_value",
                error=f"Malformed control-command: {exc.errors()[0]['msg']}",
            )
        else:
            outcome = await self.handle_intent(request.type, request.value)
        session.send("command-status", outcome.to_payload())
        return outcome

    def dispatch(self, session: ClientSession, payload: Any) -> asyncio.Task[None]:
        """Run ``submit`` as its own task so a slow device never blocks the socket."""

        async def _run() -> None:
            try:
                await self.submit(session, payload)
            except Exception:  # pragma: no cover - safeguard
                logger.exception("Unhandled error processing control-command")

        task = asyncio.create_task(_run(), name=f"command-{session.id}")
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)
        return task

    # ------------------------------------------------------------------
    async def ping_device(self) -> DeviceStatus:
        return await self._client.fetch_status()

    def cached_telemetry(self) -> Dict[str, Any]:
        snapshot = self._tracker.snapshot
        if snapshot is None:
            return dict(EMPTY_TELEMETRY)
        return snapshot.to_payload()

    @property
    def mode(self) -> OperatingMode:
        return self._gate.mode

    def describe(self) -> Dict[str, Any]:
        view = self._tracker.view()
        return {
            "device_url": self._client.base_url,
            "connectivity": view.state.value,
            "connected": view.connected,
            "changed_at": format_timestamp(view.changed_at) if view.changed_at else None,
            "last_error": view.last_error,
            "mode": self._gate.mode.value,
            "always_allowed": sorted(self._gate.always_allowed),
            "poll_interval": self._poller.interval,
            "http_timeout": self._client.timeout,
            "clients": self._broadcaster.client_count,
            "telemetry": self.cached_telemetry(),
        }


__all__ = ["BridgeService", "CommandOutcome", "EMPTY_TELEMETRY"]
