"""FastAPI routing layer for the incubator bridge."""
from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..device_client import DeviceLinkError
from ..models.api import BridgeState, CommandStatus, ControlCommand, TelemetryResponse
from ..services.bridge_service import BridgeService
from ..services.broadcaster import ClientSession
from ..services.dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/ping-esp")
async def api_ping_esp(svc: BridgeService = Depends(get_service)) -> Response:
    try:
        status = await svc.ping_device()
    except DeviceLinkError as exc:
        return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})

    return PlainTextResponse(status.text, status_code=status.status_code)


@router.get("/api/telemetry", response_model=TelemetryResponse)
async def api_telemetry(svc: BridgeService = Depends(get_service)) -> TelemetryResponse:
    return TelemetryResponse(ok=True, **svc.cached_telemetry())


@router.get("/api/state", response_model=BridgeState)
async def api_state(svc: BridgeService = Depends(get_service)) -> BridgeState:
    return BridgeState(**svc.describe())


@router.post("/api/command", response_model=CommandStatus)
async def api_command(
    request: ControlCommand,
    svc: BridgeService = Depends(get_service),
) -> CommandStatus:
    outcome = await svc.handle_intent(request.type, request.value)
    return CommandStatus(**outcome.to_payload())


async def _pump(websocket: WebSocket, session: ClientSession) -> None:
    while True:
        message = await session.next_message()
        await websocket.send_text(json.dumps(message))


@router.websocket("/ws")
async def events_ws(
    websocket: WebSocket,
    svc: BridgeService = Depends(get_service),
) -> None:
    await websocket.accept()
    session = await svc.attach_client()
    sender = asyncio.create_task(_pump(websocket, session))
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            try:
                message = json.loads(raw)
            except (TypeError, ValueError):
                svc.dispatch(session, None)
                continue

            event = message.get("event") if isinstance(message, dict) else None
            if event == "control-command":
                svc.dispatch(session, message.get("data"))
            else:
                logger.debug("Ignoring websocket event %r from client %s", event, session.id)
    except WebSocketDisconnect:  # pragma: no cover - network event
        pass
    finally:
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, Exception):  # pragma: no cover - best effort cleanup
            pass
        await svc.detach_client(session)


__all__ = ["router"]
