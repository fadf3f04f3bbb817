"""Pydantic schemas shared across API routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ControlCommand(BaseModel):
    type: str
    value: Any = None


class CommandStatus(BaseModel):
    success: bool
    command: str
    type: str
    reason: str
    error: Optional[str] = None
    resp: Any = None


class TelemetryResponse(BaseModel):
    ok: bool = True
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    age_ms: Optional[int] = None
    timestamp: Optional[str] = None


class BridgeState(BaseModel):
    device_url: str
    connectivity: str
    connected: bool
    changed_at: Optional[str]
    last_error: Optional[str]
    mode: str
    always_allowed: List[str]
    poll_interval: float
    http_timeout: float
    clients: int
    telemetry: Dict[str, Any]


__all__ = [
    "BridgeState",
    "CommandStatus",
    "ControlCommand",
    "TelemetryResponse",
]
