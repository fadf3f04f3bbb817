"""Pydantic models shared across the incubator bridge."""

from .api import (
	BridgeState,
	CommandStatus,
	ControlCommand,
	TelemetryResponse,
)

__all__ = [
	"BridgeState",
	"CommandStatus",
	"ControlCommand",
	"TelemetryResponse",
]
