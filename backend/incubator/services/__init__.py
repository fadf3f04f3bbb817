"""Service layer for the incubator bridge."""

from .bridge_service import BridgeService, CommandOutcome
from .dependencies import get_service, service, shutdown_service, startup_service
from .mode_gate import ModeGate, OperatingMode

__all__ = [
	"BridgeService",
	"CommandOutcome",
	"ModeGate",
	"OperatingMode",
	"get_service",
	"service",
	"shutdown_service",
	"startup_service",
]
