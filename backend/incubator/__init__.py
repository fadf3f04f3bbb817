"""Incubator bridge: relays dashboard intents to the incubator controller."""

from .server import app, service  # noqa: F401
from .services.bridge_service import BridgeService  # noqa: F401

__all__ = ["BridgeService", "app", "service"]
