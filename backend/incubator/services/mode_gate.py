"""Operating-mode gate deciding which intents may reach the controller."""
from __future__ import annotations

import enum
import logging
from typing import Iterable, Union

logger = logging.getLogger(__name__)

ALWAYS_ALLOWED = frozenset({"mode", "emergency_stop", "reset"})


class OperatingMode(str, enum.Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"

    @classmethod
    def parse(cls, value: Union["OperatingMode", str]) -> "OperatingMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ValueError(f"Unsupported operating mode: {value!r}") from exc


class ModeGate:
    """Holds the current mode; in AUTO only safety intents are authorized."""

    def __init__(
        self,
        initial: Union[OperatingMode, str] = OperatingMode.AUTO,
        safety_intents: Iterable[str] = (),
    ) -> None:
        self._mode = OperatingMode.parse(initial)
        self._always_allowed = ALWAYS_ALLOWED | frozenset(safety_intents)

    @property
    def mode(self) -> OperatingMode:
        return self._mode

    @property
    def always_allowed(self) -> frozenset[str]:
        return self._always_allowed

    def authorize(self, intent_type: str) -> bool:
        if intent_type in self._always_allowed:
            return True
        return self._mode is OperatingMode.MANUAL

    def denial_message(self, intent_type: str) -> str:
        return f"'{intent_type}' is not allowed in {self._mode.value} mode"

    def set_mode(self, value: Union[OperatingMode, str]) -> OperatingMode:
        mode = OperatingMode.parse(value)
        if mode is not self._mode:
            logger.info("Operating mode %s -> %s", self._mode.value, mode.value)
        self._mode = mode
        return mode


__all__ = ["ALWAYS_ALLOWED", "ModeGate", "OperatingMode"]
