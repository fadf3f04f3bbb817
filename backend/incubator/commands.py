"""Translation of dashboard intents into the controller's wire commands.

``COMMAND_TABLE`` is the single source of truth for the protocol vocabulary:
each intent type maps to the wire name and the rule used to render its value.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


class IntentError(ValueError):
    """Raised when an intent cannot be turned into a wire command."""

    reason = "invalid_value"

    def __init__(self, intent_type: str, message: str) -> None:
        super().__init__(message)
        self.intent_type = intent_type


class UnknownIntentError(IntentError):
    reason = "unknown_intent"

    def __init__(self, intent_type: Any) -> None:
        super().__init__(str(intent_type), f"Unknown command type: {intent_type}")


class InvalidIntentValueError(IntentError):
    pass


_TRUE_TOKENS = {"on", "true", "1", "open", "yes"}
_FALSE_TOKENS = {"off", "false", "0", "close", "closed", "no", ""}


def format_float(value: Any) -> str:
    """Render a number the way the firmware parses it (``38`` not ``38.0``)."""

    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not finite")
    text = repr(number)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def format_int(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        try:
            return str(int(value.strip()))
        except ValueError:
            pass
    number = float(value)
    if not math.isfinite(number) or not number.is_integer():
        raise ValueError(f"{value!r} is not an integer")
    return str(int(number))


def parse_switch(value: Any) -> bool:
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
        raise ValueError(f"{value!r} is not an on/off value")
    return bool(value)


def format_mode(value: Any) -> str:
    token = str(value).strip().upper() if value is not None else ""
    if token not in {"AUTO", "MANUAL"}:
        raise ValueError(f"{value!r} is not AUTO or MANUAL")
    return token


@dataclass(frozen=True)
class WireRule:
    """How one intent type is rendered on the wire."""

    name: str
    render: Optional[Callable[[Any], str]] = None

    def build(self, value: Any) -> str:
        if self.render is None:
            return self.name
        return f"{self.name}:{self.render(value)}"


def _switch(on: str, off: str) -> Callable[[Any], str]:
    def render(value: Any) -> str:
        return on if parse_switch(value) else off

    return render


_ON_OFF = _switch("ON", "OFF")

COMMAND_TABLE: Dict[str, WireRule] = {
    "mode": WireRule("MODE", format_mode),
    "temperature": WireRule("SET_TEMP", format_float),
    "humidity": WireRule("SET_HUM", format_int),
    "ventilation": WireRule("VENT", _ON_OFF),
    "heating": WireRule("HEAT", _ON_OFF),
    "humidity_system": WireRule("HUM_SYS", _ON_OFF),
    "flip": WireRule("FLIP", _ON_OFF),
    "start_flip_session": WireRule("START_FLIP_SESSION"),
    "stop_flip_session": WireRule("STOP_FLIP_SESSION"),
    "flip_interval_hours": WireRule("SET_FLIP_INTERVAL_H", format_float),
    "flip_duration_minutes": WireRule("SET_FLIP_DURATION_M", format_float),
    "trigger_vent_now": WireRule("TRIGGER_VENT_NOW"),
    "water_valve": WireRule("WATER_VALVE", _switch("OPEN", "CLOSE")),
    "day": WireRule("SET_DAY", format_int),
    "egg_count": WireRule("SET_EGGS", format_int),
    "reset": WireRule("RESET"),
    "buzzer_test": WireRule("BUZZER", _ON_OFF),
    "silence_alarm": WireRule("SILENCE_ALARM"),
    "emergency_stop": WireRule("EMERGENCY_STOP"),
}


def supported_intents() -> List[str]:
    return sorted(COMMAND_TABLE)


def translate(intent_type: Any, value: Any = None) -> str:
    """Return the wire command for ``(intent_type, value)``.

    Raises:
        UnknownIntentError: if the intent type has no table entry.
        InvalidIntentValueError: if the value cannot be rendered.
    """

    rule = COMMAND_TABLE.get(intent_type) if isinstance(intent_type, str) else None
    if rule is None:
        raise UnknownIntentError(intent_type)
    try:
        return rule.build(value)
    except (TypeError, ValueError) as exc:
        raise InvalidIntentValueError(
            intent_type, f"Invalid value for {intent_type}: {exc}"
        ) from exc


__all__ = [
    "COMMAND_TABLE",
    "IntentError",
    "InvalidIntentValueError",
    "UnknownIntentError",
    "WireRule",
    "format_float",
    "format_int",
    "parse_switch",
    "supported_intents",
    "translate",
]
