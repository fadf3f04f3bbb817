"""Device reachability state and the last-known telemetry snapshot."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""

    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coerce_int(value: Any) -> Optional[int]:
    number = _coerce_float(value)
    return None if number is None else int(number)


@dataclass(frozen=True)
class TelemetrySnapshot:
    temperature: Optional[float]
    humidity: Optional[float]
    age_ms: Optional[int]
    observed_at: datetime

    @classmethod
    def from_device(
        cls,
        payload: Mapping[str, Any],
        observed_at: Optional[datetime] = None,
    ) -> "TelemetrySnapshot":
        """Normalise a raw ``/telemetry`` body; unusable numbers become ``None``."""

        return cls(
            temperature=_coerce_float(payload.get("temperature")),
            humidity=_coerce_float(payload.get("humidity")),
            age_ms=_coerce_int(payload.get("age_ms")),
            observed_at=observed_at or utc_now(),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "age_ms": self.age_ms,
            "timestamp": format_timestamp(self.observed_at),
        }


class ConnectivityState(str, enum.Enum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectivityChange:
    previous: ConnectivityState
    current: ConnectivityState
    changed_at: datetime
    error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.current is ConnectivityState.CONNECTED


@dataclass(frozen=True)
class ConnectivityView:
    """Read-only copy of the tracker handed to consumers."""

    state: ConnectivityState
    changed_at: Optional[datetime]
    last_error: Optional[str]
    snapshot: Optional[TelemetrySnapshot]

    @property
    def connected(self) -> bool:
        return self.state is ConnectivityState.CONNECTED


class ConnectivityTracker:
    """Edge-triggered reachability state machine.

    Only the poller writes to the tracker. A successful poll always replaces
    the snapshot; a failed poll keeps the previous one so clients can judge
    staleness from its timestamp.
    """

    def __init__(self) -> None:
        self._state = ConnectivityState.UNKNOWN
        self._changed_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._snapshot: Optional[TelemetrySnapshot] = None

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectivityState.CONNECTED

    @property
    def snapshot(self) -> Optional[TelemetrySnapshot]:
        return self._snapshot

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def view(self) -> ConnectivityView:
        return ConnectivityView(
            state=self._state,
            changed_at=self._changed_at,
            last_error=self._last_error,
            snapshot=self._snapshot,
        )

    def record_success(self, snapshot: TelemetrySnapshot) -> Optional[ConnectivityChange]:
        self._snapshot = snapshot
        self._last_error = None
        return self._transition(ConnectivityState.CONNECTED, snapshot.observed_at)

    def record_failure(
        self,
        error: object,
        at: Optional[datetime] = None,
    ) -> Optional[ConnectivityChange]:
        self._last_error = str(error)
        return self._transition(ConnectivityState.DISCONNECTED, at or utc_now(), self._last_error)

    def _transition(
        self,
        target: ConnectivityState,
        at: datetime,
        error: Optional[str] = None,
    ) -> Optional[ConnectivityChange]:
        if self._state is target:
            return None
        change = ConnectivityChange(previous=self._state, current=target, changed_at=at, error=error)
        self._state = target
        self._changed_at = at
        return change


__all__ = [
    "ConnectivityChange",
    "ConnectivityState",
    "ConnectivityTracker",
    "ConnectivityView",
    "TelemetrySnapshot",
    "format_timestamp",
    "utc_now",
]
