"""Async HTTP client for the incubator controller.

The device exposes three endpoints:
* ``GET /telemetry`` returning ``{"temperature", "humidity", "age_ms"}`` as JSON
* ``POST /cmd`` accepting a plain-text wire command
* ``GET /status`` returning arbitrary text for reachability checks

Every request is bounded by a single timeout and failures are raised as
``DeviceLinkError`` subclasses. Retry policy belongs to the caller.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0  # seconds


def _reject_constant(token: str) -> Any:
    """Refuse ``NaN``/``Infinity`` so replies stay strict JSON."""

    raise ValueError(f"non-standard JSON constant {token!r}")


class DeviceLinkError(RuntimeError):
    """Base class for failures talking to the device."""

    reason = "device_error"


class DeviceTimeoutError(DeviceLinkError):
    """Raised when the device does not answer within the timeout."""

    reason = "timeout"


class DeviceUnreachableError(DeviceLinkError):
    """Raised on connection-level failures (refused, DNS, reset)."""

    reason = "unreachable"


class DeviceHTTPError(DeviceLinkError):
    """Raised when the device answers with a non-2xx status."""

    def __init__(self, path: str, status_code: int, body: str) -> None:
        super().__init__(f"{path} failed: {status_code} {body}".rstrip())
        self.path = path
        self.status_code = status_code
        self.body = body


class MalformedResponseError(DeviceLinkError):
    """Raised when a response body cannot be decoded as expected."""

    reason = "malformed_response"


@dataclass(frozen=True)
class DeviceStatus:
    """Verbatim reply from ``GET /status``."""

    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class DeviceClient:
    """Thin async wrapper over ``httpx.AsyncClient`` bound to one device."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DeviceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    async def send_command(self, command: str) -> Any:
        """POST a wire command and return the decoded reply.

        JSON replies are returned as parsed; anything else is wrapped as
        ``{"ok": True, "raw": <text>}``.
        """

        response = await self._request(
            "POST",
            "/cmd",
            content=command.encode("utf-8"),
            headers={"Content-Type": "text/plain"},
        )
        text = response.text
        self._raise_for_status("/cmd", response, text)
        try:
            return json.loads(text, parse_constant=_reject_constant)
        except ValueError:
            return {"ok": True, "raw": text}

    async def fetch_telemetry(self) -> Dict[str, Any]:
        response = await self._request("GET", "/telemetry")
        text = response.text
        self._raise_for_status("/telemetry", response, text)
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise MalformedResponseError(f"/telemetry returned non-JSON body: {text[:80]!r}") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"/telemetry returned {type(payload).__name__}, expected an object"
            )
        return payload

    async def fetch_status(self) -> DeviceStatus:
        response = await self._request("GET", "/status")
        return DeviceStatus(status_code=response.status_code, text=response.text or "OK")

    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        # httpx.Timeout bounds each phase; wait_for bounds the whole exchange.
        try:
            return await asyncio.wait_for(
                self._client.request(method, path, **kwargs),
                timeout=self._timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise DeviceTimeoutError(
                f"{path} timed out after {self._timeout:.1f}s"
            ) from exc
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            raise DeviceUnreachableError(f"{path} unreachable: {detail}") from exc

    @staticmethod
    def _raise_for_status(path: str, response: httpx.Response, text: str) -> None:
        if not response.is_success:
            raise DeviceHTTPError(path, response.status_code, text)


__all__ = [
    "DeviceClient",
    "DeviceHTTPError",
    "DeviceLinkError",
    "DeviceStatus",
    "DeviceTimeoutError",
    "DeviceUnreachableError",
    "MalformedResponseError",
]
