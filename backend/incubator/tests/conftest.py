"""Pytest fixtures shared across incubator bridge tests."""
from __future__ import annotations

import json
import os
from typing import Any, AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio

from backend.incubator.config import BridgeSettings
from backend.incubator.device_client import DeviceClient
from backend.incubator.services.bridge_service import BridgeService

DEVICE_URL = "http://incubator.test"


class FakeDevice:
    """Scriptable stand-in for the controller's HTTP endpoints."""

    def __init__(self) -> None:
        self.telemetry: Any = {"temperature": 37.5, "humidity": 55, "age_ms": 120}
        self.telemetry_status = 200
        self.cmd_reply: tuple[str, int] = ('{"ok":true}', 200)
        self.status_reply: tuple[str, int] = ("READY", 200)
        self.fail_with: Optional[Exception] = None
        self.commands: list[str] = []
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.fail_with is not None:
            raise self.fail_with

        path = request.url.path
        if path == "/telemetry":
            body = self.telemetry if isinstance(self.telemetry, str) else json.dumps(self.telemetry)
            return httpx.Response(self.telemetry_status, text=body)
        if path == "/cmd":
            self.commands.append(request.content.decode("utf-8"))
            text, code = self.cmd_reply
            return httpx.Response(code, text=text)
        if path == "/status":
            text, code = self.status_reply
            return httpx.Response(code, text=text)
        return httpx.Response(404, text="not found")

    def client(self, timeout: float = 0.5) -> DeviceClient:
        return DeviceClient(DEVICE_URL, timeout=timeout, transport=httpx.MockTransport(self.handler))


class EventRecorder:
    """Async publisher capturing ``(event, data)`` pairs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, event: str, data: dict[str, Any]) -> None:
        self.events.append((event, data))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event]


@pytest.fixture(autouse=True)
def incubator_env_sandbox(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("INCUBATOR_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def settings() -> BridgeSettings:
    return BridgeSettings(device_url=DEVICE_URL, poll_interval=0.02, http_timeout=0.5)


@pytest_asyncio.fixture()
async def device_client(device: FakeDevice) -> AsyncGenerator[DeviceClient, None]:
    client = device.client()
    yield client
    await client.aclose()


@pytest_asyncio.fixture()
async def bridge(settings: BridgeSettings, device_client: DeviceClient) -> AsyncGenerator[BridgeService, None]:
    svc = BridgeService(settings=settings, client=device_client)
    yield svc
    await svc.stop()
