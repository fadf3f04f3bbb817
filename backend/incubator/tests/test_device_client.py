from __future__ import annotations

import asyncio

import httpx
import pytest

from backend.incubator.device_client import (
    DeviceClient,
    DeviceHTTPError,
    DeviceTimeoutError,
    DeviceUnreachableError,
    MalformedResponseError,
)


@pytest.mark.asyncio
async def test_fetch_telemetry_returns_json_object(device, device_client: DeviceClient) -> None:
    device.telemetry = {"temperature": 37.9, "humidity": 58, "age_ms": 200}

    payload = await device_client.fetch_telemetry()

    assert payload == {"temperature": 37.9, "humidity": 58, "age_ms": 200}
    assert device.requests == [("GET", "/telemetry")]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["<html>oops</html>", "[1, 2]", ""])
async def test_fetch_telemetry_rejects_non_object_bodies(device, device_client: DeviceClient, body: str) -> None:
    device.telemetry = body

    with pytest.raises(MalformedResponseError):
        await device_client.fetch_telemetry()


@pytest.mark.asyncio
async def test_fetch_telemetry_non_2xx_carries_status_and_body(device, device_client: DeviceClient) -> None:
    device.telemetry = "sensor fault"
    device.telemetry_status = 500

    with pytest.raises(DeviceHTTPError) as excinfo:
        await device_client.fetch_telemetry()

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "sensor fault"
    assert str(excinfo.value) == "/telemetry failed: 500 sensor fault"


@pytest.mark.asyncio
async def test_send_command_posts_plain_text() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "applied": "SET_HUM:56"})

    async with DeviceClient("http://incubator.test", transport=httpx.MockTransport(handler)) as client:
        reply = await client.send_command("SET_HUM:56")

    assert reply == {"ok": True, "applied": "SET_HUM:56"}
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/cmd"
    assert seen[0].content == b"SET_HUM:56"
    assert seen[0].headers["content-type"] == "text/plain"


@pytest.mark.asyncio
async def test_send_command_wraps_plain_text_reply(device, device_client: DeviceClient) -> None:
    device.cmd_reply = ("OK", 200)

    reply = await device_client.send_command("RESET")

    assert reply == {"ok": True, "raw": "OK"}
    assert device.commands == ["RESET"]


@pytest.mark.asyncio
async def test_send_command_non_2xx_raises(device, device_client: DeviceClient) -> None:
    device.cmd_reply = ('{"ok":false,"error":"bad value"}', 400)

    with pytest.raises(DeviceHTTPError) as excinfo:
        await device_client.send_command("SET_HUM:999")

    assert excinfo.value.status_code == 400
    assert excinfo.value.reason == "device_error"


@pytest.mark.asyncio
async def test_timeout_is_reported_as_device_timeout(device, device_client: DeviceClient) -> None:
    device.fail_with = httpx.ReadTimeout("slow device")

    with pytest.raises(DeviceTimeoutError) as excinfo:
        await device_client.fetch_telemetry()

    assert excinfo.value.reason == "timeout"
    assert "timed out" in str(excinfo.value)


@pytest.mark.asyncio
async def test_connection_failure_is_reported_as_unreachable(device, device_client: DeviceClient) -> None:
    device.fail_with = httpx.ConnectError("connection refused")

    with pytest.raises(DeviceUnreachableError) as excinfo:
        await device_client.send_command("RESET")

    assert excinfo.value.reason == "unreachable"
    assert "connection refused" in str(excinfo.value)


@pytest.mark.asyncio
async def test_fetch_status_returns_reply_verbatim(device, device_client: DeviceClient) -> None:
    device.status_reply = ("busy", 503)
    status = await device_client.fetch_status()
    assert (status.status_code, status.text, status.ok) == (503, "busy", False)

    device.status_reply = ("", 200)
    status = await device_client.fetch_status()
    assert (status.status_code, status.text, status.ok) == (200, "OK", True)


def _stalling_client(delay: float, timeout: float) -> DeviceClient:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay)
        return httpx.Response(200, json={"temperature": 37.0, "humidity": 50, "age_ms": 5})

    return DeviceClient("http://incubator.test", timeout=timeout, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_timeout_bounds_the_whole_request() -> None:
    loop = asyncio.get_running_loop()

    async with _stalling_client(delay=2.0, timeout=0.2) as client:
        started = loop.time()
        with pytest.raises(DeviceTimeoutError) as excinfo:
            await client.fetch_telemetry()
        elapsed = loop.time() - started

    assert elapsed < 1.0
    assert "timed out after 0.2s" in str(excinfo.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["NaN", "Infinity", '{"ok": true, "level": -Infinity}'])
async def test_send_command_wraps_non_standard_json(device, device_client: DeviceClient, body: str) -> None:
    device.cmd_reply = (body, 200)

    reply = await device_client.send_command("RESET")

    assert reply == {"ok": True, "raw": body}
