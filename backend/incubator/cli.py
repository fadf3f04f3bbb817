"""Command-line utility for talking to the incubator controller directly.

The tool fetches status and telemetry, sends intents (bypassing the mode gate,
since the operator is at the device) and launches the bridge server. It reuses
the async ``DeviceClient`` used by the web backend.
"""
from __future__ import annotations

import asyncio
import json
import sys
import time
from typing import Any, Optional

import typer  # type: ignore

from .commands import IntentError, supported_intents, translate
from .config import BridgeSettings
from .device_client import DeviceClient, DeviceLinkError
from .state import TelemetrySnapshot

app = typer.Typer(add_completion=False, help="Operator CLI for the incubator controller")


def _client(device_url: Optional[str], timeout: Optional[float]) -> DeviceClient:
    settings = BridgeSettings.from_env()
    return DeviceClient(
        (device_url or settings.device_url).rstrip("/"),
        timeout=timeout if timeout is not None else settings.http_timeout,
    )


def _parse_value(token: Optional[str]) -> Any:
    """Decode a CLI value as JSON where possible (``37.6``, ``true``), else keep the text."""

    if token is None:
        return None
    try:
        return json.loads(token)
    except ValueError:
        return token


def _fail(exc: Exception, code: int) -> None:
    typer.secho(str(exc), fg=typer.colors.RED)
    raise typer.Exit(code=code) from exc


@app.command()
def status(
    device_url: Optional[str] = typer.Option(None, help="Device base URL (INCUBATOR_DEVICE_URL)."),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds."),
) -> None:
    """Fetch the controller's /status reply."""

    async def _run():
        async with _client(device_url, timeout) as client:
            return await client.fetch_status()

    try:
        reply = asyncio.run(_run())
    except DeviceLinkError as exc:
        _fail(exc, 2)

    typer.echo(f"HTTP {reply.status_code}: {reply.text}")
    if not reply.ok:
        raise typer.Exit(code=2)


@app.command()
def telemetry(
    interval: float = typer.Option(1.0, help="Polling interval in seconds."),
    count: int = typer.Option(0, help="Number of samples (0 = until interrupted)."),
    device_url: Optional[str] = typer.Option(None, help="Device base URL."),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds."),
) -> None:
    """Print normalised telemetry snapshots."""

    async def _run() -> None:
        async with _client(device_url, timeout) as client:
            taken = 0
            while count <= 0 or taken < count:
                try:
                    payload = await client.fetch_telemetry()
                except DeviceLinkError as exc:
                    typer.secho(str(exc), fg=typer.colors.YELLOW, err=True)
                else:
                    snapshot = TelemetrySnapshot.from_device(payload)
                    typer.echo(json.dumps(snapshot.to_payload(), sort_keys=True))
                taken += 1
                if count <= 0 or taken < count:
                    await asyncio.sleep(max(interval, 0.05))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:  # pragma: no cover - interactive
        typer.echo("Interrupted", err=True)


@app.command("translate")
def translate_intent(
    intent: str = typer.Argument(..., help="Intent type (e.g. 'temperature')."),
    value: Optional[str] = typer.Argument(None, help="Intent value (JSON or text)."),
) -> None:
    """Print the wire command for an intent without sending it."""

    try:
        typer.echo(translate(intent, _parse_value(value)))
    except IntentError as exc:
        _fail(exc, 1)


@app.command()
def command(
    intent: str = typer.Argument(..., help="Intent type (e.g. 'humidity')."),
    value: Optional[str] = typer.Argument(None, help="Intent value (JSON or text)."),
    device_url: Optional[str] = typer.Option(None, help="Device base URL."),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds."),
) -> None:
    """Translate an intent and POST it to /cmd."""

    try:
        wire = translate(intent, _parse_value(value))
    except IntentError as exc:
        _fail(exc, 1)

    async def _run():
        async with _client(device_url, timeout) as client:
            return await client.send_command(wire)

    started = time.monotonic()
    try:
        reply = asyncio.run(_run())
    except DeviceLinkError as exc:
        _fail(exc, 2)

    elapsed_ms = (time.monotonic() - started) * 1000.0
    typer.echo(f"{wire} -> {json.dumps(reply)} ({elapsed_ms:.0f} ms)")


@app.command()
def intents() -> None:
    """List the supported intent types."""

    for name in supported_intents():
        typer.echo(name)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (INCUBATOR_HOST)."),
    port: Optional[int] = typer.Option(None, help="Bind port (INCUBATOR_PORT)."),
) -> None:  # pragma: no cover - launches a server
    """Run the bridge HTTP/WebSocket server."""

    from .server import run as run_server

    run_server(host=host, port=port)


def main(argv: Optional[list[str]] = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    try:
        result = app(prog_name="incubator-bridge", args=args, standalone_mode=False)
    except typer.Exit as exc:
        return exc.exit_code
    except DeviceLinkError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        return 2
    except Exception as exc:  # pragma: no cover - safety net
        typer.secho(f"Unexpected error: {exc}", fg=typer.colors.RED)
        return 1
    return result if isinstance(result, int) else 0


def run() -> None:
    """Entry point for console_scripts."""

    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - manual execution
    run()
