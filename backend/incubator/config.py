"""Process-wide settings for the incubator bridge.

Values are read once from ``INCUBATOR_*`` environment variables when the
process starts; there is no hot reload.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_URL = "http://192.168.4.1"
DEFAULT_POLL_INTERVAL = 1.0  # seconds
DEFAULT_HTTP_TIMEOUT = 2.0  # seconds
DEFAULT_MODE = "AUTO"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
MIN_POLL_INTERVAL = 0.05


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value and value.strip():
        return value.strip()
    return default


def _env_float(name: str, default: float, *, minimum: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class BridgeSettings:
    device_url: str = DEFAULT_DEVICE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    default_mode: str = DEFAULT_MODE
    safety_intents: FrozenSet[str] = field(default_factory=frozenset)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        """Build settings from the environment, falling back to defaults."""

        device_url = _env_str("INCUBATOR_DEVICE_URL", DEFAULT_DEVICE_URL).rstrip("/")
        if not device_url.startswith(("http://", "https://")):
            logger.warning(
                "INCUBATOR_DEVICE_URL=%s has no scheme; assuming http://", device_url
            )
            device_url = f"http://{device_url}"

        mode = _env_str("INCUBATOR_DEFAULT_MODE", DEFAULT_MODE).upper()
        if mode not in {"AUTO", "MANUAL"}:
            logger.warning("Unsupported INCUBATOR_DEFAULT_MODE=%s; defaulting to AUTO", mode)
            mode = DEFAULT_MODE

        safety_raw = os.getenv("INCUBATOR_SAFETY_INTENTS") or ""
        safety = frozenset(
            token.strip().lower() for token in safety_raw.split(",") if token.strip()
        )

        return cls(
            device_url=device_url,
            poll_interval=_env_float(
                "INCUBATOR_POLL_INTERVAL", DEFAULT_POLL_INTERVAL, minimum=MIN_POLL_INTERVAL
            ),
            http_timeout=_env_float(
                "INCUBATOR_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, minimum=0.001
            ),
            default_mode=mode,
            safety_intents=safety,
            host=_env_str("INCUBATOR_HOST", DEFAULT_HOST),
            port=_env_int("INCUBATOR_PORT", DEFAULT_PORT),
            log_level=_env_str("INCUBATOR_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a console handler to the root logger."""

    root = logging.getLogger()
    root.setLevel(level or "INFO")

    if not any(getattr(handler, "_incubator_console", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
        )
        handler._incubator_console = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # Per-request httpx logging would print one line per poll.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "BridgeSettings",
    "DEFAULT_DEVICE_URL",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "configure_logging",
]
