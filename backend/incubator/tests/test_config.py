from __future__ import annotations

import pytest

from backend.incubator.config import BridgeSettings


def test_defaults_without_environment() -> None:
    settings = BridgeSettings.from_env()

    assert settings.device_url == "http://192.168.4.1"
    assert settings.poll_interval == 1.0
    assert settings.http_timeout == 2.0
    assert settings.default_mode == "AUTO"
    assert settings.safety_intents == frozenset()
    assert settings.port == 3000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INCUBATOR_DEVICE_URL", "http://10.0.0.7/")
    monkeypatch.setenv("INCUBATOR_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("INCUBATOR_HTTP_TIMEOUT", "1.5")
    monkeypatch.setenv("INCUBATOR_DEFAULT_MODE", "manual")
    monkeypatch.setenv("INCUBATOR_SAFETY_INTENTS", "silence_alarm, Buzzer_Test,")
    monkeypatch.setenv("INCUBATOR_PORT", "8080")

    settings = BridgeSettings.from_env()

    assert settings.device_url == "http://10.0.0.7"
    assert settings.poll_interval == 0.5
    assert settings.http_timeout == 1.5
    assert settings.default_mode == "MANUAL"
    assert settings.safety_intents == frozenset({"silence_alarm", "buzzer_test"})
    assert settings.port == 8080


def test_invalid_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.setenv("INCUBATOR_DEVICE_URL", "10.0.0.8")
    monkeypatch.setenv("INCUBATOR_POLL_INTERVAL", "fast")
    monkeypatch.setenv("INCUBATOR_HTTP_TIMEOUT", "-1")
    monkeypatch.setenv("INCUBATOR_DEFAULT_MODE", "turbo")
    monkeypatch.setenv("INCUBATOR_PORT", "zero")

    with caplog.at_level("WARNING"):
        settings = BridgeSettings.from_env()

    assert settings.device_url == "http://10.0.0.8"
    assert settings.poll_interval == 1.0
    assert settings.http_timeout == 2.0
    assert settings.default_mode == "AUTO"
    assert settings.port == 3000
    assert "INCUBATOR_POLL_INTERVAL" in caplog.text
