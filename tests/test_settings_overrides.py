from __future__ import annotations

from typing import Iterator

import pytest

from settings import DEFAULT_PUBLISH_CHANNELS, get_settings

_CLOUD_ENV = {
    "SERVICEBUS_NAMESPACE": "iot-ns",
    "EVENT_HUB_NAME": "ehdevices",
    "EVENT_HUB_KEY_NAME": "D1",
    "EVENT_HUB_KEY": "secret",
    "STATION_DISPLAY_NAME": "station-1",
    "STATION_ORGANIZATION": "IoT Lab",
    "STATION_LOCATION": "Portland, OR",
}


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("STATION_SAMPLE_INTERVAL", "5")
    monkeypatch.setenv("STATION_BUS_LOCK_TIMEOUT", "0.5")
    monkeypatch.setenv("STATION_I2C_BUS", "1")
    monkeypatch.setenv("SNAPSHOT_PORT", "8080")
    monkeypatch.setenv("PUBLISH_CHANNELS", "Humidity, pressure")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.sample_interval == 5.0
    assert settings.publish_interval == 5.0
    assert settings.bus_lock_timeout == 0.5
    assert settings.i2c_bus == 1
    assert settings.snapshot_port == 8080
    assert settings.publish_channels == ("humidity", "pressure")
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("STATION_SAMPLE_INTERVAL", "soon")
    monkeypatch.setenv("STATION_BUS_LOCK_TIMEOUT", "-1")
    monkeypatch.setenv("STATION_I2C_BUS", "")
    monkeypatch.setenv("SNAPSHOT_PORT", "0")
    monkeypatch.setenv("PUBLISH_CHANNELS", " , ")

    settings = get_settings()

    assert settings.sample_interval == 2.0
    assert settings.bus_lock_timeout == 1.0
    assert settings.i2c_bus is None
    assert settings.snapshot_port == 50001
    assert settings.publish_channels == DEFAULT_PUBLISH_CHANNELS


def test_cloud_configured_requires_every_setting(monkeypatch) -> None:
    for name, value in _CLOUD_ENV.items():
        monkeypatch.setenv(name, value)

    assert get_settings().cloud_configured is True

    monkeypatch.setenv("STATION_LOCATION", "   ")
    get_settings.cache_clear()

    assert get_settings().cloud_configured is False
