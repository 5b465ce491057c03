from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_SAMPLE_INTERVAL_ENV = "STATION_SAMPLE_INTERVAL"
_BUS_LOCK_TIMEOUT_ENV = "STATION_BUS_LOCK_TIMEOUT"
_I2C_BUS_ENV = "STATION_I2C_BUS"
_SNAPSHOT_HOST_ENV = "SNAPSHOT_HOST"
_SNAPSHOT_PORT_ENV = "SNAPSHOT_PORT"
_NAMESPACE_ENV = "SERVICEBUS_NAMESPACE"
_HUB_NAME_ENV = "EVENT_HUB_NAME"
_KEY_NAME_ENV = "EVENT_HUB_KEY_NAME"
_KEY_ENV = "EVENT_HUB_KEY"
_DISPLAY_NAME_ENV = "STATION_DISPLAY_NAME"
_ORGANIZATION_ENV = "STATION_ORGANIZATION"
_LOCATION_ENV = "STATION_LOCATION"
_PUBLISH_INTERVAL_ENV = "PUBLISH_INTERVAL"
_TOKEN_RENEW_INTERVAL_ENV = "TOKEN_RENEW_INTERVAL"
_TOKEN_TTL_ENV = "TOKEN_TTL"
_PUBLISH_CHANNELS_ENV = "PUBLISH_CHANNELS"
_PUBLISH_TIMEOUT_ENV = "PUBLISH_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_PUBLISH_CHANNELS = ("altitude", "humidity", "pressure")


@dataclass(frozen=True)
class Settings:
    sample_interval: float
    bus_lock_timeout: float
    i2c_bus: Optional[int]
    snapshot_host: str
    snapshot_port: int
    servicebus_namespace: str
    event_hub_name: str
    key_name: str
    key: str
    display_name: str
    organization: str
    location: str
    publish_interval: float
    token_renew_interval: float
    token_ttl: int
    publish_channels: Tuple[str, ...]
    publish_timeout: float
    log_level: str

    @property
    def cloud_configured(self) -> bool:
        return all(
            (
                self.servicebus_namespace,
                self.event_hub_name,
                self.key_name,
                self.key,
                self.display_name,
                self.organization,
                self.location,
            )
        )


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        parsed = int(candidate)
    except ValueError:
        return None
    return parsed if parsed >= 0 else None


def _read_channels(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_PUBLISH_CHANNELS_ENV)
    if value is None:
        return default
    channels = tuple(
        part.strip().lower() for part in value.split(",") if part.strip()
    )
    return channels or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _default_display_name() -> str:
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""
    return hostname or "weather-station"


@lru_cache
def get_settings() -> Settings:
    sample_interval = _read_positive_float(_SAMPLE_INTERVAL_ENV, 2.0)
    return Settings(
        sample_interval=sample_interval,
        bus_lock_timeout=_read_positive_float(_BUS_LOCK_TIMEOUT_ENV, 1.0),
        i2c_bus=_read_optional_int(_I2C_BUS_ENV),
        snapshot_host=_read_str_env(_SNAPSHOT_HOST_ENV, "0.0.0.0"),
        snapshot_port=_read_positive_int(_SNAPSHOT_PORT_ENV, 50001),
        servicebus_namespace=_read_str_env(_NAMESPACE_ENV, ""),
        event_hub_name=_read_str_env(_HUB_NAME_ENV, ""),
        key_name=_read_str_env(_KEY_NAME_ENV, ""),
        key=_read_str_env(_KEY_ENV, ""),
        display_name=_read_str_env(_DISPLAY_NAME_ENV, _default_display_name()),
        organization=_read_str_env(_ORGANIZATION_ENV, ""),
        location=_read_str_env(_LOCATION_ENV, ""),
        publish_interval=_read_positive_float(_PUBLISH_INTERVAL_ENV, sample_interval),
        token_renew_interval=_read_positive_float(_TOKEN_RENEW_INTERVAL_ENV, 900.0),
        token_ttl=_read_positive_int(_TOKEN_TTL_ENV, 1200),
        publish_channels=_read_channels(DEFAULT_PUBLISH_CHANNELS),
        publish_timeout=_read_positive_float(_PUBLISH_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
