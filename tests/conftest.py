from __future__ import annotations

import dataclasses
from typing import Callable

import pytest

from settings import DEFAULT_PUBLISH_CHANNELS, Settings


def _base_settings() -> Settings:
    return Settings(
        sample_interval=0.05,
        bus_lock_timeout=0.05,
        i2c_bus=None,
        snapshot_host="127.0.0.1",
        snapshot_port=0,
        servicebus_namespace="",
        event_hub_name="",
        key_name="",
        key="",
        display_name="test-station",
        organization="",
        location="",
        publish_interval=0.05,
        token_renew_interval=60.0,
        token_ttl=1200,
        publish_channels=DEFAULT_PUBLISH_CHANNELS,
        publish_timeout=1.0,
        log_level="INFO",
    )


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build station settings suitable for loopback tests, with overrides."""

    def factory(**overrides) -> Settings:
        return dataclasses.replace(_base_settings(), **overrides)

    return factory
