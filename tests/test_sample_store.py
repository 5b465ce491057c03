from __future__ import annotations

import dataclasses

import pytest

from datastore.sample_store import SampleStore
from models.records import WeatherSample


def test_new_store_holds_zeroed_sample() -> None:
    store = SampleStore()

    sample = store.current()

    assert store.version == 0
    assert sample.timestamp
    assert sample.altitude_m == 0.0
    assert sample.pressure_kPa == 0.0
    assert sample.temperature_c == 0.0
    assert sample.temperature_f == 0.0
    assert sample.humidity_pct == 0.0


def test_publish_replaces_whole_sample() -> None:
    store = SampleStore()
    first = store.current()
    replacement = WeatherSample(
        timestamp="2024-01-01T00:00:00+00:00",
        altitude_m=12.0,
        pressure_kPa=101.2,
        temperature_c=20.0,
        temperature_f=68.0,
        humidity_pct=40.0,
    )

    version = store.publish(replacement)

    assert version == 1
    assert store.version == 1
    assert store.current() is replacement
    assert first.temperature_c == 0.0


def test_samples_are_immutable() -> None:
    sample = WeatherSample(timestamp="now")

    with pytest.raises(dataclasses.FrozenInstanceError):
        sample.temperature_c = 10.0  # type: ignore[misc]
