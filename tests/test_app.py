import time
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from hardware.mock_bus import MockI2CBus
from services.station import WeatherStation


@pytest.fixture
def stations(make_settings, monkeypatch) -> Iterator[Dict[str, WeatherStation]]:
    built: Dict[str, WeatherStation] = {}

    def build_test_station() -> WeatherStation:
        station = built.get("default")
        if station is None:
            station = WeatherStation(
                settings=make_settings(),
                transport=MockI2CBus(temperature_c=20.0, humidity_pct=40.0),
            )
            built["default"] = station
        return station

    def cache_clear() -> None:
        built.clear()

    build_test_station.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_station", build_test_station)
    monkeypatch.setattr("app.api.build_default_station", build_test_station)
    yield built


@pytest.fixture
def api_client(stations) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_starts_and_stops_station(stations) -> None:
    app = create_app()

    with TestClient(app):
        station = stations["default"]
        assert station.sampler.running
        assert station.responder.running

    assert not station.sampler.running
    assert not station.responder.running
    assert "default" not in stations


def test_sample_endpoint_returns_latest_reading(api_client: TestClient, stations) -> None:
    station = stations["default"]
    deadline = time.monotonic() + 5.0
    while station.store.version < 1 and time.monotonic() < deadline:
        time.sleep(0.01)

    response = api_client.get("/sample")

    assert response.status_code == 200
    payload = response.json()
    assert set(payload) == {
        "timestamp",
        "altitude_m",
        "pressure_kPa",
        "temperature_c",
        "temperature_f",
        "humidity_pct",
    }
    assert payload["temperature_c"] == pytest.approx(20.0, abs=0.02)
    assert payload["humidity_pct"] == pytest.approx(40.0, abs=0.01)


def test_status_endpoint_reports_sampler(api_client: TestClient) -> None:
    response = api_client.get("/status")

    assert response.status_code == 200
    body = response.json()
    assert body["sampler"]["running"] is True
    assert body["publisher"] is None
    assert body["responder_address"].startswith("127.0.0.1:")
    assert "temperature_c" in body["sample"]


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"
