"""HTTP route definitions for the station status API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.schemas import StationStatus, WeatherSnapshot
from services.station import WeatherStation, build_default_station

router = APIRouter()


def get_station() -> WeatherStation:
    return build_default_station()


@router.get(
    "/sample",
    response_model=WeatherSnapshot,
    summary="Latest complete weather sample.",
)
async def get_sample(
    station: WeatherStation = Depends(get_station),
) -> WeatherSnapshot:
    return WeatherSnapshot.from_sample(station.store.current())


@router.get(
    "/status",
    response_model=StationStatus,
    summary="Sampler, responder and publisher state.",
)
async def get_status(
    station: WeatherStation = Depends(get_station),
) -> StationStatus:
    return station.status()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /sample for the latest reading."}
