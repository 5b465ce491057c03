"""Pydantic schemas for the wire formats the station speaks."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import WeatherSample


class WeatherSnapshot(BaseModel):
    """Flat JSON body served by the snapshot responder and ``GET /sample``."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    altitude_m: float
    pressure_kPa: float
    temperature_c: float
    temperature_f: float
    humidity_pct: float

    @classmethod
    def from_sample(cls, sample: WeatherSample) -> "WeatherSnapshot":
        return cls(
            timestamp=sample.timestamp,
            altitude_m=round(sample.altitude_m, 2),
            pressure_kPa=round(sample.pressure_kPa, 4),
            temperature_c=round(sample.temperature_c, 2),
            temperature_f=round(sample.temperature_f, 2),
            humidity_pct=round(sample.humidity_pct, 2),
        )


class SignedMessage(BaseModel):
    """One channel reading posted to the event hub."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    channel_id: str = Field(..., alias="channelId")
    measure_name: str = Field(..., alias="measureName")
    unit: str
    value: float
    timestamp_utc: str = Field(..., alias="timestampUtc")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    organization: Optional[str] = None
    location: Optional[str] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class SamplerStatus(BaseModel):
    running: bool
    cycles_completed: int = Field(..., ge=0)
    cycles_skipped: int = Field(..., ge=0)
    channel_faults: Dict[str, int] = Field(default_factory=dict)
    last_cycle_ms: Optional[int] = None


class PublisherStatus(BaseModel):
    running: bool
    channels: List[str] = Field(default_factory=list)
    token_expiry: Optional[int] = Field(
        default=None, description="Unix expiry of the current signing token."
    )
    messages_sent: int = Field(0, ge=0)
    messages_failed: int = Field(0, ge=0)


class StationStatus(BaseModel):
    sampler: SamplerStatus
    responder_address: Optional[str] = None
    publisher: Optional[PublisherStatus] = None
    sample: WeatherSnapshot
