"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote


def url_encode(value: str) -> str:
    """Percent-encode everything but unreserved characters, spaces as ``+``."""

    return quote(value, safe="").replace("%20", "+")


def local_timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class WeatherSample:
    """One complete sampling cycle. Replaced whole, never mutated."""

    timestamp: str
    altitude_m: float = 0.0
    pressure_kPa: float = 0.0
    temperature_c: float = 0.0
    temperature_f: float = 0.0
    humidity_pct: float = 0.0

    @classmethod
    def empty(cls) -> "WeatherSample":
        return cls(timestamp=local_timestamp())


@dataclass(frozen=True, slots=True)
class SigningToken:
    """Shared access signature attached to every outbound publish request."""

    resource_uri: str
    key_name: str
    signature: str
    expiry: int

    @property
    def token(self) -> str:
        return (
            f"sr={url_encode(self.resource_uri)}"
            f"&sig={url_encode(self.signature)}"
            f"&se={self.expiry}"
            f"&skn={self.key_name}"
        )

    @property
    def authorization(self) -> str:
        return f"SharedAccessSignature {self.token}"
