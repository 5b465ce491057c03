from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_SNAPSHOT_URL = "http://localhost:50001"
DEFAULT_TIMEOUT = 5.0

_SNAPSHOT_URL_ENV = "SNAPSHOT_URL"
_TIMEOUT_ENV = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    snapshot_url: str = DEFAULT_SNAPSHOT_URL
    timeout: float = DEFAULT_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
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


def load_config(
    snapshot_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    url = snapshot_url or os.getenv(_SNAPSHOT_URL_ENV) or DEFAULT_SNAPSHOT_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(snapshot_url=url.rstrip("/"), timeout=timeout)
