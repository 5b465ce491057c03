from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Callable, Dict, Iterable, Mapping

from settings import get_settings

STATION_CONTEXT_KEYS = (
    "cycle",
    "channel",
    "address",
    "measure",
    "status_code",
    "peer",
    "expiry",
    "elapsed_ms",
    "reason",
)

_RENDERERS: Mapping[str, Callable[[Any], str]] = {
    "address": lambda value: f"0x{value:02X}" if isinstance(value, int) else str(value),
    "elapsed_ms": lambda value: f"{value:.1f}" if isinstance(value, float) else str(value),
}

# These log every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends the station context passed through ``extra=`` as ``key=value``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.context_keys = tuple(context_keys or STATION_CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = " ".join(
            f"{key}={_RENDERERS.get(key, str)(value)}"
            for key in self.context_keys
            if (value := getattr(record, key, None)) is not None
        )
        return f"{message} | {context}" if context else message


def build_logging_config(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "station": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "context_keys": list(STATION_CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "station",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the station log format once; later calls are no-ops."""
    global _configured
    if _configured:
        return
    dictConfig(build_logging_config(level if level is not None else get_settings().log_level))
    _configured = True
