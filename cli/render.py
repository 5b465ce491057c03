from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_snapshot(payload: Dict[str, Any]) -> None:
    echo_heading("Weather Snapshot")
    echo_key_values(
        [
            ("timestamp", payload.get("timestamp")),
            ("temperature_c", payload.get("temperature_c")),
            ("temperature_f", payload.get("temperature_f")),
            ("humidity_pct", payload.get("humidity_pct")),
            ("pressure_kPa", payload.get("pressure_kPa")),
            ("altitude_m", payload.get("altitude_m")),
        ]
    )


def render_token(resource_uri: str, expiry: int, authorization: str) -> None:
    echo_heading("Signing Token")
    echo_key_values(
        [
            ("resource_uri", resource_uri),
            ("expiry", expiry),
        ]
    )
    typer.echo()
    typer.echo(authorization)
