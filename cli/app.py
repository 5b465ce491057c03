from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import SnapshotClient
from cli.config import CLIConfig, load_config
from cli.render import render_snapshot, render_token
from logging_config import configure_logging
from services.publisher import build_resource_uri, generate_signing_token
from services.station import build_default_station
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: SnapshotClient


app = typer.Typer(
    help="Utilities for running and querying the weather station.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    snapshot_url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Snapshot responder URL (defaults to SNAPSHOT_URL env or http://localhost:50001).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the snapshot responder.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(snapshot_url=snapshot_url, timeout=timeout)
    client = SnapshotClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("run")
def run_command(
    duration: float = typer.Option(
        0.0,
        "--duration",
        min=0.0,
        help="Stop after this many seconds (0 runs until interrupted).",
    ),
) -> None:
    """Start the sampler, snapshot responder and cloud publisher."""
    configure_logging()
    station = build_default_station()
    station.start()
    typer.secho("Weather station running. Press Ctrl+C to stop.", fg=typer.colors.GREEN)
    deadline = time.monotonic() + duration if duration else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        typer.echo()
    finally:
        station.stop()
        build_default_station.cache_clear()
    typer.echo("Weather station stopped.")


@app.command("snapshot")
def snapshot_command(ctx: typer.Context) -> None:
    """Fetch and display the latest sample from a running station."""
    state = _get_state(ctx)
    payload = state.client.get_snapshot()
    render_snapshot(payload)


@app.command("token")
def token_command() -> None:
    """Print a freshly generated shared access signature for the event hub."""
    settings = get_settings()
    missing = [
        name
        for name, value in (
            ("SERVICEBUS_NAMESPACE", settings.servicebus_namespace),
            ("EVENT_HUB_NAME", settings.event_hub_name),
            ("EVENT_HUB_KEY_NAME", settings.key_name),
            ("EVENT_HUB_KEY", settings.key),
        )
        if not value
    ]
    if missing:
        typer.secho(
            f"Missing event hub settings: {', '.join(missing)}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    resource_uri = build_resource_uri(
        settings.servicebus_namespace, settings.event_hub_name, settings.display_name
    )
    token = generate_signing_token(
        resource_uri, settings.key_name, settings.key, ttl_seconds=settings.token_ttl
    )
    render_token(resource_uri, token.expiry, token.authorization)
