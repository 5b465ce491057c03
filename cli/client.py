from __future__ import annotations

from typing import Any, Dict

import httpx
import typer

from cli.config import CLIConfig


class SnapshotClient:
    """Fetches the latest sample from a running snapshot responder."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.snapshot_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_snapshot(self) -> Dict[str, Any]:
        try:
            response = self._client.get("/")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            typer.secho(
                f"Request failed with status {exc.response.status_code}.",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        except httpx.HTTPError as exc:
            typer.secho(
                f"Could not reach station at {self._config.snapshot_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        payload = response.json()
        if not isinstance(payload, dict):
            raise typer.BadParameter("Unexpected snapshot payload.")
        return payload
