"""CLI package for running and querying the weather station."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must keep resolving to the module rather than the Typer instance
# so that tests can patch names such as ``cli.app.SnapshotClient``.

__all__ = []
