"""Minimal snapshot responder: every connection gets the current sample.

This is not a general HTTP server. The request line, path and headers are
read and discarded, and every connection receives the same ``200 OK`` with
the latest sample as a flat JSON object, then is closed.
"""

from __future__ import annotations

import logging
import socket
import socketserver
import threading
from typing import Callable, Optional, Tuple

from app.schemas import WeatherSnapshot
from datastore.sample_store import SampleStore

logger = logging.getLogger(__name__)

BUFFER_SIZE = 8192
READ_TIMEOUT_SECONDS = 2.0
CONTENT_TYPE = "text/json"


def build_response(store: SampleStore) -> bytes:
    body = WeatherSnapshot.from_sample(store.current()).model_dump_json().encode("utf-8")
    header = (
        "HTTP/1.1 200 OK\r\n"
        f"Content-Type: {CONTENT_TYPE}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    ).encode("utf-8")
    return header + body


class _SnapshotHandler(socketserver.BaseRequestHandler):
    server: "_SnapshotServer"

    def handle(self) -> None:
        peer = _format_peer(self.client_address)
        self.server.signal(True)
        try:
            self.request.settimeout(READ_TIMEOUT_SECONDS)
            request = self._read_request()
            logger.debug(
                "Snapshot request received",
                extra={"peer": peer, "reason": f"bytes={len(request)}"},
            )
            self.request.sendall(build_response(self.server.store))
        except OSError as exc:
            logger.warning(
                "Snapshot connection failed",
                extra={"peer": peer, "reason": str(exc)},
            )
        finally:
            self.server.signal(False)

    def _read_request(self) -> bytes:
        chunks: list[bytes] = []
        while True:
            try:
                chunk = self.request.recv(BUFFER_SIZE)
            except socket.timeout:
                break
            chunks.append(chunk)
            if len(chunk) < BUFFER_SIZE:
                break
        return b"".join(chunks)


class _SnapshotServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        address: Tuple[str, int],
        store: SampleStore,
        indicator: Optional[Callable[[bool], None]],
    ) -> None:
        self.store = store
        self.indicator = indicator
        super().__init__(address, _SnapshotHandler)

    def signal(self, active: bool) -> None:
        if self.indicator is None:
            return
        try:
            self.indicator(active)
        except Exception:
            logger.exception("Responder indicator failed")

    def handle_error(self, request, client_address) -> None:
        logger.exception(
            "Unhandled error while serving snapshot",
            extra={"peer": _format_peer(client_address)},
        )


class SnapshotResponder:
    """Serves ``store.current()`` on a TCP port from a background thread."""

    def __init__(
        self,
        store: SampleStore,
        host: str = "0.0.0.0",
        port: int = 50001,
        indicator: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self.store = store
        self.host = host
        self.port = port
        self.indicator = indicator
        self._server: Optional[_SnapshotServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._server is not None:
            return
        self._server = _SnapshotServer((self.host, self.port), self.store, self.indicator)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="snapshot-responder",
            daemon=True,
        )
        self._thread.start()
        host, port = self.address or (self.host, self.port)
        logger.info("Snapshot responder listening", extra={"peer": f"{host}:{port}"})

    def stop(self) -> None:
        server = self._server
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._server = None
        self._thread = None


def _format_peer(client_address) -> str:
    try:
        host, port = client_address[:2]
    except (TypeError, ValueError):
        return str(client_address)
    return f"{host}:{port}"
