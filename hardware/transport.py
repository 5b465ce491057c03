"""Blocking I2C transport used by the sampler."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Optional, Protocol

from smbus2 import SMBus, i2c_msg

logger = logging.getLogger(__name__)


class BusError(Exception):
    """Raised when a device does not answer or the bus times out."""

    def __init__(self, address: int, message: str) -> None:
        super().__init__(f"I2C device 0x{address:02X}: {message}")
        self.address = address


class BusTransport(Protocol):
    def write(self, address: int, data: bytes) -> None: ...

    def write_read(self, address: int, data: bytes, read_length: int) -> bytes: ...

    def open(self) -> None: ...

    def close(self) -> None: ...


class SMBusTransport:
    """Linux i2c-dev transport built on ``smbus2`` combined transactions."""

    def __init__(self, bus_number: int) -> None:
        self.bus_number = bus_number
        self._bus: Optional[SMBus] = SMBus(bus_number)
        self._lock = Lock()

    def write(self, address: int, data: bytes) -> None:
        message = i2c_msg.write(address, list(data))
        self._transfer(address, message)

    def write_read(self, address: int, data: bytes, read_length: int) -> bytes:
        write = i2c_msg.write(address, list(data))
        read = i2c_msg.read(address, read_length)
        self._transfer(address, write, read)
        return bytes(list(read))

    def open(self) -> None:
        with self._lock:
            if self._bus is None:
                self._bus = SMBus(self.bus_number)

    def close(self) -> None:
        with self._lock:
            if self._bus is None:
                return
            self._bus.close()
            self._bus = None

    def _transfer(self, address: int, *messages: i2c_msg) -> None:
        with self._lock:
            if self._bus is None:
                raise BusError(address, f"bus {self.bus_number} is closed")
            try:
                self._bus.i2c_rdwr(*messages)
            except OSError as exc:
                logger.debug(
                    "I2C transfer failed",
                    extra={"address": address, "reason": str(exc)},
                )
                raise BusError(address, str(exc)) from exc
