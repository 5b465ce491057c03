from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Deque, Dict, Optional, Set, Tuple

from hardware.transport import BusError
from services.decoder import (
    CTRL_REG1,
    CTRL_REG1_OST,
    HTU21D_ADDRESS,
    HUMIDITY_CRC_XOR,
    HUMIDITY_STATUS_BIT,
    MPL3115A2_ADDRESS,
    OUT_P_MSB,
    SAMPLE_HUMIDITY_HOLD,
    SAMPLE_TEMPERATURE_HOLD,
    STATUS_MASK,
    compute_crc,
)

Transaction = Tuple[str, int, bytes]


def encode_temperature_frame(celsius: float) -> bytes:
    raw = _clamp_raw(round((celsius + 46.85) * 65536 / 175.72))
    return bytes([raw >> 8, raw & STATUS_MASK, compute_crc(raw)])


def encode_humidity_frame(relative_humidity: float) -> bytes:
    raw = _clamp_raw(round((relative_humidity + 6.0) * 65536 / 125.0))
    crc = compute_crc(raw) ^ HUMIDITY_CRC_XOR
    return bytes([raw >> 8, (raw & STATUS_MASK) | HUMIDITY_STATUS_BIT, crc])


def encode_pressure_bytes(pressure_pa: float) -> bytes:
    whole = int(pressure_pa)
    quarters = round((pressure_pa - whole) * 4)
    if quarters == 4:
        whole, quarters = whole + 1, 0
    raw = ((whole << 6) | (quarters << 4)) & 0xFFFFFF
    return bytes([(raw >> 16) & 0xFF, (raw >> 8) & 0xFF, raw & 0xFF])


def _clamp_raw(value: int) -> int:
    return max(0, min(value, 0xFFFF)) & 0xFFFC


class MockI2CBus:
    """In-memory HTU21D and MPL3115A2 pair answering on a simulated bus."""

    def __init__(
        self,
        temperature_c: float = 21.5,
        humidity_pct: float = 45.0,
        pressure_pa: float = 101325.0,
        latency: float = 0.0,
        history: int = 256,
    ) -> None:
        self.temperature_c = temperature_c
        self.humidity_pct = humidity_pct
        self.pressure_pa = pressure_pa
        self.latency = latency
        self.control_register = 0x38
        self.transactions: Deque[Transaction] = deque(maxlen=history)
        self._failing: Set[int] = set()
        self._overrides: Dict[Tuple[int, int], bytes] = {}
        self._active = 0
        self.max_concurrent = 0
        self.closed = False
        self._lock = Lock()

    def set_conditions(
        self,
        temperature_c: Optional[float] = None,
        humidity_pct: Optional[float] = None,
        pressure_pa: Optional[float] = None,
    ) -> None:
        with self._lock:
            if temperature_c is not None:
                self.temperature_c = temperature_c
            if humidity_pct is not None:
                self.humidity_pct = humidity_pct
            if pressure_pa is not None:
                self.pressure_pa = pressure_pa

    def fail_device(self, address: int, failing: bool = True) -> None:
        with self._lock:
            if failing:
                self._failing.add(address)
            else:
                self._failing.discard(address)

    def override_response(self, address: int, command: int, frame: Optional[bytes]) -> None:
        """Answer ``command`` with ``frame`` verbatim, or restore the simulation."""
        with self._lock:
            if frame is None:
                self._overrides.pop((address, command), None)
            else:
                self._overrides[(address, command)] = bytes(frame)

    def write(self, address: int, data: bytes) -> None:
        self._enter()
        try:
            with self._lock:
                self._check_device(address)
                self.transactions.append(("write", address, bytes(data)))
                if address == MPL3115A2_ADDRESS and len(data) >= 2 and data[0] == CTRL_REG1:
                    self.control_register = data[1]
        finally:
            self._exit()

    def write_read(self, address: int, data: bytes, read_length: int) -> bytes:
        self._enter()
        try:
            if self.latency:
                time.sleep(self.latency)
            with self._lock:
                self._check_device(address)
                self.transactions.append(("write_read", address, bytes(data)))
                command = data[0] if data else -1
                override = self._overrides.get((address, command))
                if override is not None:
                    response = override
                else:
                    response = self._respond(address, command)
            return response[:read_length]
        finally:
            self._exit()

    def open(self) -> None:
        with self._lock:
            self.closed = False

    def close(self) -> None:
        with self._lock:
            self.transactions.clear()
            self.closed = True

    def _respond(self, address: int, command: int) -> bytes:
        if address == HTU21D_ADDRESS:
            if command == SAMPLE_TEMPERATURE_HOLD:
                return encode_temperature_frame(self.temperature_c)
            if command == SAMPLE_HUMIDITY_HOLD:
                return encode_humidity_frame(self.humidity_pct)
        elif address == MPL3115A2_ADDRESS:
            if command == CTRL_REG1:
                return bytes([self.control_register])
            if command == OUT_P_MSB:
                # One-shot bit auto-clears once the conversion is read out.
                self.control_register &= ~CTRL_REG1_OST & 0xFF
                return encode_pressure_bytes(self.pressure_pa)
        raise BusError(address, f"unsupported command 0x{command & 0xFF:02X}")

    def _check_device(self, address: int) -> None:
        if address in self._failing:
            raise BusError(address, "device not responding")
        if address not in (HTU21D_ADDRESS, MPL3115A2_ADDRESS):
            raise BusError(address, "no device at address")

    def _enter(self) -> None:
        with self._lock:
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)

    def _exit(self) -> None:
        with self._lock:
            self._active -= 1
