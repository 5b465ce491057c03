"""Register framing, CRC validation and unit conversion for the station sensors.

The HTU21D answers a hold-master command with ``[MSB, LSB, CRC]``. The two low
bits of the LSB are status bits: bit 1 is clear for a temperature frame and set
for a humidity frame. The MPL3115A2 is driven in one-shot mode and returns a
20-bit pressure reading in Q18.2 format across three output registers.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from hardware.transport import BusError, BusTransport

logger = logging.getLogger(__name__)

HTU21D_ADDRESS = 0x40
MPL3115A2_ADDRESS = 0x60

SAMPLE_TEMPERATURE_HOLD = 0xE3
SAMPLE_HUMIDITY_HOLD = 0xE5

CTRL_REG1 = 0x26
OUT_P_MSB = 0x01
CTRL_REG1_SBYB = 0x01
CTRL_REG1_OST = 0x02

CRC_GENERATOR = 0x0131
CRC_BIT_LENGTH = 8
CRC_DATA_LENGTH = 16

# HTU21D firmware erratum: the humidity CRC byte arrives XORed with this value.
HUMIDITY_CRC_XOR = 0x62

STATUS_MASK = 0xFC
HUMIDITY_STATUS_BIT = 0x02

FRAME_LENGTH = 3
PRESSURE_SETTLE_SECONDS = 0.010

SENTINEL = 0.0


class ChannelReadError(Exception):
    """Transport failure while reading a single sensor channel."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel} channel read failed: {message}")
        self.channel = channel


def compute_crc(payload: int) -> int:
    """Return the CRC-8 (x^8 + x^5 + x^4 + 1) of a 16-bit payload."""

    register = (payload & 0xFFFF) << CRC_BIT_LENGTH
    for bit in range(CRC_DATA_LENGTH - 1, -1, -1):
        if not (register >> (CRC_BIT_LENGTH + bit)) & 0x01:
            continue
        register ^= CRC_GENERATOR << bit
    return register & 0xFF


def crc_matches(payload: int, crc: int) -> bool:
    return compute_crc(payload) == (crc & 0xFF)


def parse_htu21d_frame(frame: bytes, humidity: bool) -> Optional[int]:
    """Validate a 3-byte HTU21D frame and return its masked raw value.

    Returns ``None`` when the frame is short, its status bit names the other
    channel, or its CRC does not match.
    """

    if len(frame) != FRAME_LENGTH:
        logger.warning(
            "Rejecting short frame",
            extra={"channel": _channel_name(humidity), "reason": f"length={len(frame)}"},
        )
        return None

    msb, lsb, crc = frame[0], frame[1], frame[2]
    raw = (msb << 8) | (lsb & STATUS_MASK)

    is_humidity_frame = bool(lsb & HUMIDITY_STATUS_BIT)
    if is_humidity_frame != humidity:
        logger.warning(
            "Rejecting frame with mismatched status bit",
            extra={"channel": _channel_name(humidity), "reason": "status bit"},
        )
        return None

    if humidity:
        crc ^= HUMIDITY_CRC_XOR
    if not crc_matches(raw, crc):
        logger.warning(
            "Rejecting frame with bad CRC",
            extra={"channel": _channel_name(humidity), "reason": "crc mismatch"},
        )
        return None

    return raw


def temperature_from_raw(raw: int) -> float:
    return (175.72 * raw) / 65536 - 46.85


def humidity_from_raw(raw: int) -> float:
    return (125.0 * raw) / 65536 - 6.0


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def raw_pressure_from_bytes(data: bytes) -> int:
    return (data[0] << 16) | (data[1] << 8) | data[2]


def pressure_from_raw(raw: int) -> float:
    """Pascals from the Q18.2 value left-justified in 24 bits."""

    return (raw >> 6) + (((raw >> 4) & 0x03) / 4.0)


def altitude_from_pressure(pressure_pa: float) -> float:
    """Altitude in metres using the US Standard Atmosphere 1976."""

    return 44330.77 * (1 - (pressure_pa / 101326) ** 0.1902632)


def _channel_name(humidity: bool) -> str:
    return "humidity" if humidity else "temperature"


class FrameDecoder:
    """Issues sensor transactions on a transport and returns physical values.

    Bad frames never raise: they yield ``SENTINEL``. A transport failure raises
    ``ChannelReadError`` so that the caller can drop only that channel.
    """

    def __init__(
        self,
        transport: BusTransport,
        settle_seconds: float = PRESSURE_SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        self.settle_seconds = settle_seconds
        self._sleep = sleep

    def read_temperature(self) -> float:
        raw = self._read_htu21d(SAMPLE_TEMPERATURE_HOLD, humidity=False)
        if raw is None:
            return SENTINEL
        return temperature_from_raw(raw)

    def read_humidity(self) -> float:
        raw = self._read_htu21d(SAMPLE_HUMIDITY_HOLD, humidity=True)
        if raw is None:
            return SENTINEL
        return humidity_from_raw(raw)

    def read_pressure(self) -> float:
        """Trigger a one-shot conversion and return the pressure in Pa."""

        try:
            control = self.transport.write_read(MPL3115A2_ADDRESS, bytes([CTRL_REG1]), 1)
            if not control:
                raise BusError(MPL3115A2_ADDRESS, "empty CTRL_REG1 read")
            value = (control[0] & ~CTRL_REG1_SBYB & 0xFF) | CTRL_REG1_OST
            self.transport.write(MPL3115A2_ADDRESS, bytes([CTRL_REG1, value]))

            self._sleep(self.settle_seconds)

            data = self.transport.write_read(
                MPL3115A2_ADDRESS, bytes([OUT_P_MSB]), FRAME_LENGTH
            )
        except (BusError, OSError) as exc:
            raise ChannelReadError("pressure", str(exc)) from exc

        if len(data) != FRAME_LENGTH:
            logger.warning(
                "Rejecting short frame",
                extra={"channel": "pressure", "reason": f"length={len(data)}"},
            )
            return SENTINEL
        return pressure_from_raw(raw_pressure_from_bytes(data))

    def _read_htu21d(self, command: int, humidity: bool) -> Optional[int]:
        try:
            frame = self.transport.write_read(HTU21D_ADDRESS, bytes([command]), FRAME_LENGTH)
        except (BusError, OSError) as exc:
            raise ChannelReadError(_channel_name(humidity), str(exc)) from exc
        return parse_htu21d_frame(frame, humidity=humidity)
