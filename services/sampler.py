"""Periodic sampling of the sensor bus into the sample store."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

from datastore.sample_store import SampleStore
from models.records import WeatherSample, local_timestamp
from services.decoder import (
    SENTINEL,
    ChannelReadError,
    FrameDecoder,
    altitude_from_pressure,
    celsius_to_fahrenheit,
)

logger = logging.getLogger(__name__)

Indicator = Callable[[bool], None]


@dataclass(frozen=True)
class SamplerStats:
    cycles_completed: int
    cycles_skipped: int
    channel_faults: Dict[str, int]
    last_cycle_ms: Optional[int]


class SamplingScheduler:
    """Drives one sampling cycle per tick while holding the bus lock."""

    def __init__(
        self,
        decoder: FrameDecoder,
        store: SampleStore,
        bus_lock: Optional[Lock] = None,
        interval: float = 2.0,
        lock_timeout: float = 1.0,
        indicator: Optional[Indicator] = None,
    ) -> None:
        self.decoder = decoder
        self.store = store
        self.bus_lock = bus_lock if bus_lock is not None else Lock()
        self.interval = interval
        self.lock_timeout = lock_timeout
        self.indicator = indicator
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stats_lock = Lock()
        self._cycles_completed = 0
        self._cycles_skipped = 0
        self._channel_faults: Dict[str, int] = {}
        self._last_cycle_ms: Optional[int] = None

    def run_cycle(self) -> bool:
        """Sample every channel once. Returns ``False`` if the bus was busy."""
        if not self.bus_lock.acquire(timeout=self.lock_timeout):
            with self._stats_lock:
                self._cycles_skipped += 1
            logger.warning(
                "Bus busy, skipping sampling cycle",
                extra={"reason": f"lock not acquired within {self.lock_timeout}s"},
            )
            return False

        start_time = time.perf_counter()
        try:
            self._signal(True)
            try:
                sample = self._read_sample()
                cycle = self.store.publish(sample)
            finally:
                self._signal(False)
        finally:
            self.bus_lock.release()

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        with self._stats_lock:
            self._cycles_completed += 1
            self._last_cycle_ms = elapsed_ms
        logger.debug(
            "Sampling cycle complete",
            extra={"cycle": cycle, "elapsed_ms": elapsed_ms},
        )
        return True

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="sampler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; waits at most one bounded lock attempt plus a cycle."""
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout if timeout is not None else self.lock_timeout + self.interval)
        if thread.is_alive():
            logger.warning("Sampler thread did not stop in time")
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stats(self) -> SamplerStats:
        with self._stats_lock:
            return SamplerStats(
                cycles_completed=self._cycles_completed,
                cycles_skipped=self._cycles_skipped,
                channel_faults=dict(self._channel_faults),
                last_cycle_ms=self._last_cycle_ms,
            )

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Unexpected failure during sampling cycle")
            self._stop_event.wait(self.interval)

    def _read_sample(self) -> WeatherSample:
        humidity = self._read_channel("humidity", self.decoder.read_humidity)
        temperature = self._read_channel("temperature", self.decoder.read_temperature)
        pressure_pa = self._read_channel("pressure", self.decoder.read_pressure)

        celsius = temperature if temperature is not None else SENTINEL
        if pressure_pa is None or pressure_pa == SENTINEL:
            pressure_pa = SENTINEL
            altitude = SENTINEL
        else:
            altitude = altitude_from_pressure(pressure_pa)

        return WeatherSample(
            timestamp=local_timestamp(),
            altitude_m=altitude,
            pressure_kPa=pressure_pa / 1000,
            temperature_c=celsius,
            temperature_f=celsius_to_fahrenheit(celsius),
            humidity_pct=humidity if humidity is not None else SENTINEL,
        )

    def _read_channel(self, channel: str, reader: Callable[[], float]) -> Optional[float]:
        try:
            return reader()
        except ChannelReadError as exc:
            with self._stats_lock:
                self._channel_faults[channel] = self._channel_faults.get(channel, 0) + 1
            logger.warning(
                "Channel read failed",
                extra={"channel": channel, "reason": str(exc)},
            )
            return None

    def _signal(self, active: bool) -> None:
        if self.indicator is None:
            return
        try:
            self.indicator(active)
        except Exception:
            logger.exception("Sampling indicator failed")
