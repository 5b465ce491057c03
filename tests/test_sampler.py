import logging
import threading
import time

import pytest

from datastore.sample_store import SampleStore
from hardware.mock_bus import MockI2CBus
from services.decoder import (
    HTU21D_ADDRESS,
    MPL3115A2_ADDRESS,
    SAMPLE_TEMPERATURE_HOLD,
    FrameDecoder,
    altitude_from_pressure,
)
from services.sampler import SamplingScheduler


def _no_sleep(_seconds: float) -> None:
    return None


def _build_sampler(bus: MockI2CBus, **kwargs) -> SamplingScheduler:
    decoder = FrameDecoder(bus, sleep=_no_sleep)
    return SamplingScheduler(decoder=decoder, store=SampleStore(), **kwargs)


def test_run_cycle_publishes_complete_sample() -> None:
    bus = MockI2CBus(temperature_c=25.0, humidity_pct=50.0, pressure_pa=100000.0)
    sampler = _build_sampler(bus)

    assert sampler.run_cycle() is True

    sample = sampler.store.current()
    assert sampler.store.version == 1
    assert sample.temperature_c == pytest.approx(25.0, abs=0.02)
    assert sample.temperature_f == pytest.approx(sample.temperature_c * 9 / 5 + 32)
    assert sample.humidity_pct == pytest.approx(50.0, abs=0.01)
    assert sample.pressure_kPa == pytest.approx(100.0)
    assert sample.altitude_m == pytest.approx(altitude_from_pressure(100000.0))
    assert not sampler.bus_lock.locked()


def test_cycle_is_skipped_when_bus_is_held(caplog) -> None:
    bus = MockI2CBus()
    sampler = _build_sampler(bus, lock_timeout=0.05)
    before = sampler.store.current()

    sampler.bus_lock.acquire()
    try:
        with caplog.at_level(logging.WARNING):
            assert sampler.run_cycle() is False
    finally:
        sampler.bus_lock.release()

    assert sampler.store.version == 0
    assert sampler.store.current() is before
    assert sampler.stats().cycles_skipped == 1
    assert not bus.transactions
    assert any("skipping sampling cycle" in record.getMessage() for record in caplog.records)


def test_transport_fault_zeroes_only_that_channel() -> None:
    bus = MockI2CBus(temperature_c=18.0)
    bus.fail_device(MPL3115A2_ADDRESS)
    sampler = _build_sampler(bus)

    assert sampler.run_cycle() is True

    sample = sampler.store.current()
    assert sample.pressure_kPa == 0.0
    assert sample.altitude_m == 0.0
    assert sample.temperature_c == pytest.approx(18.0, abs=0.02)
    assert sampler.stats().channel_faults == {"pressure": 1}


def test_invalid_frame_yields_sentinel_and_cycle_continues() -> None:
    bus = MockI2CBus(humidity_pct=30.0)
    bus.override_response(HTU21D_ADDRESS, SAMPLE_TEMPERATURE_HOLD, bytes([0x64, 0x02, 0xD6]))
    sampler = _build_sampler(bus)

    assert sampler.run_cycle() is True

    sample = sampler.store.current()
    assert sample.temperature_c == 0.0
    assert sample.temperature_f == 32.0
    assert sample.humidity_pct == pytest.approx(30.0, abs=0.01)
    assert sample.pressure_kPa > 0


def test_lock_released_when_decoder_raises() -> None:
    class ExplodingDecoder(FrameDecoder):
        def read_humidity(self) -> float:
            raise RuntimeError("boom")

    indicator_calls: list[bool] = []
    sampler = SamplingScheduler(
        decoder=ExplodingDecoder(MockI2CBus(), sleep=_no_sleep),
        store=SampleStore(),
        indicator=indicator_calls.append,
    )

    with pytest.raises(RuntimeError):
        sampler.run_cycle()

    assert not sampler.bus_lock.locked()
    assert indicator_calls == [True, False]
    assert sampler.store.version == 0


def test_indicator_wraps_each_cycle() -> None:
    calls: list[bool] = []
    sampler = _build_sampler(MockI2CBus(), indicator=calls.append)

    sampler.run_cycle()
    sampler.run_cycle()

    assert calls == [True, False, True, False]


def test_shared_lock_serializes_bus_access() -> None:
    bus = MockI2CBus(latency=0.001)
    lock = threading.Lock()
    samplers = [_build_sampler(bus, bus_lock=lock, lock_timeout=5.0) for _ in range(3)]

    def drive(sampler: SamplingScheduler) -> None:
        for _ in range(5):
            sampler.run_cycle()

    threads = [threading.Thread(target=drive, args=(sampler,)) for sampler in samplers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert bus.max_concurrent == 1
    assert sum(sampler.stats().cycles_completed for sampler in samplers) == 15


def test_start_and_stop_periodic_sampling() -> None:
    sampler = _build_sampler(MockI2CBus(), interval=0.01, lock_timeout=0.05)

    sampler.start()
    deadline = time.monotonic() + 5.0
    while sampler.store.version < 3 and time.monotonic() < deadline:
        time.sleep(0.01)

    started = time.monotonic()
    sampler.stop()

    assert sampler.store.version >= 3
    assert not sampler.running
    assert time.monotonic() - started < 1.0


def test_stop_is_bounded_while_bus_is_contended() -> None:
    sampler = _build_sampler(MockI2CBus(), interval=0.01, lock_timeout=0.2)
    sampler.bus_lock.acquire()
    try:
        sampler.start()
        time.sleep(0.05)
        started = time.monotonic()
        sampler.stop()
        elapsed = time.monotonic() - started
    finally:
        sampler.bus_lock.release()

    assert not sampler.running
    assert elapsed < 0.2 + 0.01 + 0.5
    assert sampler.store.version == 0
