from __future__ import annotations

from threading import Lock
from typing import Optional

from models.records import WeatherSample


class SampleStore:
    """Holds the latest ``WeatherSample``; writers swap the reference whole."""

    def __init__(self, initial: Optional[WeatherSample] = None) -> None:
        self._sample = initial if initial is not None else WeatherSample.empty()
        self._version = 0
        self._lock = Lock()

    def publish(self, sample: WeatherSample) -> int:
        with self._lock:
            self._sample = sample
            self._version += 1
            return self._version

    def current(self) -> WeatherSample:
        with self._lock:
            return self._sample

    @property
    def version(self) -> int:
        """Number of samples published since construction."""

        with self._lock:
            return self._version
