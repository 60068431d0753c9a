"""
Sliding-window frequency estimator.

Keeps the last few seconds of scalar readings and estimates the dominant
oscillation rate by counting crossings of the running mean. Intended for live
readouts (Hz, RPM) that must update on every sample and fall back to 0.0 when
the signal is flat, noisy or has stopped.

Estimation steps:
1. threshold = mean of buffered values + filter
2. Count transitions across the threshold, remembering the first and last
3. Drop the leading transition (it only marks where timing starts)
4. rate = (transitions / 2) / (last - first), converted to output units
"""

import logging
from collections import deque
from dataclasses import dataclass, asdict
from typing import Deque, Optional, Tuple

import numpy as np

from .filters import ValueFilter
from .types import FrequencyUnit, OutOfOrderReadingError, ScalarReading

logger = logging.getLogger("freqbuffer.buffer")


@dataclass
class FrequencyConfig:
    """Configuration for the frequency estimator."""

    window_ms: int = 5000           # How much history to keep for detection
    denominator_ms: float = 1000.0  # Milliseconds per output unit (1000 = Hz, 60000 = RPM)

    # Signals must swing at least this far above the mean to count as a crossing
    filter: float = 0.0

    # Raise OutOfOrderReadingError instead of dropping late readings
    strict: bool = False

    @classmethod
    def for_unit(cls, unit: FrequencyUnit, **overrides) -> "FrequencyConfig":
        """Build a config whose output is expressed in the given unit."""
        return cls(denominator_ms=unit.denominator_ms, **overrides)

    def to_dict(self) -> dict:
        return asdict(self)


class FrequencyBuffer(ValueFilter):
    """
    Estimates signal frequency from a sliding window of timestamped readings.

    Readings are kept in a deque, oldest first. Each new reading evicts any
    head readings older than (newest timestamp - window). The buffer is not
    thread-safe; callers that share it must serialize access.

    Example:
        rpm = FrequencyBuffer(window_ms=3000, denominator_ms=60000, filter=0.05)
        for reading in readings:
            print(rpm.observe(reading.timestamp_ms, reading.value))
    """

    def __init__(
        self,
        window_ms: int,
        denominator_ms: float,
        filter: float = 0.0,
        strict: bool = False,
    ):
        """
        Initialize the estimator.

        Args:
            window_ms: How many milliseconds of data to keep for detection
            denominator_ms: Milliseconds in the display unit (1000 for Hz,
                            60000 for RPM)
            filter: Only count oscillations that rise at least this far above
                    the mean
            strict: Raise on out-of-order readings instead of dropping them
        """
        if denominator_ms <= 0:
            raise ValueError(f"denominator_ms must be positive, got {denominator_ms}")
        self._window_ms = self._check_window(window_ms)
        self._denominator_ms = float(denominator_ms)
        self._filter = float(filter)
        self._strict = strict

        self._readings: Deque[ScalarReading] = deque()
        self._latest_frequency = 0.0

        self._observed = 0
        self._rejected = 0
        self._pruned = 0

    @classmethod
    def from_config(cls, config: FrequencyConfig) -> "FrequencyBuffer":
        return cls(
            window_ms=config.window_ms,
            denominator_ms=config.denominator_ms,
            filter=config.filter,
            strict=config.strict,
        )

    @staticmethod
    def _check_window(window_ms: int) -> int:
        if window_ms < 0:
            raise ValueError(f"window_ms must be non-negative, got {window_ms}")
        return int(window_ms)

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def denominator_ms(self) -> float:
        return self._denominator_ms

    @property
    def filter(self) -> float:
        return self._filter

    @property
    def latest_frequency(self) -> float:
        """Frequency produced by the most recent computation."""
        return self._latest_frequency

    @property
    def readings(self) -> Tuple[ScalarReading, ...]:
        """Snapshot of buffered readings, oldest first."""
        return tuple(self._readings)

    @property
    def newest_timestamp(self) -> Optional[int]:
        if not self._readings:
            return None
        return self._readings[-1].timestamp_ms

    def __len__(self) -> int:
        return len(self._readings)

    def change_window(self, new_window_ms: int):
        """
        Change the retention window.

        A smaller window takes effect immediately: the buffer is pruned
        relative to the newest buffered reading, not to the current time.
        """
        self._window_ms = self._check_window(new_window_ms)
        logger.debug(f"Window changed to {self._window_ms} ms")
        if self._readings:
            self._prune(self._readings[-1].timestamp_ms)

    def change_filter(self, new_filter: float):
        """Change the noise filter. Applies from the next computation on."""
        self._filter = float(new_filter)
        logger.debug(f"Filter changed to {self._filter}")

    def observe(self, timestamp_ms: int, value: float) -> float:
        """
        Add a reading and return the updated frequency estimate.

        Readings older than the newest buffered reading are dropped (and the
        current estimate returned), or raise OutOfOrderReadingError in
        strict mode.
        """
        newest = self.newest_timestamp
        if newest is not None and timestamp_ms < newest:
            self._rejected += 1
            if self._strict:
                raise OutOfOrderReadingError(timestamp_ms, newest)
            logger.warning(
                f"Dropping out-of-order reading: t={timestamp_ms} ms < newest={newest} ms"
            )
            return self.compute_frequency()

        self._readings.append(ScalarReading(int(timestamp_ms), float(value)))
        self._observed += 1
        self._prune(timestamp_ms)
        return self.compute_frequency()

    def filter_value(self, timestamp_ms: int, value: float) -> float:
        return self.observe(timestamp_ms, value)

    def _prune(self, timestamp_ms: int):
        oldest_remaining = timestamp_ms - self._window_ms
        while self._readings and self._readings[0].timestamp_ms < oldest_remaining:
            self._readings.popleft()
            self._pruned += 1

    def compute_frequency(self) -> float:
        """Recompute the frequency from the buffered readings."""
        self._latest_frequency = self._estimate()
        return self._latest_frequency

    def current_frequency(self) -> float:
        """
        Frequency of the buffered readings as they stand.

        Recomputes without consuming input, so repeated calls agree.
        """
        return self.compute_frequency()

    def _estimate(self) -> float:
        count = len(self._readings)
        if count < 2:
            return 0.0

        timestamps = np.fromiter(
            (r.timestamp_ms for r in self._readings), dtype=np.int64, count=count
        )
        values = np.fromiter(
            (r.value for r in self._readings), dtype=np.float64, count=count
        )

        # Adding the filter means swings smaller than it never leave the low side
        threshold = values.mean() + self._filter
        above = values > threshold

        # Index of every reading whose side differs from the one before it
        flips = np.flatnonzero(above[1:] != above[:-1]) + 1
        if len(flips) < 2:
            return 0.0

        # Drop the leading crossing because that's where time starts
        crossings = len(flips) - 1
        first_crossing = int(timestamps[flips[0]])
        last_crossing = int(timestamps[flips[-1]])

        adjusted_window_ms = last_crossing - first_crossing
        if adjusted_window_ms < self._window_ms // 4:
            # Activity confined to the newest quarter of the window: treat the
            # signal as stopped rather than report a spike from a single blip.
            return 0.0

        adjusted_window_units = adjusted_window_ms / self._denominator_ms
        if adjusted_window_units == 0:
            return 0.0

        cycles = crossings / 2.0
        return float(cycles / adjusted_window_units)

    def get_stats(self) -> dict:
        """Get estimator statistics."""
        return {
            "readings_observed": self._observed,
            "readings_rejected": self._rejected,
            "readings_pruned": self._pruned,
            "buffer_size": len(self._readings),
            "window_ms": self._window_ms,
            "denominator_ms": self._denominator_ms,
            "filter": self._filter,
            "latest_frequency": self._latest_frequency,
        }
