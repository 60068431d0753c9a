"""
Data types shared by the frequency estimator and its sensor sources.

A reading is an immutable (timestamp, value) pair. Timestamps are integer
milliseconds and must arrive in non-decreasing order.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ScalarReading:
    """
    A single timestamped scalar sample from a sensor.

    Attributes:
        timestamp_ms: Collection time in milliseconds
        value: Sensor value (units are whatever the sensor reports)
    """
    timestamp_ms: int
    value: float


class FrequencyUnit(Enum):
    """Output rate units, keyed by how many milliseconds make one unit."""
    HZ = 1000.0      # cycles per second
    RPM = 60000.0    # cycles per minute

    @property
    def denominator_ms(self) -> float:
        return self.value

    @property
    def label(self) -> str:
        return "Hz" if self is FrequencyUnit.HZ else "RPM"

    @classmethod
    def from_name(cls, name: str) -> "FrequencyUnit":
        """Look up a unit by case-insensitive name ("hz", "rpm")."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown frequency unit: {name!r}") from None


class OutOfOrderReadingError(ValueError):
    """Raised in strict mode when a reading is older than the newest buffered one."""

    def __init__(self, timestamp_ms: int, newest_timestamp_ms: int):
        super().__init__(
            f"Reading at {timestamp_ms} ms is older than newest buffered "
            f"reading at {newest_timestamp_ms} ms"
        )
        self.timestamp_ms = timestamp_ms
        self.newest_timestamp_ms = newest_timestamp_ms
