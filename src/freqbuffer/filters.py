"""
Value filter interface.

A value filter turns a stream of timestamped sensor values into a stream of
derived values (one output per input). The frequency estimator is one; others
can be chained in front of a display.
"""

from abc import ABC, abstractmethod


class ValueFilter(ABC):
    """Base class for per-sample stream transforms."""

    @abstractmethod
    def filter_value(self, timestamp_ms: int, value: float) -> float:
        """
        Consume one sample and return the derived value.

        Args:
            timestamp_ms: Sample time in milliseconds (non-decreasing)
            value: Raw sensor value

        Returns:
            Filtered value for this sample
        """
        pass
