"""
Streaming frequency estimation for scalar sensors.

Estimates the dominant oscillation rate (Hz, RPM, ...) of a live signal from a
sliding time window of readings by counting crossings of the running mean.
The estimate updates on every sample and drops to 0.0 when the signal is
flat, below the noise filter, or has gone quiet.

Usage:
    from freqbuffer import FrequencyBuffer, FrequencyUnit

    rpm = FrequencyBuffer(window_ms=3000, denominator_ms=FrequencyUnit.RPM.denominator_ms)
    value = rpm.observe(timestamp_ms, reading)

    # Or run a sensor through it on a background thread:
    # freqbuffer --port /dev/ttyACM0 --unit rpm
"""

from .types import (
    FrequencyUnit,
    OutOfOrderReadingError,
    ScalarReading,
)

from .filters import ValueFilter

from .buffer import FrequencyBuffer, FrequencyConfig

from .sources import (
    FileReadingSource,
    SerialReadingSource,
    parse_reading_line,
    read_capture_file,
)

from .monitor import FrequencyMonitor, FrequencyUpdate

from .session_logger import SessionLogger, get_session_logger, init_session_logger

__all__ = [
    # Types
    "FrequencyUnit",
    "OutOfOrderReadingError",
    "ScalarReading",
    "ValueFilter",
    # Estimator
    "FrequencyBuffer",
    "FrequencyConfig",
    # Sources
    "FileReadingSource",
    "SerialReadingSource",
    "parse_reading_line",
    "read_capture_file",
    # Monitor
    "FrequencyMonitor",
    "FrequencyUpdate",
    # Session logging
    "SessionLogger",
    "get_session_logger",
    "init_session_logger",
]
