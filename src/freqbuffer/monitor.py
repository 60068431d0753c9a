"""
Live frequency monitor.

Pulls readings from a sensor source on a background thread, feeds them
through a FrequencyBuffer and hands every estimate to a callback. All access
to the estimator goes through one lock, so the window and filter can be
changed from another thread (e.g. a UI) while samples keep flowing.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from .buffer import FrequencyBuffer, FrequencyConfig
from .session_logger import get_session_logger
from .types import OutOfOrderReadingError, ScalarReading

logger = logging.getLogger("freqbuffer.monitor")


class ReadingSource(Protocol):
    """Anything that can produce readings one at a time."""

    def connect(self) -> bool: ...

    def disconnect(self): ...

    def read_reading(self) -> Optional[ScalarReading]: ...


@dataclass
class FrequencyUpdate:
    """A reading and the frequency estimate it produced."""
    reading: ScalarReading
    frequency: float


class FrequencyMonitor:
    """
    Runs a reading source through a frequency estimator.

    Example:
        monitor = FrequencyMonitor(SerialReadingSource(), FrequencyConfig(window_ms=3000))
        monitor.connect()
        monitor.start(frequency_callback=lambda u: print(u.frequency))

        # Adjust while running
        monitor.change_filter(0.1)

        monitor.stop()
        monitor.disconnect()
    """

    def __init__(
        self,
        source: ReadingSource,
        config: Optional[FrequencyConfig] = None,
    ):
        """
        Initialize monitor.

        Args:
            source: Serial or file reading source
            config: Estimator configuration (defaults to FrequencyConfig())
        """
        self.source = source
        self.config = config or FrequencyConfig()
        self.buffer = FrequencyBuffer.from_config(self.config)

        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._frequency_callback: Optional[Callable[[FrequencyUpdate], None]] = None

        # Set when strict mode stops the read loop on a late reading
        self.error: Optional[OutOfOrderReadingError] = None

        self._updates = 0
        self._errors = 0

    def connect(self) -> bool:
        return self.source.connect()

    def disconnect(self):
        self.stop()
        self.source.disconnect()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, frequency_callback: Optional[Callable[[FrequencyUpdate], None]] = None):
        """
        Start pulling readings on a background thread.

        Args:
            frequency_callback: Called with a FrequencyUpdate for every accepted reading
        """
        if self._running:
            return

        self._frequency_callback = frequency_callback
        self.error = None
        self._running = True
        self._thread = threading.Thread(target=self._read_loop, daemon=True)
        self._thread.start()
        logger.info("Frequency monitor started")

    def stop(self):
        """Stop the read loop."""
        self._running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        self._thread = None
        logger.info("Frequency monitor stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the read loop ends (e.g. a capture file runs out).

        Returns:
            True if the loop finished within the timeout
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def _read_loop(self):
        while self._running:
            try:
                reading = self.source.read_reading()
                if reading is None:
                    if getattr(self.source, "exhausted", False):
                        logger.info("Reading source exhausted")
                        self._running = False
                    continue
                self.process_reading(reading)
            except OutOfOrderReadingError as e:
                # Strict mode: stop and leave the error for the caller
                logger.error(f"Stopping on out-of-order reading: {e}")
                self.error = e
                self._running = False
            except Exception as e:  # pylint: disable=broad-except
                self._errors += 1
                logger.error(f"Read loop error: {e}")
                session_logger = get_session_logger()
                if session_logger:
                    session_logger.log_error(str(e), {"where": "read_loop"})
                time.sleep(0.5)

    def process_reading(self, reading: ScalarReading) -> Optional[FrequencyUpdate]:
        """
        Feed one reading through the estimator.

        Returns:
            FrequencyUpdate, or None if the reading was out of order and dropped
        """
        session_logger = get_session_logger()

        with self._lock:
            newest = self.buffer.newest_timestamp
            rejected_before = self.buffer.get_stats()["readings_rejected"]
            try:
                frequency = self.buffer.observe(reading.timestamp_ms, reading.value)
            except OutOfOrderReadingError:
                if session_logger:
                    session_logger.log_rejected_reading(reading, newest)
                raise

            if self.buffer.get_stats()["readings_rejected"] > rejected_before:
                if session_logger:
                    session_logger.log_rejected_reading(reading, newest)
                return None

            self._updates += 1

        update = FrequencyUpdate(reading=reading, frequency=frequency)

        if session_logger:
            session_logger.log_frequency(reading, frequency)

        if self._frequency_callback:
            self._frequency_callback(update)

        return update

    def observe(self, timestamp_ms: int, value: float) -> Optional[float]:
        """Push a reading directly, bypassing the source."""
        update = self.process_reading(ScalarReading(timestamp_ms, value))
        return update.frequency if update else None

    def current_frequency(self) -> float:
        with self._lock:
            return self.buffer.current_frequency()

    def change_window(self, new_window_ms: int):
        """Change the estimator window (prunes immediately)."""
        with self._lock:
            self.buffer.change_window(new_window_ms)
            self.config.window_ms = self.buffer.window_ms
        self._log_config_change()

    def change_filter(self, new_filter: float):
        """Change the estimator noise filter."""
        with self._lock:
            self.buffer.change_filter(new_filter)
            self.config.filter = self.buffer.filter
        self._log_config_change()

    def _log_config_change(self):
        logger.info(f"Estimator config: window={self.config.window_ms} ms, filter={self.config.filter}")
        session_logger = get_session_logger()
        if session_logger:
            session_logger.log_config_change(self.config.to_dict())

    def readings(self) -> List[ScalarReading]:
        with self._lock:
            return list(self.buffer.readings)

    def get_stats(self) -> dict:
        """Get monitor and estimator statistics."""
        with self._lock:
            stats = self.buffer.get_stats()
        stats.update({
            "updates_emitted": self._updates,
            "errors": self._errors,
            "running": self._running,
        })
        return stats

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False
