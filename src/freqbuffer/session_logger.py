"""
Session logging for frequency monitoring.

Records readings, frequency estimates and configuration changes as JSON
lines so a session can be replayed and analysed afterwards.
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .types import ScalarReading


@dataclass
class SessionMetadata:
    """Metadata about a logging session."""
    session_id: str
    start_time: str
    source: Optional[str]
    unit: Optional[str]
    config: Dict[str, Any]


class SessionLogger:
    """
    Session logger for sensor runs.

    Creates log files with semantic naming:
    - session_YYYYMMDD_HHMMSS_<location>.jsonl - Main session log (JSON lines)
    - sensor_raw_YYYYMMDD_HHMMSS.log - Raw sensor lines

    Log entry types:
    - session_start: Session metadata
    - session_end: Session summary
    - frequency: A reading and the estimate it produced
    - reading_rejected: Reading dropped for arriving out of order
    - config_change: Window or filter changed
    - error: Any errors during processing
    """

    DEFAULT_LOG_DIR = Path.home() / "freqbuffer_sessions"

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        location: str = "bench",
        enabled: bool = True
    ):
        """
        Initialize session logger.

        Args:
            log_dir: Directory for log files (default: ~/freqbuffer_sessions)
            location: Identifier used in file names (e.g., "bench", "field")
            enabled: Whether logging is enabled
        """
        self.log_dir = Path(log_dir) if log_dir else self.DEFAULT_LOG_DIR
        self.location = location
        self.enabled = enabled

        self._session_id: Optional[str] = None
        self._session_file: Optional[Any] = None
        self._session_path: Optional[Path] = None
        self._raw_path: Optional[Path] = None
        self._raw_handler: Optional[logging.Handler] = None
        self._sensor_level: int = logging.NOTSET

        self._stats = {
            "frequencies_logged": 0,
            "readings_rejected": 0,
            "config_changes": 0,
            "errors": 0,
        }

        self._sensor_logger = logging.getLogger("freqbuffer.sensor")

    def start_session(
        self,
        source: Optional[str] = None,
        unit: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Start a new logging session.

        Args:
            source: Serial port or capture file the readings come from
            unit: Output unit label ("Hz", "RPM")
            config: Estimator configuration

        Returns:
            Session ID
        """
        if not self.enabled:
            return ""

        self.log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now()
        self._session_id = timestamp.strftime("%Y%m%d_%H%M%S")

        self._session_path = self.log_dir / f"session_{self._session_id}_{self.location}.jsonl"
        self._raw_path = self.log_dir / f"sensor_raw_{self._session_id}.log"

        self._session_file = open(self._session_path, "w", encoding="utf-8")
        self._setup_raw_logging()

        self._stats = {k: 0 for k in self._stats}

        metadata = SessionMetadata(
            session_id=self._session_id,
            start_time=timestamp.isoformat(),
            source=source,
            unit=unit,
            config=config or {},
        )
        self._write_entry("session_start", asdict(metadata))

        print(f"[SESSION] Started logging: {self._session_path}")
        return self._session_id

    def _setup_raw_logging(self):
        """Send sensor logger output (including raw lines) to the raw log file."""
        self._raw_handler = logging.FileHandler(self._raw_path, encoding="utf-8")
        self._raw_handler.setLevel(logging.DEBUG)
        self._raw_handler.setFormatter(
            logging.Formatter('%(asctime)s.%(msecs)03d - %(name)s - %(message)s', datefmt='%H:%M:%S')
        )
        self._sensor_level = self._sensor_logger.level
        self._sensor_logger.addHandler(self._raw_handler)
        self._sensor_logger.setLevel(logging.DEBUG)

    def end_session(self):
        """End the current session and write the summary."""
        if not self.enabled or not self._session_file:
            return

        self._write_entry("session_end", {
            "end_time": datetime.now().isoformat(),
            "stats": self._stats.copy(),
        })

        self._session_file.close()
        self._session_file = None

        if self._raw_handler:
            self._sensor_logger.removeHandler(self._raw_handler)
            self._raw_handler.close()
            self._raw_handler = None
            self._sensor_logger.setLevel(self._sensor_level)

        print(f"[SESSION] Ended. Frequencies logged: {self._stats['frequencies_logged']}")
        print(f"[SESSION] Logs saved to: {self._session_path}")

    def _write_entry(self, entry_type: str, data: Dict[str, Any]):
        """Write a log entry to the session file."""
        if not self._session_file:
            return

        entry = {
            "ts": datetime.now().isoformat(),
            "type": entry_type,
            **data
        }

        self._session_file.write(json.dumps(entry) + "\n")
        self._session_file.flush()

    def log_frequency(self, reading: ScalarReading, frequency: float):
        """Log a reading together with the frequency it produced."""
        if not self.enabled:
            return

        self._stats["frequencies_logged"] += 1

        self._write_entry("frequency", {
            "timestamp_ms": reading.timestamp_ms,
            "value": reading.value,
            "frequency": frequency,
        })

    def log_rejected_reading(self, reading: ScalarReading, newest_timestamp_ms: Optional[int]):
        """Log a reading that was dropped for arriving out of order."""
        if not self.enabled:
            return

        self._stats["readings_rejected"] += 1

        self._write_entry("reading_rejected", {
            "timestamp_ms": reading.timestamp_ms,
            "value": reading.value,
            "newest_timestamp_ms": newest_timestamp_ms,
        })

    def log_config_change(self, config: Dict[str, Any], source: str = "user"):
        """Log an estimator configuration change."""
        if not self.enabled:
            return

        self._stats["config_changes"] += 1

        self._write_entry("config_change", {
            "config": config,
            "source": source,
        })

    def log_error(self, error: str, context: Optional[Dict] = None):
        """Log an error."""
        if not self.enabled:
            return

        self._stats["errors"] += 1

        self._write_entry("error", {
            "error": error,
            "context": context or {},
        })

    @property
    def session_path(self) -> Optional[Path]:
        return self._session_path

    @property
    def raw_path(self) -> Optional[Path]:
        return self._raw_path

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def stats(self) -> Dict[str, int]:
        return self._stats.copy()


# Global session logger instance
_session_logger: Optional[SessionLogger] = None


def get_session_logger() -> Optional[SessionLogger]:
    """Get the global session logger instance."""
    return _session_logger


def init_session_logger(
    log_dir: Optional[Path] = None,
    location: str = "bench",
    enabled: bool = True
) -> SessionLogger:
    """
    Initialize and return the global session logger.

    Args:
        log_dir: Directory for log files
        location: Location identifier
        enabled: Whether logging is enabled

    Returns:
        SessionLogger instance
    """
    global _session_logger  # pylint: disable=global-statement
    _session_logger = SessionLogger(log_dir=log_dir, location=location, enabled=enabled)
    return _session_logger
