"""
Sensor reading sources.

Turns lines of sensor output into ScalarReading objects, either live from a
USB/serial sensor or replayed from a capture file.

Accepted line formats:
- JSON: {"timestamp": 1200, "value": 0.53}  (short keys "t"/"v" also work)
- CSV:  1200,0.53
- Bare value: 0.53  (stamped on arrival with the local clock)

Blank lines and lines starting with '#' are ignored.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

import serial
import serial.tools.list_ports

from .types import ScalarReading

logger = logging.getLogger("freqbuffer.sensor")
raw_logger = logging.getLogger("freqbuffer.sensor.raw")

Clock = Callable[[], int]


def monotonic_ms() -> int:
    """Milliseconds from a clock that never goes backwards."""
    return int(time.monotonic() * 1000)


def parse_reading_line(line: str, clock: Optional[Clock] = None) -> Optional[ScalarReading]:
    """
    Parse a single line of sensor output.

    Args:
        line: Raw line (with or without trailing newline)
        clock: Millisecond clock used to stamp bare values (default monotonic)

    Returns:
        ScalarReading, or None for blank/comment/malformed lines
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    try:
        if line.startswith('{'):
            data = json.loads(line)
            value = float(data["value"] if "value" in data else data["v"])
            stamp = data.get("timestamp", data.get("t"))
            if stamp is None:
                stamp = (clock or monotonic_ms)()
            return ScalarReading(timestamp_ms=int(stamp), value=value)

        if ',' in line:
            stamp_text, value_text = line.split(',', 1)
            return ScalarReading(
                timestamp_ms=int(float(stamp_text)),
                value=float(value_text),
            )

        value = float(line)
        return ScalarReading(timestamp_ms=(clock or monotonic_ms)(), value=value)
    except (ValueError, KeyError, TypeError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to parse reading: {line!r} - {e}")
        return None


def read_capture_file(path: Union[str, Path]) -> Iterator[ScalarReading]:
    """
    Yield readings from a capture file (JSON lines or timestamp,value CSV).

    A CSV header row such as "timestamp,value" is skipped.
    """
    with open(path, "r", encoding="utf-8") as fh:
        for line_number, line in enumerate(fh, start=1):
            if line_number == 1 and _is_csv_header(line):
                continue
            reading = parse_reading_line(line)
            if reading is not None:
                yield reading


def _is_csv_header(line: str) -> bool:
    head = line.strip().split(',', 1)[0]
    if not head or head.startswith(('{', '#')):
        return False
    try:
        float(head)
        return False
    except ValueError:
        return True


class FileReadingSource:
    """
    Replays readings from a capture file.

    Offers the same read/stream interface as SerialReadingSource so the
    monitor and console command can run against recorded data.
    """

    def __init__(self, path: Union[str, Path], realtime: bool = False):
        """
        Args:
            path: Capture file to replay
            realtime: Sleep between readings to match their recorded spacing
        """
        self.path = Path(path)
        self.realtime = realtime
        self.exhausted = False
        self._iterator: Optional[Iterator[ScalarReading]] = None
        self._last_timestamp: Optional[int] = None
        self._streaming = False
        self._stream_thread: Optional[threading.Thread] = None
        self._callback: Optional[Callable[[ScalarReading], None]] = None

    def connect(self) -> bool:
        if not self.path.exists():
            raise FileNotFoundError(f"Capture file not found: {self.path}")
        self._iterator = read_capture_file(self.path)
        self.exhausted = False
        self._last_timestamp = None
        return True

    def disconnect(self):
        self.stop_streaming()
        self._iterator = None

    def read_reading(self) -> Optional[ScalarReading]:
        """Next reading from the file, or None once the file is exhausted."""
        if self._iterator is None:
            raise ConnectionError("Capture file not opened")

        reading = next(self._iterator, None)
        if reading is None:
            self.exhausted = True
            return None

        if self.realtime and self._last_timestamp is not None:
            gap_ms = reading.timestamp_ms - self._last_timestamp
            if gap_ms > 0:
                time.sleep(gap_ms / 1000.0)
        self._last_timestamp = reading.timestamp_ms
        return reading

    def start_streaming(self, callback: Callable[[ScalarReading], None]):
        if self._streaming:
            return

        self._callback = callback
        self._streaming = True
        self._stream_thread = threading.Thread(target=self._stream_loop, daemon=True)
        self._stream_thread.start()

    def stop_streaming(self):
        self._streaming = False
        if self._stream_thread and self._stream_thread is not threading.current_thread():
            self._stream_thread.join(timeout=2.0)
        self._stream_thread = None
        self._callback = None

    def _stream_loop(self):
        while self._streaming:
            reading = self.read_reading()
            if reading is None:
                self._streaming = False
                break
            if self._callback:
                self._callback(reading)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False


class SerialReadingSource:
    """
    Driver for a scalar sensor that prints one reading per line over serial.

    Example usage:
        sensor = SerialReadingSource("/dev/ttyACM0")
        sensor.connect()

        # Blocking read
        reading = sensor.read_reading()

        # Or continuous callback
        sensor.start_streaming(callback=lambda r: print(r.value))
    """

    DEFAULT_BAUD = 115200
    DEFAULT_TIMEOUT = 1.0

    # Common USB-serial bridge vendors (STMicro, FTDI, Silicon Labs, WCH)
    VENDOR_IDS = [0x0483, 0x0403, 0x10C4, 0x1A86]

    def __init__(
        self,
        port: Optional[str] = None,
        baud: int = DEFAULT_BAUD,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the sensor driver.

        Args:
            port: Serial port (e.g., '/dev/ttyACM0'). If None, auto-detect.
            baud: Baud rate
            clock: Millisecond clock used to stamp readings that carry no timestamp
        """
        self.port = port
        self.baud = baud
        self.clock = clock or monotonic_ms
        self.serial: Optional[serial.Serial] = None
        self._streaming = False
        self._stream_thread: Optional[threading.Thread] = None
        self._callback: Optional[Callable[[ScalarReading], None]] = None

    @staticmethod
    def find_sensor_ports() -> List[str]:
        """
        Find serial ports that look like USB sensors.

        Returns:
            List of candidate port names
        """
        ports = []
        for port in serial.tools.list_ports.comports():
            if port.vid in SerialReadingSource.VENDOR_IDS:
                ports.append(port.device)
            elif "ACM" in port.device or "USB" in port.device:
                ports.append(port.device)
        return ports

    def connect(self, timeout: float = DEFAULT_TIMEOUT) -> bool:
        """
        Open the serial port.

        Args:
            timeout: Serial read timeout in seconds

        Returns:
            True if connection successful
        """
        if self.port is None:
            ports = self.find_sensor_ports()
            if not ports:
                raise ConnectionError(
                    "No sensor found. Check USB connection and try specifying port manually."
                )
            self.port = ports[0]

        try:
            self.serial = serial.Serial(
                port=self.port,
                baudrate=self.baud,
                timeout=timeout,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE
            )
            # Drop any partial line left over from before we opened the port
            self.serial.reset_input_buffer()
            logger.info(f"Connected to sensor on {self.port} at {self.baud} baud")
            return True
        except serial.SerialException as e:
            raise ConnectionError(f"Failed to connect to {self.port}: {e}") from e

    def disconnect(self):
        """Close the serial port."""
        self.stop_streaming()
        if self.serial and self.serial.is_open:
            self.serial.close()
        self.serial = None

    def read_reading(self) -> Optional[ScalarReading]:
        """
        Read a single reading (blocking up to the serial timeout).

        Returns:
            ScalarReading or None if nothing valid arrived
        """
        if not self.serial or not self.serial.is_open:
            raise ConnectionError("Not connected to sensor")

        try:
            raw_bytes = self.serial.readline()
        except serial.SerialException as e:
            logger.error(f"Serial read failed: {e}")
            return None

        line = raw_bytes.decode('ascii', errors='ignore').strip()
        if not line:
            return None

        raw_logger.debug(f"RAW: {line}")
        return parse_reading_line(line, clock=self.clock)

    def start_streaming(self, callback: Callable[[ScalarReading], None]):
        """
        Start reading continuously on a background thread.

        Args:
            callback: Function called with each ScalarReading
        """
        if self._streaming:
            return

        self._callback = callback
        self._streaming = True
        self._stream_thread = threading.Thread(target=self._stream_loop, daemon=True)
        self._stream_thread.start()

    def stop_streaming(self):
        """Stop continuous reading. Safe to call from the streaming callback."""
        self._streaming = False
        if self._stream_thread and self._stream_thread is not threading.current_thread():
            self._stream_thread.join(timeout=2.0)
        self._stream_thread = None
        self._callback = None

    def _stream_loop(self):
        while self._streaming:
            try:
                reading = self.read_reading()
                if reading and self._callback:
                    self._callback(reading)
            except ConnectionError as e:
                logger.error(f"Sensor stream stopped: {e}")
                self._streaming = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False
