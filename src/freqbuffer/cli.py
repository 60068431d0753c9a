"""
Command-line frequency readout.

Watches a serial sensor or replays a capture file and prints the estimated
frequency for each reading:

    freqbuffer --port /dev/ttyACM0 --unit rpm --window 3000 --filter 0.05
    freqbuffer --file capture.csv --unit hz
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .buffer import FrequencyConfig
from .monitor import FrequencyMonitor, FrequencyUpdate
from .session_logger import get_session_logger, init_session_logger
from .sources import FileReadingSource, SerialReadingSource
from .types import FrequencyUnit


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sliding-window frequency readout for scalar sensors")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--port", "-p", help="Serial port for the sensor ('auto' to detect)")
    source.add_argument("--file", "-f", help="Capture file to replay (JSON lines or timestamp,value CSV)")
    parser.add_argument(
        "--baud", type=int, default=SerialReadingSource.DEFAULT_BAUD,
        help=f"Serial baud rate (default: {SerialReadingSource.DEFAULT_BAUD})"
    )
    parser.add_argument(
        "--window", "-w", type=int, default=5000,
        help="Milliseconds of history used for detection (default: 5000)"
    )
    parser.add_argument(
        "--unit", "-u", choices=["hz", "rpm"], default="hz",
        help="Output unit (default: hz)"
    )
    parser.add_argument(
        "--denominator", type=float,
        help="Milliseconds per output unit; overrides --unit"
    )
    parser.add_argument(
        "--filter", type=float, default=0.0,
        help="Ignore oscillations that rise less than this above the mean (default: 0)"
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Stop with exit code 3 on an out-of-order reading instead of dropping it"
    )
    parser.add_argument(
        "--realtime", action="store_true",
        help="Replay capture files at their recorded pace"
    )
    parser.add_argument(
        "--every", type=int, default=1,
        help="Print every Nth update (default: 1)"
    )
    parser.add_argument(
        "--session-location", "-l", default="bench",
        help="Location identifier for session logs (e.g., 'bench', 'field')"
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for session logs (default: ~/freqbuffer_sessions)"
    )
    parser.add_argument(
        "--no-logging", action="store_true",
        help="Disable session logging"
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging to the console")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the readout."""
    args = build_parser().parse_args(argv)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s - %(message)s')

    if args.window < 0:
        print("--window must be non-negative", file=sys.stderr)
        return 2
    if args.every < 1:
        print("--every must be at least 1", file=sys.stderr)
        return 2

    unit = FrequencyUnit.from_name(args.unit)
    if args.denominator is not None:
        if args.denominator <= 0:
            print("--denominator must be positive", file=sys.stderr)
            return 2
        config = FrequencyConfig(denominator_ms=args.denominator)
        unit_label = f"/{args.denominator:g}ms"
    else:
        config = FrequencyConfig.for_unit(unit)
        unit_label = unit.label
    config.window_ms = args.window
    config.filter = args.filter
    config.strict = args.strict

    if args.file:
        source = FileReadingSource(args.file, realtime=args.realtime)
        source_name = args.file
    else:
        port = None if args.port == "auto" else args.port
        source = SerialReadingSource(port=port, baud=args.baud)
        source_name = args.port

    if args.no_logging:
        init_session_logger(enabled=False)
    else:
        log_dir = Path(args.log_dir) if args.log_dir else None
        init_session_logger(log_dir=log_dir, location=args.session_location, enabled=True)

    monitor = FrequencyMonitor(source, config)
    try:
        monitor.connect()
    except (ConnectionError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session_logger = get_session_logger()
    if session_logger:
        session_logger.start_session(source=source_name, unit=unit_label, config=config.to_dict())

    counter = {"n": 0}

    def on_update(update: FrequencyUpdate):
        counter["n"] += 1
        if counter["n"] % args.every == 0:
            print(f"{update.reading.timestamp_ms}\t{update.reading.value:.4f}\t"
                  f"{update.frequency:.3f} {unit_label}")

    try:
        monitor.start(frequency_callback=on_update)
        while not monitor.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        print()
    finally:
        stats = monitor.get_stats()
        monitor.disconnect()
        if session_logger:
            session_logger.end_session()

    print(f"Readings: {stats['readings_observed']} accepted, "
          f"{stats['readings_rejected']} rejected, {stats['errors']} errors")
    print(f"Last frequency: {stats['latest_frequency']:.3f} {unit_label}")

    if monitor.error is not None:
        print(f"Error: {monitor.error}", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
