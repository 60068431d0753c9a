#!/usr/bin/env python3
"""
Replay a capture file through the frequency estimator and plot the result.

Top panel: raw signal with the crossing threshold (mean + filter) of the
final window. Bottom panel: frequency estimate after every reading.

    python scripts/plot_frequency.py capture.csv --window 3000 --unit rpm --filter 0.05
"""

import argparse

import matplotlib.pyplot as plt
import numpy as np

from freqbuffer import FrequencyBuffer, FrequencyConfig, FrequencyUnit, read_capture_file


def replay(path, config: FrequencyConfig):
    """Run every reading in the file through a fresh estimator."""
    buffer = FrequencyBuffer.from_config(config)
    timestamps, values, frequencies = [], [], []
    for reading in read_capture_file(path):
        timestamps.append(reading.timestamp_ms)
        values.append(reading.value)
        frequencies.append(buffer.observe(reading.timestamp_ms, reading.value))
    return np.array(timestamps), np.array(values), np.array(frequencies), buffer


def plot(path, config: FrequencyConfig, unit_label: str):
    t_ms, values, frequencies, buffer = replay(path, config)
    if len(t_ms) == 0:
        print(f"No readings in {path}")
        return

    t_s = (t_ms - t_ms[0]) / 1000.0
    window_values = np.array([r.value for r in buffer.readings])
    threshold = window_values.mean() + config.filter

    fig, (ax_signal, ax_freq) = plt.subplots(2, 1, sharex=True, figsize=(10, 6))

    ax_signal.plot(t_s, values, color='blue')
    ax_signal.axhline(threshold, color='red', linestyle='--', label="threshold (last window)")
    ax_signal.set_title("Signal")
    ax_signal.set_ylabel("Value")
    ax_signal.legend()
    ax_signal.grid(True)

    ax_freq.plot(t_s, frequencies, color='green')
    ax_freq.set_title(f"Frequency estimate (window {config.window_ms} ms)")
    ax_freq.set_xlabel("Time (seconds)")
    ax_freq.set_ylabel(unit_label)
    ax_freq.grid(True)

    print(f"Readings: {len(t_ms)}, last estimate: {frequencies[-1]:.3f} {unit_label}, "
          f"max: {frequencies.max():.3f} {unit_label}")

    fig.tight_layout()
    plt.show()


def main():
    parser = argparse.ArgumentParser(description="Plot frequency estimates for a capture file")
    parser.add_argument("file", help="Capture file (JSON lines or timestamp,value CSV)")
    parser.add_argument("--window", "-w", type=int, default=5000, help="Window in ms (default: 5000)")
    parser.add_argument("--unit", "-u", choices=["hz", "rpm"], default="hz")
    parser.add_argument("--filter", type=float, default=0.0, help="Noise filter (default: 0)")
    args = parser.parse_args()

    unit = FrequencyUnit.from_name(args.unit)
    config = FrequencyConfig.for_unit(unit, window_ms=args.window, filter=args.filter)
    plot(args.file, config, unit.label)


if __name__ == "__main__":
    main()
