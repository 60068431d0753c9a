"""Tests for the sliding-window frequency estimator."""

import random

import pytest

from freqbuffer import (
    FrequencyBuffer,
    FrequencyConfig,
    FrequencyUnit,
    OutOfOrderReadingError,
    ScalarReading,
    ValueFilter,
)


def feed(buffer, samples):
    """Observe every sample and return the last estimate."""
    frequency = 0.0
    for t, value in samples:
        frequency = buffer.observe(t, value)
    return frequency


# =============================================================================
# Tests for basic estimation
# =============================================================================

class TestInsufficientData:
    """Fewer than two readings never produce a frequency."""

    def test_empty_buffer(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        assert buffer.current_frequency() == 0.0

    def test_single_reading(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        assert buffer.observe(0, 5.0) == 0.0
        assert len(buffer) == 1


class TestConstantSignal:
    """A flat signal has no crossings."""

    def test_constant_values(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(t, 0.1) for t in range(0, 1000, 10)])
        assert frequency == 0.0

    def test_constant_negative_values(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(t, -3.7) for t in range(0, 1000, 10)])
        assert frequency == 0.0


class TestSquareWave:
    """Clean square waves report their true frequency."""

    def test_10hz_square_wave(self, square_wave):
        """100 ms period across a 1 s window should read 10 Hz."""
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        frequency = feed(buffer, square_wave(period_ms=100, amplitude=1.0))
        assert frequency == pytest.approx(10.0)

    def test_5hz_square_wave(self, square_wave):
        buffer = FrequencyBuffer(window_ms=2000, denominator_ms=1000, filter=0.1)
        frequency = feed(buffer, square_wave(period_ms=200, amplitude=2.0, end_ms=1990))
        assert frequency == pytest.approx(5.0)

    def test_rpm_is_sixty_times_hz(self, square_wave):
        samples = square_wave(period_ms=100, amplitude=1.0)
        hz = FrequencyBuffer(window_ms=1000, denominator_ms=FrequencyUnit.HZ.denominator_ms, filter=0.1)
        rpm = FrequencyBuffer(window_ms=1000, denominator_ms=FrequencyUnit.RPM.denominator_ms, filter=0.1)

        assert feed(rpm, samples) == pytest.approx(60 * feed(hz, samples))
        assert rpm.latest_frequency == pytest.approx(600.0)

    def test_dc_offset_does_not_matter(self, square_wave):
        """The threshold follows the mean, so an offset signal reads the same."""
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        frequency = feed(buffer, square_wave(period_ms=100, amplitude=1.0, offset=50.0))
        assert frequency == pytest.approx(10.0)

    def test_leading_crossing_is_dropped(self):
        """Two crossings span half a cycle, not a full one."""
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(0, 1.0), (500, -1.0), (1000, 1.0)])
        # Crossings at 500 and 1000 ms: one counted crossing over 0.5 s
        assert frequency == pytest.approx(1.0)

    def test_single_crossing_is_not_a_frequency(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(0, 1.0), (100, 1.0), (500, -1.0), (900, -1.0)])
        assert frequency == 0.0


class TestNoiseRejection:
    """Oscillations smaller than the filter are ignored."""

    def test_small_oscillation_below_filter(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        frequency = feed(buffer, square_wave(period_ms=100, amplitude=0.05))
        assert frequency == 0.0

    def test_same_oscillation_counts_without_filter(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.0)
        frequency = feed(buffer, square_wave(period_ms=100, amplitude=0.05))
        assert frequency == pytest.approx(10.0)


class TestQuietSignal:
    """A signal that has stopped reports 0.0 even with old crossings buffered."""

    def test_signal_stops(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)

        # Oscillate for 600 ms
        assert feed(buffer, square_wave(period_ms=100, amplitude=1.0, end_ms=590)) == pytest.approx(10.0)

        # Then go flat. At 1400 ms the window holds 400-1400 ms, and only
        # 400-590 ms still oscillates.
        frequency = feed(buffer, [(t, 0.0) for t in range(600, 1401, 10)])

        assert frequency == 0.0
        assert buffer.readings[0].timestamp_ms == 400

    def test_recent_blip_is_not_a_spike(self):
        """Two quick crossings at the end of a long quiet window read as silence."""
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        samples = [(t, 0.0) for t in range(0, 960, 10)]
        samples += [(960, 1.0), (970, 0.0), (980, 0.0)]
        assert feed(buffer, samples) == 0.0

    def test_quarter_window_uses_whole_milliseconds(self):
        """Span of 2 ms is not less than 10 // 4, so it still counts."""
        buffer = FrequencyBuffer(window_ms=10, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(0, 1.0), (1, -1.0), (3, 1.0)])
        assert frequency == pytest.approx(250.0)


class TestDegenerateSpan:
    """Crossings at the same instant cannot be turned into a rate."""

    def test_zero_span_returns_zero(self):
        buffer = FrequencyBuffer(window_ms=0, denominator_ms=1000, filter=0)
        frequency = feed(buffer, [(0, 1.0), (0, -1.0), (0, 1.0)])
        assert frequency == 0.0
        assert len(buffer) == 3


# =============================================================================
# Tests for the retention window
# =============================================================================

class TestPruning:
    """Readings older than the window are evicted from the head."""

    def test_old_readings_evicted(self):
        buffer = FrequencyBuffer(window_ms=100, denominator_ms=1000, filter=0)
        feed(buffer, [(t, 0.0) for t in range(0, 500, 10)])

        timestamps = [r.timestamp_ms for r in buffer.readings]
        assert timestamps[0] == 390
        assert timestamps[-1] == 490
        assert len(buffer) == 11

    def test_reading_exactly_on_boundary_kept(self):
        buffer = FrequencyBuffer(window_ms=100, denominator_ms=1000, filter=0)
        buffer.observe(0, 1.0)
        buffer.observe(100, 1.0)
        assert len(buffer) == 2
        buffer.observe(101, 1.0)
        assert [r.timestamp_ms for r in buffer.readings] == [100, 101]

    def test_invariant_holds_after_every_observe(self):
        rng = random.Random(1234)
        buffer = FrequencyBuffer(window_ms=250, denominator_ms=1000, filter=0.2)
        t = 0
        for _ in range(500):
            t += rng.randint(0, 40)
            buffer.observe(t, rng.uniform(-1, 1))
            assert all(r.timestamp_ms >= t - buffer.window_ms for r in buffer.readings)

    def test_readings_stay_in_order(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        feed(buffer, [(t, float(t)) for t in range(0, 300, 7)])
        timestamps = [r.timestamp_ms for r in buffer.readings]
        assert timestamps == sorted(timestamps)

    def test_stats_track_pruning(self):
        buffer = FrequencyBuffer(window_ms=100, denominator_ms=1000, filter=0)
        feed(buffer, [(t, 0.0) for t in range(0, 500, 10)])
        stats = buffer.get_stats()
        assert stats["readings_observed"] == 50
        assert stats["readings_pruned"] == 39
        assert stats["buffer_size"] == 11


class TestChangeWindow:
    """Window changes apply immediately relative to the newest reading."""

    def test_shrinking_window_prunes_without_new_reading(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        feed(buffer, [(t, 0.0) for t in range(0, 1000, 10)])
        assert len(buffer) == 100

        buffer.change_window(200)

        assert buffer.window_ms == 200
        assert all(r.timestamp_ms >= 990 - 200 for r in buffer.readings)
        assert buffer.readings[0].timestamp_ms == 790
        assert len(buffer) == 21

    def test_change_window_on_empty_buffer(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0)
        buffer.change_window(10)
        assert buffer.window_ms == 10
        assert len(buffer) == 0

    def test_growing_window_keeps_everything(self):
        buffer = FrequencyBuffer(window_ms=100, denominator_ms=1000, filter=0)
        feed(buffer, [(t, 0.0) for t in range(0, 500, 10)])
        buffer.change_window(5000)
        assert len(buffer) == 11

    def test_negative_window_rejected(self):
        buffer = FrequencyBuffer(window_ms=100, denominator_ms=1000, filter=0)
        with pytest.raises(ValueError):
            buffer.change_window(-1)


class TestChangeFilter:
    """Filter changes apply from the next computation."""

    def test_filter_change_not_retroactive(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        feed(buffer, square_wave(period_ms=100, amplitude=1.0))
        assert buffer.latest_frequency == pytest.approx(10.0)

        buffer.change_filter(5.0)

        assert buffer.filter == 5.0
        assert buffer.latest_frequency == pytest.approx(10.0)
        assert buffer.current_frequency() == 0.0
        assert buffer.latest_frequency == 0.0


class TestRecompute:
    """Recomputing without input is stable."""

    def test_idempotent(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        observed = feed(buffer, square_wave(period_ms=100, amplitude=1.0))
        first = buffer.current_frequency()
        second = buffer.compute_frequency()
        assert first == second == observed


# =============================================================================
# Tests for out-of-order input
# =============================================================================

class TestOutOfOrder:
    """Readings older than the newest buffered reading are not accepted."""

    def test_late_reading_dropped(self, square_wave):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0.1)
        expected = feed(buffer, square_wave(period_ms=100, amplitude=1.0))
        before = buffer.readings

        frequency = buffer.observe(500, 100.0)

        assert frequency == pytest.approx(expected)
        assert buffer.readings == before
        assert buffer.get_stats()["readings_rejected"] == 1

    def test_strict_mode_raises(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0, strict=True)
        buffer.observe(100, 1.0)

        with pytest.raises(OutOfOrderReadingError) as exc_info:
            buffer.observe(50, 1.0)

        assert exc_info.value.timestamp_ms == 50
        assert exc_info.value.newest_timestamp_ms == 100
        assert len(buffer) == 1

    def test_equal_timestamps_accepted(self):
        buffer = FrequencyBuffer(window_ms=1000, denominator_ms=1000, filter=0, strict=True)
        buffer.observe(100, 1.0)
        buffer.observe(100, 2.0)
        assert len(buffer) == 2


# =============================================================================
# Tests for construction and interfaces
# =============================================================================

class TestConstruction:
    """Configuration is validated up front."""

    def test_from_config(self):
        config = FrequencyConfig.for_unit(FrequencyUnit.RPM, window_ms=3000, filter=0.2)
        buffer = FrequencyBuffer.from_config(config)

        assert buffer.window_ms == 3000
        assert buffer.denominator_ms == 60000.0
        assert buffer.filter == 0.2

    def test_default_config(self):
        config = FrequencyConfig()
        assert config.window_ms == 5000
        assert config.denominator_ms == 1000.0
        assert config.to_dict()["strict"] is False

    def test_zero_denominator_rejected(self):
        with pytest.raises(ValueError):
            FrequencyBuffer(window_ms=1000, denominator_ms=0, filter=0)

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            FrequencyBuffer(window_ms=-5, denominator_ms=1000, filter=0)


class TestValueFilter:
    """The estimator is usable wherever a ValueFilter is expected."""

    def test_is_value_filter(self):
        assert isinstance(FrequencyBuffer(1000, 1000, 0), ValueFilter)

    def test_filter_value_matches_observe(self, square_wave):
        via_observe = FrequencyBuffer(1000, 1000, 0.1)
        via_filter = FrequencyBuffer(1000, 1000, 0.1)
        for t, value in square_wave(period_ms=100, amplitude=1.0):
            assert via_filter.filter_value(t, value) == via_observe.observe(t, value)

    def test_readings_snapshot_is_immutable(self):
        buffer = FrequencyBuffer(1000, 1000, 0)
        buffer.observe(0, 1.5)
        snapshot = buffer.readings
        buffer.observe(10, 2.5)
        assert snapshot == (ScalarReading(0, 1.5),)
        assert buffer.newest_timestamp == 10


class TestFrequencyUnit:
    """Unit lookup helpers."""

    def test_from_name(self):
        assert FrequencyUnit.from_name("rpm") is FrequencyUnit.RPM
        assert FrequencyUnit.from_name("Hz") is FrequencyUnit.HZ

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            FrequencyUnit.from_name("furlongs")

    def test_labels(self):
        assert FrequencyUnit.HZ.label == "Hz"
        assert FrequencyUnit.RPM.label == "RPM"
