"""Shared fixtures for freqbuffer tests."""

import pytest

import freqbuffer.session_logger as session_logger_module


def make_square_wave(period_ms=100, amplitude=1.0, start_ms=0, end_ms=990, step_ms=10, offset=0.0):
    """(timestamp, value) pairs: +amplitude for the first half of each period, -amplitude after."""
    samples = []
    for t in range(start_ms, end_ms + 1, step_ms):
        phase = (t - start_ms) % period_ms
        value = amplitude if phase < period_ms / 2 else -amplitude
        samples.append((t, value + offset))
    return samples


@pytest.fixture
def square_wave():
    return make_square_wave


@pytest.fixture(autouse=True)
def reset_session_logger():
    """Keep the global session logger from leaking between tests."""
    session_logger_module._session_logger = None
    yield
    session_logger_module._session_logger = None
