import math

import numpy as np
import pytest

from micmeter.amplitude import estimate_amplitude


def test_silence_reads_zero_not_nan() -> None:
    level = estimate_amplitude(np.zeros(8192, dtype=np.float32))
    assert level == 0.0
    assert not math.isnan(level)


def test_full_scale_sine_level() -> None:
    sr = 16_000
    t = np.arange(8192) / sr
    samples = np.sin(2 * np.pi * 1000.0 * t).astype(np.float32)
    expected = 10 * math.log10(1500.0**2 * 0.5) + 20
    assert estimate_amplitude(samples) == pytest.approx(expected, abs=0.01)


def test_quiet_input_clamped_to_zero() -> None:
    samples = np.full(1024, 1e-6, dtype=np.float32)
    assert estimate_amplitude(samples) == 0.0


def test_gain_shifts_level_by_20_db_per_decade() -> None:
    rng = np.random.default_rng(7)
    samples = rng.normal(scale=0.1, size=4096).astype(np.float32)
    low = estimate_amplitude(samples, gain=100.0)
    high = estimate_amplitude(samples, gain=1000.0)
    assert high - low == pytest.approx(20.0, abs=1e-6)


def test_malformed_buffer_rejected() -> None:
    with pytest.raises(ValueError):
        estimate_amplitude(np.zeros((2, 16), dtype=np.float32))
    with pytest.raises(ValueError):
        estimate_amplitude(np.zeros(0, dtype=np.float32))
