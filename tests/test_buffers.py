import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from micmeter.buffers import (  # noqa: E402
    RollingAudioBuffer,
    SampleBuffer,
    SpectrumBuffer,
    compute_spectrum,
)


def test_rolling_buffer_zero_pads_until_full() -> None:
    ring = RollingAudioBuffer(8)
    ring.write(np.array([1, 2, 3], dtype=np.float32))
    np.testing.assert_array_equal(ring.latest(5), [0, 0, 1, 2, 3])
    assert ring.samples_written == 3


def test_rolling_buffer_wraps_in_time_order() -> None:
    ring = RollingAudioBuffer(4)
    ring.write(np.array([1, 2, 3], dtype=np.float32))
    ring.write(np.array([4, 5, 6], dtype=np.float32))
    np.testing.assert_array_equal(ring.latest(4), [3, 4, 5, 6])


def test_rolling_buffer_keeps_tail_of_oversized_block() -> None:
    ring = RollingAudioBuffer(4)
    ring.write(np.arange(10, dtype=np.float32))
    np.testing.assert_array_equal(ring.latest(4), [6, 7, 8, 9])
    with pytest.raises(ValueError):
        ring.latest(5)


def test_rolling_buffer_clear() -> None:
    ring = RollingAudioBuffer(4)
    ring.write(np.ones(4, dtype=np.float32))
    ring.clear()
    np.testing.assert_array_equal(ring.latest(4), np.zeros(4))
    assert ring.samples_written == 0


def test_compute_spectrum_peaks_at_sine_bin() -> None:
    sr = 16_000
    bins = 512
    t = np.arange(2 * bins) / sr
    # 64 bins * 15.625 Hz per bin
    samples = np.sin(2 * np.pi * 1000.0 * t).astype(np.float32)
    spectrum = compute_spectrum(samples, bins)
    assert spectrum.shape == (bins,)
    assert spectrum.dtype == np.float32
    assert int(np.argmax(spectrum)) == 64
    assert spectrum[64] == pytest.approx(0.5, rel=1e-3)
    assert np.all(spectrum >= 0)


def test_compute_spectrum_pads_short_input() -> None:
    spectrum = compute_spectrum(np.zeros(10, dtype=np.float32), 64)
    assert spectrum.shape == (64,)
    assert not np.any(spectrum)


class _Driver:
    def __init__(self, size: int) -> None:
        self.size = size

    def latest_samples(self, size: int) -> np.ndarray:
        return np.ones(self.size, dtype=np.float32)

    def latest_spectrum(self, size: int, window: str = "blackmanharris") -> np.ndarray:
        return np.full(self.size, 2.0, dtype=np.float32)


def test_buffers_overwrite_in_place() -> None:
    samples = SampleBuffer(16)
    spectrum = SpectrumBuffer(16)
    data = samples.data
    assert samples.refresh(_Driver(16)) is data
    np.testing.assert_array_equal(data, np.ones(16))
    np.testing.assert_array_equal(spectrum.refresh(_Driver(16)), np.full(16, 2.0))


def test_buffers_reject_wrong_length() -> None:
    with pytest.raises(ValueError):
        SampleBuffer(16).refresh(_Driver(8))
    with pytest.raises(ValueError):
        SpectrumBuffer(16).refresh(_Driver(32))
