"""Sample and spectrum buffers shared between the driver and the estimators.

:class:`RollingAudioBuffer` lives on the driver side.  The PortAudio
callback appends every captured block and the measurement tasks copy out
the most recent samples under the same lock.  :class:`SampleBuffer` and
:class:`SpectrumBuffer` are the fixed-size snapshots owned by a
measurement session and overwritten in place on every tick.
"""

from __future__ import annotations

import threading
from functools import lru_cache
from typing import TYPE_CHECKING

import numpy as np
from scipy.signal import get_window

from .constants import SPECTRUM_WINDOW, WINDOW_SIZE

if TYPE_CHECKING:  # pragma: no cover
    from .driver import AudioDriver


@lru_cache(maxsize=8)
def _analysis_window(name: str, length: int) -> np.ndarray:
    window = get_window(name, length)
    window.setflags(write=False)
    return window


def compute_spectrum(
    samples: np.ndarray, bins: int, window: str = SPECTRUM_WINDOW
) -> np.ndarray:
    """Return ``bins`` magnitudes of the windowed FFT of ``samples``.

    ``samples`` should hold ``2 * bins`` values so that the returned bins
    span DC to Nyquist.  Magnitudes are normalised by the window sum, which
    makes a full-scale sine centred on a bin read ``0.5``.

    Parameters
    ----------
    samples:
        One-dimensional array of mono audio samples.
    bins:
        Number of magnitude bins to return.
    window:
        Window name accepted by :func:`scipy.signal.get_window`.

    Returns
    -------
    np.ndarray
        ``float32`` array of length ``bins``.
    """

    length = 2 * bins
    if samples.size < length:
        samples = np.concatenate([np.zeros(length - samples.size, dtype=samples.dtype), samples])
    else:
        samples = samples[-length:]

    taper = _analysis_window(window, length)
    magnitudes = np.abs(np.fft.rfft(samples.astype(np.float64) * taper))
    magnitudes /= float(np.sum(taper))
    return magnitudes[:bins].astype(np.float32)


class RollingAudioBuffer:
    """Thread-safe ring of the most recent ``capacity`` mono samples.

    The ring starts out zero-filled, so reads made before the device has
    produced ``capacity`` samples are zero-padded at the front.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._data = np.zeros(self.capacity, dtype=np.float32)
        self._write = 0
        self._written = 0
        self._lock = threading.Lock()

    @property
    def samples_written(self) -> int:
        return self._written

    def write(self, block: np.ndarray) -> None:
        """Append ``block``, overwriting the oldest samples when full."""
        block = np.asarray(block, dtype=np.float32).reshape(-1)
        if block.size >= self.capacity:
            block = block[-self.capacity :]
        with self._lock:
            end = self._write + block.size
            if end <= self.capacity:
                self._data[self._write : end] = block
            else:
                split = self.capacity - self._write
                self._data[self._write :] = block[:split]
                self._data[: end - self.capacity] = block[split:]
            self._write = end % self.capacity
            self._written += block.size

    def latest(self, size: int) -> np.ndarray:
        """Return a copy of the newest ``size`` samples in time order."""
        if size > self.capacity:
            raise ValueError(f"requested {size} samples from a ring of {self.capacity}")
        with self._lock:
            ordered = np.concatenate([self._data[self._write :], self._data[: self._write]])
        return ordered[-size:].copy()

    def clear(self) -> None:
        with self._lock:
            self._data.fill(0.0)
            self._write = 0
            self._written = 0


class SampleBuffer:
    """Session-owned snapshot of the latest ``size`` time-domain samples."""

    def __init__(self, size: int = WINDOW_SIZE) -> None:
        if size < 1:
            raise ValueError(f"size must be positive, got {size}")
        self.size = int(size)
        self.data = np.zeros(self.size, dtype=np.float32)

    def refresh(self, driver: "AudioDriver") -> np.ndarray:
        """Overwrite the buffer with the driver's current samples."""
        snapshot = np.asarray(driver.latest_samples(self.size))
        _check_length(snapshot, self.size)
        self.data[:] = snapshot
        return self.data


class SpectrumBuffer:
    """Session-owned snapshot of the latest ``size`` spectrum magnitudes."""

    def __init__(self, size: int = WINDOW_SIZE) -> None:
        if size < 1:
            raise ValueError(f"size must be positive, got {size}")
        self.size = int(size)
        self.data = np.zeros(self.size, dtype=np.float32)

    def refresh(self, driver: "AudioDriver", window: str = SPECTRUM_WINDOW) -> np.ndarray:
        """Overwrite the buffer with the driver's current spectrum."""
        snapshot = np.asarray(driver.latest_spectrum(self.size, window))
        _check_length(snapshot, self.size)
        self.data[:] = snapshot
        return self.data


def _check_length(snapshot: np.ndarray, size: int) -> None:
    if snapshot.ndim != 1 or snapshot.size != size:
        raise ValueError(f"driver returned shape {snapshot.shape}, expected ({size},)")


__all__ = [
    "RollingAudioBuffer",
    "SampleBuffer",
    "SpectrumBuffer",
    "compute_spectrum",
]
