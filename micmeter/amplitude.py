"""Loudness estimation from a block of time-domain samples."""

from __future__ import annotations

import numpy as np

from .constants import AMPLITUDE_GAIN, DB_OFFSET


def estimate_amplitude(samples: np.ndarray, gain: float = AMPLITUDE_GAIN) -> float:
    """Return the loudness of ``samples`` in decibels.

    Every sample is multiplied by ``gain`` and the mean of the squared
    values is converted with ``10 * log10(mean) + DB_OFFSET``.  The offset
    shifts typical room levels into a positive range, so the result is a
    calibrated loudness proxy rather than dBFS.  Negative values and
    complete silence are reported as ``0.0``.

    Parameters
    ----------
    samples:
        One-dimensional array of mono audio samples.
    gain:
        Linear pre-scale compensating for low microphone input levels.

    Returns
    -------
    float
        Non-negative loudness value.
    """

    if samples.ndim != 1 or samples.size == 0:
        raise ValueError(f"expected a non-empty 1-D buffer, got shape {samples.shape}")

    scaled = samples.astype(np.float64) * gain
    energy = float(np.sum(scaled**2))
    if energy <= 0.0:
        return 0.0

    db = 10.0 * np.log10(energy / samples.size) + DB_OFFSET
    return max(float(db), 0.0)


__all__ = ["estimate_amplitude"]
