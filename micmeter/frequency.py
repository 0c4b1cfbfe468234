"""Dominant-frequency estimation restricted to a configurable band.

The estimator searches a magnitude spectrum for the strongest bin inside
``[low_bin, high_bin)`` and refines its position using the two adjacent
bins.  A spectrum holding ``W`` bins covers DC to Nyquist, so bin ``i``
corresponds to ``i * (sample_rate / 2) / W`` Hz.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .constants import (
    HIGH_FREQUENCY_BOUNDARY,
    LOW_FREQUENCY_BOUNDARY,
    PEAK_THRESHOLD,
    SPECTRUM_GAIN,
)


class FrequencyBand(NamedTuple):
    """Inclusive frequency range in Hz searched for the dominant peak."""

    low_hz: int = LOW_FREQUENCY_BOUNDARY
    high_hz: int = HIGH_FREQUENCY_BOUNDARY

    def normalized(self, sample_rate: int) -> "FrequencyBand":
        """Return the band clamped to ``[0, sample_rate / 2]`` with ``low <= high``.

        The band follows a continuously adjustable control, so out-of-range
        or inverted boundaries are corrected instead of rejected.
        """
        nyquist = sample_rate // 2
        low = min(max(int(self.low_hz), 0), nyquist)
        high = min(max(int(self.high_hz), 0), nyquist)
        if low > high:
            low, high = high, low
        return FrequencyBand(low, high)


class FrequencyEstimate(NamedTuple):
    """Outcome of one frequency estimation."""

    hz: float
    bin: float
    peak_found: bool


# Returned when no bin inside the band exceeds the threshold.  The value
# keeps the historical "bin 0 / 0 Hz" reading while ``peak_found`` lets
# callers tell it apart from a real peak at DC.
NO_PEAK = FrequencyEstimate(hz=0.0, bin=0.0, peak_found=False)


def band_to_bins(band: FrequencyBand, sample_rate: int, window: int) -> tuple[int, int]:
    """Convert ``band`` into the half-open bin range ``[low_bin, high_bin)``.

    Both boundaries use ``hz * window * 2 // sample_rate`` and are clamped
    to ``[0, window]`` so that every index in the range is valid.
    """
    if sample_rate <= 0 or window <= 0:
        raise ValueError("sample_rate and window must be positive")

    band = band.normalized(sample_rate)
    low_bin = band.low_hz * window * 2 // sample_rate
    high_bin = band.high_hz * window * 2 // sample_rate
    low_bin = min(max(low_bin, 0), window)
    high_bin = min(max(high_bin, low_bin), window)
    return low_bin, high_bin


def bin_to_hz(bin_index: float, sample_rate: int, window: int) -> float:
    return float(bin_index) * (sample_rate / 2) / window


def estimate_frequency(
    spectrum: np.ndarray,
    sample_rate: int,
    bins: tuple[int, int],
    *,
    gain: float = SPECTRUM_GAIN,
    threshold: float = PEAK_THRESHOLD,
) -> FrequencyEstimate:
    """Estimate the dominant frequency of ``spectrum`` inside ``bins``.

    Parameters
    ----------
    spectrum:
        Magnitude spectrum of ``W`` bins.  It is not modified.
    sample_rate:
        Sampling frequency of the analysed audio in Hz.
    bins:
        Half-open bin range ``(low_bin, high_bin)`` as produced by
        :func:`band_to_bins`.
    gain:
        Linear pre-scale applied to the in-band magnitudes.
    threshold:
        Minimum scaled magnitude a bin must exceed to count as a peak.

    Returns
    -------
    FrequencyEstimate
        The refined peak in Hz and in fractional bins, or :data:`NO_PEAK`.
    """

    if spectrum.ndim != 1 or spectrum.size == 0:
        raise ValueError(f"expected a non-empty 1-D spectrum, got shape {spectrum.shape}")

    window = spectrum.size
    low_bin, high_bin = bins
    low_bin = min(max(int(low_bin), 0), window)
    high_bin = min(max(int(high_bin), low_bin), window)

    # Only the band is scaled; neighbours outside it keep their raw level.
    scaled = spectrum.astype(np.float64)
    scaled[low_bin:high_bin] *= gain

    band = scaled[low_bin:high_bin]
    candidates = band > max(threshold, 0.0)
    if not np.any(candidates):
        return NO_PEAK

    # argmax returns the first maximum, so ties resolve to the lowest bin.
    peak_bin = low_bin + int(np.argmax(np.where(candidates, band, -np.inf)))
    position = float(peak_bin)

    if 0 < peak_bin < window - 1:
        centre = scaled[peak_bin]
        if centre != 0.0:
            left = scaled[peak_bin - 1] / centre
            right = scaled[peak_bin + 1] / centre
            position += 0.5 * (right * right - left * left)

    return FrequencyEstimate(
        hz=bin_to_hz(position, sample_rate, window),
        bin=position,
        peak_found=True,
    )


__all__ = [
    "FrequencyBand",
    "FrequencyEstimate",
    "NO_PEAK",
    "band_to_bins",
    "bin_to_hz",
    "estimate_frequency",
]
