"""Application-wide constants used by the measurement engine.

The values in this module configure the analysis window, the gain
compensation applied to quiet microphones, the peak detection threshold,
the tick cadence of each measurement stream and the depth of the
moving-average smoothing.  Keeping them together avoids magic numbers
spread through the estimators and makes tuning a one-file job.
"""

from __future__ import annotations

# ─── Audio configuration ────────────────────────────────────────────────────

# Sampling frequency requested from the input device.  Speech-grade
# microphones are happy at 16 kHz and the band of interest rarely goes
# beyond 8 kHz.
SAMPLE_RATE: int = 16_000

# Number of samples (amplitude) and spectrum bins (frequency) analysed on
# every tick.  The spectrum is computed over ``2 * WINDOW_SIZE`` samples so
# that ``WINDOW_SIZE`` bins span DC to Nyquist.
WINDOW_SIZE: int = 8192

# Samples delivered per PortAudio callback.
BLOCK_SIZE: int = 1024

# Window function applied before the FFT.  Any name understood by
# ``scipy.signal.get_window`` works.
SPECTRUM_WINDOW: str = "blackmanharris"

# Seconds to wait for the first block of audio after opening the device
# before giving up with ``NoDeviceError``.
DEVICE_READY_TIMEOUT: float = 2.0

# ─── Estimation ─────────────────────────────────────────────────────────────

# Linear gain applied to every time-domain sample.  Built-in microphones
# deliver very low levels, so the raw energy is scaled up before the dB
# conversion.
AMPLITUDE_GAIN: float = 1500.0

# Linear gain applied to the in-band spectrum magnitudes.
SPECTRUM_GAIN: float = 500.0

# Minimum scaled magnitude a bin must exceed to count as a peak.
PEAK_THRESHOLD: float = 0.2

# Offset added to the dB value so that ordinary room levels land in a
# positive, readable range.
DB_OFFSET: float = 20.0

# ─── Scheduling and smoothing ───────────────────────────────────────────────

# Interval between two amplitude / frequency updates in milliseconds.
AMPLITUDE_INTERVAL_MS: int = 80
FREQUENCY_INTERVAL_MS: int = 100

# Depth of the moving average for each stream.  The frequency readout is
# noticeably calmer with 20 but reacts slower.
AMPLITUDE_SMOOTHING: int = 5
FREQUENCY_SMOOTHING: int = 5

# ─── Frequency band ─────────────────────────────────────────────────────────

LOW_FREQUENCY_BOUNDARY: int = 0
HIGH_FREQUENCY_BOUNDARY: int = 20_000

__all__ = [
    "SAMPLE_RATE",
    "WINDOW_SIZE",
    "BLOCK_SIZE",
    "SPECTRUM_WINDOW",
    "DEVICE_READY_TIMEOUT",
    "AMPLITUDE_GAIN",
    "SPECTRUM_GAIN",
    "PEAK_THRESHOLD",
    "DB_OFFSET",
    "AMPLITUDE_INTERVAL_MS",
    "FREQUENCY_INTERVAL_MS",
    "AMPLITUDE_SMOOTHING",
    "FREQUENCY_SMOOTHING",
    "LOW_FREQUENCY_BOUNDARY",
    "HIGH_FREQUENCY_BOUNDARY",
]
