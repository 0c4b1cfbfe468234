"""Measurement session driving the amplitude and frequency estimators.

:class:`MeasurementScheduler` owns one measurement session at a time.
Two ``QTimer`` objects on the owner's event loop act as the periodic
tasks, one per stream, each with its own cadence.  Because both timers
fire on the same thread a task body always finishes before the next tick
of either stream is delivered, and stopping the timers cancels every
pending tick.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from PySide6 import QtCore

from .amplitude import estimate_amplitude
from .buffers import SampleBuffer, SpectrumBuffer
from .constants import (
    AMPLITUDE_GAIN,
    AMPLITUDE_INTERVAL_MS,
    AMPLITUDE_SMOOTHING,
    FREQUENCY_INTERVAL_MS,
    FREQUENCY_SMOOTHING,
    PEAK_THRESHOLD,
    SPECTRUM_GAIN,
    SPECTRUM_WINDOW,
    WINDOW_SIZE,
)
from .driver import AudioDriver
from .frequency import (
    FrequencyBand,
    FrequencyEstimate,
    band_to_bins,
    estimate_frequency,
)
from .smoother import Smoother

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeterSettings:
    """Tunable parameters of a measurement session.

    Attributes:
        window_size: Samples analysed per amplitude tick and bins per
            frequency tick.
        amplitude_gain: Linear pre-scale for time-domain samples.
        spectrum_gain: Linear pre-scale for in-band magnitudes.
        peak_threshold: Minimum scaled magnitude of a frequency peak.
        amplitude_interval_ms: Cadence of the amplitude task.
        frequency_interval_ms: Cadence of the frequency task.
        amplitude_smoothing: Moving-average depth of the amplitude stream.
        frequency_smoothing: Moving-average depth of the frequency stream.
        band_enabled: Restrict the peak search to the configured band.
            When ``False`` the whole spectrum is searched.
        spectrum_window: Window function name for the spectrum transform.
    """

    window_size: int = WINDOW_SIZE
    amplitude_gain: float = AMPLITUDE_GAIN
    spectrum_gain: float = SPECTRUM_GAIN
    peak_threshold: float = PEAK_THRESHOLD
    amplitude_interval_ms: int = AMPLITUDE_INTERVAL_MS
    frequency_interval_ms: int = FREQUENCY_INTERVAL_MS
    amplitude_smoothing: int = AMPLITUDE_SMOOTHING
    frequency_smoothing: int = FREQUENCY_SMOOTHING
    band_enabled: bool = True
    spectrum_window: str = SPECTRUM_WINDOW


class SessionState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class MeasurementScheduler(QtCore.QObject):
    """Run the loudness and frequency measurements of one session."""

    amplitudeUpdated = QtCore.Signal(float)
    frequencyUpdated = QtCore.Signal(float)
    runningChanged = QtCore.Signal(bool)

    def __init__(
        self,
        driver: AudioDriver,
        settings: Optional[MeterSettings] = None,
        *,
        band: Optional[FrequencyBand] = None,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.driver = driver
        self.settings = settings or MeterSettings()
        if self.settings.window_size < 1:
            raise ValueError(f"window_size must be positive, got {self.settings.window_size}")
        self._band = band or FrequencyBand()
        self._state = SessionState.IDLE
        self._sample_rate: Optional[int] = None

        self.amplitude_smoother = Smoother(self.settings.amplitude_smoothing)
        self.frequency_smoother = Smoother(self.settings.frequency_smoothing)
        self.sample_buffer: Optional[SampleBuffer] = None
        self.spectrum_buffer: Optional[SpectrumBuffer] = None

        self.amplitude: Optional[float] = None
        self.frequency: Optional[float] = None
        self.last_frequency_estimate: Optional[FrequencyEstimate] = None

        self._amplitude_timer = QtCore.QTimer(self)
        self._amplitude_timer.setInterval(self.settings.amplitude_interval_ms)
        self._amplitude_timer.timeout.connect(self.tick_amplitude)
        self._frequency_timer = QtCore.QTimer(self)
        self._frequency_timer.setInterval(self.settings.frequency_interval_ms)
        self._frequency_timer.timeout.connect(self.tick_frequency)

    # --------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def band(self) -> FrequencyBand:
        return self._band

    @property
    def sample_rate(self) -> Optional[int]:
        return self._sample_rate

    def configure_band(self, low_hz: int, high_hz: int) -> None:
        """Replace the searched band; the next frequency tick uses it."""
        self._band = FrequencyBand(int(low_hz), int(high_hz))
        logger.debug("Band set to %d-%d Hz", low_hz, high_hz)

    def current_bins(self) -> tuple[int, int]:
        """Bin range the next frequency tick will search."""
        if self._sample_rate is None:
            raise RuntimeError("no session is running")
        return self._bins_for(self._band)

    def _bins_for(self, band: FrequencyBand) -> tuple[int, int]:
        window = self.settings.window_size
        if not self.settings.band_enabled:
            return 0, window
        return band_to_bins(band, self._sample_rate, window)

    # --------------------------------------------------------------
    def start(self, sample_rate: Optional[int] = None) -> None:
        """Open the driver and start both periodic measurement tasks.

        Calling ``start`` on a running session does nothing.  A
        :class:`~micmeter.driver.NoDeviceError` from the driver propagates
        and leaves the session idle.
        """

        if self._state is SessionState.RUNNING:
            return

        self.driver.start(sample_rate)
        rate = int(self.driver.sample_rate)
        if rate <= 0:
            self.driver.stop()
            raise ValueError(f"driver reported invalid sample rate {rate}")
        self._sample_rate = rate

        window = self.settings.window_size
        self.sample_buffer = SampleBuffer(window)
        self.spectrum_buffer = SpectrumBuffer(window)
        self.amplitude_smoother.reset()
        self.frequency_smoother.reset()
        self.amplitude = None
        self.frequency = None
        self.last_frequency_estimate = None

        self._state = SessionState.RUNNING
        self._amplitude_timer.start()
        self._frequency_timer.start()
        logger.info(
            "Measurement started at %d Hz, window %d, band %d-%d Hz",
            rate,
            window,
            self._band.low_hz,
            self._band.high_hz,
        )
        self.runningChanged.emit(True)

    def stop(self) -> None:
        """Cancel both tasks and release the session state."""
        if self._state is SessionState.IDLE:
            return

        self._amplitude_timer.stop()
        self._frequency_timer.stop()
        self._state = SessionState.IDLE

        self.sample_buffer = None
        self.spectrum_buffer = None
        self.amplitude_smoother.reset()
        self.frequency_smoother.reset()
        self.amplitude = None
        self.frequency = None
        self.last_frequency_estimate = None
        self.driver.stop()
        logger.info("Measurement stopped")
        self.runningChanged.emit(False)

    # --------------------------------------------------------------
    @QtCore.Slot()
    def tick_amplitude(self) -> None:
        """Measure, smooth and publish one loudness value."""
        if self._state is not SessionState.RUNNING or self.sample_buffer is None:
            return

        samples = self.sample_buffer.refresh(self.driver)
        raw = estimate_amplitude(samples, self.settings.amplitude_gain)
        self.amplitude = self.amplitude_smoother.push(raw)
        logger.debug("amplitude raw=%.2f dB smoothed=%.2f dB", raw, self.amplitude)
        self.amplitudeUpdated.emit(self.amplitude)

    @QtCore.Slot()
    def tick_frequency(self) -> None:
        """Measure, smooth and publish one dominant-frequency value."""
        if self._state is not SessionState.RUNNING or self.spectrum_buffer is None:
            return

        band = self._band
        bins = self._bins_for(band)
        spectrum = self.spectrum_buffer.refresh(self.driver, self.settings.spectrum_window)
        estimate = estimate_frequency(
            spectrum,
            self._sample_rate,
            bins,
            gain=self.settings.spectrum_gain,
            threshold=self.settings.peak_threshold,
        )
        self.last_frequency_estimate = estimate
        self.frequency = self.frequency_smoother.push(estimate.hz)
        logger.debug(
            "frequency raw=%.1f Hz smoothed=%.1f Hz peak=%s",
            estimate.hz,
            self.frequency,
            estimate.peak_found,
        )
        self.frequencyUpdated.emit(self.frequency)


__all__ = ["MeasurementScheduler", "MeterSettings", "SessionState"]
