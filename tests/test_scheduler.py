"""Tests for :class:`micmeter.scheduler.MeasurementScheduler`."""

from __future__ import annotations

from typing import Optional

import numpy as np
import pytest
from PySide6 import QtCore

from micmeter.amplitude import estimate_amplitude
from micmeter.buffers import compute_spectrum
from micmeter.driver import NoDeviceError
from micmeter.frequency import NO_PEAK
from micmeter.scheduler import MeasurementScheduler, MeterSettings, SessionState

SR = 16_000
W = 8192


@pytest.fixture(scope="module")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


def _sine(freq: float, length: int = 2 * W, sr: int = SR) -> np.ndarray:
    t = np.arange(length) / sr
    return np.sin(2 * np.pi * freq * t).astype(np.float32)


class FakeDriver:
    """Driver replaying a fixed signal."""

    def __init__(self, signal: np.ndarray, sample_rate: int = SR, fail: bool = False) -> None:
        self.signal = signal
        self.sample_rate = sample_rate
        self.fail = fail
        self.starts = 0
        self.stops = 0

    def start(self, sample_rate: Optional[int] = None) -> None:
        if self.fail:
            raise NoDeviceError("no microphone")
        self.starts += 1
        if sample_rate:
            self.sample_rate = sample_rate

    def stop(self) -> None:
        self.stops += 1

    def latest_samples(self, size: int) -> np.ndarray:
        return self.signal[-size:]

    def latest_spectrum(self, size: int, window: str = "blackmanharris") -> np.ndarray:
        return compute_spectrum(self.signal, size, window)


def _record(signal) -> list:
    values: list = []
    signal.connect(values.append)
    return values


def test_end_to_end_sine(qapp) -> None:
    driver = FakeDriver(_sine(1000.0))
    scheduler = MeasurementScheduler(driver)
    scheduler.configure_band(0, 8000)
    amplitudes = _record(scheduler.amplitudeUpdated)
    frequencies = _record(scheduler.frequencyUpdated)

    scheduler.start(SR)
    try:
        for _ in range(5):
            scheduler.tick_amplitude()
            scheduler.tick_frequency()

        raw_amplitude = estimate_amplitude(driver.latest_samples(W))
        assert len(amplitudes) == 5
        assert len(frequencies) == 5
        assert scheduler.amplitude == pytest.approx(raw_amplitude)
        assert amplitudes[-1] == pytest.approx(raw_amplitude)

        estimate = scheduler.last_frequency_estimate
        assert estimate.peak_found
        assert abs(estimate.hz - 1000.0) <= 2.0
        assert scheduler.frequency == pytest.approx(estimate.hz)
    finally:
        scheduler.stop()


def test_start_twice_keeps_single_session(qapp) -> None:
    driver = FakeDriver(_sine(440.0))
    scheduler = MeasurementScheduler(driver)
    changes = _record(scheduler.runningChanged)

    scheduler.start()
    scheduler.start()
    try:
        assert driver.starts == 1
        assert changes == [True]
        assert scheduler.state is SessionState.RUNNING
        assert scheduler._amplitude_timer.isActive()
        assert scheduler._frequency_timer.isActive()
        assert scheduler._amplitude_timer.interval() == 80
        assert scheduler._frequency_timer.interval() == 100
    finally:
        scheduler.stop()


def test_stop_cancels_tasks_and_releases_state(qapp) -> None:
    driver = FakeDriver(_sine(440.0))
    scheduler = MeasurementScheduler(driver)
    amplitudes = _record(scheduler.amplitudeUpdated)

    scheduler.start()
    scheduler.tick_amplitude()
    scheduler.stop()
    scheduler.stop()

    assert driver.stops == 1
    assert scheduler.state is SessionState.IDLE
    assert not scheduler._amplitude_timer.isActive()
    assert not scheduler._frequency_timer.isActive()
    assert scheduler.sample_buffer is None
    assert scheduler.spectrum_buffer is None
    assert len(scheduler.amplitude_smoother) == 0
    assert scheduler.amplitude is None

    scheduler.tick_amplitude()
    scheduler.tick_frequency()
    assert len(amplitudes) == 1


def test_histories_start_fresh_each_session(qapp) -> None:
    driver = FakeDriver(_sine(1000.0))
    scheduler = MeasurementScheduler(driver)
    scheduler.start()
    scheduler.tick_amplitude()
    scheduler.stop()

    driver.signal = np.zeros(2 * W, dtype=np.float32)
    scheduler.start()
    try:
        scheduler.tick_amplitude()
        assert scheduler.amplitude == 0.0
    finally:
        scheduler.stop()


def test_no_device_leaves_session_idle(qapp) -> None:
    scheduler = MeasurementScheduler(FakeDriver(_sine(440.0), fail=True))
    with pytest.raises(NoDeviceError):
        scheduler.start()
    assert scheduler.state is SessionState.IDLE
    assert scheduler.sample_buffer is None
    assert not scheduler._amplitude_timer.isActive()


def test_band_clamped_and_applied_next_tick(qapp) -> None:
    scheduler = MeasurementScheduler(FakeDriver(_sine(1000.0)))
    scheduler.start(SR)
    try:
        scheduler.configure_band(-100, 999999)
        assert scheduler.current_bins() == (0, W)

        scheduler.configure_band(2000, 4000)
        scheduler.tick_frequency()
        assert scheduler.last_frequency_estimate is NO_PEAK
        assert scheduler.frequency == 0.0

        scheduler.configure_band(900, 1100)
        scheduler.tick_frequency()
        assert scheduler.last_frequency_estimate.peak_found
    finally:
        scheduler.stop()


def test_band_disabled_searches_whole_spectrum(qapp) -> None:
    settings = MeterSettings(band_enabled=False, frequency_smoothing=20)
    scheduler = MeasurementScheduler(FakeDriver(_sine(1000.0)), settings)
    scheduler.configure_band(2000, 4000)
    scheduler.start(SR)
    try:
        assert scheduler.current_bins() == (0, W)
        scheduler.tick_frequency()
        assert abs(scheduler.frequency - 1000.0) <= 2.0
        assert scheduler.frequency_smoother.capacity == 20
    finally:
        scheduler.stop()


def test_wrong_snapshot_length_is_a_contract_violation(qapp) -> None:
    driver = FakeDriver(_sine(440.0, length=W // 2))
    scheduler = MeasurementScheduler(driver)
    scheduler.start()
    try:
        with pytest.raises(ValueError):
            scheduler.tick_amplitude()
    finally:
        scheduler.stop()


def test_timers_drive_updates(qapp) -> None:
    settings = MeterSettings(amplitude_interval_ms=5, frequency_interval_ms=5, window_size=1024)
    scheduler = MeasurementScheduler(FakeDriver(_sine(1000.0, length=2048)), settings)
    amplitudes = _record(scheduler.amplitudeUpdated)
    frequencies = _record(scheduler.frequencyUpdated)

    scheduler.start(SR)
    loop = QtCore.QEventLoop()
    QtCore.QTimer.singleShot(100, loop.quit)
    loop.exec()
    scheduler.stop()

    assert amplitudes
    assert frequencies
