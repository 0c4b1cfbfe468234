"""Micmeter package."""

from .amplitude import estimate_amplitude
from .driver import NoDeviceError, SoundDeviceDriver
from .frequency import (
    NO_PEAK,
    FrequencyBand,
    FrequencyEstimate,
    band_to_bins,
    estimate_frequency,
)
from .scheduler import MeasurementScheduler, MeterSettings, SessionState
from .smoother import Smoother

__all__ = [
    "estimate_amplitude",
    "estimate_frequency",
    "band_to_bins",
    "FrequencyBand",
    "FrequencyEstimate",
    "NO_PEAK",
    "MeasurementScheduler",
    "MeterSettings",
    "SessionState",
    "NoDeviceError",
    "SoundDeviceDriver",
    "Smoother",
]
