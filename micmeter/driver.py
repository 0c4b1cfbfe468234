"""Microphone access through ``sounddevice``.

The measurement engine only depends on the small :class:`AudioDriver`
protocol.  :class:`SoundDeviceDriver` implements it on top of a PortAudio
input stream: the stream callback down-mixes each block to mono and
appends it to a :class:`~micmeter.buffers.RollingAudioBuffer`, from which
sample and spectrum snapshots are taken on demand.

``sounddevice`` is imported lazily so that the rest of the package works
on machines without PortAudio.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol, Union

import numpy as np

from .buffers import RollingAudioBuffer, compute_spectrum
from .constants import (
    BLOCK_SIZE,
    DEVICE_READY_TIMEOUT,
    SAMPLE_RATE,
    SPECTRUM_WINDOW,
    WINDOW_SIZE,
)

logger = logging.getLogger(__name__)

DeviceSpec = Union[int, str, None]


class NoDeviceError(RuntimeError):
    """No usable audio input device could be opened."""


class AudioDriver(Protocol):
    """Source of sample and spectrum snapshots for a measurement session."""

    sample_rate: int

    def start(self, sample_rate: Optional[int] = None) -> None:
        ...

    def stop(self) -> None:
        ...

    def latest_samples(self, size: int) -> np.ndarray:
        ...

    def latest_spectrum(self, size: int, window: str = SPECTRUM_WINDOW) -> np.ndarray:
        ...


def list_input_devices() -> list[tuple[int, str]]:
    """Return ``[(index, name), ...]`` for every device that can record."""
    import sounddevice as sd

    return [
        (idx, dev["name"])
        for idx, dev in enumerate(sd.query_devices())
        if dev["max_input_channels"] > 0
    ]


def resolve_input_device(device: DeviceSpec = None) -> DeviceSpec:
    """Validate ``device`` and return the value to pass to PortAudio.

    When ``device`` is ``None`` and the host has no default input, the
    first device with input channels is used instead.

    Raises
    ------
    NoDeviceError
        If no matching input device exists.
    """

    import sounddevice as sd

    try:
        info = sd.query_devices(device, kind="input")
    except Exception as exc:
        if device is not None:
            raise NoDeviceError(f"input device {device!r} is not available") from exc
        candidates = list_input_devices()
        if not candidates:
            raise NoDeviceError("no audio input device available") from exc
        index, name = candidates[0]
        logger.info("No default input, falling back to %s", name)
        return index

    if info["max_input_channels"] < 1:
        raise NoDeviceError(f"device {info['name']!r} has no input channels")
    logger.info("Using input device %s", info["name"])
    return device


class SoundDeviceDriver:
    """Continuously capture mono audio from a PortAudio input device.

    Args:
        device: Index or name of the input device, ``None`` for the default.
        channels: Number of channels to open; blocks are averaged to mono.
        sample_rate: Requested sampling frequency in Hz.
        block_size: Samples delivered per stream callback.
        window_size: Largest snapshot the session will request.  The ring
            keeps twice as many samples for the spectrum transform.
        ready_timeout: Seconds to wait for the first audio block.
    """

    def __init__(
        self,
        device: DeviceSpec = None,
        *,
        channels: int = 1,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = BLOCK_SIZE,
        window_size: int = WINDOW_SIZE,
        ready_timeout: float = DEVICE_READY_TIMEOUT,
    ) -> None:
        self.device = device
        self.channels = channels
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.ready_timeout = ready_timeout
        self.ring = RollingAudioBuffer(2 * window_size)
        self.stream = None
        self._ready = threading.Event()

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    # --------------------------------------------------------------
    def _callback(self, indata, frames, _time, status) -> None:  # noqa: D401
        if status:
            logger.warning("Input status: %s", status)
        if indata.ndim == 2 and indata.shape[1] > 1:
            samples = indata.mean(axis=1)
        else:
            samples = indata.reshape(-1)
        self.ring.write(samples)
        self._ready.set()

    # --------------------------------------------------------------
    def start(self, sample_rate: Optional[int] = None) -> None:
        """Open the device and block until it delivers audio.

        Raises
        ------
        NoDeviceError
            If the device cannot be opened or stays silent for longer than
            ``ready_timeout`` seconds.
        """

        if self.stream is not None:
            return

        import sounddevice as sd

        if sample_rate:
            self.sample_rate = int(sample_rate)
        device = resolve_input_device(self.device)
        self.ring.clear()
        self._ready.clear()

        try:
            self.stream = sd.InputStream(
                device=device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=self._callback,
            )
            self.stream.start()
        except Exception as exc:
            self.stream = None
            raise NoDeviceError(f"could not open input device {device!r}: {exc}") from exc

        self.sample_rate = int(getattr(self.stream, "samplerate", self.sample_rate))
        if not self._ready.wait(self.ready_timeout):
            self.stop()
            raise NoDeviceError(
                f"input device {device!r} produced no audio within {self.ready_timeout:.1f}s"
            )
        logger.info("Capturing at %d Hz", self.sample_rate)

    def stop(self) -> None:
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.abort()
        except Exception:
            logger.warning("Failed to abort input stream", exc_info=True)
        finally:
            stream.close()
        self._ready.clear()

    # --------------------------------------------------------------
    def latest_samples(self, size: int) -> np.ndarray:
        return self.ring.latest(size)

    def latest_spectrum(self, size: int, window: str = SPECTRUM_WINDOW) -> np.ndarray:
        return compute_spectrum(self.ring.latest(2 * size), size, window)


__all__ = [
    "AudioDriver",
    "NoDeviceError",
    "SoundDeviceDriver",
    "list_input_devices",
    "resolve_input_device",
]
