#!/usr/bin/env python3
"""Console front end printing the live loudness and frequency readings."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from PySide6 import QtCore

from .constants import (
    HIGH_FREQUENCY_BOUNDARY,
    LOW_FREQUENCY_BOUNDARY,
    SAMPLE_RATE,
)
from .driver import NoDeviceError, SoundDeviceDriver, list_input_devices
from .scheduler import MeasurementScheduler, MeterSettings

# ─── FORMATTING ────────────────────────────────────────────────────────────────


def format_amplitude(value: Optional[float]) -> str:
    """Return ``"<dB>dB"`` rounded to an integer, or the idle placeholder."""
    if value is None:
        return " - dB"
    return f"{round(value)}dB"


def format_frequency(value: Optional[float]) -> str:
    """Return ``"<Hz>Hz"`` rounded to an integer, or the idle placeholder."""
    if value is None:
        return " - Hz"
    return f"{round(value)}Hz"


class ConsoleDisplay:
    """Keep the latest readings and redraw a single status line."""

    def __init__(self, stream=sys.stdout) -> None:
        self.stream = stream
        self.amplitude: Optional[float] = None
        self.frequency: Optional[float] = None

    def on_amplitude(self, value: float) -> None:
        self.amplitude = value
        self.render()

    def on_frequency(self, value: float) -> None:
        self.frequency = value
        self.render()

    def on_running(self, running: bool) -> None:
        if not running:
            self.amplitude = None
            self.frequency = None
            self.render()
            self.stream.write("\n")
            self.stream.flush()

    def line(self) -> str:
        return f"{format_amplitude(self.amplitude):>8}  {format_frequency(self.frequency):>8}"

    def render(self) -> None:
        self.stream.write("\r" + self.line())
        self.stream.flush()


# ─── MAIN ──────────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="micmeter",
        description="Show the loudness and dominant frequency of the microphone input.",
    )
    parser.add_argument("--device", help="input device index or name")
    parser.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    parser.add_argument("--low", type=int, default=LOW_FREQUENCY_BOUNDARY, help="lower band edge in Hz")
    parser.add_argument("--high", type=int, default=HIGH_FREQUENCY_BOUNDARY, help="upper band edge in Hz")
    parser.add_argument("--no-band", action="store_true", help="search the whole spectrum")
    parser.add_argument("--list-devices", action="store_true", help="list input devices and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="log per-tick values")
    return parser


def _device_arg(value: Optional[str]):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_devices:
        for idx, name in list_input_devices():
            print(f"{idx:3d}  {name}")
        return 0

    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv[:1])
    settings = MeterSettings(band_enabled=not args.no_band)
    driver = SoundDeviceDriver(
        _device_arg(args.device),
        sample_rate=args.sample_rate,
        window_size=settings.window_size,
    )
    scheduler = MeasurementScheduler(driver, settings)
    scheduler.configure_band(args.low, args.high)

    display = ConsoleDisplay()
    scheduler.amplitudeUpdated.connect(display.on_amplitude)
    scheduler.frequencyUpdated.connect(display.on_frequency)
    scheduler.runningChanged.connect(display.on_running)

    try:
        scheduler.start(args.sample_rate)
    except NoDeviceError as exc:
        print(f"No input device: {exc}", file=sys.stderr)
        return 1

    print("Listening... (Ctrl+C to quit)", flush=True)
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    # Wake the event loop regularly so Python can run the SIGINT handler.
    heartbeat = QtCore.QTimer()
    heartbeat.start(200)
    heartbeat.timeout.connect(lambda: None)

    try:
        app.exec()
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
