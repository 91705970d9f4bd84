"""
Live level analyzer: smoothed RMS and instantaneous peak (dBFS) from one channel of float samples.

on_buffer() runs on the audio delivery thread; everything else runs on the control thread.
Published values are plain float attributes rebound by the single writer, so a read never
sees a torn value. Readers may see rms_db and peak_db from different buffers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Hashable, Sequence

import numpy as np

from audio.decibels import DB_FLOOR, to_db
from sdk.abstractions import AudioSourceBinding, SourceUnavailableError

logger = logging.getLogger(__name__)

SMOOTHING_FACTOR = 0.1


class CaptureBusyError(Exception):
    """Raised when start() is called for a different source while a capture is bound."""


@dataclass(frozen=True)
class LevelReading:
    rms_db: float
    peak_db: float
    max_peak_db: float


class LevelAnalyzer:
    """
    Binds to one audio source and keeps rms_db, peak_db and max_peak_db up to date.
    Call start(source) then read the properties; stop() to release the source.
    """

    def __init__(self, binding: AudioSourceBinding) -> None:
        self._binding = binding
        self._source: Hashable | None = None
        self._capturing = False
        self._smoothed_rms = 0.0
        self._rms_db = DB_FLOOR
        self._peak_db = DB_FLOOR
        self._max_peak_db = DB_FLOOR

    @property
    def rms_db(self) -> float:
        return self._rms_db

    @property
    def peak_db(self) -> float:
        return self._peak_db

    @property
    def max_peak_db(self) -> float:
        return self._max_peak_db

    @property
    def is_started(self) -> bool:
        return self._capturing

    @property
    def source(self) -> Hashable | None:
        return self._source

    def reading(self) -> LevelReading:
        """Snapshot of the three published values (each read independently)."""
        return LevelReading(self._rms_db, self._peak_db, self._max_peak_db)

    def start(self, source: Hashable) -> None:
        """
        Bind to source and begin analyzing its buffers. Restarts if already bound to source.
        Raises SourceUnavailableError if source is None or cannot be bound,
        CaptureBusyError if a different source is bound (stop() first).
        """
        if source is None:
            raise SourceUnavailableError("No audio source selected")
        if self._capturing and self._source != source:
            raise CaptureBusyError(
                f"Already capturing from {self._source!r}; stop before starting {source!r}"
            )
        self.stop()
        if not self._binding.bind(source):
            logger.warning("Cannot start capture: source %r unavailable", source)
            raise SourceUnavailableError(f"Audio source unavailable: {source!r}")
        self._source = source
        self._publish_floor()
        self._binding.add_buffer_callback(source, self.on_buffer)
        self._capturing = True
        logger.info("Started capturing audio from %r", source)

    def stop(self) -> None:
        """Remove the buffer callback and release the source. No-op when not started."""
        if self._source is None:
            return
        source = self._source
        self._capturing = False
        self._binding.remove_buffer_callback(source, self.on_buffer)
        self._binding.unbind(source)
        self._source = None
        self._publish_floor()
        logger.info("Stopped capturing audio from %r", source)

    def reset_max_peak(self) -> None:
        """Start a new peak window. rms_db, peak_db and smoothing are untouched."""
        self._max_peak_db = DB_FLOOR

    def on_buffer(self, samples: Sequence[float], muted: bool) -> None:
        """Analyze one block. Ignored when not started, muted or empty."""
        if not self._capturing or muted or samples is None:
            return
        x = np.asarray(samples)
        if x.size == 0:
            return
        # float64 accumulation keeps long buffers exact enough
        rms = math.sqrt(float(np.mean(np.square(x, dtype=np.float64))))
        peak = float(np.max(np.abs(x)))

        self._smoothed_rms = (
            self._smoothed_rms * (1.0 - SMOOTHING_FACTOR) + rms * SMOOTHING_FACTOR
        )
        self._rms_db = to_db(self._smoothed_rms)
        peak_db = to_db(peak)
        self._peak_db = peak_db
        if peak_db > self._max_peak_db:
            self._max_peak_db = peak_db

    def _publish_floor(self) -> None:
        self._smoothed_rms = 0.0
        self._rms_db = DB_FLOOR
        self._peak_db = DB_FLOOR
        self._max_peak_db = DB_FLOOR


__all__ = ["CaptureBusyError", "LevelAnalyzer", "LevelReading", "SMOOTHING_FACTOR"]
