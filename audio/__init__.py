"""
Audio levels: decibel math, the live level analyzer, and the microphone source.
"""

from __future__ import annotations

from audio.decibels import AMPLITUDE_FLOOR, DB_FLOOR, from_db, to_db
from audio.level import CaptureBusyError, LevelAnalyzer, LevelReading

__all__ = [
    "AMPLITUDE_FLOOR",
    "DB_FLOOR",
    "CaptureBusyError",
    "LevelAnalyzer",
    "LevelReading",
    "from_db",
    "to_db",
]
