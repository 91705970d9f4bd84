"""
Linear amplitude <-> decibel conversions shared by the analyzer and the calibration session.
"""

from __future__ import annotations

import math

# Readings at or below the floor mean "effectively silent" (and, in step records, "no data").
DB_FLOOR = -100.0
AMPLITUDE_FLOOR = 1e-5
METER_FLOOR_DB = -60.0


def to_db(amplitude: float) -> float:
    """Return 20*log10(amplitude), or DB_FLOOR for amplitudes below AMPLITUDE_FLOOR (including 0)."""
    if amplitude < AMPLITUDE_FLOOR:
        return DB_FLOOR
    return 20.0 * math.log10(amplitude)


def from_db(db: float) -> float:
    """Return the linear amplitude 10**(db/20)."""
    return math.pow(10.0, db / 20.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def meter_fraction(db: float, floor_db: float = METER_FLOOR_DB) -> float:
    """Map a dBFS reading onto 0..1 for a level meter: floor_db and below -> 0, 0 dBFS -> 1."""
    if math.isnan(db) or db <= floor_db:
        return 0.0
    return clamp((db - floor_db) / -floor_db, 0.0, 1.0)


__all__ = [
    "AMPLITUDE_FLOOR",
    "DB_FLOOR",
    "METER_FLOOR_DB",
    "clamp",
    "from_db",
    "meter_fraction",
    "to_db",
]
