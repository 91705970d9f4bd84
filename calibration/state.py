"""
Calibration state: per-step records, the step counter, and the resume record used for persistence.

The resume record carries an explicit phase and a per-step "present" flag, so a step that
really measured -100 dB is distinguishable from one that was never recorded. Records written
with only levels/peaks/currentStep are still accepted; presence is then read from the floor value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from audio.decibels import DB_FLOOR
from calibration.constants import (
    NO_DATA_THRESHOLD_DB,
    STEP_COMPLETE,
    STEP_IDLE,
    TOTAL_STEPS,
)

PHASE_IDLE = "idle"
PHASE_IN_PROGRESS = "in_progress"
PHASE_COMPLETE = "complete"
PHASES = (PHASE_IDLE, PHASE_IN_PROGRESS, PHASE_COMPLETE)


@dataclass
class StepRecord:
    """
    Average level and max peak (dB) measured for one step. DB_FLOOR means no data.
    recorded is set when a recording window was committed, even if it measured silence.
    """

    avg_level_db: float = DB_FLOOR
    max_peak_db: float = DB_FLOOR
    recorded: bool = False

    @property
    def has_data(self) -> bool:
        return self.avg_level_db > NO_DATA_THRESHOLD_DB


def empty_records() -> list[StepRecord]:
    return [StepRecord() for _ in range(TOTAL_STEPS)]


@dataclass
class CalibrationState:
    """current_step: 0 idle, 1..TOTAL_STEPS ready/recording, TOTAL_STEPS + 1 complete."""

    current_step: int = STEP_IDLE
    is_recording: bool = False
    records: list[StepRecord] = field(default_factory=empty_records)

    @property
    def phase(self) -> str:
        if self.current_step == STEP_IDLE:
            return PHASE_IDLE
        if self.current_step >= STEP_COMPLETE:
            return PHASE_COMPLETE
        return PHASE_IN_PROGRESS

    @property
    def is_complete(self) -> bool:
        return self.current_step >= STEP_COMPLETE

    def levels(self) -> list[float]:
        return [r.avg_level_db for r in self.records]

    def peaks(self) -> list[float]:
        return [r.max_peak_db for r in self.records]

    def clear(self) -> None:
        self.current_step = STEP_IDLE
        self.is_recording = False
        self.records = empty_records()


def state_to_dict(state: CalibrationState) -> dict[str, Any]:
    """Resume record for state. A step being recorded is saved as not yet started."""
    levels = state.levels()
    peaks = state.peaks()
    present = [r.recorded or r.has_data for r in state.records]
    if state.is_recording and 1 <= state.current_step <= TOTAL_STEPS:
        i = state.current_step - 1
        levels[i], peaks[i], present[i] = DB_FLOOR, DB_FLOOR, False
    return {
        "phase": state.phase,
        "currentStep": state.current_step,
        "levels": levels,
        "peaks": peaks,
        "present": present,
    }


def _float_list(data: dict, key: str) -> list[float]:
    values = data.get(key)
    if not isinstance(values, list) or len(values) != TOTAL_STEPS:
        raise ValueError(f"'{key}' must be a list of {TOTAL_STEPS} numbers")
    out = []
    for v in values:
        if isinstance(v, bool):
            raise ValueError(f"'{key}' must contain numbers")
        try:
            f = float(v)
        except (TypeError, ValueError):
            raise ValueError(f"'{key}' must contain numbers") from None
        if not math.isfinite(f):
            raise ValueError(f"'{key}' must contain finite numbers")
        out.append(f)
    return out


def state_from_dict(data: Any) -> CalibrationState:
    """
    Rebuild a CalibrationState from a resume record. Raises ValueError if the record is malformed.
    Steps flagged as not present are reset to DB_FLOOR regardless of the stored numbers.
    """
    if not isinstance(data, dict):
        raise ValueError("Calibration record must be an object")
    levels = _float_list(data, "levels")
    peaks = _float_list(data, "peaks")
    try:
        current_step = int(data.get("currentStep", STEP_IDLE))
    except (TypeError, ValueError):
        raise ValueError("'currentStep' must be an integer") from None
    if not STEP_IDLE <= current_step <= STEP_COMPLETE:
        raise ValueError(f"'currentStep' must be between {STEP_IDLE} and {STEP_COMPLETE}")

    phase = data.get("phase")
    if phase is not None:
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase!r}")
        if phase == PHASE_IDLE:
            current_step = STEP_IDLE
        elif phase == PHASE_COMPLETE:
            current_step = STEP_COMPLETE
        elif current_step in (STEP_IDLE, STEP_COMPLETE):
            raise ValueError("In-progress record must name a step between 1 and 8")

    present = data.get("present")
    if present is None:
        present = [lvl > NO_DATA_THRESHOLD_DB for lvl in levels]
    elif (
        not isinstance(present, list)
        or len(present) != TOTAL_STEPS
        or not all(isinstance(p, bool) for p in present)
    ):
        raise ValueError(f"'present' must be a list of {TOTAL_STEPS} booleans")

    records = []
    for lvl, pk, here in zip(levels, peaks, present):
        records.append(StepRecord(lvl, pk, recorded=True) if here else StepRecord())
    return CalibrationState(current_step=current_step, is_recording=False, records=records)


__all__ = [
    "PHASES",
    "PHASE_COMPLETE",
    "PHASE_IDLE",
    "PHASE_IN_PROGRESS",
    "CalibrationState",
    "StepRecord",
    "empty_records",
    "state_from_dict",
    "state_to_dict",
]
