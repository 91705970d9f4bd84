"""
Parameter derivation: turn the eight recorded (level, peak) pairs into filter settings.

Pure and deterministic. Every output is clamped into a fixed range, so finite inputs
always give finite outputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from audio.decibels import clamp
from calibration.constants import (
    CALIBRATION_STEPS,
    COMPRESSOR_OFFSET_DB,
    COMPRESSOR_THRESHOLD_MAX_DB,
    COMPRESSOR_THRESHOLD_MIN_DB,
    DE_ESSER_CHOICES,
    DYNAMIC_NARROW_DB,
    DYNAMIC_WIDE_DB,
    ENERGETIC_INDEX,
    GAIN_MAX_DB,
    GAIN_MIN_DB,
    GATE_CLOSE_MAX_DB,
    GATE_CLOSE_MIN_DB,
    GATE_HYSTERESIS_DB,
    GATE_NOISE_MARGIN_DB,
    GATE_OPEN_MAX_DB,
    GATE_OPEN_MIN_DB,
    GATE_PROGRAM_OFFSET_DB,
    HIGH_PASS_CHOICES,
    LOW_PASS_CHOICES,
    NOISE_FLOOR_INDEX,
    NOISE_SUPPRESSION_CHOICES,
    NORMAL_INDEX,
    OPTIONAL_STEP_INDICES,
    PEAK_CEILING_DB,
    RATIO_DEFAULT,
    RATIO_NARROW,
    RATIO_WIDE,
    STEADY_INDEX,
    TARGET_RMS_DB,
    TOTAL_STEPS,
    choice_value,
)
from calibration.state import StepRecord


class IncompleteCalibrationError(Exception):
    """Raised when a required step has no usable data. step is 1-based; silent marks a recorded step that measured nothing."""

    def __init__(self, step: int, silent: bool = False) -> None:
        title = CALIBRATION_STEPS[step - 1]["title"] if 1 <= step <= TOTAL_STEPS else "?"
        if silent:
            message = f"Step {step} ({title}) measured silence; check the microphone and record it again"
        else:
            message = f"Step {step} ({title}) has not been recorded yet"
        super().__init__(message)
        self.step = step
        self.silent = silent


@dataclass(frozen=True)
class FilterParameterSet:
    gain_db: float
    compressor_threshold_db: float
    compressor_ratio: float
    gate_open_db: float
    gate_close_db: float
    high_pass_trim_db: float
    low_pass_trim_db: float
    de_esser_trim_db: float

    def to_dict(self) -> dict[str, float]:
        return {
            "gain_db": self.gain_db,
            "compressor_threshold_db": self.compressor_threshold_db,
            "compressor_ratio": self.compressor_ratio,
            "gate_open_db": self.gate_open_db,
            "gate_close_db": self.gate_close_db,
            "high_pass_trim_db": self.high_pass_trim_db,
            "low_pass_trim_db": self.low_pass_trim_db,
            "de_esser_trim_db": self.de_esser_trim_db,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterParameterSet:
        """Raises KeyError/TypeError/ValueError for missing or non-numeric fields."""
        return cls(**{k: float(data[k]) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class FilterOptions:
    """Which filters to build and the discrete choices behind their fixed settings."""

    noise_suppression: bool = True
    noise_gate: bool = True
    expander: bool = False
    gain: bool = True
    compressor: bool = True
    limiter: bool = True
    high_pass: bool = False
    low_pass: bool = False
    de_esser: bool = False
    noise_suppression_level: str = "Medium"
    high_pass_freq: str = "80 Hz"
    low_pass_freq: str = "12 kHz"
    de_esser_intensity: str = "Medium"

    @classmethod
    def from_config(cls, section: dict[str, Any]) -> FilterOptions:
        """Build from a normalized filters section (sdk.get_filters_section); extra keys are ignored."""
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in section.items() if k in fields})

    @property
    def any_tone_band(self) -> bool:
        return self.high_pass or self.low_pass or self.de_esser

    @property
    def noise_suppression_db(self) -> float:
        return choice_value(NOISE_SUPPRESSION_CHOICES, self.noise_suppression_level, "Medium")


def check_complete(records: Sequence[StepRecord]) -> None:
    """Raise IncompleteCalibrationError for the first required step without data."""
    if len(records) != TOTAL_STEPS:
        raise ValueError(f"Expected {TOTAL_STEPS} step records, got {len(records)}")
    for i, rec in enumerate(records):
        if i in OPTIONAL_STEP_INDICES:
            continue
        if not rec.has_data:
            raise IncompleteCalibrationError(i + 1, silent=rec.recorded)


def compressor_ratio_for(dynamic_db: float) -> float:
    """Wider vocal dynamics get stronger leveling."""
    if dynamic_db > DYNAMIC_WIDE_DB:
        return RATIO_WIDE
    if dynamic_db < DYNAMIC_NARROW_DB:
        return RATIO_NARROW
    return RATIO_DEFAULT


def derive_gain(avg_program_db: float, loud_peak_db: float) -> float:
    """Gain toward TARGET_RMS_DB, pulled back so loud_peak_db + gain stays at or below the ceiling."""
    gain = clamp(TARGET_RMS_DB - avg_program_db, GAIN_MIN_DB, GAIN_MAX_DB)
    predicted_peak = loud_peak_db + gain
    if predicted_peak > PEAK_CEILING_DB:
        gain -= predicted_peak - PEAK_CEILING_DB
        gain = clamp(gain, GAIN_MIN_DB, GAIN_MAX_DB)
    return gain


def derive_gate(noise_floor_db: float, avg_program_db: float) -> tuple[float, float]:
    """Return (open, close): open clears the room noise but stays well under program level."""
    gate_open = clamp(
        max(noise_floor_db + GATE_NOISE_MARGIN_DB, avg_program_db - GATE_PROGRAM_OFFSET_DB),
        GATE_OPEN_MIN_DB,
        GATE_OPEN_MAX_DB,
    )
    gate_close = clamp(gate_open - GATE_HYSTERESIS_DB, GATE_CLOSE_MIN_DB, GATE_CLOSE_MAX_DB)
    return gate_open, gate_close


def tone_trims(options: FilterOptions) -> tuple[float, float, float]:
    """(high_pass, low_pass, de_esser) trims in dB; a disabled band contributes 0.0."""
    hp = choice_value(HIGH_PASS_CHOICES, options.high_pass_freq, "80 Hz") if options.high_pass else 0.0
    lp = choice_value(LOW_PASS_CHOICES, options.low_pass_freq, "12 kHz") if options.low_pass else 0.0
    de = (
        choice_value(DE_ESSER_CHOICES, options.de_esser_intensity, "Medium")
        if options.de_esser
        else 0.0
    )
    return hp, lp, de


def derive_parameters(
    records: Sequence[StepRecord], options: FilterOptions | None = None
) -> FilterParameterSet:
    """
    Derive the filter parameter set from the eight step records.
    Raises IncompleteCalibrationError naming the first of steps 2..8 without data.
    """
    check_complete(records)
    options = options or FilterOptions()

    noise_floor = records[NOISE_FLOOR_INDEX].avg_level_db
    normal = records[NORMAL_INDEX].avg_level_db
    steady = records[STEADY_INDEX].avg_level_db
    energetic = records[ENERGETIC_INDEX].avg_level_db
    avg_program = (normal + steady + energetic) / 3.0
    loud_peak = max(
        records[NORMAL_INDEX].max_peak_db,
        records[STEADY_INDEX].max_peak_db,
        records[ENERGETIC_INDEX].max_peak_db,
    )
    dynamic = energetic - normal

    gate_open, gate_close = derive_gate(noise_floor, avg_program)
    hp, lp, de = tone_trims(options)
    return FilterParameterSet(
        gain_db=derive_gain(avg_program, loud_peak),
        compressor_threshold_db=clamp(
            avg_program - COMPRESSOR_OFFSET_DB,
            COMPRESSOR_THRESHOLD_MIN_DB,
            COMPRESSOR_THRESHOLD_MAX_DB,
        ),
        compressor_ratio=compressor_ratio_for(dynamic),
        gate_open_db=gate_open,
        gate_close_db=gate_close,
        high_pass_trim_db=hp,
        low_pass_trim_db=lp,
        de_esser_trim_db=de,
    )


__all__ = [
    "FilterOptions",
    "FilterParameterSet",
    "IncompleteCalibrationError",
    "check_complete",
    "compressor_ratio_for",
    "derive_gain",
    "derive_gate",
    "derive_parameters",
    "tone_trims",
]
