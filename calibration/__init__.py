"""
Voice calibration: the eight-step recording session, parameter derivation, and the filter chain.
"""
from __future__ import annotations

from calibration.constants import CALIBRATION_STEPS, TOTAL_STEPS
from calibration.derivation import (
    FilterOptions,
    FilterParameterSet,
    IncompleteCalibrationError,
    derive_parameters,
)
from calibration.filters import ApplyResult, FilterSpec, apply_filter_chain, build_filter_chain
from calibration.session import CalibrationSession, CaptureNotActiveError
from calibration.state import CalibrationState, StepRecord
from calibration.store import CalibrationStore

__all__ = [
    "CALIBRATION_STEPS",
    "TOTAL_STEPS",
    "ApplyResult",
    "CalibrationSession",
    "CalibrationState",
    "CalibrationStore",
    "CaptureNotActiveError",
    "FilterOptions",
    "FilterParameterSet",
    "FilterSpec",
    "IncompleteCalibrationError",
    "StepRecord",
    "apply_filter_chain",
    "build_filter_chain",
    "derive_parameters",
]
