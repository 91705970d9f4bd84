"""
Calibration session: drives the eight timed recording steps over a LevelAnalyzer.

Runs on the control thread only. The owner calls tick() at tick_ms cadence while a step is
recording; each tick samples the analyzer once. Levels are averaged in linear amplitude and
converted back to dB, so loud moments weigh by their energy rather than their dB value.

User mistakes (recording while idle, no source, capture not running) never raise: they set
status and return False.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable

from audio.decibels import DB_FLOOR, from_db, to_db
from audio.level import CaptureBusyError, LevelAnalyzer
from calibration.constants import (
    CALIBRATION_STEPS,
    RECORDING_DURATION_MS,
    RECORDING_TICK_MS,
    STEP_COMPLETE,
    STEP_IDLE,
    TOTAL_STEPS,
)
from calibration.derivation import FilterOptions, FilterParameterSet, derive_parameters
from calibration.state import (
    CalibrationState,
    StepRecord,
    state_from_dict,
    state_to_dict,
)
from sdk.abstractions import SourceUnavailableError
from sdk.logging import get_logger

logger = get_logger("session")


class CaptureNotActiveError(Exception):
    """Raised when a recording needs a running capture and none is bound."""


class CalibrationSession:
    """
    Step state machine: idle (0) -> step n ready/recording (1..8) -> complete (9).

    on_status(message) is called for every user-visible status change.
    on_step_saved(step, record) is called after a step is committed (step is 1-based).
    """

    def __init__(
        self,
        analyzer: LevelAnalyzer,
        *,
        record_duration_ms: int = RECORDING_DURATION_MS,
        tick_ms: int = RECORDING_TICK_MS,
        on_status: Callable[[str], None] | None = None,
        on_step_saved: Callable[[int, StepRecord], None] | None = None,
    ) -> None:
        if tick_ms <= 0 or record_duration_ms < tick_ms:
            raise ValueError("tick_ms must be positive and no longer than record_duration_ms")
        self._analyzer = analyzer
        self._record_duration_ms = record_duration_ms
        self._tick_ms = tick_ms
        self._on_status = on_status or (lambda _msg: None)
        self._on_step_saved = on_step_saved or (lambda _step, _rec: None)
        self._state = CalibrationState()
        self._status = ""
        self._elapsed_ms = 0
        self._linear_rms_sum = 0.0
        self._sample_count = 0
        self._peak_max_db = DB_FLOOR

    # --- reads ---

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def current_step(self) -> int:
        return self._state.current_step

    @property
    def is_recording(self) -> bool:
        return self._state.is_recording

    @property
    def is_complete(self) -> bool:
        return self._state.is_complete

    @property
    def records(self) -> list[StepRecord]:
        return self._state.records

    @property
    def status(self) -> str:
        return self._status

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def record_duration_ms(self) -> int:
        return self._record_duration_ms

    @property
    def seconds_left(self) -> int:
        """Whole seconds left in the current recording window, rounded up."""
        if not self.is_recording:
            return 0
        return max(0, (self._record_duration_ms - self._elapsed_ms + 999) // 1000)

    def current_step_info(self) -> dict[str, Any] | None:
        """Step descriptor for the current step, or None when idle or complete."""
        if 1 <= self._state.current_step <= TOTAL_STEPS:
            return CALIBRATION_STEPS[self._state.current_step - 1]
        return None

    # --- transitions ---

    def start(self, source: Hashable) -> bool:
        """Idle -> step 1: (re)start capture on source and clear all step data."""
        if self._state.current_step != STEP_IDLE:
            self._set_status("Calibration already started. Reset to start over.")
            return False
        if not self._bind(source):
            return False
        self._state.clear()
        self._state.current_step = 1
        logger.info("Calibration started")
        self._announce_step()
        return True

    def resume(self, source: Hashable) -> bool:
        """Re-bind capture for a restored in-progress session, keeping its step data."""
        if not self._bind(source):
            return False
        logger.info("Calibration resumed at step %d", self._state.current_step)
        if self._state.is_complete:
            self._set_status("Calibration complete. Select filters and click Apply.")
        else:
            self._announce_step()
        return True

    def start_recording(self) -> bool:
        """Step n ready -> recording. Clears the step accumulators and the analyzer's max peak."""
        step = self._state.current_step
        if self._state.is_recording:
            self._set_status("Already recording.")
            return False
        if step == STEP_IDLE:
            self._set_status("Click Start Calibration first.")
            return False
        if step >= STEP_COMPLETE:
            self._set_status("All steps recorded. Apply the filters or reset.")
            return False
        try:
            self.require_capture()
        except CaptureNotActiveError as e:
            self._set_status(str(e))
            return False

        self._linear_rms_sum = 0.0
        self._sample_count = 0
        self._peak_max_db = DB_FLOOR
        self._elapsed_ms = 0
        self._analyzer.reset_max_peak()
        self._state.is_recording = True
        logger.info("Recording started for step %d", step)
        self._set_status("RECORDING - Speak now!" if step > 1 else "RECORDING - Stay silent!")
        return True

    def tick(self) -> None:
        """Sample the analyzer once; stops the recording when the window is full."""
        if not self._state.is_recording:
            return
        rms_db = self._analyzer.rms_db
        peak_db = self._analyzer.peak_db
        self._linear_rms_sum += from_db(rms_db)
        self._sample_count += 1
        if peak_db > self._peak_max_db:
            self._peak_max_db = peak_db

        rec = self._state.records[self._state.current_step - 1]
        rec.avg_level_db = to_db(self._linear_rms_sum / self._sample_count)
        rec.max_peak_db = self._peak_max_db

        self._elapsed_ms += self._tick_ms
        if self._elapsed_ms >= self._record_duration_ms:
            self.stop_recording()

    def stop_recording(self) -> bool:
        """Commit the current step and advance to the next step (or complete after the last)."""
        if not self._state.is_recording:
            return False
        step = self._state.current_step
        rec = self._state.records[step - 1]
        if self._sample_count == 0:
            rec.avg_level_db = DB_FLOOR
            rec.max_peak_db = self._analyzer.max_peak_db
        else:
            rec.avg_level_db = to_db(self._linear_rms_sum / self._sample_count)
            rec.max_peak_db = self._peak_max_db
        rec.recorded = True
        self._state.is_recording = False
        logger.info(
            "Saved step %d: avg %.1f dB, peak %.1f dB (%d samples)",
            step,
            rec.avg_level_db,
            rec.max_peak_db,
            self._sample_count,
        )

        self._state.current_step = step + 1
        self._analyzer.reset_max_peak()
        self._on_step_saved(step, rec)
        if self._state.is_complete:
            logger.info("Calibration complete")
            self._set_status("Calibration complete. Select filters and click Apply.")
        else:
            self._announce_step()
        return True

    def cancel_recording(self) -> bool:
        """Drop a recording in progress without committing it; step n stays ready to record."""
        if not self._state.is_recording:
            return False
        step = self._state.current_step
        self._state.records[step - 1] = StepRecord()
        self._state.is_recording = False
        self._elapsed_ms = 0
        self._linear_rms_sum = 0.0
        self._sample_count = 0
        self._peak_max_db = DB_FLOOR
        logger.info("Recording cancelled for step %d", step)
        self._announce_step()
        return True

    def reset(self) -> None:
        """Any state -> idle: stop capture and clear all step data."""
        self._analyzer.stop()
        self._state.clear()
        self._elapsed_ms = 0
        self._linear_rms_sum = 0.0
        self._sample_count = 0
        self._peak_max_db = DB_FLOOR
        logger.info("Calibration reset")
        self._set_status("Reset - Ready to start again")

    def require_capture(self) -> None:
        if not self._analyzer.is_started:
            raise CaptureNotActiveError("Audio capture is not running. Start calibration first.")

    # --- derivation and persistence ---

    def derive(self, options: FilterOptions | None = None) -> FilterParameterSet:
        """Raises IncompleteCalibrationError if a required step has no data."""
        return derive_parameters(self._state.records, options)

    def snapshot(self) -> dict[str, Any]:
        return state_to_dict(self._state)

    def restore(self, data: CalibrationState | dict[str, Any]) -> None:
        """
        Replace the state with a loaded state or a resume record.
        Raises ValueError if the record is malformed or a step is recording.
        """
        if self._state.is_recording:
            raise ValueError("Cannot restore while recording")
        if isinstance(data, CalibrationState):
            if data.is_recording:
                raise ValueError("Cannot restore a state that is mid-recording")
            self._state = data
        else:
            self._state = state_from_dict(data)
        logger.info("Restored calibration at step %d", self._state.current_step)

    # --- helpers ---

    def _bind(self, source: Hashable) -> bool:
        self._analyzer.stop()
        try:
            self._analyzer.start(source)
        except (SourceUnavailableError, CaptureBusyError) as e:
            logger.warning("Cannot start capture: %s", e)
            self._set_status(f"{e}. Please select a valid audio source.")
            return False
        return True

    def _announce_step(self) -> None:
        info = self.current_step_info()
        if info is None:
            return
        self._set_status(
            f"Step {self._state.current_step} of {TOTAL_STEPS}: ready to record {info['title'].upper()}"
        )

    def _set_status(self, message: str) -> None:
        self._status = message
        self._on_status(message)


__all__ = ["CalibrationSession", "CaptureNotActiveError"]
