"""Tests for calibration.session: step state machine, tick accumulation, status messages, resume."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from audio.decibels import DB_FLOOR, from_db, to_db
from calibration.constants import STEP_COMPLETE, STEP_IDLE, TOTAL_STEPS
from calibration.derivation import IncompleteCalibrationError
from calibration.session import CalibrationSession, CaptureNotActiveError
from calibration.state import CalibrationState, StepRecord
from sdk import SourceUnavailableError


class FakeAnalyzer:
    """Stands in for LevelAnalyzer: levels are set directly by the test."""

    def __init__(self) -> None:
        self.rms_db = DB_FLOOR
        self.peak_db = DB_FLOOR
        self.max_peak_db = DB_FLOOR
        self.is_started = False
        self.source = None
        self.max_peak_resets = 0

    def start(self, source) -> None:
        if source is None or source == "missing":
            raise SourceUnavailableError(f"Audio source unavailable: {source!r}")
        self.is_started = True
        self.source = source

    def stop(self) -> None:
        self.is_started = False
        self.source = None

    def reset_max_peak(self) -> None:
        self.max_peak_db = DB_FLOOR
        self.max_peak_resets += 1

    def set(self, rms_db: float, peak_db: float) -> None:
        self.rms_db = rms_db
        self.peak_db = peak_db
        self.max_peak_db = max(self.max_peak_db, peak_db)


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def statuses() -> list[str]:
    return []


@pytest.fixture
def session(analyzer: FakeAnalyzer, statuses: list[str]) -> CalibrationSession:
    return CalibrationSession(analyzer, on_status=statuses.append)


def _record_step(
    session: CalibrationSession, analyzer: FakeAnalyzer, rms_db: float, peak_db: float
) -> None:
    assert session.start_recording()
    analyzer.set(rms_db, peak_db)
    while session.is_recording:
        session.tick()


def _complete(session: CalibrationSession, analyzer: FakeAnalyzer) -> None:
    session.start("mic")
    for rms, peak in [(-60, -50), (-40, -30), (-30, -20), (-20, -10), (-22, -12), (-10, -4), (-25, -8), (-24, -6)]:
        _record_step(session, analyzer, rms, peak)


def test_invalid_timing_rejected(analyzer: FakeAnalyzer) -> None:
    with pytest.raises(ValueError):
        CalibrationSession(analyzer, tick_ms=0)
    with pytest.raises(ValueError):
        CalibrationSession(analyzer, record_duration_ms=50, tick_ms=100)


def test_initial_state(session: CalibrationSession) -> None:
    assert session.current_step == STEP_IDLE
    assert session.is_recording is False
    assert session.is_complete is False
    assert session.current_step_info() is None
    assert session.seconds_left == 0
    assert len(session.records) == TOTAL_STEPS


def test_start_goes_to_step_one(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    assert session.start("mic") is True
    assert session.current_step == 1
    assert analyzer.is_started
    assert statuses[-1] == "Step 1 of 8: ready to record SILENCE"
    assert session.current_step_info()["id"] == "noise_floor"


def test_start_without_source_sets_status(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    assert session.start(None) is False
    assert session.current_step == STEP_IDLE
    assert "valid audio source" in statuses[-1]
    assert session.start("missing") is False
    assert not analyzer.is_started


def test_start_twice_rejected(session: CalibrationSession, statuses: list[str]) -> None:
    session.start("mic")
    assert session.start("mic") is False
    assert "already started" in statuses[-1]
    assert session.current_step == 1


def test_record_before_start_is_status_not_error(
    session: CalibrationSession, statuses: list[str]
) -> None:
    assert session.start_recording() is False
    assert statuses[-1] == "Click Start Calibration first."
    assert session.is_recording is False


def test_record_without_capture_is_status_not_error(
    session: CalibrationSession, statuses: list[str]
) -> None:
    session.restore(CalibrationState(current_step=2))
    assert session.start_recording() is False
    assert "not running" in statuses[-1]
    with pytest.raises(CaptureNotActiveError):
        session.require_capture()


def test_record_twice_rejected(session: CalibrationSession, statuses: list[str]) -> None:
    session.start("mic")
    assert session.start_recording() is True
    assert statuses[-1] == "RECORDING - Stay silent!"
    assert session.start_recording() is False
    assert statuses[-1] == "Already recording."


def test_levels_averaged_in_linear_domain(
    session: CalibrationSession, analyzer: FakeAnalyzer
) -> None:
    session.start("mic")
    session.start_recording()
    analyzer.set(-40.0, -30.0)
    session.tick()
    analyzer.set(-20.0, -10.0)
    session.tick()
    session.stop_recording()
    rec = session.records[0]
    expected = to_db((from_db(-40.0) + from_db(-20.0)) / 2)
    assert rec.avg_level_db == pytest.approx(expected)
    assert rec.avg_level_db == pytest.approx(to_db(0.055))
    assert rec.avg_level_db != pytest.approx(-30.0, abs=0.5)
    assert rec.max_peak_db == -10.0
    assert rec.recorded is True


def test_tick_updates_running_record(session: CalibrationSession, analyzer: FakeAnalyzer) -> None:
    session.start("mic")
    session.start_recording()
    analyzer.set(-30.0, -20.0)
    session.tick()
    assert session.records[0].avg_level_db == pytest.approx(-30.0)
    assert session.records[0].max_peak_db == -20.0
    assert session.elapsed_ms == 100


def test_auto_stop_after_window(session: CalibrationSession, analyzer: FakeAnalyzer) -> None:
    session.start("mic")
    session.start_recording()
    analyzer.set(-30.0, -20.0)
    for _ in range(49):
        session.tick()
    assert session.is_recording is True
    assert session.seconds_left == 1
    session.tick()
    assert session.is_recording is False
    assert session.current_step == 2
    assert session.records[0].avg_level_db == pytest.approx(-30.0)


def test_seconds_left_counts_down(session: CalibrationSession) -> None:
    session.start("mic")
    session.start_recording()
    assert session.seconds_left == 5
    for _ in range(10):
        session.tick()
    assert session.seconds_left == 4


def test_stop_without_samples_uses_analyzer_max_peak(
    session: CalibrationSession, analyzer: FakeAnalyzer
) -> None:
    session.start("mic")
    session.start_recording()
    analyzer.max_peak_db = -12.0
    assert session.stop_recording() is True
    rec = session.records[0]
    assert rec.avg_level_db == DB_FLOOR
    assert rec.max_peak_db == -12.0
    assert rec.recorded is True
    assert session.current_step == 2


def test_stop_when_not_recording_returns_false(session: CalibrationSession) -> None:
    assert session.stop_recording() is False
    session.start("mic")
    assert session.stop_recording() is False
    assert session.current_step == 1


def test_max_peak_reset_per_step(session: CalibrationSession, analyzer: FakeAnalyzer) -> None:
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    # reset on record start and on commit
    assert analyzer.max_peak_resets == 2
    assert analyzer.max_peak_db == DB_FLOOR


def test_step_saved_callback(analyzer: FakeAnalyzer) -> None:
    on_saved = MagicMock()
    session = CalibrationSession(analyzer, on_step_saved=on_saved)
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    on_saved.assert_called_once()
    step, rec = on_saved.call_args.args
    assert step == 1
    assert isinstance(rec, StepRecord)
    assert rec.avg_level_db == pytest.approx(-60.0)


def test_cancel_recording_keeps_step_ready(analyzer: FakeAnalyzer, statuses: list[str]) -> None:
    on_saved = MagicMock()
    session = CalibrationSession(analyzer, on_status=statuses.append, on_step_saved=on_saved)
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    on_saved.reset_mock()
    assert session.start_recording()
    analyzer.set(-30.0, -20.0)
    session.tick()
    assert session.records[1].avg_level_db == pytest.approx(-30.0)

    assert session.cancel_recording() is True
    assert not session.is_recording
    assert session.current_step == 2
    assert session.elapsed_ms == 0
    assert session.records[1] == StepRecord()
    assert session.records[0].recorded is True
    on_saved.assert_not_called()
    assert statuses[-1].startswith("Step 2 of 8")
    snap = session.snapshot()
    assert snap["currentStep"] == 2
    assert snap["present"][:2] == [True, False]

    # The step records normally after a cancel
    _record_step(session, analyzer, -40.0, -30.0)
    assert session.current_step == 3
    assert session.records[1].avg_level_db == pytest.approx(-40.0)
    assert session.cancel_recording() is False


def test_tick_when_idle_is_noop(session: CalibrationSession) -> None:
    session.tick()
    assert session.elapsed_ms == 0
    assert session.records[0].avg_level_db == DB_FLOOR


def test_full_session_completes(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    _complete(session, analyzer)
    assert session.is_complete is True
    assert session.current_step == STEP_COMPLETE
    assert statuses[-1] == "Calibration complete. Select filters and click Apply."
    assert session.start_recording() is False
    assert "All steps recorded" in statuses[-1]
    params = session.derive()
    assert -18.0 <= params.gain_db <= 18.0


def test_derive_incomplete_raises(session: CalibrationSession, analyzer: FakeAnalyzer) -> None:
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    with pytest.raises(IncompleteCalibrationError) as exc_info:
        session.derive()
    assert exc_info.value.step == 2


def test_reset_returns_to_idle(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    session.start_recording()
    session.reset()
    assert session.current_step == STEP_IDLE
    assert session.is_recording is False
    assert all(r.avg_level_db == DB_FLOOR for r in session.records)
    assert analyzer.is_started is False
    assert statuses[-1] == "Reset - Ready to start again"
    assert session.start("mic") is True


def test_snapshot_and_restore_resume(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    session.start("mic")
    _record_step(session, analyzer, -60.0, -50.0)
    _record_step(session, analyzer, -40.0, -30.0)
    snap = session.snapshot()
    assert snap["phase"] == "in_progress"
    assert snap["currentStep"] == 3

    other_analyzer = FakeAnalyzer()
    other = CalibrationSession(other_analyzer, on_status=statuses.append)
    other.restore(snap)
    assert other.current_step == 3
    assert other.records[1].avg_level_db == pytest.approx(-40.0)
    assert other.resume("mic") is True
    assert other_analyzer.is_started
    assert statuses[-1] == "Step 3 of 8: ready to record SOFT VOICE"
    _record_step(other, other_analyzer, -30.0, -20.0)
    assert other.current_step == 4


def test_restore_while_recording_rejected(session: CalibrationSession) -> None:
    session.start("mic")
    session.start_recording()
    with pytest.raises(ValueError):
        session.restore(CalibrationState())
    assert session.is_recording is True


def test_restore_malformed_record_rejected(session: CalibrationSession) -> None:
    with pytest.raises(ValueError):
        session.restore({"levels": [1, 2]})
    assert session.current_step == STEP_IDLE


def test_resume_complete_session(
    session: CalibrationSession, analyzer: FakeAnalyzer, statuses: list[str]
) -> None:
    _complete(session, analyzer)
    snap = session.snapshot()
    other = CalibrationSession(FakeAnalyzer(), on_status=statuses.append)
    other.restore(snap)
    assert other.resume("mic") is True
    assert other.is_complete
    assert statuses[-1] == "Calibration complete. Select filters and click Apply."
    assert other.derive() == session.derive()
