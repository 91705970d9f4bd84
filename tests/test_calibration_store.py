"""Tests for calibration.store: save/load state and parameters through CalibrationRepo."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from calibration.derivation import FilterParameterSet
from calibration.state import CalibrationState, StepRecord
from calibration.store import (
    CALIBRATION_VERSION,
    PARAMETERS_RECORD,
    STATE_RECORD,
    CalibrationStore,
)
from persistence.calibration_repo import CalibrationRepo
from persistence.database import connect, init_database

NOW = "2026-03-01T10:00:00Z"


@pytest.fixture
def repo(tmp_path: Path) -> CalibrationRepo:
    db_path = tmp_path / "autocal.db"
    init_database(str(db_path))
    return CalibrationRepo(lambda: connect(str(db_path)))


@pytest.fixture
def store(repo: CalibrationRepo) -> CalibrationStore:
    return CalibrationStore(repo)


def _params() -> FilterParameterSet:
    return FilterParameterSet(3.0, -25.0, 4.0, -45.0, -51.0, 0.0, 0.0, -4.0)


def test_empty_store(store: CalibrationStore) -> None:
    assert store.load_state() is None
    assert store.load_parameters() is None
    assert store.last_calibrated_at() is None
    assert store.last_applied_at() is None


def test_save_and_load_state(store: CalibrationStore, repo: CalibrationRepo) -> None:
    state = CalibrationState(current_step=3)
    state.records[0] = StepRecord(-60.0, -50.0, recorded=True)
    state.records[1] = StepRecord(-35.5, -21.0, recorded=True)
    store.save_state(state)
    loaded = store.load_state()
    assert loaded is not None
    assert loaded.current_step == 3
    assert loaded.levels() == state.levels()
    assert loaded.peaks() == state.peaks()
    record = repo.load(STATE_RECORD)
    assert record.format_version == CALIBRATION_VERSION
    stored = json.loads(record.payload)
    assert stored["phase"] == "in_progress"
    assert stored["present"][:3] == [True, True, False]
    assert isinstance(store.last_calibrated_at(), datetime)
    assert store.last_applied_at() is None


def test_save_overwrites_previous_state(store: CalibrationStore) -> None:
    store.save_state(CalibrationState(current_step=2))
    store.save_state(CalibrationState(current_step=5))
    assert store.load_state().current_step == 5


def test_invalid_stored_state_treated_as_missing(
    store: CalibrationStore, repo: CalibrationRepo
) -> None:
    repo.save(STATE_RECORD, "{not json", CALIBRATION_VERSION, NOW)
    assert store.load_state() is None
    repo.save(STATE_RECORD, json.dumps({"levels": [1, 2, 3]}), CALIBRATION_VERSION, NOW)
    assert store.load_state() is None
    repo.save(STATE_RECORD, "   ", CALIBRATION_VERSION, NOW)
    assert store.load_state() is None


def test_newer_format_ignored(store: CalibrationStore, repo: CalibrationRepo) -> None:
    store.save_state(CalibrationState(current_step=2))
    payload = repo.load(STATE_RECORD).payload
    repo.save(STATE_RECORD, payload, CALIBRATION_VERSION + 1, NOW)
    assert store.load_state() is None
    repo.save(PARAMETERS_RECORD, json.dumps(_params().to_dict()), CALIBRATION_VERSION + 1, NOW)
    assert store.load_parameters() is None


def test_save_and_load_parameters(store: CalibrationStore, repo: CalibrationRepo) -> None:
    store.save_parameters(_params())
    assert store.load_parameters() == _params()
    assert json.loads(repo.load(PARAMETERS_RECORD).payload)["gain_db"] == 3.0
    assert isinstance(store.last_applied_at(), datetime)
    assert store.last_calibrated_at() is None


def test_invalid_parameters_treated_as_missing(
    store: CalibrationStore, repo: CalibrationRepo
) -> None:
    repo.save(PARAMETERS_RECORD, json.dumps({"gain_db": 1.0}), CALIBRATION_VERSION, NOW)
    assert store.load_parameters() is None
    repo.save(PARAMETERS_RECORD, json.dumps([1, 2]), CALIBRATION_VERSION, NOW)
    assert store.load_parameters() is None


def test_bad_timestamp_reads_as_none(store: CalibrationStore, repo: CalibrationRepo) -> None:
    repo.save(STATE_RECORD, "{}", CALIBRATION_VERSION, "yesterday")
    assert store.last_calibrated_at() is None


def test_clear_removes_everything(store: CalibrationStore, repo: CalibrationRepo) -> None:
    store.save_state(CalibrationState(current_step=2))
    store.save_parameters(_params())
    store.clear()
    assert repo.load(STATE_RECORD) is None
    assert repo.load(PARAMETERS_RECORD) is None
    assert store.load_state() is None
    assert store.last_calibrated_at() is None


def test_repo_errors_propagate() -> None:
    repo = MagicMock()
    repo.load.side_effect = sqlite3.OperationalError("database is locked")
    store = CalibrationStore(repo)
    with pytest.raises(sqlite3.Error):
        store.load_state()
