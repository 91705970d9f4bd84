"""
Calibration persistence on top of CalibrationRepo: the resume record and the last applied parameters,
each stored as a JSON payload tagged with its format version.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from calibration.derivation import FilterParameterSet
from calibration.state import CalibrationState, state_from_dict, state_to_dict

if TYPE_CHECKING:
    from persistence.calibration_repo import CalibrationRepo, StoredRecord

logger = logging.getLogger(__name__)

CALIBRATION_VERSION = 1
STATE_RECORD = "state"
PARAMETERS_RECORD = "parameters"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(raw: str | None) -> datetime | None:
    if not raw or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _decode(record: StoredRecord | None, what: str) -> Any | None:
    """JSON payload of record, or None when missing, blank, unparsable or from a newer format."""
    if record is None or not record.payload.strip():
        return None
    if record.format_version > CALIBRATION_VERSION:
        logger.warning(
            "Ignoring stored calibration %s: format v%d is newer than v%d",
            what,
            record.format_version,
            CALIBRATION_VERSION,
        )
        return None
    try:
        return json.loads(record.payload)
    except ValueError as e:
        logger.warning("Ignoring stored calibration %s: %s", what, e)
        return None


class CalibrationStore:
    """
    Save/load calibration data. Repository errors propagate (the repo logs them);
    a stored value that no longer parses is logged and treated as missing.
    """

    def __init__(self, repo: CalibrationRepo) -> None:
        self._repo = repo

    def save_state(self, state: CalibrationState) -> None:
        self._repo.save(
            STATE_RECORD, json.dumps(state_to_dict(state)), CALIBRATION_VERSION, _now_iso()
        )

    def load_state(self) -> CalibrationState | None:
        """Return the saved state, or None if nothing valid is stored."""
        data = _decode(self._repo.load(STATE_RECORD), "state")
        if data is None:
            return None
        try:
            return state_from_dict(data)
        except ValueError as e:
            logger.warning("Ignoring stored calibration state: %s", e)
            return None

    def save_parameters(self, params: FilterParameterSet) -> None:
        self._repo.save(
            PARAMETERS_RECORD, json.dumps(params.to_dict()), CALIBRATION_VERSION, _now_iso()
        )

    def load_parameters(self) -> FilterParameterSet | None:
        data = _decode(self._repo.load(PARAMETERS_RECORD), "parameters")
        if data is None:
            return None
        try:
            return FilterParameterSet.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring stored calibration parameters: %s", e)
            return None

    def last_calibrated_at(self) -> datetime | None:
        """When the resume record was last saved."""
        record = self._repo.load(STATE_RECORD)
        return _parse_time(record.saved_at if record else None)

    def last_applied_at(self) -> datetime | None:
        record = self._repo.load(PARAMETERS_RECORD)
        return _parse_time(record.saved_at if record else None)

    def clear(self) -> None:
        removed = self._repo.clear()
        logger.info("Cleared %d calibration record(s)", removed)


__all__ = ["CALIBRATION_VERSION", "PARAMETERS_RECORD", "STATE_RECORD", "CalibrationStore"]
