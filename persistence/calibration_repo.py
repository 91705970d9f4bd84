"""
Repository for the calibration_records table: one JSON payload per record name
("state" or "parameters") with the payload format version and the time it was saved.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
    INSERT INTO calibration_records (name, payload, format_version, saved_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(name) DO UPDATE SET
        payload = excluded.payload,
        format_version = excluded.format_version,
        saved_at = excluded.saved_at
"""


@dataclass(frozen=True)
class StoredRecord:
    payload: str
    format_version: int
    saved_at: str


class CalibrationRepo:
    """
    Each call opens its own connection from connector; writes commit on success and roll back on error.
    On DB errors, logs and re-raises so callers can show a message. An unknown record name
    violates the table's CHECK constraint and raises sqlite3.IntegrityError.
    """

    def __init__(self, connector: Callable[[], sqlite3.Connection]) -> None:
        self._connector = connector

    def load(self, name: str) -> StoredRecord | None:
        """Return the stored record for name, or None if it was never saved."""
        try:
            with closing(self._connector()) as conn:
                row = conn.execute(
                    "SELECT payload, format_version, saved_at FROM calibration_records WHERE name = ?",
                    (name,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.exception("Loading calibration record %r failed: %s", name, e)
            raise
        if row is None:
            return None
        return StoredRecord(payload=row[0], format_version=int(row[1]), saved_at=row[2])

    def save(self, name: str, payload: str, format_version: int, saved_at: str) -> None:
        """Replace the record for name."""
        try:
            with closing(self._connector()) as conn, conn:
                conn.execute(_UPSERT_SQL, (name, payload, format_version, saved_at))
        except sqlite3.Error as e:
            logger.exception("Saving calibration record %r failed: %s", name, e)
            raise

    def clear(self) -> int:
        """Delete every calibration record. Returns the number of records removed."""
        try:
            with closing(self._connector()) as conn, conn:
                return conn.execute("DELETE FROM calibration_records").rowcount
        except sqlite3.Error as e:
            logger.exception("Clearing calibration records failed: %s", e)
            raise


__all__ = ["CalibrationRepo", "StoredRecord"]
