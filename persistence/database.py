"""
SQLite file holding the calibration records: schema setup and per-call connections.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Stored in PRAGMA user_version
SCHEMA_VERSION = 1


class SchemaVersionError(ValueError):
    """The database file was written by a newer AutoCal schema."""


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # The wizard and the CLI may open the file at the same time
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")


def init_database(db_path: str) -> None:
    """
    Create the database file and the calibration_records table if needed.
    Idempotent. Raises SchemaVersionError for a file from a newer schema.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(db_path)) as conn:
        _apply_pragmas(conn)
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version > SCHEMA_VERSION:
            raise SchemaVersionError(
                f"{db_path} uses calibration schema v{version}; this AutoCal supports v{SCHEMA_VERSION}"
            )
        conn.executescript(_SCHEMA_PATH.read_text())
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    logger.info("Calibration database ready at %s (schema v%d)", db_path, SCHEMA_VERSION)


def connect(db_path: str) -> sqlite3.Connection:
    """New connection to an initialized database. Caller closes it."""
    conn = sqlite3.connect(db_path)
    _apply_pragmas(conn)
    return conn
