#!/usr/bin/env python3
"""
AutoCal entry point: load config, initialize database, open the calibration wizard.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from config import AppConfig, get_config_path, load_config

logger = logging.getLogger(__name__)

# Ensure project root is on path
_ROOT = Path(__file__).resolve().parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))


def validate_config(config: dict) -> None:
    """Validate required config values. Raises ValueError with a clear message if invalid."""
    if not config:
        raise ValueError("Config is empty")
    audio = config.get("audio") or {}
    sr = audio.get("sample_rate", 48000)
    try:
        sr = int(sr)
    except (TypeError, ValueError):
        raise ValueError(
            "config.audio.sample_rate must be a positive integer"
        ) from None
    if sr <= 0:
        raise ValueError("config.audio.sample_rate must be positive")
    block = audio.get("block_size", 1024)
    try:
        block = int(block)
    except (TypeError, ValueError):
        raise ValueError("config.audio.block_size must be a positive integer") from None
    if block <= 0:
        raise ValueError("config.audio.block_size must be positive")

    cal = config.get("calibration") or {}
    tick = cal.get("tick_ms", 100)
    try:
        tick = int(tick)
    except (TypeError, ValueError):
        raise ValueError("config.calibration.tick_ms must be a positive integer") from None
    if tick <= 0:
        raise ValueError("config.calibration.tick_ms must be positive")
    duration = cal.get("record_duration_ms", 5000)
    try:
        duration = int(duration)
    except (TypeError, ValueError):
        raise ValueError(
            "config.calibration.record_duration_ms must be a positive integer"
        ) from None
    if duration < tick:
        raise ValueError(
            "config.calibration.record_duration_ms must be at least one tick (tick_ms)"
        )

    filters = config.get("filters") or {}
    export_path = filters.get("export_path", "data/filters.yaml")
    if not export_path or not str(export_path).strip():
        raise ValueError("config.filters.export_path must be non-empty")


def bootstrap_config_and_db(root: Path) -> tuple[AppConfig, Path]:
    """
    Load and validate config, set up logging, initialize database.
    Returns (config, db_path). Single place for entry-point startup.
    """
    config_path = get_config_path()
    raw = load_config()
    validate_config(raw)
    config = AppConfig(raw)
    log_level = config.get_log_level()
    level = getattr(logging, log_level.upper(), logging.INFO)
    log_fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    logging.basicConfig(level=level, format=log_fmt)
    log_path = config.get_log_path()
    if log_path:
        path = Path(log_path) if os.path.isabs(log_path) else root / log_path
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)
    logger.info("Config path: %s", config_path)
    from persistence.database import init_database

    db_path = Path(config.get_db_path())
    if not db_path.is_absolute():
        db_path = root / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    init_database(str(db_path))
    logger.info("Database initialized at %s", db_path)
    return (config, db_path)


def main() -> None:
    """Open the calibration wizard on the configured microphone backend."""
    try:
        config, db_path = bootstrap_config_and_db(_ROOT)
    except (FileNotFoundError, ValueError) as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    from PyQt6.QtWidgets import QApplication

    from audio.capture import SoundDeviceSource
    from audio.level import LevelAnalyzer
    from calibration.store import CalibrationStore
    from persistence.calibration_repo import CalibrationRepo
    from persistence.database import connect
    from persistence.filter_export import YamlFilterHost
    from ui.calibration_dialog import CalibrationDialog

    def conn_factory():
        return connect(str(db_path))

    audio_cfg = config.get_audio_config()
    binding = SoundDeviceSource(
        sample_rate=audio_cfg["sample_rate"], block_size=audio_cfg["block_size"]
    )
    analyzer = LevelAnalyzer(binding)
    store = CalibrationStore(CalibrationRepo(conn_factory))
    host = YamlFilterHost(config.get_filter_export_path())

    app = QApplication(sys.argv)
    dialog = CalibrationDialog(
        analyzer=analyzer,
        store=store,
        filter_host=host,
        calibration_config=config.get_calibration_config(),
        filters_config=config.get_filters_config(),
        default_source=audio_cfg["device"],
    )
    dialog.show()
    code = app.exec()
    analyzer.stop()
    sys.exit(code)


if __name__ == "__main__":
    main()
