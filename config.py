"""
Minimal config wrapper: single place for keys and defaults; dict-like access for existing callers.
Config is merged from root config.yaml and optional config.user.yaml.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml

_CONFIG_ROOT = Path(__file__).resolve().parent

_LOGGING_DEFAULTS = {"level": "INFO", "file": "autocal.log"}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base. override wins for conflicts. Returns new dict."""
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file; return {} if missing or invalid. Single place for safe YAML loading."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def get_config_path() -> Path:
    """Root config path from AUTOCAL_CONFIG or project root/config.yaml."""
    return Path(os.environ.get("AUTOCAL_CONFIG", str(_CONFIG_ROOT / "config.yaml")))


def load_config() -> dict:
    """
    Load merged config: root config.yaml -> config.user.yaml (same directory).
    Raises FileNotFoundError if the root config is missing.
    """
    root_path = get_config_path()
    if not root_path.exists():
        raise FileNotFoundError(f"Config not found: {root_path}")
    merged = load_yaml_file(root_path)

    user_path = root_path.parent / "config.user.yaml"
    if user_path.exists():
        user_data = load_yaml_file(user_path)
        if user_data:
            merged = _deep_merge(merged, user_data)

    return merged


class AppConfig:
    """
    Wraps the raw YAML config dict. Use get_* for typed access with defaults;
    use .get(section, default) for dict-like access.
    """

    def __init__(self, raw: dict) -> None:
        self._raw = raw if raw is not None else {}

    def __getitem__(self, key: str):
        return self._raw[key]

    def get(self, key: str, default=None):
        return self._raw.get(key, default)

    def _logging(self) -> dict:
        from sdk import get_section

        return get_section(self._raw, "logging", _LOGGING_DEFAULTS, {"level": str})

    def get_log_level(self) -> str:
        return self._logging()["level"]

    def get_log_path(self) -> str | None:
        """Path for log file (root logger). Default autocal.log; empty or null disables it."""
        return self._logging()["file"] or None

    def get_db_path(self) -> str:
        return str(self.get("persistence", {}).get("db_path", "data/autocal.db"))

    def get_audio_config(self) -> dict:
        """Audio capture: sample_rate, block_size, device."""
        from sdk import get_audio_section

        return get_audio_section(self._raw)

    def get_calibration_config(self) -> dict:
        """Calibration timing: tick_ms, record_duration_ms, meter_refresh_ms."""
        from sdk import get_calibration_section

        return get_calibration_section(self._raw)

    def get_filters_config(self) -> dict:
        """Filter toggles and choice labels, plus export_path."""
        from sdk import get_filters_section

        return get_filters_section(self._raw)

    def get_filter_export_path(self) -> Path:
        """Absolute path of the YAML filter file; relative paths resolve against the project root."""
        path = Path(self.get_filters_config()["export_path"])
        return path if path.is_absolute() else _CONFIG_ROOT / path
