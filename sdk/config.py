"""
Normalized config section access for AutoCal.
Provides get_section() and section-specific getters (audio, calibration, filters) so
config normalization lives in one place; the app and the CLI use these instead of duplicating logic.
"""

from __future__ import annotations

from typing import Any, Callable

FILTER_TOGGLE_KEYS = (
    "noise_suppression",
    "noise_gate",
    "expander",
    "gain",
    "compressor",
    "limiter",
    "high_pass",
    "low_pass",
    "de_esser",
)

FILTER_TOGGLE_DEFAULTS = {
    "noise_suppression": True,
    "noise_gate": True,
    "expander": False,
    "gain": True,
    "compressor": True,
    "limiter": True,
    "high_pass": False,
    "low_pass": False,
    "de_esser": False,
}


def _clamp_int(value: Any, low: int, high: int, default: int) -> int:
    """Parse value to int and clamp to [low, high]; return default if value is None or invalid."""
    if value is None:
        return default
    try:
        return max(low, min(high, int(value)))
    except (TypeError, ValueError):
        return default


def _parse_float(value: Any, low: float, high: float, default: float) -> float:
    """Parse value to float and clamp to [low, high]; return default if value is None or parsing fails."""
    if value is None:
        return default
    try:
        return max(low, min(high, float(value)))
    except (TypeError, ValueError):
        return default


def _parse_bool(value: Any, default: bool) -> bool:
    """Accept bools and the usual yes/no strings; anything else returns default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("1", "true", "yes", "on"):
            return True
        if v in ("0", "false", "no", "off"):
            return False
    return default


def _parse_label(value: Any, default: str) -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s or default


def get_section(
    raw_config: dict,
    section: str,
    defaults: dict[str, Any],
    validators: dict[str, Callable[[Any], Any]] | None = None,
) -> dict[str, Any]:
    """
    Return a normalized config section by merging raw section with defaults and applying validators.

    Args:
        raw_config: Full merged config dict (e.g. from load_config()).
        section: Top-level key (e.g. "audio", "calibration").
        defaults: Default values for the section; merged with raw_config.get(section, {}).
        validators: Optional dict mapping section key -> callable(value) -> value (e.g. clamp int).

    Returns:
        New dict with all keys from defaults, overridden by raw section, then validated.
    """
    validators = validators or {}
    raw_section = dict(raw_config.get(section) or {})
    out = dict(defaults)
    for k, v in raw_section.items():
        if k in out or k in defaults:
            out[k] = v
    for k, validator in validators.items():
        if k in out:
            try:
                out[k] = validator(out[k])
            except (TypeError, ValueError):
                out[k] = defaults[k]
    return out


def get_audio_section(raw_config: dict) -> dict[str, Any]:
    """
    Return normalized audio capture config: sample_rate, block_size, device (None = system default).
    """
    a = raw_config.get("audio") or {}
    device = a.get("device")
    if isinstance(device, str):
        device = device.strip() or None
    return {
        "sample_rate": _clamp_int(a.get("sample_rate"), 8000, 192000, 48000),
        "block_size": _clamp_int(a.get("block_size"), 64, 16384, 1024),
        "device": device,
    }


def get_calibration_section(raw_config: dict) -> dict[str, Any]:
    """
    Return normalized calibration timing config.
    record_duration_ms is never shorter than one tick.
    """
    c = raw_config.get("calibration") or {}
    tick_ms = _clamp_int(c.get("tick_ms"), 10, 1000, 100)
    return {
        "tick_ms": tick_ms,
        "record_duration_ms": _clamp_int(
            c.get("record_duration_ms"), tick_ms, 60000, max(tick_ms, 5000)
        ),
        "meter_refresh_ms": _clamp_int(c.get("meter_refresh_ms"), 10, 1000, 50),
    }


def get_filters_section(raw_config: dict) -> dict[str, Any]:
    """
    Return normalized filter toggles and choices.
    Choice labels are passed through as strings; unknown labels are resolved by the consumer.
    """
    f = raw_config.get("filters") or {}
    out: dict[str, Any] = {
        k: _parse_bool(f.get(k), FILTER_TOGGLE_DEFAULTS[k]) for k in FILTER_TOGGLE_KEYS
    }
    out["noise_suppression_level"] = _parse_label(f.get("noise_suppression_level"), "Medium")
    out["high_pass_freq"] = _parse_label(f.get("high_pass_freq"), "80 Hz")
    out["low_pass_freq"] = _parse_label(f.get("low_pass_freq"), "12 kHz")
    out["de_esser_intensity"] = _parse_label(f.get("de_esser_intensity"), "Medium")
    out["export_path"] = _parse_label(f.get("export_path"), "data/filters.yaml")
    return out


__all__ = [
    "FILTER_TOGGLE_DEFAULTS",
    "FILTER_TOGGLE_KEYS",
    "get_audio_section",
    "get_calibration_section",
    "get_filters_section",
    "get_section",
]
