"""Tests for sdk.config: get_section, audio/calibration/filters section getters, parse helpers."""

from __future__ import annotations

from sdk import (
    FILTER_TOGGLE_DEFAULTS,
    FILTER_TOGGLE_KEYS,
    get_audio_section,
    get_calibration_section,
    get_filters_section,
    get_section,
)
from sdk.config import _clamp_int, _parse_bool, _parse_float


def test_clamp_int() -> None:
    assert _clamp_int(None, 1, 10, 5) == 5
    assert _clamp_int("7", 1, 10, 5) == 7
    assert _clamp_int(100, 1, 10, 5) == 10
    assert _clamp_int(-3, 1, 10, 5) == 1
    assert _clamp_int("abc", 1, 10, 5) == 5


def test_parse_float() -> None:
    assert _parse_float(None, 0.0, 1.0, 0.5) == 0.5
    assert _parse_float("0.25", 0.0, 1.0, 0.5) == 0.25
    assert _parse_float(3, 0.0, 1.0, 0.5) == 1.0
    assert _parse_float([], 0.0, 1.0, 0.5) == 0.5


def test_parse_bool() -> None:
    assert _parse_bool(True, False) is True
    assert _parse_bool("yes", False) is True
    assert _parse_bool(" Off ", True) is False
    assert _parse_bool("maybe", True) is True
    assert _parse_bool(None, False) is False
    assert _parse_bool(1, False) is False


def test_get_section_merges_defaults_and_validates() -> None:
    raw = {"logging": {"level": "WARNING", "extra": 1}}
    out = get_section(raw, "logging", {"level": "INFO", "file": "autocal.log"})
    assert out == {"level": "WARNING", "file": "autocal.log"}
    assert "extra" not in out


def test_get_section_validator_failure_uses_default() -> None:
    raw = {"calibration": {"tick_ms": "fast"}}
    out = get_section(raw, "calibration", {"tick_ms": 100}, {"tick_ms": int})
    assert out["tick_ms"] == 100
    out = get_section({"calibration": {"tick_ms": "50"}}, "calibration", {"tick_ms": 100}, {"tick_ms": int})
    assert out["tick_ms"] == 50


def test_get_section_missing_section_returns_defaults() -> None:
    out = get_section({}, "audio", {"sample_rate": 48000})
    assert out == {"sample_rate": 48000}
    out = get_section({"audio": None}, "audio", {"sample_rate": 48000})
    assert out == {"sample_rate": 48000}


def test_audio_section_defaults() -> None:
    out = get_audio_section({})
    assert out == {"sample_rate": 48000, "block_size": 1024, "device": None}


def test_audio_section_clamps_and_strips_device() -> None:
    out = get_audio_section(
        {"audio": {"sample_rate": 1000, "block_size": 999999, "device": "  USB Mic  "}}
    )
    assert out["sample_rate"] == 8000
    assert out["block_size"] == 16384
    assert out["device"] == "USB Mic"
    assert get_audio_section({"audio": {"device": "   "}})["device"] is None
    assert get_audio_section({"audio": {"device": 2}})["device"] == 2


def test_calibration_section_defaults() -> None:
    out = get_calibration_section({})
    assert out == {"tick_ms": 100, "record_duration_ms": 5000, "meter_refresh_ms": 50}


def test_calibration_section_duration_at_least_one_tick() -> None:
    out = get_calibration_section({"calibration": {"tick_ms": 500, "record_duration_ms": 100}})
    assert out["tick_ms"] == 500
    assert out["record_duration_ms"] == 500
    out = get_calibration_section({"calibration": {"tick_ms": 0, "record_duration_ms": "x"}})
    assert out["tick_ms"] == 10
    assert out["record_duration_ms"] == 5000


def test_filters_section_defaults() -> None:
    out = get_filters_section({})
    for key in FILTER_TOGGLE_KEYS:
        assert out[key] is FILTER_TOGGLE_DEFAULTS[key]
    assert out["noise_suppression_level"] == "Medium"
    assert out["high_pass_freq"] == "80 Hz"
    assert out["low_pass_freq"] == "12 kHz"
    assert out["de_esser_intensity"] == "Medium"
    assert out["export_path"] == "data/filters.yaml"


def test_filters_section_overrides() -> None:
    out = get_filters_section(
        {
            "filters": {
                "expander": "yes",
                "limiter": False,
                "high_pass_freq": "120 Hz",
                "de_esser_intensity": "  ",
            }
        }
    )
    assert out["expander"] is True
    assert out["limiter"] is False
    assert out["high_pass_freq"] == "120 Hz"
    assert out["de_esser_intensity"] == "Medium"
