"""Tests for sdk.logging: get_logger."""

from __future__ import annotations

import logging

from sdk import get_logger


def test_get_logger_returns_logger() -> None:
    logger = get_logger("session")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "autocal.session"


def test_get_logger_name_prefix() -> None:
    logger = get_logger("filters")
    assert logger.name == "autocal.filters"
    assert logger.name.startswith("autocal.")


def test_get_logger_empty_strips_to_component() -> None:
    logger = get_logger("")
    assert logger.name == "autocal.component"
    assert get_logger(None).name == "autocal.component"


def test_get_logger_whitespace_strips() -> None:
    logger = get_logger("  capture  ")
    assert logger.name == "autocal.capture"


def test_get_logger_same_name_same_instance() -> None:
    assert get_logger("session") is get_logger("session")
