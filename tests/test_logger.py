"""Tests for async structured logging setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from skillrec.logger import setup_logging, stop_logging


def test_async_logging_writes() -> None:
    """Verify that log messages are written through the async queue."""
    setup_logging(service="test-engine", level="info")
    logger = logging.getLogger("test_async")
    logger.info("hello from async test")
    stop_logging()


def test_stop_logging_is_idempotent() -> None:
    setup_logging(service="test-engine", level="info")
    stop_logging()
    stop_logging()


def test_entries_are_json_with_service(capsys: pytest.CaptureFixture[str]) -> None:
    """Each entry is one JSON object carrying the service name and bound context."""
    setup_logging(service="test-engine", level="debug")
    structlog.get_logger("test_json").info("recommendations generated", user_id="u1", count=2)
    stop_logging()

    lines = [line for line in capsys.readouterr().out.splitlines() if "recommendations generated" in line]
    entry = json.loads(lines[-1])
    assert entry["event"] == "recommendations generated"
    assert entry["service"] == "test-engine"
    assert entry["level"] == "info"
    assert entry["logger"] == "test_json"
    assert entry["user_id"] == "u1"
    assert "timestamp" in entry
