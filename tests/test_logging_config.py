"""Tests for logging setup."""

import json
import logging

import pytest
import structlog

from kube_badge.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_lines_on_stdout(capsys):
    configure_logging(debug=False)
    structlog.get_logger("test").info("hello", resource="pods")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    entry = json.loads(line)
    assert entry["event"] == "hello"
    assert entry["resource"] == "pods"
    assert entry["level"] == "info"
    assert "timestamp" in entry


def test_debug_filtered_by_default(capsys):
    configure_logging(debug=False)
    structlog.get_logger("test").debug("hidden")

    assert "hidden" not in capsys.readouterr().out
    assert logging.getLogger().level == logging.INFO


def test_debug_enabled(capsys):
    configure_logging(debug=True)
    structlog.get_logger("test").debug("shown")

    assert "shown" in capsys.readouterr().out
    assert logging.getLogger().level == logging.DEBUG
