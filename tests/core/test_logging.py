"""Tests for structured logging configuration and context."""

import json
import logging

import pytest
import structlog

import railyard.core.logging as rlog
from railyard.core.logging import (
    LogContext,
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    get_logger,
    is_configured,
)


@pytest.fixture
def reset_logging(monkeypatch):
    monkeypatch.setattr(rlog, "_configured", False)
    yield
    structlog.reset_defaults()
    logging.getLogger("railyard").setLevel(logging.NOTSET)


class TestLogContext:
    def test_to_dict_drops_none(self):
        assert LogContext(number=42).to_dict() == {"number": 42}

    def test_merge_keeps_existing_values(self):
        ctx = LogContext(number=42, station="#a").merge(station="#b", actor=None)
        assert ctx == LogContext(number=42, station="#b")


class TestContextVars:
    def test_bind_and_clear(self):
        bind_context(number=7)
        bind_context(station="#geeks")
        assert get_context().to_dict() == {"number": 7, "station": "#geeks"}

        clear_context()
        assert get_context().to_dict() == {}

    def test_processor_adds_context(self):
        bind_context(actor="alice", command="board")
        event = add_context_processor(None, "info", {"event": "x"})
        assert event == {"event": "x", "actor": "alice", "command": "board"}

    def test_processor_does_not_override_explicit_keys(self):
        bind_context(number=7)
        event = add_context_processor(None, "info", {"event": "x", "number": 9})
        assert event["number"] == 9


class TestConfigureLogging:
    def test_json_output_carries_context(self, reset_logging, capsys):
        configure_logging(level="DEBUG", format="json", force=True)
        assert is_configured()

        bind_context(number=42, station="#a")
        get_logger("railyard.tests").info("service_arrived", delay=3)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "service_arrived"
        assert entry["delay"] == 3
        assert entry["number"] == 42
        assert entry["station"] == "#a"
        assert entry["level"] == "info"
        assert entry["logger"] == "railyard.tests"
        assert "timestamp" in entry

    def test_second_call_is_noop(self, reset_logging, capsys):
        configure_logging(level="INFO", format="json")
        configure_logging(level="DEBUG", format="console")

        get_logger("railyard.tests").debug("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_level_from_environment(self, reset_logging, monkeypatch, capsys):
        monkeypatch.setenv("RAILYARD_LOG_LEVEL", "WARNING")
        configure_logging(format="json")

        log = get_logger("railyard.tests")
        log.info("quiet")
        log.warning("loud")

        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "loud" in err
