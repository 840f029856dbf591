# tests/unit/logging/test_logger.py — v2
"""Tests for logging/logger.py — formatters and setup."""

from __future__ import annotations

import json
import logging

from portfolio_ai.logging.context import clear_context, set_call_context
from portfolio_ai.logging.logger import ROOT_LOGGER, JsonFormatter, TextFormatter, setup_logging


def _record(msg: str = "Hello", **attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="portfolio_ai.test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert parsed["logger"] == "portfolio_ai.test"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_call_context("c1", "chat", "anthropic")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {"call_id": "c1", "feature": "chat", "provider": "anthropic"}

    def test_extra_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"tokens": 12})))
        assert parsed["data"] == {"tokens": 12}


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "[INFO    ]" in output
        assert output.endswith("- Hello text")

    def test_context_shown(self):
        set_call_context("c1", "research", "xai")
        output = TextFormatter().format(_record())
        assert "[xai]" in output
        assert "(research)" in output


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger(ROOT_LOGGER).handlers.clear()

    def test_level_and_formatter(self):
        logger = setup_logging(level="DEBUG", log_format="json")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_reinit_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        logger = setup_logging(log_file=tmp_path / "logs" / "app.log")
        assert len(logger.handlers) == 2
        logger.info("written")
        for handler in logger.handlers:
            handler.flush()
        assert "written" in (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
        logger.handlers[1].close()
