"""
Unit tests for the logging wrapper.
"""

import json
import logging

from pbi_monitor.utils.logger import JsonFormatter, LogLevel, console, get_logger, setup_logging


class TestMonitorLogger:
    def test_context_rendered_as_pairs(self):
        logger = get_logger("pbi_monitor.tests")

        assert logger._format_message("Synced", {"workspace_id": "w", "count": 2}) == (
            "Synced [workspace_id=w | count=2]"
        )

    def test_plain_message_unchanged(self):
        assert get_logger("pbi_monitor.tests")._format_message("Synced", {}) == "Synced"

    def test_success_keeps_context_text(self):
        logger = get_logger("pbi_monitor.tests")

        with console.capture() as capture:
            logger.success("Validation complete", tenant_id="contoso")

        assert "✓ Validation complete [tenant_id=contoso]" in capture.get()

    def test_logger_cached(self):
        assert get_logger("pbi_monitor.tests") is get_logger("pbi_monitor.tests")

    def test_setup_logging_updates_existing_loggers(self):
        logger = get_logger("pbi_monitor.tests")

        setup_logging("debug")
        assert logger.logger.level == logging.DEBUG

        setup_logging(LogLevel.WARNING)
        assert logger.logger.level == logging.WARNING


def test_json_formatter():
    record = logging.LogRecord("pbi_monitor", logging.ERROR, __file__, 1, "boom", None, None)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "ERROR"
    assert payload["message"] == "boom"
    assert payload["logger"] == "pbi_monitor"
