"""
Tests for log formatting

Domain context passed as extra_fields must survive both output formats.
"""

import json
import logging
import sys
from datetime import datetime, timezone
import pytest
from core.logging import ContextTextFormatter, JSONFormatter, build_formatter, setup_logging


def _record(msg="xp granted", extra_fields=None, exc_info=None):
    record = logging.LogRecord(
        name="services.training_events", level=logging.INFO, pathname=__file__,
        lineno=42, msg=msg, args=(), exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Structured output."""

    def test_context_merged_at_top_level(self):
        """extra_fields keys sit beside the fixed keys."""
        line = JSONFormatter().format(_record(extra_fields={"user_id": "u1", "granted_xp": 8}))
        data = json.loads(line)
        assert data["message"] == "xp granted"
        assert data["service"] == "cognitive-engine"
        assert data["user_id"] == "u1"
        assert data["granted_xp"] == 8

    def test_context_cannot_overwrite_fixed_keys(self):
        """A context key named like a fixed key is dropped."""
        data = json.loads(JSONFormatter().format(_record(extra_fields={"level": "FAKE"})))
        assert data["level"] == "INFO"

    def test_non_json_values_stringified(self):
        """Datetimes and other objects render through str."""
        at = datetime(2026, 10, 12, 9, tzinfo=timezone.utc)
        data = json.loads(JSONFormatter().format(_record(extra_fields={"occurred_at": at})))
        assert data["occurred_at"] == str(at)

    def test_exception_included(self):
        """A logged exception carries its traceback."""
        try:
            raise ValueError("bad route")
        except ValueError:
            record = _record(exc_info=sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad route" in data["exception"]


class TestContextTextFormatter:
    """Development output."""

    def test_context_appended_sorted(self):
        """Context renders as sorted key=value pairs."""
        line = ContextTextFormatter().format(_record(extra_fields={"user_id": "u1", "category": "s1_games"}))
        assert line.endswith("xp granted [category=s1_games user_id=u1]")

    def test_no_context_plain_line(self):
        """Records without context are unchanged."""
        assert ContextTextFormatter().format(_record()).endswith(" - INFO - xp granted")


class TestSetupLogging:
    """Root logger configuration."""

    def test_format_selection(self):
        """The requested format picks the formatter."""
        assert isinstance(build_formatter("json"), JSONFormatter)
        assert isinstance(build_formatter("TEXT"), ContextTextFormatter)

    def test_single_handler_after_repeat_calls(self, restore_root_logger):
        """Calling setup twice leaves one handler."""
        setup_logging(level="debug", log_format="text")
        root = setup_logging(level="warning", log_format="text")
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
