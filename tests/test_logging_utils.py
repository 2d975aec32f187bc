"""Tests for loguru setup and report rendering (knot/logging_utils.py)."""

from __future__ import annotations

import io
import json

from loguru import logger

from knot.deletion import DeletionReport
from knot.logging_utils import configure_logging, pretty
from knot.models import TaskState


class TestConfigureLogging:
    def test_level_filters_messages(self) -> None:
        sink = io.StringIO()
        handler_id = configure_logging("warning", sink=sink)
        try:
            logger.info("hidden")
            logger.warning("shown {}", 42)
        finally:
            logger.remove(handler_id)
        output = sink.getvalue()
        assert "hidden" not in output
        assert "shown 42" in output
        assert "WARNING" in output


class TestPretty:
    def test_renders_records(self) -> None:
        report = DeletionReport(target_type="task", target_id="t1", title="T", phase="mark")
        data = json.loads(pretty({"report": report, "state": TaskState.BLOCKED, "ids": {"b", "a"}}))
        assert data["report"]["target_id"] == "t1"
        assert data["state"] == "blocked"
        assert data["ids"] == ["a", "b"]
