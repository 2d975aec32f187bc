"""Tests for field-level input validation (knot/validation.py)."""

from __future__ import annotations

import pytest

from knot.errors import ValidationError
from knot.models import TaskPriority, TaskState
from knot.validation import (
    validate_actor,
    validate_agent,
    validate_complexity,
    validate_description,
    validate_estimate,
    validate_priority,
    validate_state,
    validate_title,
)


class TestTitle:
    def test_strips_whitespace(self) -> None:
        assert validate_title("  Ship it  ") == "Ship it"

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_empty_rejected(self, title: object) -> None:
        with pytest.raises(ValidationError):
            validate_title(title)

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError, match="at most 200"):
            validate_title("x" * 201)
        assert validate_title("x" * 200)

    def test_control_characters(self) -> None:
        with pytest.raises(ValidationError, match="null byte"):
            validate_title("bad\x00title")
        with pytest.raises(ValidationError, match="control character"):
            validate_title("bell\x07")

    @pytest.mark.parametrize("title", ["two\nlines", "tab\there", "carriage\rreturn"])
    def test_whitespace_controls_rejected(self, title: str) -> None:
        with pytest.raises(ValidationError, match="control character"):
            validate_title(title)


class TestDescription:
    def test_none_is_empty(self) -> None:
        assert validate_description(None) == ""

    def test_whitespace_controls_allowed(self) -> None:
        assert validate_description("line1\nline2\tcol\r\n") == "line1\nline2\tcol\r\n"

    def test_length_limit(self) -> None:
        with pytest.raises(ValidationError, match="at most 10"):
            validate_description("y" * 11, max_length=10)


class TestComplexity:
    @pytest.mark.parametrize("value", [1, 5, 10])
    def test_in_range(self, value: int) -> None:
        assert validate_complexity(value) == value

    @pytest.mark.parametrize("value", [0, 11, -3, "5", 2.5, True])
    def test_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError):
            validate_complexity(value)


class TestEnums:
    def test_priority(self) -> None:
        assert validate_priority("HIGH") == TaskPriority.HIGH
        assert validate_priority(TaskPriority.LOW) == TaskPriority.LOW
        with pytest.raises(ValidationError, match="low, medium, high"):
            validate_priority("urgent")

    def test_state(self) -> None:
        assert validate_state("in-progress") == TaskState.IN_PROGRESS
        with pytest.raises(ValidationError):
            validate_state("done")


class TestActor:
    def test_valid(self) -> None:
        assert validate_actor(" alice ") == "alice"

    def test_empty(self) -> None:
        with pytest.raises(ValidationError, match="actor"):
            validate_actor("")

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError):
            validate_actor("a" * 101)

    def test_newline_rejected(self) -> None:
        with pytest.raises(ValidationError, match="control character"):
            validate_actor("alice\nbob")


class TestPlanningFields:
    @pytest.mark.parametrize("value", [0, 30, 480])
    def test_estimate_valid(self, value: int) -> None:
        assert validate_estimate(value) == value

    @pytest.mark.parametrize("value", [-1, 1.5, "60", True])
    def test_estimate_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError, match="estimate"):
            validate_estimate(value)

    def test_agent(self) -> None:
        assert validate_agent(" agent-1 ") == "agent-1"
        with pytest.raises(ValidationError, match="agent"):
            validate_agent("")
        with pytest.raises(ValidationError, match="control character"):
            validate_agent("agent\n1")
