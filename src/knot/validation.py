"""Field-level input validation.

Each validator returns the normalized value or raises
:class:`~knot.errors.ValidationError`.
"""

from __future__ import annotations

from typing import Any, Optional

from .constants import (
    DEFAULT_MAX_DESCRIPTION_LENGTH,
    DEFAULT_MAX_TITLE_LENGTH,
    MAX_ACTOR_LENGTH,
    MAX_COMPLEXITY,
    MIN_COMPLEXITY,
)
from .errors import ValidationError
from .models import TaskPriority, TaskState

_MULTILINE_CONTROL = frozenset("\t\n\r")


def _check_content(field: str, value: str, allowed: frozenset[str] = frozenset()) -> None:
    """Reject null bytes and control characters other than *allowed*."""
    for ch in value:
        if ch == "\x00":
            raise ValidationError(field, "contains a null byte")
        if (ord(ch) < 0x20 or ord(ch) == 0x7F) and ch not in allowed:
            raise ValidationError(field, f"contains control character {ch!r}")


def validate_title(title: Any, max_length: int = DEFAULT_MAX_TITLE_LENGTH) -> str:
    if not isinstance(title, str):
        raise ValidationError("title", "must be a string")
    title = title.strip()
    if not title:
        raise ValidationError("title", "must not be empty", "provide a short descriptive title")
    if len(title) > max_length:
        raise ValidationError("title", f"must be at most {max_length} characters (got {len(title)})")
    _check_content("title", title)
    return title


def validate_description(
    description: Optional[str],
    max_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH,
) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("description", "must be a string")
    if len(description) > max_length:
        raise ValidationError(
            "description",
            f"must be at most {max_length} characters (got {len(description)})",
        )
    _check_content("description", description, _MULTILINE_CONTROL)
    return description


def validate_complexity(complexity: Any) -> int:
    if isinstance(complexity, bool) or not isinstance(complexity, int):
        raise ValidationError("complexity", f"must be an integer, got {complexity!r}")
    if not MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY:
        raise ValidationError(
            "complexity",
            f"must be between {MIN_COMPLEXITY} and {MAX_COMPLEXITY} (got {complexity})",
        )
    return complexity


def validate_priority(priority: Any) -> TaskPriority:
    if isinstance(priority, TaskPriority):
        return priority
    try:
        return TaskPriority(str(priority).strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in TaskPriority)
        raise ValidationError("priority", f"must be one of {valid} (got {priority!r})") from None


def validate_state(state: Any) -> TaskState:
    if isinstance(state, TaskState):
        return state
    try:
        return TaskState(str(state).strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in TaskState)
        raise ValidationError("state", f"must be one of {valid} (got {state!r})") from None


def validate_actor(actor: Any) -> str:
    if not isinstance(actor, str) or not actor.strip():
        raise ValidationError("actor", "must not be empty")
    actor = actor.strip()
    if len(actor) > MAX_ACTOR_LENGTH:
        raise ValidationError("actor", f"must be at most {MAX_ACTOR_LENGTH} characters")
    _check_content("actor", actor)
    return actor


def validate_identifier(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must not be empty")
    return value.strip()


def validate_estimate(estimate: Any) -> int:
    """Estimate in minutes; zero is allowed."""
    if isinstance(estimate, bool) or not isinstance(estimate, int):
        raise ValidationError("estimate", f"must be an integer number of minutes, got {estimate!r}")
    if estimate < 0:
        raise ValidationError("estimate", f"must be non-negative (got {estimate})")
    return estimate


def validate_agent(agent: Any) -> str:
    if not isinstance(agent, str) or not agent.strip():
        raise ValidationError("agent", "must not be empty", "pass the id of the agent taking the task")
    agent = agent.strip()
    if len(agent) > MAX_ACTOR_LENGTH:
        raise ValidationError("agent", f"must be at most {MAX_ACTOR_LENGTH} characters")
    _check_content("agent", agent)
    return agent
