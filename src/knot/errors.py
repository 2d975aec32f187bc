"""Error taxonomy for the task graph engine.

Every failure raised by the core derives from :class:`KnotError` so callers
can catch the whole family at once.  Each error optionally carries a short
``suggestion`` that the presentation layer can show as remediation guidance.
"""

from __future__ import annotations

from typing import Optional


class KnotError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion


class NotFoundError(KnotError):
    """A project, task, or parent task does not exist."""

    def __init__(self, kind: str, identifier: str, suggestion: Optional[str] = None) -> None:
        super().__init__(f"{kind} not found: {identifier}", suggestion)
        self.kind = kind
        self.identifier = identifier


class InvalidTransitionError(KnotError):
    """State change outside the allow-list or vetoed by a hard rule."""

    def __init__(
        self,
        from_state: str,
        to_state: str,
        reason: str,
        suggestion: Optional[str] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(f"cannot transition from {from_state} to {to_state}: {reason}", suggestion)
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        self.rule = rule


class CircularDependencyError(KnotError):
    """Adding the edge would make a task reachable from itself."""


class DepthExceededError(KnotError):
    """The task would sit deeper than the configured maximum depth."""


class FanOutExceededError(KnotError):
    """Too many sibling tasks at one depth scope."""


class HasChildrenError(KnotError):
    """Single (non-cascading) delete attempted on a task that has subtasks."""


class ValidationError(KnotError):
    """Field-level input validation failure."""

    def __init__(self, field: str, message: str, suggestion: Optional[str] = None) -> None:
        super().__init__(f"invalid {field}: {message}", suggestion)
        self.field = field


class NoSelectionError(KnotError):
    """A task-scoped operation needs a selected project and none is set."""

    def __init__(self) -> None:
        super().__init__(
            "no project selected",
            "select a project first, or pass an explicit project id",
        )
