"""Task lifecycle state machine.

Two layers decide whether a task may move from one state to another:

1. A structural allow-list of ``(from, to)`` pairs.  Anything outside it is
   rejected in every mode; in particular nothing leaves ``pending-deletion``
   except the deletion orchestrator, which never consults this module.
2. An ordered list of business rules.  Each rule is tagged with a
   :class:`Severity` that decides whether a violation is fatal or surfaces
   as a warning string, depending on the validation mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from loguru import logger

from .constants import DEFAULT_COMPLEXITY_THRESHOLD
from .errors import InvalidTransitionError
from .models import Task, TaskState


# ---------------------------------------------------------------------------
# Allow-list
# ---------------------------------------------------------------------------

_P = TaskState.PENDING
_IP = TaskState.IN_PROGRESS
_C = TaskState.COMPLETED
_B = TaskState.BLOCKED
_X = TaskState.CANCELLED
_D = TaskState.PENDING_DELETION

DEFAULT_TRANSITIONS: frozenset[tuple[TaskState, TaskState]] = frozenset(
    {
        (_P, _IP), (_P, _B), (_P, _X), (_P, _D),
        (_IP, _C), (_IP, _B), (_IP, _X), (_IP, _D),
        (_C, _D),
        (_B, _P), (_B, _IP), (_B, _X), (_B, _D),
        (_X, _P), (_X, _D),
    }
    | {(s, s) for s in TaskState}
)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """How a rule violation is reported."""

    HARD = "hard"  # fatal in every mode
    STRICT = "strict"  # fatal in strict mode, warning in lenient mode
    ADVISORY = "advisory"  # always a warning


@dataclass(frozen=True)
class TransitionContext:
    """Everything a rule may look at."""

    task: Task
    from_state: TaskState
    to_state: TaskState
    has_children: bool
    complexity_threshold: int


@dataclass(frozen=True)
class TransitionRule:
    name: str
    description: str
    severity: Severity
    violated: Callable[[TransitionContext], bool]
    suggestion: str


def default_rules() -> list[TransitionRule]:
    return [
        TransitionRule(
            name="completed_requires_progress",
            description="tasks should go through in-progress before completion",
            severity=Severity.STRICT,
            violated=lambda ctx: ctx.from_state == _P and ctx.to_state == _C,
            suggestion="transition to in-progress first to track work progress",
        ),
        TransitionRule(
            name="blocked_requires_dependencies",
            description="a task can only be blocked by unmet dependencies",
            severity=Severity.HARD,
            violated=lambda ctx: ctx.to_state == _B and not ctx.task.dependencies,
            suggestion="add a dependency first, or keep the task pending",
        ),
        TransitionRule(
            name="breakdown_before_start",
            description="complex tasks must be broken down before work starts",
            severity=Severity.HARD,
            violated=lambda ctx: (
                ctx.from_state == _P
                and ctx.to_state == _IP
                and ctx.task.complexity >= ctx.complexity_threshold
                and not ctx.has_children
            ),
            suggestion="create subtasks for this task before starting it",
        ),
        TransitionRule(
            name="high_complexity_completion",
            description="completing a high complexity task",
            severity=Severity.ADVISORY,
            violated=lambda ctx: ctx.to_state == _C and ctx.task.complexity >= ctx.complexity_threshold,
            suggestion="consider breaking high complexity tasks into smaller subtasks",
        ),
    ]


def _format_warning(rule: TransitionRule) -> str:
    return f"warning: {rule.name}: {rule.suggestion}"


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class StateValidator:
    """Validate task state transitions.

    Parameters
    ----------
    strict:
        In strict mode rules tagged :attr:`Severity.STRICT` are fatal; in
        lenient mode they are reported as warnings.
    complexity_threshold:
        Complexity at or above which a task needs subtasks before starting.
    allowed:
        Optional replacement for :data:`DEFAULT_TRANSITIONS`.  Self
        transitions are always added.
    rules:
        Optional replacement for :func:`default_rules`.
    """

    def __init__(
        self,
        strict: bool = True,
        complexity_threshold: int = DEFAULT_COMPLEXITY_THRESHOLD,
        allowed: Optional[Iterable[tuple[TaskState, TaskState]]] = None,
        rules: Optional[list[TransitionRule]] = None,
    ) -> None:
        self.strict = strict
        self.complexity_threshold = complexity_threshold
        pairs = set(DEFAULT_TRANSITIONS if allowed is None else allowed)
        pairs |= {(s, s) for s in TaskState}
        self._allowed: frozenset[tuple[TaskState, TaskState]] = frozenset(pairs)
        self._rules = list(default_rules() if rules is None else rules)

    @property
    def rules(self) -> list[TransitionRule]:
        return list(self._rules)

    def is_allowed(self, from_state: TaskState, to_state: TaskState) -> bool:
        return (from_state, to_state) in self._allowed

    def valid_transitions_from(self, from_state: TaskState) -> list[TaskState]:
        """Targets reachable from *from_state*, excluding the state itself."""
        return [s for s in TaskState if s != from_state and (from_state, s) in self._allowed]

    def transition_matrix(self) -> dict[str, list[str]]:
        return {
            s.value: [t.value for t in self.valid_transitions_from(s)]
            for s in TaskState
        }

    def validate(
        self,
        task: Task,
        to_state: TaskState,
        has_children: bool = False,
    ) -> list[str]:
        """Check moving *task* to *to_state*.

        Returns the warning strings produced by non-fatal rules.  Raises
        :class:`InvalidTransitionError` when the pair is not allowed or a
        fatal rule is violated.  A self transition always succeeds.
        """
        from_state = task.state
        if from_state == to_state:
            return []

        if not self.is_allowed(from_state, to_state):
            valid = [s.value for s in self.valid_transitions_from(from_state)]
            if from_state == TaskState.PENDING_DELETION:
                suggestion = "the task is marked for deletion; confirm the deletion to remove it"
            else:
                suggestion = f"valid transitions from {from_state.value}: {', '.join(valid)}"
            logger.debug("Rejected transition {} {} -> {}", task.id, from_state.value, to_state.value)
            raise InvalidTransitionError(
                from_state.value,
                to_state.value,
                "transition not allowed",
                suggestion,
            )

        ctx = TransitionContext(
            task=task,
            from_state=from_state,
            to_state=to_state,
            has_children=has_children,
            complexity_threshold=self.complexity_threshold,
        )
        warnings: list[str] = []
        for rule in self._rules:
            if not rule.violated(ctx):
                continue
            fatal = rule.severity == Severity.HARD or (
                rule.severity == Severity.STRICT and self.strict
            )
            if fatal:
                logger.debug("Transition {} -> {} vetoed by {}", from_state.value, to_state.value, rule.name)
                raise InvalidTransitionError(
                    from_state.value,
                    to_state.value,
                    rule.description,
                    rule.suggestion,
                    rule=rule.name,
                )
            warnings.append(_format_warning(rule))
        return warnings
