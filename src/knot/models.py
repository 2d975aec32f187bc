"""Project and task records for the task graph engine.

Records are plain dataclasses that serialize to YAML/JSON-friendly dicts via
``to_dict()`` / ``from_dict()``.  Storage backends hand out copies of these
objects; the only way to change persisted state is through the repository's
``update_*`` methods.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .constants import DEFAULT_COMPLEXITY
from .utils import _generate_id, _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskState(str, Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    PENDING_DELETION = "pending-deletion"

    @property
    def is_active(self) -> bool:
        return self in (TaskState.PENDING, TaskState.IN_PROGRESS)


class TaskPriority(str, Enum):
    """Priority level of a task."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def sort_key(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class ProjectState(str, Enum):
    """Lifecycle state of a project."""

    ACTIVE = "active"
    PENDING_DELETION = "pending-deletion"


def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Enum:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


def _optional_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _serialize(record: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for k, v in asdict(record).items():
        data[k] = v.value if isinstance(v, Enum) else v
    return data


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------

@dataclass
class Project:
    """A named container of tasks."""

    id: str = field(default_factory=lambda: _generate_id("proj"))
    title: str = ""
    description: str = ""
    state: ProjectState = ProjectState.ACTIVE
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    created_by: str = ""
    updated_by: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        d = dict(data)
        return cls(
            id=str(d.get("id") or _generate_id("proj")),
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            state=_coerce_enum(ProjectState, d.get("state"), ProjectState.ACTIVE),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            created_by=str(d.get("created_by", "") or ""),
            updated_by=str(d.get("updated_by", "") or ""),
        )

    def touch(self, actor: str) -> None:
        self.updated_at = _now_iso()
        self.updated_by = actor


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of work inside a project.

    ``depth`` is assigned by the hierarchy engine when the task is created
    and never changes afterwards.  ``dependencies`` is an ordered set of the
    task ids this task depends on.
    """

    # Identity
    id: str = field(default_factory=lambda: _generate_id("task"))
    project_id: str = ""
    parent_id: Optional[str] = None
    title: str = ""
    description: str = ""

    # Classification
    complexity: int = DEFAULT_COMPLEXITY
    priority: TaskPriority = TaskPriority.MEDIUM
    state: TaskState = TaskState.PENDING

    # Structure
    depth: int = 0
    dependencies: list[str] = field(default_factory=list)

    # Planning
    estimate: Optional[int] = None  # minutes
    assigned_agent: Optional[str] = None

    # Audit
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    created_by: str = ""
    updated_by: str = ""
    completed_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully."""
        d = dict(data)
        return cls(
            id=str(d.get("id") or _generate_id("task")),
            project_id=str(d.get("project_id", "")),
            parent_id=d.get("parent_id"),
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            complexity=int(d.get("complexity", DEFAULT_COMPLEXITY) or DEFAULT_COMPLEXITY),
            priority=_coerce_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            state=_coerce_enum(TaskState, d.get("state"), TaskState.PENDING),
            depth=int(d.get("depth", 0) or 0),
            dependencies=list(d.get("dependencies", []) or []),
            estimate=_optional_int(d.get("estimate")),
            assigned_agent=d.get("assigned_agent") or None,
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            created_by=str(d.get("created_by", "") or ""),
            updated_by=str(d.get("updated_by", "") or ""),
            completed_at=d.get("completed_at"),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def touch(self, actor: str) -> None:
        """Bump ``updated_at`` and record *actor* as the last writer."""
        self.updated_at = _now_iso()
        self.updated_by = actor

    def set_state(self, new_state: TaskState, actor: str) -> None:
        """Assign *new_state* with ``completed_at`` bookkeeping.

        No validation happens here; callers go through the state validator
        (or are the deletion orchestrator).
        """
        self.state = new_state
        if new_state == TaskState.COMPLETED:
            self.completed_at = self.completed_at or _now_iso()
        elif new_state != TaskState.PENDING_DELETION:
            self.completed_at = None
        self.touch(actor)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


# ---------------------------------------------------------------------------
# Query / update value objects
# ---------------------------------------------------------------------------

@dataclass
class TaskFilter:
    """Conjunctive filter over tasks; unset fields match everything."""

    project_id: Optional[str] = None
    parent_id: Optional[str] = None
    state: Optional[TaskState] = None
    priority: Optional[TaskPriority] = None
    min_depth: Optional[int] = None
    max_depth: Optional[int] = None
    min_complexity: Optional[int] = None
    max_complexity: Optional[int] = None
    assigned_agent: Optional[str] = None
    predicate: Optional[Callable[[Task], bool]] = None

    def matches(self, task: Task) -> bool:
        if self.project_id is not None and task.project_id != self.project_id:
            return False
        if self.parent_id is not None and task.parent_id != self.parent_id:
            return False
        if self.state is not None and task.state != self.state:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.min_depth is not None and task.depth < self.min_depth:
            return False
        if self.max_depth is not None and task.depth > self.max_depth:
            return False
        if self.min_complexity is not None and task.complexity < self.min_complexity:
            return False
        if self.max_complexity is not None and task.complexity > self.max_complexity:
            return False
        if self.assigned_agent is not None and task.assigned_agent != self.assigned_agent:
            return False
        if self.predicate is not None and not self.predicate(task):
            return False
        return True


@dataclass
class TaskUpdates:
    """Field changes applied to several tasks at once."""

    state: Optional[TaskState] = None
    priority: Optional[TaskPriority] = None
    complexity: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.state is None and self.priority is None and self.complexity is None


@dataclass
class ProjectProgress:
    """Aggregate task counts for one project."""

    project_id: str
    total: int = 0
    by_state: dict[str, int] = field(default_factory=dict)
    by_depth: dict[int, int] = field(default_factory=dict)

    def count(self, state: TaskState) -> int:
        return self.by_state.get(state.value, 0)

    @property
    def completed(self) -> int:
        return self.count(TaskState.COMPLETED)

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.completed * 100.0 / self.total, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "total": self.total,
            "by_state": dict(self.by_state),
            "by_depth": dict(self.by_depth),
            "percent_complete": self.percent_complete,
        }
