"""Provide the public `knot` package exports."""

from __future__ import annotations

from .config import EngineConfig
from .deletion import DeletionReport
from .errors import (
    CircularDependencyError,
    DepthExceededError,
    FanOutExceededError,
    HasChildrenError,
    InvalidTransitionError,
    KnotError,
    NoSelectionError,
    NotFoundError,
    ValidationError,
)
from .manager import ProjectManager, StateChange, open_manager
from .models import (
    Project,
    ProjectProgress,
    ProjectState,
    Task,
    TaskFilter,
    TaskPriority,
    TaskState,
    TaskUpdates,
)
from .storage import FileRepository, InMemoryRepository, Repository

__all__ = [
    "CircularDependencyError",
    "DeletionReport",
    "DepthExceededError",
    "EngineConfig",
    "FanOutExceededError",
    "FileRepository",
    "HasChildrenError",
    "InMemoryRepository",
    "InvalidTransitionError",
    "KnotError",
    "NoSelectionError",
    "NotFoundError",
    "Project",
    "ProjectManager",
    "ProjectProgress",
    "ProjectState",
    "Repository",
    "StateChange",
    "Task",
    "TaskFilter",
    "TaskPriority",
    "TaskState",
    "TaskUpdates",
    "ValidationError",
    "open_manager",
]
