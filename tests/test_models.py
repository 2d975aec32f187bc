"""Tests for the project/task records (knot/models.py)."""

from __future__ import annotations

from knot.models import (
    Project,
    ProjectProgress,
    ProjectState,
    Task,
    TaskFilter,
    TaskPriority,
    TaskState,
    TaskUpdates,
)


class TestTask:
    def test_defaults(self) -> None:
        t = Task(project_id="p1", title="Write docs")
        assert t.id.startswith("task-")
        assert t.state == TaskState.PENDING
        assert t.priority == TaskPriority.MEDIUM
        assert t.depth == 0
        assert t.dependencies == []
        assert t.completed_at is None
        assert t.is_root

    def test_to_dict_uses_enum_values(self) -> None:
        t = Task(project_id="p1", title="x", state=TaskState.IN_PROGRESS, priority=TaskPriority.HIGH)
        d = t.to_dict()
        assert d["state"] == "in-progress"
        assert d["priority"] == "high"
        assert d["parent_id"] is None

    def test_from_dict_restores_fields(self) -> None:
        original = Task(
            project_id="p1",
            parent_id="task-parent",
            title="Child",
            complexity=7,
            depth=2,
            dependencies=["task-a", "task-b"],
            estimate=90,
            assigned_agent="agent-7",
            created_by="alice",
        )
        restored = Task.from_dict(original.to_dict())
        assert restored == original

    def test_from_dict_bad_enum_falls_back(self) -> None:
        t = Task.from_dict({"id": "t1", "title": "x", "state": "bogus", "priority": "urgent"})
        assert t.state == TaskState.PENDING
        assert t.priority == TaskPriority.MEDIUM

    def test_set_state_tracks_completion_time(self) -> None:
        t = Task(title="x")
        t.set_state(TaskState.COMPLETED, "bob")
        assert t.completed_at is not None
        assert t.updated_by == "bob"
        t.set_state(TaskState.PENDING_DELETION, "bob")
        assert t.completed_at is not None
        t.set_state(TaskState.PENDING, "bob")
        assert t.completed_at is None

    def test_active_states(self) -> None:
        assert TaskState.PENDING.is_active
        assert TaskState.IN_PROGRESS.is_active
        assert not TaskState.BLOCKED.is_active
        assert not TaskState.COMPLETED.is_active

    def test_priority_sort_key(self) -> None:
        ordered = sorted(TaskPriority, key=lambda p: p.sort_key)
        assert ordered == [TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW]


class TestProject:
    def test_roundtrip(self) -> None:
        p = Project(title="Demo", description="d", created_by="alice")
        restored = Project.from_dict(p.to_dict())
        assert restored == p
        assert restored.state == ProjectState.ACTIVE

    def test_pending_deletion_value(self) -> None:
        p = Project.from_dict({"id": "p1", "title": "x", "state": "pending-deletion"})
        assert p.state == ProjectState.PENDING_DELETION


class TestTaskFilter:
    def _tasks(self) -> list[Task]:
        return [
            Task(id="a", project_id="p1", complexity=2, depth=0, priority=TaskPriority.LOW),
            Task(id="b", project_id="p1", complexity=8, depth=1, parent_id="a", state=TaskState.BLOCKED),
            Task(id="c", project_id="p2", complexity=5, depth=2, priority=TaskPriority.HIGH),
        ]

    def test_empty_filter_matches_all(self) -> None:
        assert all(TaskFilter().matches(t) for t in self._tasks())

    def test_ranges(self) -> None:
        f = TaskFilter(min_depth=1, max_complexity=6)
        assert [t.id for t in self._tasks() if f.matches(t)] == ["c"]

    def test_combined_fields(self) -> None:
        f = TaskFilter(project_id="p1", state=TaskState.BLOCKED, parent_id="a")
        assert [t.id for t in self._tasks() if f.matches(t)] == ["b"]

    def test_predicate(self) -> None:
        f = TaskFilter(predicate=lambda t: t.priority == TaskPriority.HIGH)
        assert [t.id for t in self._tasks() if f.matches(t)] == ["c"]


class TestValueObjects:
    def test_task_updates_empty(self) -> None:
        assert TaskUpdates().is_empty
        assert not TaskUpdates(complexity=3).is_empty

    def test_progress_percent(self) -> None:
        progress = ProjectProgress(project_id="p1", total=4, by_state={"completed": 1, "pending": 3})
        assert progress.completed == 1
        assert progress.count(TaskState.PENDING) == 3
        assert progress.percent_complete == 25.0
        assert ProjectProgress(project_id="p1").percent_complete == 0.0
