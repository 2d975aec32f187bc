"""Dependency graph: edge maintenance, cycle prevention and readiness."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator, Mapping, Optional

from loguru import logger

from .errors import CircularDependencyError, ValidationError
from .models import Task, TaskState
from .storage.interfaces import Repository


# ---------------------------------------------------------------------------
# Readiness (pure functions over a task index)
# ---------------------------------------------------------------------------

def build_index(tasks: Iterable[Task]) -> dict[str, Task]:
    return {t.id: t for t in tasks}


def is_ready(task: Task, index: Mapping[str, Task]) -> bool:
    """True when every dependency of *task* is completed.

    A dependency id missing from *index* counts as unmet.
    """
    for dep_id in task.dependencies:
        dep = index.get(dep_id)
        if dep is None or dep.state != TaskState.COMPLETED:
            return False
    return True


def blocked_tasks(tasks: Iterable[Task], index: Mapping[str, Task]) -> list[Task]:
    """Active tasks held back by at least one unmet dependency."""
    return [
        t for t in tasks
        if t.state.is_active and t.dependencies and not is_ready(t, index)
    ]


def ready_tasks(tasks: Iterable[Task], index: Mapping[str, Task]) -> list[Task]:
    """Active tasks whose dependencies are all met, sorted by priority then age."""
    ready = [t for t in tasks if t.state.is_active and is_ready(t, index)]
    ready.sort(key=lambda t: (t.priority.sort_key, t.created_at))
    return ready


def _has_active_children(task: Task, tasks: Iterable[Task]) -> bool:
    return any(t.parent_id == task.id and t.state.is_active for t in tasks)


def select_next_actionable(tasks: list[Task], index: Mapping[str, Task]) -> Optional[Task]:
    """Pick the task to work on next.

    Preference order:

    1. an in-progress ready task with no pending/in-progress subtasks,
    2. a pending ready task,
    3. any other in-progress ready task.

    Within each group higher priority wins, then the older task.
    """
    candidates = ready_tasks(tasks, index)
    for task in candidates:
        if task.state == TaskState.IN_PROGRESS and not _has_active_children(task, tasks):
            return task
    for task in candidates:
        if task.state == TaskState.PENDING:
            return task
    return candidates[0] if candidates else None


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

class DependencyGraph:
    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def add_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        """Make *task_id* depend on *depends_on_id*.

        Idempotent.  Raises :class:`CircularDependencyError` when
        *task_id* is already reachable from *depends_on_id*, leaving the
        graph unchanged.
        """
        if task_id == depends_on_id:
            raise CircularDependencyError(
                f"task {task_id} cannot depend on itself",
                "pick a different task as the dependency",
            )
        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            dep = self.repo.get_task(depends_on_id)
            if task.project_id != dep.project_id:
                raise ValidationError(
                    "depends_on",
                    f"tasks {task_id} and {depends_on_id} belong to different projects",
                    "dependencies can only link tasks of the same project",
                )
            if depends_on_id in task.dependencies:
                return task

            index = build_index(self.repo.list_tasks_by_project(task.project_id))
            path = self._find_path(index, start=depends_on_id, target=task_id)
            if path is not None:
                cycle = " -> ".join([task_id] + path)
                raise CircularDependencyError(
                    f"adding dependency {task_id} -> {depends_on_id} would create a cycle: {cycle}",
                    f"remove one of the existing dependencies along {cycle} first",
                )
            updated = self.repo.add_dependency(task_id, depends_on_id, actor)

        logger.info("Added dependency {} -> {} by {}", task_id, depends_on_id, actor)
        return updated

    def remove_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        """Drop the edge if present; a missing edge is a no-op."""
        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            if depends_on_id not in task.dependencies:
                return task
            updated = self.repo.remove_dependency(task_id, depends_on_id, actor)
        logger.info("Removed dependency {} -> {} by {}", task_id, depends_on_id, actor)
        return updated

    @staticmethod
    def _find_path(index: Mapping[str, Task], start: str, target: str) -> Optional[list[str]]:
        """Breadth-first search along dependency edges from *start*.

        Returns the id path ``[start, ..., target]`` or ``None``.
        """
        parents: dict[str, Optional[str]] = {start: None}
        queue: deque[str] = deque([start])
        while queue:
            current = queue.popleft()
            if current == target:
                path: list[str] = []
                node: Optional[str] = current
                while node is not None:
                    path.append(node)
                    node = parents[node]
                return list(reversed(path))
            task = index.get(current)
            if task is None:
                continue
            for dep_id in task.dependencies:
                if dep_id not in parents:
                    parents[dep_id] = current
                    queue.append(dep_id)
        return None

    def has_cycle(self, project_id: str) -> bool:
        """True if the stored edges of *project_id* contain a cycle."""
        index = build_index(self.repo.list_tasks_by_project(project_id))
        visiting: set[str] = set()
        done: set[str] = set()
        for root in index:
            if root in done:
                continue
            stack: list[tuple[str, Iterator[str]]] = [(root, iter(index[root].dependencies))]
            visiting.add(root)
            while stack:
                node, deps = stack[-1]
                nxt = next(deps, None)
                if nxt is None:
                    stack.pop()
                    visiting.discard(node)
                    done.add(node)
                    continue
                if nxt in visiting:
                    return True
                if nxt in done or nxt not in index:
                    continue
                visiting.add(nxt)
                stack.append((nxt, iter(index[nxt].dependencies)))
        return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def project_index(self, project_id: str) -> dict[str, Task]:
        return build_index(self.repo.list_tasks_by_project(project_id))

    def is_task_ready(self, task_id: str) -> bool:
        task = self.repo.get_task(task_id)
        return is_ready(task, self.project_index(task.project_id))

    def blocked_tasks(self, project_id: str) -> list[Task]:
        index = self.project_index(project_id)
        return blocked_tasks(index.values(), index)

    def ready_tasks(self, project_id: str) -> list[Task]:
        index = self.project_index(project_id)
        return ready_tasks(index.values(), index)

    def next_actionable(self, project_id: str) -> Optional[Task]:
        index = self.project_index(project_id)
        return select_next_actionable(list(index.values()), index)
