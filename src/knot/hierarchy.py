"""Parent/child structure of tasks: creation with depth and fan-out limits,
plus traversal helpers."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .config import EngineConfig
from .errors import DepthExceededError, FanOutExceededError, NotFoundError
from .models import Task, TaskPriority
from .storage.interfaces import Repository


def reduced_complexity(current: int, child_count: int) -> int:
    """Complexity a parent drops to once it has *child_count* subtasks."""
    if child_count <= 1:
        target = current - 2
    elif child_count <= 3:
        target = 4
    elif child_count <= 5:
        target = 3
    else:
        target = 2
    return max(1, min(current, target))


class HierarchyEngine:
    def __init__(self, repo: Repository, config: EngineConfig) -> None:
        self.repo = repo
        self.config = config

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_task(
        self,
        project_id: str,
        parent_id: Optional[str],
        title: str,
        description: str,
        complexity: int,
        priority: TaskPriority,
        actor: str,
    ) -> Task:
        """Insert a task below *parent_id* (or as a root of *project_id*).

        The parent lookup, the depth and fan-out checks and the insert run in
        one write transaction, so no other writer can change the sibling
        count in between.
        """
        with self.repo.transaction():
            self.repo.get_project(project_id)
            parent: Optional[Task] = None
            if parent_id is not None:
                parent = self.repo.get_task(parent_id)
                if parent.project_id != project_id:
                    raise NotFoundError(
                        "parent task",
                        parent_id,
                        f"the parent must belong to project {project_id}",
                    )
            depth = parent.depth + 1 if parent is not None else 0
            if depth > self.config.max_depth:
                raise DepthExceededError(
                    f"task depth {depth} would exceed the maximum depth of {self.config.max_depth}",
                    "attach the task to a shallower parent",
                )

            if parent is not None:
                siblings = self.repo.list_tasks_by_parent(parent.id)
            else:
                siblings = self.repo.list_root_tasks(project_id)
            self._check_fan_out(len(siblings), depth)

            task = Task(
                project_id=project_id,
                parent_id=parent_id,
                title=title,
                description=description,
                complexity=complexity,
                priority=priority,
                depth=depth,
                created_by=actor,
                updated_by=actor,
            )
            created = self.repo.create_task(task)

            if parent is not None and self.config.auto_reduce_complexity:
                self._reduce_parent_complexity(parent, len(siblings) + 1, actor)

        logger.info("Created task {} at depth {}: {}", created.id, depth, title)
        return created

    def duplicate_task(self, task_id: str, project_id: str, actor: str) -> Task:
        """Copy *task_id* into *project_id* as a new pending root task.

        Title, description, complexity, priority and estimate are copied.
        Subtasks, dependencies and the agent assignment are not.
        """
        with self.repo.transaction():
            source = self.repo.get_task(task_id)
            self.repo.get_project(project_id)
            self._check_fan_out(len(self.repo.list_root_tasks(project_id)), 0)
            duplicate = Task(
                project_id=project_id,
                title=source.title,
                description=source.description,
                complexity=source.complexity,
                priority=source.priority,
                estimate=source.estimate,
                created_by=actor,
                updated_by=actor,
            )
            created = self.repo.create_task(duplicate)

        logger.info("Duplicated task {} as {} in project {}", task_id, created.id, project_id)
        return created

    def _check_fan_out(self, sibling_count: int, depth: int) -> None:
        if sibling_count >= self.config.max_tasks_per_depth:
            raise FanOutExceededError(
                f"too many tasks at depth {depth}: limit is {self.config.max_tasks_per_depth}",
                "group related tasks under a new parent task",
            )

    def _reduce_parent_complexity(self, parent: Task, child_count: int, actor: str) -> None:
        if parent.complexity < self.config.complexity_threshold:
            return
        new_complexity = reduced_complexity(parent.complexity, child_count)
        if new_complexity == parent.complexity:
            return
        logger.info(
            "Reduced complexity of {} from {} to {} ({} subtasks)",
            parent.id,
            parent.complexity,
            new_complexity,
            child_count,
        )
        parent.complexity = new_complexity
        parent.touch(actor)
        self.repo.update_task(parent)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def get_descendants(self, task_id: str) -> list[Task]:
        """All tasks below *task_id*, depth-first in pre-order.

        Parent links are stored as plain ids, so the walk keeps a visited set
        and never revisits a task even if the stored links loop.
        """
        root = self.repo.get_task(task_id)
        children: dict[str, list[Task]] = {}
        for task in self.repo.list_tasks_by_project(root.project_id):
            if task.parent_id is not None:
                children.setdefault(task.parent_id, []).append(task)

        out: list[Task] = []
        visited: set[str] = {root.id}
        stack: list[Task] = list(reversed(children.get(root.id, [])))
        while stack:
            task = stack.pop()
            if task.id in visited:
                continue
            visited.add(task.id)
            out.append(task)
            stack.extend(reversed(children.get(task.id, [])))
        return out

    def get_ancestors(self, task_id: str) -> list[Task]:
        """Parent chain of *task_id*, nearest first."""
        task = self.repo.get_task(task_id)
        out: list[Task] = []
        visited: set[str] = {task.id}
        parent_id = task.parent_id
        while parent_id is not None and parent_id not in visited:
            visited.add(parent_id)
            try:
                parent = self.repo.get_task(parent_id)
            except NotFoundError:
                logger.warning("Task {} references missing parent {}", task_id, parent_id)
                break
            out.append(parent)
            parent_id = parent.parent_id
        return out

    def get_root_tasks(self, project_id: str) -> list[Task]:
        return self.repo.list_root_tasks(project_id)

    def get_child_tasks(self, task_id: str) -> list[Task]:
        return self.repo.list_tasks_by_parent(task_id)

    def get_parent_task(self, task_id: str) -> Optional[Task]:
        """The parent of *task_id*, or ``None`` for a root task."""
        task = self.repo.get_task(task_id)
        if task.parent_id is None:
            return None
        return self.repo.get_task(task.parent_id)

    def has_children(self, task_id: str) -> bool:
        return bool(self.repo.list_tasks_by_parent(task_id))
