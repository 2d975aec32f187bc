"""In-memory repository guarded by a single reader/writer lock.

Public methods take the lock and delegate to ``_``-prefixed helpers that
assume it is already held.  Mutations run inside :meth:`transaction`, which
snapshots state at the outermost level so a failing block (or a failing
:meth:`_commit`) leaves nothing behind.  Subclasses override ``_exclusive``,
``_refresh``, ``_reading`` and ``_commit`` to share state through storage.
"""

from __future__ import annotations

import copy
from contextlib import contextmanager, nullcontext
from dataclasses import replace
from typing import Any, ContextManager, Iterator, Optional

from ..errors import NotFoundError
from ..models import Project, ProjectProgress, Task, TaskFilter
from .interfaces import Repository
from .rwlock import ReadWriteLock


def _clone_task(task: Task) -> Task:
    return replace(task, dependencies=list(task.dependencies))


def _clone_project(project: Project) -> Project:
    return replace(project)


class InMemoryRepository(Repository):
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._projects: dict[str, Project] = {}
        self._tasks: dict[str, Task] = {}
        self._selected_project: Optional[str] = None
        self._dirty = False

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock.write():
            if self._lock.write_depth > 1:
                yield
                return
            with self._exclusive():
                self._refresh()
                snapshot = self._snapshot()
                try:
                    yield
                    if self._dirty:
                        self._commit()
                        self._dirty = False
                except BaseException:
                    self._restore(snapshot)
                    raise

    @contextmanager
    def _reading(self) -> Iterator[None]:
        with self._lock.read():
            yield

    def _snapshot(self) -> dict[str, Any]:
        return {
            "projects": copy.deepcopy(self._projects),
            "tasks": copy.deepcopy(self._tasks),
            "selected_project": self._selected_project,
            "dirty": self._dirty,
        }

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._projects = snapshot["projects"]
        self._tasks = snapshot["tasks"]
        self._selected_project = snapshot["selected_project"]
        self._dirty = snapshot["dirty"]

    def _exclusive(self) -> ContextManager[Any]:
        """Cross-process guard held for the whole outermost transaction."""
        return nullcontext()

    def _refresh(self) -> None:
        """Hook to reload state at the start of an outermost transaction."""

    def _commit(self) -> None:
        """Hook called before a successful outermost transaction with changes
        releases its locks.  An exception here rolls the transaction back."""

    # ------------------------------------------------------------------
    # Unlocked helpers
    # ------------------------------------------------------------------

    def _project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    def _task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def _select(self, task_filter: Optional[TaskFilter]) -> list[Task]:
        tasks = self._tasks.values()
        if task_filter is None:
            return [_clone_task(t) for t in tasks]
        return [_clone_task(t) for t in tasks if task_filter.matches(t)]

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        with self.transaction():
            if project.id in self._projects:
                raise ValueError(f"Project {project.id} already exists")
            self._projects[project.id] = _clone_project(project)
            self._dirty = True
        return _clone_project(project)

    def get_project(self, project_id: str) -> Project:
        with self._reading():
            return _clone_project(self._project(project_id))

    def update_project(self, project: Project) -> Project:
        with self.transaction():
            self._project(project.id)
            self._projects[project.id] = _clone_project(project)
            self._dirty = True
        return _clone_project(project)

    def delete_project(self, project_id: str) -> None:
        with self.transaction():
            self._project(project_id)
            del self._projects[project_id]
            self._tasks = {tid: t for tid, t in self._tasks.items() if t.project_id != project_id}
            if self._selected_project == project_id:
                self._selected_project = None
            self._dirty = True

    def list_projects(self) -> list[Project]:
        with self._reading():
            return [_clone_project(p) for p in self._projects.values()]

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> Task:
        with self.transaction():
            self._project(task.project_id)
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            self._tasks[task.id] = _clone_task(task)
            self._dirty = True
        return _clone_task(task)

    def get_task(self, task_id: str) -> Task:
        with self._reading():
            return _clone_task(self._task(task_id))

    def update_task(self, task: Task) -> Task:
        with self.transaction():
            self._task(task.id)
            self._tasks[task.id] = _clone_task(task)
            self._dirty = True
        return _clone_task(task)

    def delete_task(self, task_id: str) -> None:
        """Remove the task and every dependency edge that points at it."""
        with self.transaction():
            self._task(task_id)
            del self._tasks[task_id]
            for other in self._tasks.values():
                if task_id in other.dependencies:
                    other.dependencies.remove(task_id)
            self._dirty = True

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> list[Task]:
        with self._reading():
            return self._select(task_filter)

    def list_tasks_by_project(self, project_id: str) -> list[Task]:
        with self._reading():
            self._project(project_id)
            return self._select(TaskFilter(project_id=project_id))

    def list_tasks_by_parent(self, parent_id: str) -> list[Task]:
        with self._reading():
            self._task(parent_id)
            return self._select(TaskFilter(parent_id=parent_id))

    def list_root_tasks(self, project_id: str) -> list[Task]:
        with self._reading():
            self._project(project_id)
            return self._select(
                TaskFilter(project_id=project_id, predicate=lambda t: t.parent_id is None)
            )

    # ------------------------------------------------------------------
    # Dependency edges
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        with self.transaction():
            task = self._task(task_id)
            self._task(depends_on_id)
            if depends_on_id not in task.dependencies:
                task.dependencies.append(depends_on_id)
                task.touch(actor)
                self._dirty = True
            return _clone_task(task)

    def remove_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        with self.transaction():
            task = self._task(task_id)
            if depends_on_id in task.dependencies:
                task.dependencies.remove(depends_on_id)
                task.touch(actor)
                self._dirty = True
            return _clone_task(task)

    def get_dependencies(self, task_id: str) -> list[Task]:
        """Return the tasks *task_id* depends on; dangling ids are skipped."""
        with self._reading():
            task = self._task(task_id)
            return [_clone_task(self._tasks[d]) for d in task.dependencies if d in self._tasks]

    def get_dependents(self, task_id: str) -> list[Task]:
        with self._reading():
            self._task(task_id)
            return [_clone_task(t) for t in self._tasks.values() if task_id in t.dependencies]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def get_project_progress(self, project_id: str) -> ProjectProgress:
        with self._reading():
            self._project(project_id)
            progress = ProjectProgress(project_id=project_id)
            for task in self._tasks.values():
                if task.project_id != project_id:
                    continue
                progress.total += 1
                key = task.state.value
                progress.by_state[key] = progress.by_state.get(key, 0) + 1
                progress.by_depth[task.depth] = progress.by_depth.get(task.depth, 0) + 1
            return progress

    def get_task_count_by_depth(self, project_id: str, max_depth: int) -> dict[int, int]:
        with self._reading():
            self._project(project_id)
            counts = {depth: 0 for depth in range(max_depth + 1)}
            for task in self._tasks.values():
                if task.project_id == project_id and task.depth <= max_depth:
                    counts[task.depth] += 1
            return counts

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def get_selected_project(self) -> Optional[str]:
        with self._reading():
            return self._selected_project

    def set_selected_project(self, project_id: str) -> None:
        with self.transaction():
            self._project(project_id)
            if self._selected_project != project_id:
                self._selected_project = project_id
                self._dirty = True

    def clear_selected_project(self) -> None:
        with self.transaction():
            if self._selected_project is not None:
                self._selected_project = None
                self._dirty = True
