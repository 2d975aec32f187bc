from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional

from ..models import Project, ProjectProgress, Task, TaskFilter


class Repository(ABC):
    """Storage contract for projects, tasks, dependency edges and selection.

    Implementations own no business rules.  Every lookup of a missing
    record raises :class:`~knot.errors.NotFoundError`; records handed out
    are copies, so changes only take effect through ``update_*``.
    """

    # -- units of work ------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Hold exclusive access for a check-and-act sequence.

        Re-entrant.  If the outermost block raises, every change made inside
        it is rolled back.
        """
        raise NotImplementedError

    # -- projects -----------------------------------------------------------

    @abstractmethod
    def create_project(self, project: Project) -> Project:
        raise NotImplementedError

    @abstractmethod
    def get_project(self, project_id: str) -> Project:
        raise NotImplementedError

    @abstractmethod
    def update_project(self, project: Project) -> Project:
        raise NotImplementedError

    @abstractmethod
    def delete_project(self, project_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_projects(self) -> list[Project]:
        raise NotImplementedError

    # -- tasks --------------------------------------------------------------

    @abstractmethod
    def create_task(self, task: Task) -> Task:
        raise NotImplementedError

    @abstractmethod
    def get_task(self, task_id: str) -> Task:
        raise NotImplementedError

    @abstractmethod
    def update_task(self, task: Task) -> Task:
        raise NotImplementedError

    @abstractmethod
    def delete_task(self, task_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def list_tasks_by_project(self, project_id: str) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def list_tasks_by_parent(self, parent_id: str) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def list_root_tasks(self, project_id: str) -> list[Task]:
        raise NotImplementedError

    # -- dependency edges ---------------------------------------------------

    @abstractmethod
    def add_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        raise NotImplementedError

    @abstractmethod
    def remove_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        raise NotImplementedError

    @abstractmethod
    def get_dependencies(self, task_id: str) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def get_dependents(self, task_id: str) -> list[Task]:
        raise NotImplementedError

    # -- aggregates ---------------------------------------------------------

    @abstractmethod
    def get_project_progress(self, project_id: str) -> ProjectProgress:
        raise NotImplementedError

    @abstractmethod
    def get_task_count_by_depth(self, project_id: str, max_depth: int) -> dict[int, int]:
        raise NotImplementedError

    # -- selection ----------------------------------------------------------

    @abstractmethod
    def get_selected_project(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set_selected_project(self, project_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear_selected_project(self) -> None:
        raise NotImplementedError

    def has_selected_project(self) -> bool:
        return self.get_selected_project() is not None
