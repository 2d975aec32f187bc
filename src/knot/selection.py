"""The single "currently selected project" pointer.

The pointer lives in repository state rather than in this object, so a
file-backed repository keeps it across restarts and every repository
instance has its own.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .errors import NoSelectionError
from .storage.interfaces import Repository


class SelectionContext:
    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def select(self, project_id: str, actor: str) -> str:
        """Point the selection at *project_id*; raises NotFoundError if absent."""
        with self.repo.transaction():
            self.repo.get_project(project_id)
            self.repo.set_selected_project(project_id)
        logger.info("Selected project {} by {}", project_id, actor)
        return project_id

    def clear(self) -> None:
        self.repo.clear_selected_project()
        logger.debug("Cleared project selection")

    def current(self) -> Optional[str]:
        return self.repo.get_selected_project()

    def resolve(self) -> str:
        """Return the selected project id or raise :class:`NoSelectionError`."""
        project_id = self.repo.get_selected_project()
        if project_id is None:
            raise NoSelectionError()
        return project_id
