"""File-backed repository.

Keeps the whole state (projects, tasks, selected project) in one YAML
document inside the ``.knot/`` directory.  Every outermost transaction
holds an exclusive file lock, reloads the document, and rewrites it
atomically before releasing the lock, so several repositories (or
processes) on the same directory never overwrite each other's commits.
Reads reload the document under the same lock.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Iterator

from filelock import FileLock
from loguru import logger

from ..constants import LOCK_FILE, LOCK_TIMEOUT, STATE_FILE, STATE_VERSION
from ..io_utils import _atomic_write_yaml, _load_yaml_with_error
from ..models import Project, Task
from .memory import InMemoryRepository


class FileRepository(InMemoryRepository):
    """Durable repository.

    Parameters
    ----------
    state_dir:
        Path to the ``.knot/`` directory holding ``state.yaml``.
    """

    def __init__(self, state_dir: Path) -> None:
        super().__init__()
        self._state_dir = state_dir
        self._store_path = state_dir / STATE_FILE
        self._file_lock = FileLock(str(state_dir / LOCK_FILE), timeout=LOCK_TIMEOUT)
        state_dir.mkdir(parents=True, exist_ok=True)
        with self._file_lock:
            self._load()

    @property
    def path(self) -> Path:
        return self._store_path

    # ------------------------------------------------------------------
    # Storage hooks
    # ------------------------------------------------------------------

    def _exclusive(self) -> ContextManager[Any]:
        return self._file_lock

    def _refresh(self) -> None:
        self._load()

    @contextmanager
    def _reading(self) -> Iterator[None]:
        # Reloading replaces the in-memory maps, so it needs the write side.
        with self._lock.write():
            if self._lock.write_depth == 1:
                with self._file_lock:
                    self._load()
            yield

    def _commit(self) -> None:
        _atomic_write_yaml(self._store_path, self._payload())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Replace in-memory state with the document on disk.

        Callers hold the file lock.
        """
        data, err = _load_yaml_with_error(self._store_path, {})
        if err:
            raise RuntimeError(f"Cannot load task state: {err}")
        projects = data.get("projects") or []
        tasks = data.get("tasks") or []
        self._projects = {}
        self._tasks = {}
        for raw in projects:
            if isinstance(raw, dict):
                project = Project.from_dict(raw)
                self._projects[project.id] = project
        for raw in tasks:
            if isinstance(raw, dict):
                task = Task.from_dict(raw)
                self._tasks[task.id] = task
        selected = data.get("selected_project")
        self._selected_project = selected if selected in self._projects else None
        logger.debug(
            "Loaded state from {}: projects={} tasks={}",
            self._store_path,
            len(self._projects),
            len(self._tasks),
        )

    def _payload(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "selected_project": self._selected_project,
            "projects": [p.to_dict() for p in self._projects.values()],
            "tasks": [t.to_dict() for t in self._tasks.values()],
        }
