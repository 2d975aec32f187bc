from __future__ import annotations

from pathlib import Path

import pytest

from knot.config import EngineConfig
from knot.manager import ProjectManager
from knot.models import Project
from knot.storage.file_repo import FileRepository
from knot.storage.memory import InMemoryRepository

ACTOR = "tester"


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def project(repo: InMemoryRepository) -> Project:
    return repo.create_project(Project(title="Demo", created_by=ACTOR, updated_by=ACTOR))


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def manager(repo: InMemoryRepository, config: EngineConfig) -> ProjectManager:
    return ProjectManager(repo, config)


@pytest.fixture
def selected(manager: ProjectManager) -> Project:
    """A project created through the manager and selected."""
    proj = manager.create_project("Selected", "work in progress", ACTOR)
    manager.select_project(proj.id, ACTOR)
    return proj


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".knot"
    d.mkdir()
    return d


@pytest.fixture
def file_repo(state_dir: Path) -> FileRepository:
    return FileRepository(state_dir)
