"""Tests for the repository implementations (knot/storage/)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import yaml

from knot.errors import NotFoundError
from knot.models import Project, Task, TaskFilter, TaskState
from knot.storage.file_repo import FileRepository
from knot.storage.memory import InMemoryRepository
from knot.storage.rwlock import ReadWriteLock

ACTOR = "tester"


def _add_task(repo: InMemoryRepository, project: Project, task_id: str, **kwargs: object) -> Task:
    return repo.create_task(Task(id=task_id, project_id=project.id, title=task_id, **kwargs))


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

class TestInMemoryRepository:
    def test_project_crud(self, repo: InMemoryRepository, project: Project) -> None:
        assert repo.get_project(project.id).title == "Demo"
        project.title = "Renamed"
        repo.update_project(project)
        assert repo.get_project(project.id).title == "Renamed"
        assert [p.id for p in repo.list_projects()] == [project.id]
        repo.delete_project(project.id)
        with pytest.raises(NotFoundError, match="project not found"):
            repo.get_project(project.id)

    def test_not_found_errors(self, repo: InMemoryRepository) -> None:
        with pytest.raises(NotFoundError):
            repo.get_task("task-missing")
        with pytest.raises(NotFoundError):
            repo.update_task(Task(id="task-missing"))
        with pytest.raises(NotFoundError):
            repo.delete_task("task-missing")
        with pytest.raises(NotFoundError):
            repo.list_tasks_by_project("proj-missing")
        with pytest.raises(NotFoundError):
            repo.create_task(Task(project_id="proj-missing", title="x"))

    def test_returns_copies(self, repo: InMemoryRepository, project: Project) -> None:
        task = _add_task(repo, project, "t1")
        task.title = "mutated"
        task.dependencies.append("t9")
        stored = repo.get_task("t1")
        assert stored.title == "t1"
        assert stored.dependencies == []

    def test_duplicate_task(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "t1")
        with pytest.raises(ValueError, match="already exists"):
            _add_task(repo, project, "t1")

    def test_listing(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "root")
        _add_task(repo, project, "child", parent_id="root", depth=1, complexity=9)
        _add_task(repo, project, "other")
        assert [t.id for t in repo.list_root_tasks(project.id)] == ["root", "other"]
        assert [t.id for t in repo.list_tasks_by_parent("root")] == ["child"]
        assert [t.id for t in repo.list_tasks(TaskFilter(min_complexity=9))] == ["child"]
        assert len(repo.list_tasks()) == 3

    def test_dependency_edges(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "a")
        _add_task(repo, project, "b")
        repo.add_dependency("b", "a", ACTOR)
        repo.add_dependency("b", "a", ACTOR)
        assert repo.get_task("b").dependencies == ["a"]
        assert [t.id for t in repo.get_dependencies("b")] == ["a"]
        assert [t.id for t in repo.get_dependents("a")] == ["b"]
        repo.remove_dependency("b", "a", ACTOR)
        repo.remove_dependency("b", "a", ACTOR)
        assert repo.get_task("b").dependencies == []

    def test_delete_task_removes_edges(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "a")
        _add_task(repo, project, "b", dependencies=["a"])
        repo.delete_task("a")
        assert repo.get_task("b").dependencies == []

    def test_delete_project_cascades_and_clears_selection(
        self, repo: InMemoryRepository, project: Project
    ) -> None:
        _add_task(repo, project, "a")
        repo.set_selected_project(project.id)
        repo.delete_project(project.id)
        assert repo.list_tasks() == []
        assert repo.get_selected_project() is None
        assert not repo.has_selected_project()

    def test_progress_and_depth_counts(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "a", state=TaskState.COMPLETED)
        _add_task(repo, project, "b", parent_id="a", depth=1)
        _add_task(repo, project, "c", parent_id="a", depth=1, state=TaskState.BLOCKED)
        progress = repo.get_project_progress(project.id)
        assert progress.total == 3
        assert progress.by_state == {"completed": 1, "pending": 1, "blocked": 1}
        assert progress.by_depth == {0: 1, 1: 2}
        assert repo.get_task_count_by_depth(project.id, 2) == {0: 1, 1: 2, 2: 0}

    def test_selection(self, repo: InMemoryRepository, project: Project) -> None:
        assert repo.get_selected_project() is None
        with pytest.raises(NotFoundError):
            repo.set_selected_project("proj-missing")
        repo.set_selected_project(project.id)
        assert repo.get_selected_project() == project.id
        repo.clear_selected_project()
        assert repo.get_selected_project() is None

    def test_transaction_rolls_back(self, repo: InMemoryRepository, project: Project) -> None:
        _add_task(repo, project, "a")
        with pytest.raises(RuntimeError):
            with repo.transaction():
                _add_task(repo, project, "b")
                repo.delete_task("a")
                repo.set_selected_project(project.id)
                raise RuntimeError("boom")
        assert [t.id for t in repo.list_tasks()] == ["a"]
        assert repo.get_selected_project() is None

    def test_nested_transaction_rolls_back_to_outermost(
        self, repo: InMemoryRepository, project: Project
    ) -> None:
        with pytest.raises(RuntimeError):
            with repo.transaction():
                _add_task(repo, project, "a")
                with repo.transaction():
                    _add_task(repo, project, "b")
                raise RuntimeError("boom")
        assert repo.list_tasks() == []

    def test_failed_commit_rolls_back(self) -> None:
        class FailingRepository(InMemoryRepository):
            fail = False

            def _commit(self) -> None:
                if self.fail:
                    raise OSError("disk full")

        repo = FailingRepository()
        proj = repo.create_project(Project(title="P"))
        _add_task(repo, proj, "a")
        repo.fail = True
        with pytest.raises(OSError, match="disk full"):
            _add_task(repo, proj, "b")
        assert [t.id for t in repo.list_tasks()] == ["a"]

        repo.fail = False
        repo.set_selected_project(proj.id)
        assert repo.get_selected_project() == proj.id
        assert [t.id for t in repo.list_tasks()] == ["a"]

    def test_concurrent_writers(self, repo: InMemoryRepository, project: Project) -> None:
        errors: list[BaseException] = []

        def worker(n: int) -> None:
            try:
                for i in range(25):
                    _add_task(repo, project, f"t{n}-{i}")
                    repo.list_tasks_by_project(project.id)
            except BaseException as exc:  # pragma: no cover - surfaced by the assert below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(repo.list_tasks()) == 100


# ---------------------------------------------------------------------------
# Reader/writer lock
# ---------------------------------------------------------------------------

class TestReadWriteLock:
    def test_shared_reads(self) -> None:
        lock = ReadWriteLock()
        entered = threading.Barrier(2, timeout=5)
        passed: list[bool] = []

        def reader() -> None:
            with lock.read():
                entered.wait()
                passed.append(True)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert passed == [True, True]

    def test_write_is_reentrant_and_allows_reads(self) -> None:
        lock = ReadWriteLock()
        with lock.write():
            with lock.write():
                assert lock.write_depth == 2
                with lock.read():
                    pass
            assert lock.write_depth == 1
        assert lock.write_depth == 0

    def test_upgrade_rejected(self) -> None:
        lock = ReadWriteLock()
        with lock.read():
            with pytest.raises(RuntimeError, match="upgrade"):
                lock.acquire_write()

    def test_writer_excludes_readers(self) -> None:
        lock = ReadWriteLock()
        seen: list[str] = []
        lock.acquire_write()

        def reader() -> None:
            with lock.read():
                seen.append("read")

        t = threading.Thread(target=reader)
        t.start()
        t.join(timeout=0.2)
        assert seen == []
        seen.append("write-done")
        lock.release_write()
        t.join(timeout=5)
        assert seen == ["write-done", "read"]

    def test_release_without_hold(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()


# ---------------------------------------------------------------------------
# File repository
# ---------------------------------------------------------------------------

class TestFileRepository:
    def test_empty_state(self, file_repo: FileRepository) -> None:
        assert file_repo.list_projects() == []
        assert file_repo.list_tasks() == []
        assert not file_repo.path.exists()

    def test_persists_across_instances(self, state_dir: Path, file_repo: FileRepository) -> None:
        project = file_repo.create_project(Project(title="Durable"))
        file_repo.create_task(Task(id="a", project_id=project.id, title="A"))
        file_repo.create_task(Task(id="b", project_id=project.id, title="B", dependencies=["a"]))
        file_repo.set_selected_project(project.id)

        reopened = FileRepository(state_dir)
        assert reopened.get_project(project.id).title == "Durable"
        assert reopened.get_task("b").dependencies == ["a"]
        assert reopened.get_selected_project() == project.id

    def test_file_layout(self, file_repo: FileRepository) -> None:
        project = file_repo.create_project(Project(title="Layout"))
        data = yaml.safe_load(file_repo.path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["selected_project"] is None
        assert data["projects"][0]["id"] == project.id
        assert data["tasks"] == []

    def test_failed_transaction_not_persisted(self, state_dir: Path, file_repo: FileRepository) -> None:
        project = file_repo.create_project(Project(title="P"))
        with pytest.raises(RuntimeError):
            with file_repo.transaction():
                file_repo.create_task(Task(id="a", project_id=project.id, title="A"))
                raise RuntimeError("boom")
        assert FileRepository(state_dir).list_tasks() == []

    def test_corrupt_file_raises(self, state_dir: Path) -> None:
        (state_dir / "state.yaml").write_text("projects: [unclosed\n", encoding="utf-8")
        with pytest.raises(RuntimeError, match="Cannot load task state"):
            FileRepository(state_dir)

    def test_instances_share_commits(self, state_dir: Path) -> None:
        first = FileRepository(state_dir)
        second = FileRepository(state_dir)
        a = first.create_project(Project(id="proj-a", title="A"))
        b = second.create_project(Project(id="proj-b", title="B"))

        assert {p.id for p in FileRepository(state_dir).list_projects()} == {a.id, b.id}
        assert {p.id for p in first.list_projects()} == {a.id, b.id}
        second.create_task(Task(id="t1", project_id=a.id, title="T1"))
        assert first.get_task("t1").project_id == a.id

    def test_transaction_sees_other_instance(self, state_dir: Path) -> None:
        first = FileRepository(state_dir)
        second = FileRepository(state_dir)
        project = first.create_project(Project(title="P"))
        with second.transaction():
            second.create_task(Task(id="a", project_id=project.id, title="A"))
        assert [t.id for t in first.list_tasks()] == ["a"]

    def test_failed_write_rolls_back(
        self, state_dir: Path, file_repo: FileRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        project = file_repo.create_project(Project(title="Kept"))

        def _fail(path: Path, data: dict) -> None:
            raise OSError("read-only file system")

        monkeypatch.setattr("knot.storage.file_repo._atomic_write_yaml", _fail)
        with pytest.raises(OSError, match="read-only"):
            file_repo.create_project(Project(title="Lost"))
        assert [p.id for p in file_repo.list_projects()] == [project.id]

        monkeypatch.undo()
        assert [p.title for p in FileRepository(state_dir).list_projects()] == ["Kept"]
