"""Project manager: the single entry point used by the presentation layer.

It validates input, wires the hierarchy engine, dependency graph, state
validator, deletion orchestrator and selection context together, and runs
every mutation inside a repository transaction so a rejected operation
leaves storage untouched.

Project-wide task operations (creating tasks, listings, progress, ready or
blocked queries) work on the selected project and raise
:class:`~knot.errors.NoSelectionError` when none is selected.  Operations
addressed by task id look the task up directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import EngineConfig, load_engine_config, save_engine_config, validate_engine_config
from .constants import DEFAULT_COMPLEXITY, STATE_DIR_NAME
from .deletion import DeletionOrchestrator, DeletionReport
from .errors import ValidationError
from .graph import DependencyGraph
from .hierarchy import HierarchyEngine
from .models import (
    Project,
    ProjectProgress,
    Task,
    TaskFilter,
    TaskPriority,
    TaskState,
    TaskUpdates,
)
from .selection import SelectionContext
from .storage.file_repo import FileRepository
from .storage.interfaces import Repository
from .transitions import StateValidator
from .validation import (
    validate_actor,
    validate_agent,
    validate_complexity,
    validate_description,
    validate_estimate,
    validate_identifier,
    validate_priority,
    validate_state,
    validate_title,
)


@dataclass
class StateChange:
    """Result of a state update: the stored task plus advisory warnings."""

    task: Task
    previous_state: TaskState
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.previous_state != self.task.state


class ProjectManager:
    """Compose the engine components over one repository.

    Parameters
    ----------
    repo:
        Storage backend.
    config:
        Engine limits; defaults to :class:`EngineConfig()`.
    project_dir:
        Directory whose ``.knot/config.yaml`` backs
        :meth:`load_config_from_file` and :meth:`save_config_to_file`.
    """

    def __init__(
        self,
        repo: Repository,
        config: Optional[EngineConfig] = None,
        project_dir: Optional[Path] = None,
    ) -> None:
        self.repo = repo
        self.project_dir = project_dir
        self.selection = SelectionContext(repo)
        self.graph = DependencyGraph(repo)
        self._apply_config(config or EngineConfig())

    def _apply_config(self, config: EngineConfig) -> None:
        validate_engine_config(config)
        self.config = config
        self.hierarchy = HierarchyEngine(self.repo, config)
        self.validator = StateValidator(
            strict=config.strict_transitions,
            complexity_threshold=config.complexity_threshold,
        )
        self.deletion = DeletionOrchestrator(self.repo, self.hierarchy)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> EngineConfig:
        return replace(self.config)

    def update_config(self, config: EngineConfig) -> EngineConfig:
        """Validate and apply *config* to every component."""
        self._apply_config(replace(config))
        logger.info("Engine config updated: {}", self.config.to_dict())
        return self.get_config()

    def _config_dir(self, project_dir: Optional[Path]) -> Path:
        target = project_dir or self.project_dir
        if target is None:
            raise ValidationError("project_dir", "no project directory configured")
        return target

    def load_config_from_file(self, project_dir: Optional[Path] = None) -> Optional[str]:
        """Load ``.knot/config.yaml``; returns an error message or ``None``.

        On error the current configuration is kept.
        """
        config, err = load_engine_config(self._config_dir(project_dir))
        if err:
            logger.warning("Ignoring engine config: {}", err)
            return err
        self._apply_config(config)
        return None

    def save_config_to_file(self, project_dir: Optional[Path] = None) -> Path:
        path = save_engine_config(self._config_dir(project_dir), self.config)
        logger.debug("Saved engine config to {}", path)
        return path

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, title: str, description: str, actor: str) -> Project:
        actor = validate_actor(actor)
        project = Project(
            title=validate_title(title, self.config.max_title_length),
            description=validate_description(description, self.config.max_description_length),
            created_by=actor,
            updated_by=actor,
        )
        created = self.repo.create_project(project)
        logger.info("Created project {}: {}", created.id, created.title)
        return created

    def get_project(self, project_id: str) -> Project:
        return self.repo.get_project(project_id)

    def list_projects(self) -> list[Project]:
        return self.repo.list_projects()

    def update_project(
        self,
        project_id: str,
        actor: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Project:
        actor = validate_actor(actor)
        if title is not None:
            title = validate_title(title, self.config.max_title_length)
        if description is not None:
            description = validate_description(description, self.config.max_description_length)
        with self.repo.transaction():
            project = self.repo.get_project(project_id)
            if title is not None:
                project.title = title
            if description is not None:
                project.description = description
            project.touch(actor)
            return self.repo.update_project(project)

    def update_project_description(self, project_id: str, description: str, actor: str) -> Project:
        return self.update_project(project_id, actor, description=description)

    def delete_project(self, project_id: str, actor: str, dry_run: bool = False) -> DeletionReport:
        return self.deletion.delete_project(project_id, validate_actor(actor), dry_run=dry_run)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_project(self, project_id: str, actor: str) -> str:
        return self.selection.select(project_id, validate_actor(actor))

    def clear_selection(self) -> None:
        self.selection.clear()

    def selected_project(self) -> Optional[str]:
        return self.selection.current()

    # ------------------------------------------------------------------
    # Task creation and updates
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        actor: str,
        description: str = "",
        complexity: int = DEFAULT_COMPLEXITY,
        priority: str | TaskPriority = TaskPriority.MEDIUM,
        parent_id: Optional[str] = None,
    ) -> Task:
        """Create a task in the selected project, optionally under *parent_id*."""
        project_id = self.selection.resolve()
        return self.hierarchy.create_task(
            project_id=project_id,
            parent_id=parent_id,
            title=validate_title(title, self.config.max_title_length),
            description=validate_description(description, self.config.max_description_length),
            complexity=validate_complexity(complexity),
            priority=validate_priority(priority),
            actor=validate_actor(actor),
        )

    def get_task(self, task_id: str) -> Task:
        return self.repo.get_task(validate_identifier("task_id", task_id))

    def update_task(
        self,
        task_id: str,
        actor: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        complexity: Optional[int] = None,
        priority: Optional[str | TaskPriority] = None,
    ) -> Task:
        """Change the descriptive fields of a task; ``None`` leaves a field as is."""
        actor = validate_actor(actor)
        if title is not None:
            title = validate_title(title, self.config.max_title_length)
        if description is not None:
            description = validate_description(description, self.config.max_description_length)
        if complexity is not None:
            complexity = validate_complexity(complexity)
        new_priority = validate_priority(priority) if priority is not None else None

        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            if title is not None:
                task.title = title
            if description is not None:
                task.description = description
            if complexity is not None:
                task.complexity = complexity
            if new_priority is not None:
                task.priority = new_priority
            task.touch(actor)
            updated = self.repo.update_task(task)
        logger.debug("Updated task {} by {}", task_id, actor)
        return updated

    def update_task_title(self, task_id: str, title: str, actor: str) -> Task:
        return self.update_task(task_id, actor, title=title)

    def update_task_description(self, task_id: str, description: str, actor: str) -> Task:
        return self.update_task(task_id, actor, description=description)

    def update_task_priority(self, task_id: str, priority: str | TaskPriority, actor: str) -> Task:
        return self.update_task(task_id, actor, priority=priority)

    def update_task_complexity(self, task_id: str, complexity: int, actor: str) -> Task:
        return self.update_task(task_id, actor, complexity=complexity)

    def update_task_state(self, task_id: str, state: str | TaskState, actor: str) -> StateChange:
        """Move a task to *state* through the state validator.

        Raises :class:`~knot.errors.InvalidTransitionError` when the move is
        rejected; advisory findings come back in ``StateChange.warnings``.
        """
        actor = validate_actor(actor)
        target = validate_state(state)
        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            previous = task.state
            warnings = self.validator.validate(
                task, target, has_children=self.hierarchy.has_children(task.id)
            )
            if previous != target:
                task.set_state(target, actor)
                task = self.repo.update_task(task)

        for warning in warnings:
            logger.warning("Task {}: {}", task_id, warning)
        if previous != target:
            logger.info("Task {} {} -> {} by {}", task_id, previous.value, target.value, actor)
        return StateChange(task=task, previous_state=previous, warnings=warnings)

    def bulk_update_tasks(
        self,
        task_ids: list[str],
        updates: TaskUpdates,
        actor: str,
    ) -> list[StateChange]:
        """Apply *updates* to every task in *task_ids*, all or nothing.

        Every task is validated before any is written.
        """
        actor = validate_actor(actor)
        if updates.is_empty:
            raise ValidationError("updates", "no fields to update")
        if not task_ids:
            raise ValidationError("task_ids", "at least one task id is required")
        priority = validate_priority(updates.priority) if updates.priority is not None else None
        complexity = validate_complexity(updates.complexity) if updates.complexity is not None else None
        target = validate_state(updates.state) if updates.state is not None else None

        results: list[StateChange] = []
        with self.repo.transaction():
            tasks = [self.repo.get_task(tid) for tid in dict.fromkeys(task_ids)]
            planned: list[tuple[Task, list[str]]] = []
            for task in tasks:
                # Rules see the task as it will be stored.
                if priority is not None:
                    task.priority = priority
                if complexity is not None:
                    task.complexity = complexity
                warnings: list[str] = []
                if target is not None:
                    warnings = self.validator.validate(
                        task, target, has_children=self.hierarchy.has_children(task.id)
                    )
                planned.append((task, warnings))

            for task, warnings in planned:
                previous = task.state
                if target is not None and target != previous:
                    task.set_state(target, actor)
                else:
                    task.touch(actor)
                results.append(StateChange(self.repo.update_task(task), previous, warnings))

        logger.info("Bulk updated {} task(s) by {}", len(results), actor)
        return results

    def set_task_estimate(self, task_id: str, estimate: Optional[int], actor: str) -> Task:
        """Record a time estimate in minutes; ``None`` clears it."""
        value = validate_estimate(estimate) if estimate is not None else None
        return self._set_planning_field(task_id, actor, "estimate", value)

    def assign_task(self, task_id: str, agent: str, actor: str) -> Task:
        return self._set_planning_field(task_id, actor, "assigned_agent", validate_agent(agent))

    def unassign_task(self, task_id: str, actor: str) -> Task:
        return self._set_planning_field(task_id, actor, "assigned_agent", None)

    def _set_planning_field(self, task_id: str, actor: str, name: str, value: Optional[object]) -> Task:
        actor = validate_actor(actor)
        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            setattr(task, name, value)
            task.touch(actor)
            updated = self.repo.update_task(task)
        logger.debug("Set {} of task {} to {!r} by {}", name, task_id, value, actor)
        return updated

    def duplicate_task(self, task_id: str, actor: str, project_id: Optional[str] = None) -> Task:
        """Copy a task as a pending root task of *project_id*.

        Defaults to the selected project.
        """
        if project_id is not None:
            target = validate_identifier("project_id", project_id)
        else:
            target = self.selection.resolve()
        return self.hierarchy.duplicate_task(task_id, target, validate_actor(actor))

    def delete_task(
        self,
        task_id: str,
        actor: str,
        cascade: bool = False,
        dry_run: bool = False,
    ) -> DeletionReport:
        return self.deletion.delete_task(task_id, validate_actor(actor), cascade=cascade, dry_run=dry_run)

    def delete_task_subtree(self, task_id: str, actor: str, dry_run: bool = False) -> DeletionReport:
        return self.delete_task(task_id, actor, cascade=True, dry_run=dry_run)

    # ------------------------------------------------------------------
    # Hierarchy queries
    # ------------------------------------------------------------------

    def get_root_tasks(self) -> list[Task]:
        return self.hierarchy.get_root_tasks(self.selection.resolve())

    def get_child_tasks(self, task_id: str) -> list[Task]:
        return self.hierarchy.get_child_tasks(task_id)

    def get_parent_task(self, task_id: str) -> Optional[Task]:
        return self.hierarchy.get_parent_task(task_id)

    def get_descendants(self, task_id: str) -> list[Task]:
        return self.hierarchy.get_descendants(task_id)

    def get_ancestors(self, task_id: str) -> list[Task]:
        return self.hierarchy.get_ancestors(task_id)

    # ------------------------------------------------------------------
    # Project-wide queries
    # ------------------------------------------------------------------

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> list[Task]:
        """Tasks of the selected project matching *task_filter*."""
        project_id = self.selection.resolve()
        scoped = replace(task_filter, project_id=project_id) if task_filter else TaskFilter(project_id=project_id)
        return self.repo.list_tasks(scoped)

    def list_tasks_by_state(self, state: str | TaskState) -> list[Task]:
        return self.list_tasks(TaskFilter(state=validate_state(state)))

    def list_tasks_by_agent(self, agent: str) -> list[Task]:
        return self.list_tasks(TaskFilter(assigned_agent=validate_agent(agent)))

    def list_unassigned_tasks(self) -> list[Task]:
        return self.list_tasks(TaskFilter(predicate=lambda t: t.assigned_agent is None))

    def get_project_progress(self) -> ProjectProgress:
        return self.repo.get_project_progress(self.selection.resolve())

    def get_task_count_by_depth(self) -> dict[int, int]:
        return self.repo.get_task_count_by_depth(self.selection.resolve(), self.config.max_depth)

    def find_tasks_needing_breakdown(self) -> list[Task]:
        """Tasks at or above the complexity threshold that have no subtasks."""
        tasks = self.list_tasks()
        parents = {t.parent_id for t in tasks if t.parent_id is not None}
        return [
            t for t in tasks
            if t.complexity >= self.config.complexity_threshold and t.id not in parents
        ]

    def get_blocked_tasks(self) -> list[Task]:
        return self.graph.blocked_tasks(self.selection.resolve())

    def get_ready_tasks(self) -> list[Task]:
        return self.graph.ready_tasks(self.selection.resolve())

    def find_next_actionable_task(self) -> Optional[Task]:
        return self.graph.next_actionable(self.selection.resolve())

    def get_transition_matrix(self) -> dict[str, list[str]]:
        return self.validator.transition_matrix()

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_task_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        return self.graph.add_dependency(task_id, depends_on_id, validate_actor(actor))

    def remove_task_dependency(self, task_id: str, depends_on_id: str, actor: str) -> Task:
        return self.graph.remove_dependency(task_id, depends_on_id, validate_actor(actor))

    def get_task_dependencies(self, task_id: str) -> list[Task]:
        return self.repo.get_dependencies(task_id)

    def get_dependent_tasks(self, task_id: str) -> list[Task]:
        return self.repo.get_dependents(task_id)

    def is_task_ready(self, task_id: str) -> bool:
        return self.graph.is_task_ready(task_id)


def open_manager(project_dir: Path) -> ProjectManager:
    """Build a manager over the file-backed store in ``<project_dir>/.knot/``.

    Configuration is read from ``.knot/config.yaml`` when present; an
    unreadable file is logged and the defaults are used.
    """
    project_dir = project_dir.resolve()
    repo = FileRepository(project_dir / STATE_DIR_NAME)
    manager = ProjectManager(repo, project_dir=project_dir)
    manager.load_config_from_file()
    return manager
