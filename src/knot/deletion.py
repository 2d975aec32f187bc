"""Two-phase destructive deletion of tasks, subtrees and projects.

The first call on a record *marks* it (state ``pending-deletion``) and only
reports what would be removed.  A second call on the marked record
*confirms* and removes it.  With ``dry_run`` either phase stops before
touching storage and returns the same report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .errors import HasChildrenError
from .hierarchy import HierarchyEngine
from .logging_utils import pretty
from .models import ProjectState, Task, TaskState
from .storage.interfaces import Repository

PHASE_MARK = "mark"
PHASE_CONFIRM = "confirm"


@dataclass
class DeletionReport:
    """Outcome (or preview, for dry runs) of one deletion call."""

    target_type: str  # "task" or "project"
    target_id: str
    title: str
    phase: str
    dry_run: bool = False
    cascade: bool = False
    affected_ids: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    marked: bool = False
    deleted_ids: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return bool(self.deleted_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_type": self.target_type,
            "target_id": self.target_id,
            "title": self.title,
            "phase": self.phase,
            "dry_run": self.dry_run,
            "cascade": self.cascade,
            "affected_ids": list(self.affected_ids),
            "dependencies": list(self.dependencies),
            "dependents": list(self.dependents),
            "marked": self.marked,
            "deleted_ids": list(self.deleted_ids),
            "notes": list(self.notes),
        }


class DeletionOrchestrator:
    def __init__(self, repo: Repository, hierarchy: HierarchyEngine) -> None:
        self.repo = repo
        self.hierarchy = hierarchy

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def delete_task(
        self,
        task_id: str,
        actor: str,
        cascade: bool = False,
        dry_run: bool = False,
    ) -> DeletionReport:
        """Mark or remove *task_id* (and its subtree when *cascade* is set).

        Only the subtree root is ever marked; on confirmation descendants
        are removed deepest first without passing through the state machine.
        """
        with self.repo.transaction():
            task = self.repo.get_task(task_id)
            descendants = self.hierarchy.get_descendants(task_id)
            if descendants and not cascade:
                raise HasChildrenError(
                    f"task {task_id} has {len(descendants)} subtask(s)",
                    "delete the subtasks first, or delete the whole subtree with cascade",
                )

            doomed = sorted(descendants, key=lambda t: t.depth, reverse=True) + [task]
            doomed_ids = {t.id for t in doomed}
            phase = PHASE_CONFIRM if task.state == TaskState.PENDING_DELETION else PHASE_MARK
            report = DeletionReport(
                target_type="task",
                target_id=task.id,
                title=task.title,
                phase=phase,
                dry_run=dry_run,
                cascade=cascade,
                affected_ids=[t.id for t in doomed],
                dependencies=[d for d in task.dependencies if d not in doomed_ids],
                dependents=self._outside_dependents(task.project_id, doomed_ids),
            )
            if report.dependencies or report.dependents:
                report.notes.append("dependency links to the deleted tasks will be removed")

            if dry_run:
                logger.info("Dry run: {} of task {} ({} task(s))", phase, task.id, len(doomed))
                return report

            if phase == PHASE_MARK:
                task.set_state(TaskState.PENDING_DELETION, actor)
                self.repo.update_task(task)
                report.marked = True
                report.notes.append("run the delete again to confirm")
            else:
                for doomed_task in doomed:
                    self.repo.delete_task(doomed_task.id)
                    report.deleted_ids.append(doomed_task.id)

        if report.marked:
            logger.info("Marked task {} for deletion by {}", task_id, actor)
        else:
            logger.info("Deleted task {} and {} descendant(s) by {}", task_id, len(descendants), actor)
        logger.debug("Deletion report:\n{}", pretty(report))
        return report

    def _outside_dependents(self, project_id: str, doomed_ids: set[str]) -> list[str]:
        return [
            t.id
            for t in self.repo.list_tasks_by_project(project_id)
            if t.id not in doomed_ids and any(d in doomed_ids for d in t.dependencies)
        ]

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def delete_project(self, project_id: str, actor: str, dry_run: bool = False) -> DeletionReport:
        """Mark or remove *project_id* together with all of its tasks."""
        with self.repo.transaction():
            project = self.repo.get_project(project_id)
            tasks: list[Task] = self.repo.list_tasks_by_project(project_id)
            phase = PHASE_CONFIRM if project.state == ProjectState.PENDING_DELETION else PHASE_MARK
            report = DeletionReport(
                target_type="project",
                target_id=project.id,
                title=project.title,
                phase=phase,
                dry_run=dry_run,
                cascade=True,
                affected_ids=[t.id for t in tasks],
            )
            if tasks:
                report.notes.append(f"{len(tasks)} task(s) will be deleted with the project")

            if dry_run:
                logger.info("Dry run: {} of project {} ({} task(s))", phase, project.id, len(tasks))
                return report

            if phase == PHASE_MARK:
                project.state = ProjectState.PENDING_DELETION
                project.touch(actor)
                self.repo.update_project(project)
                report.marked = True
                report.notes.append("run the delete again to confirm")
            else:
                self.repo.delete_project(project_id)
                report.deleted_ids = [t.id for t in tasks] + [project.id]

        if report.marked:
            logger.info("Marked project {} for deletion by {}", project_id, actor)
        else:
            logger.info("Deleted project {} with {} task(s) by {}", project_id, len(tasks), actor)
        return report
