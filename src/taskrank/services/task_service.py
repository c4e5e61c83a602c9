"""Service for task CRUD operations."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from ..errors import NotFoundError, TaskValidationError
from ..models import InsertResult, Task, TaskDraft, TaskUpdate
from ..repositories import RankStoreProtocol
from ..utils import from_iso, generate_task_id, now_utc
from .placement_service import PlacementService, PlacementWorkflow
from .rank_service import RankService

logger = logging.getLogger(__name__)


class TaskService:
    """Service for task CRUD operations."""

    def __init__(
        self,
        repository: RankStoreProtocol,
        rank_service: RankService | None = None,
    ) -> None:
        self.repository = repository
        self.rank_service = rank_service or RankService(repository)
        self.placement = PlacementService(self.rank_service, self._build_task)

    # --- Creation ---

    def create_task(
        self,
        title: str,
        description: str | None = None,
        deadline: datetime | None = None,
        parent_id: str | None = None,
        rank: int | None = None,
    ) -> InsertResult:
        """
        Create a task at an explicit rank.

        Without ``rank`` the task goes to the end of its group. Tasks below
        the chosen rank shift down.
        """
        draft = self.make_draft(title, description, deadline, parent_id)
        task = self._build_task(draft)

        def work() -> InsertResult:
            target = rank if rank is not None else len(self.repository.within(parent_id))
            return self.rank_service.insert_at(task, target, parent_id)

        return self.repository.run_atomic(work)

    def begin_placement(
        self,
        title: str,
        description: str | None = None,
        deadline: datetime | None = None,
        parent_id: str | None = None,
    ) -> PlacementWorkflow:
        """Create a task by pairwise comparison against its group."""
        draft = self.make_draft(title, description, deadline, parent_id)
        return self.placement.begin(draft)

    def make_draft(
        self,
        title: str,
        description: str | None = None,
        deadline: datetime | None = None,
        parent_id: str | None = None,
    ) -> TaskDraft:
        """
        Validate new-task fields.

        Raises:
            TaskValidationError: If a field is invalid.
            NotFoundError: If ``parent_id`` doesn't exist.
        """
        try:
            draft = TaskDraft(
                title=title,
                description=description,
                deadline=deadline,
                parent_id=parent_id,
            )
        except ValidationError as e:
            raise _as_task_validation_error(e) from e

        _check_deadline(draft.deadline)
        if parent_id is not None and self.repository.get_item(parent_id) is None:
            raise NotFoundError(parent_id)
        return draft

    def _build_task(self, draft: TaskDraft) -> Task:
        """Turn a validated draft into an unranked task."""
        depth = 0
        if draft.parent_id is not None:
            parent = self.repository.get_item(draft.parent_id)
            if parent is None:
                raise NotFoundError(draft.parent_id)
            depth = parent.depth + 1

        now = now_utc()
        return Task(
            id=generate_task_id(),
            title=draft.title,
            description=draft.description,
            deadline=draft.deadline,
            parent_id=draft.parent_id,
            depth=depth,
            created=now,
            updated=now,
        )

    # --- Updates ---

    def update_task(self, task_id: str, update: TaskUpdate) -> Task:
        """
        Apply the explicitly set fields of ``update``.

        Updates the 'updated' timestamp automatically.
        """
        if "deadline" in update.model_fields_set:
            _check_deadline(update.deadline)

        def work() -> Task:
            task = self.repository.get_item(task_id)
            if task is None:
                raise NotFoundError(task_id)
            changed = update.apply_to(task)
            changed.updated = now_utc()
            return self.repository.update_item(changed)

        task = self.repository.run_atomic(work)
        logger.info("Task updated: %s (%s)", task_id, ", ".join(sorted(update.changes)))
        return task

    def move_task(self, task_id: str, new_rank: int) -> Task:
        """Move a task within its group and return it."""
        self.rank_service.move_to(task_id, new_rank)
        task = self.repository.get_item(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def complete_task(self, task_id: str) -> Task:
        """Mark a task completed."""
        return self.rank_service.complete(task_id)

    def delete_task(self, task_id: str) -> bool:
        """Delete a task by ID."""
        logger.info("Deleting task: %s", task_id)
        return self.rank_service.delete_by_id(task_id)

    # --- Queries ---

    def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        return self.repository.get_item(task_id)

    def get_active_tasks(self, parent_id: str | None = None) -> list[Task]:
        """Active tasks of a group in priority order."""
        return self.repository.within(parent_id)

    def get_subtasks(self, parent_id: str) -> list[Task]:
        """Active subtasks of a task in priority order."""
        if self.repository.get_item(parent_id) is None:
            raise NotFoundError(parent_id)
        return self.repository.within(parent_id)

    def get_top_task(self) -> Task | None:
        """The highest-priority active top-level task."""
        active = self.repository.within(None)
        return active[0] if active else None

    def get_completed_tasks(self) -> list[Task]:
        """Completed tasks, most recently completed first."""
        return self.repository.completed_items()


def _check_deadline(deadline: datetime | None) -> None:
    """Reject deadlines on a date before today (UTC, date only)."""
    if deadline is None:
        return
    deadline_date = from_iso(deadline).astimezone(UTC).date()
    if deadline_date < now_utc().date():
        raise TaskValidationError("deadline", "Deadline cannot be in the past")


def _as_task_validation_error(error: ValidationError) -> TaskValidationError:
    """Convert the first pydantic error into a TaskValidationError."""
    first = error.errors()[0]
    field = str(first["loc"][0]) if first.get("loc") else "task"
    message = first.get("msg", str(error)).removeprefix("Value error, ")
    return TaskValidationError(field, message)
