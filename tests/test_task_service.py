"""Integration tests for TaskService."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from taskrank.errors import InvalidRankError, NotFoundError, TaskValidationError
from taskrank.models import TaskUpdate
from taskrank.repositories import FilesystemRankStore, MemoryRankStore
from taskrank.services import TaskService


@pytest.fixture
def task_dir(tmp_path: Path) -> Path:
    """Create a temporary task directory."""
    task_root = tmp_path / ".taskrank"
    task_root.mkdir()
    return task_root


@pytest.fixture
def repo(task_dir: Path) -> FilesystemRankStore:
    """Create a repository with a temporary directory."""
    return FilesystemRankStore(task_dir)


@pytest.fixture
def task_service(repo: FilesystemRankStore) -> TaskService:
    """Create a TaskService with the repository."""
    return TaskService(repo)


class TestTaskServiceCreate:
    """Tests for task creation."""

    def test_create_task_basic(self, task_service: TaskService, task_dir: Path):
        """create_task appends to the end and writes a file."""
        result = task_service.create_task("My New Task", description="Details")
        task = result.task

        assert task.title == "My New Task"
        assert task.description == "Details"
        assert task.rank == 0
        assert task.completed is False
        assert task.depth == 0
        assert (task_dir / f"{task.id}.md").exists()

    def test_create_defaults_to_end(self, task_service: TaskService):
        """Without a rank, tasks go to the end of the group."""
        first = task_service.create_task("First").task
        second = task_service.create_task("Second").task

        assert (first.rank, second.rank) == (0, 1)

    def test_create_at_rank_shifts(self, task_service: TaskService):
        """An explicit rank shifts later tasks."""
        task_service.create_task("A")
        task_service.create_task("B")
        result = task_service.create_task("Urgent", rank=0)

        assert [t.title for t in task_service.get_active_tasks()] == ["Urgent", "A", "B"]
        assert result.shifted_count == 2

    def test_create_rejects_rank_past_end(self, task_service: TaskService):
        """Ranks beyond n are invalid."""
        with pytest.raises(InvalidRankError):
            task_service.create_task("X", rank=1)

    def test_create_subtask_sets_depth(self, task_service: TaskService):
        """Subtasks get parent depth + 1 and their own sequence."""
        parent = task_service.create_task("Parent").task
        child = task_service.create_task("Child", parent_id=parent.id).task
        grandchild = task_service.create_task("Grandchild", parent_id=child.id).task

        assert child.rank == 0
        assert child.depth == 1
        assert grandchild.depth == 2
        assert [t.title for t in task_service.get_subtasks(parent.id)] == ["Child"]

    def test_create_with_unknown_parent(self, task_service: TaskService):
        """Parents must exist."""
        with pytest.raises(NotFoundError):
            task_service.create_task("Orphan", parent_id="missing")

    @pytest.mark.parametrize("title", ["", "   ", "x" * 201])
    def test_create_rejects_bad_title(self, task_service: TaskService, title: str):
        """Titles must be non-blank and at most 200 characters."""
        with pytest.raises(TaskValidationError) as exc_info:
            task_service.create_task(title)
        assert exc_info.value.field == "title"

    def test_create_accepts_200_char_title(self, task_service: TaskService):
        """200 characters is the limit."""
        assert task_service.create_task("x" * 200).task.title == "x" * 200

    def test_create_rejects_long_description(self, task_service: TaskService):
        """Descriptions are limited to 2000 characters."""
        with pytest.raises(TaskValidationError) as exc_info:
            task_service.create_task("T", description="d" * 2001)
        assert exc_info.value.field == "description"

    def test_create_rejects_past_deadline(self, task_service: TaskService):
        """Deadlines on past dates are rejected."""
        yesterday = datetime.now(UTC) - timedelta(days=2)
        with pytest.raises(TaskValidationError):
            task_service.create_task("T", deadline=yesterday)

    def test_create_accepts_today_deadline(self, task_service: TaskService):
        """Today is not in the past."""
        today = datetime.now(UTC)
        assert task_service.create_task("T", deadline=today).task.deadline is not None


class TestTaskServiceUpdate:
    """Tests for partial updates."""

    def test_update_only_set_fields(self, task_service: TaskService, repo: FilesystemRankStore):
        """Fields not passed are preserved."""
        task = task_service.create_task("Title", description="Keep me").task

        updated = task_service.update_task(task.id, TaskUpdate(title="New Title"))

        assert updated.title == "New Title"
        assert updated.description == "Keep me"
        assert updated.updated >= task.updated
        repo.reload()
        assert repo.get_item(task.id).title == "New Title"

    def test_update_explicit_none_clears(self, task_service: TaskService):
        """An explicit None clears the field."""
        task = task_service.create_task("Title", description="Drop me").task

        updated = task_service.update_task(task.id, TaskUpdate(description=None))

        assert updated.description is None
        assert updated.title == "Title"

    def test_update_does_not_change_rank(self, task_service: TaskService):
        """Rank is not part of an update."""
        task_service.create_task("A")
        task = task_service.create_task("B").task
        updated = task_service.update_task(task.id, TaskUpdate(title="B2"))
        assert updated.rank == 1

    def test_update_missing_task(self, task_service: TaskService):
        """Unknown IDs raise NotFoundError."""
        with pytest.raises(NotFoundError):
            task_service.update_task("missing", TaskUpdate(title="x"))

    def test_update_rejects_blank_title(self):
        """An explicitly blank title is invalid."""
        with pytest.raises(ValidationError):
            TaskUpdate(title=" ")


class TestTaskServiceLifecycle:
    """Tests for move, complete, delete and queries."""

    def test_move_task_returns_moved(self, task_service: TaskService):
        """move_task returns the task at its new rank."""
        ids = [task_service.create_task(t).task.id for t in "ABC"]
        moved = task_service.move_task(ids[2], 0)

        assert moved.rank == 0
        assert [t.title for t in task_service.get_active_tasks()] == ["C", "A", "B"]

    def test_complete_moves_to_history(self, task_service: TaskService):
        """Completed tasks leave the active list and appear in history."""
        a = task_service.create_task("A").task
        task_service.create_task("B")

        task_service.complete_task(a.id)

        assert [t.title for t in task_service.get_active_tasks()] == ["B"]
        assert task_service.get_active_tasks()[0].rank == 0
        assert [t.title for t in task_service.get_completed_tasks()] == ["A"]

    def test_history_newest_first(self, task_service: TaskService):
        """History is ordered by completion time, newest first."""
        a = task_service.create_task("A").task
        b = task_service.create_task("B").task
        task_service.complete_task(a.id)
        task_service.complete_task(b.id)

        assert [t.title for t in task_service.get_completed_tasks()] == ["B", "A"]

    def test_top_task(self, task_service: TaskService):
        """The top task is rank 0 at top level."""
        assert task_service.get_top_task() is None
        task_service.create_task("A")
        task_service.create_task("Top", rank=0)
        assert task_service.get_top_task().title == "Top"

    def test_delete_task(self, task_service: TaskService, task_dir: Path):
        """delete_task removes the file and closes the gap."""
        a = task_service.create_task("A").task
        task_service.create_task("B")

        assert task_service.delete_task(a.id) is True
        assert not (task_dir / f"{a.id}.md").exists()
        assert task_service.get_active_tasks()[0].rank == 0
        assert task_service.delete_task(a.id) is False

    def test_get_subtasks_of_missing_parent(self, task_service: TaskService):
        """Listing subtasks of an unknown task fails."""
        with pytest.raises(NotFoundError):
            task_service.get_subtasks("missing")

    def test_works_with_memory_store(self):
        """The service is backend-agnostic."""
        service = TaskService(MemoryRankStore())
        service.create_task("A")
        service.create_task("B", rank=0)
        assert [t.title for t in service.get_active_tasks()] == ["B", "A"]
