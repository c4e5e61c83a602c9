"""Repository protocol for rank storage backends."""

from collections.abc import Callable, Iterable
from typing import Protocol, TypeVar

from ..models import Task

T = TypeVar("T")


class RankStoreProtocol(Protocol):
    """Interface for task storage backends.

    Every backend keeps tasks keyed by ID and exposes the primitives the rank
    service needs to keep each group's active ranks dense. Implementations:
    - Memory (embedded, process-local)
    - Filesystem (markdown files with YAML front matter)

    A group is identified by ``parent_id``; ``None`` is the top level.
    """

    def within(self, group_key: str | None) -> list[Task]:
        """Active tasks in a group.

        Returns:
            Non-completed tasks with ``parent_id == group_key``, sorted by
            rank ascending (creation time breaks ties).
        """
        ...

    def run_atomic(self, work: Callable[[], T]) -> T:
        """Run ``work`` as one all-or-nothing unit.

        Writes made inside ``work`` are visible to reads inside it and are
        committed only if it returns. If it raises, stored state is restored
        to what it was before the unit began. Domain errors are re-raised as
        is; any other failure is raised as ``StorageTransactionError``.
        Nested calls join the enclosing unit.

        Returns:
            Whatever ``work`` returns.
        """
        ...

    def bulk_reassign_ranks(self, updates: Iterable[tuple[str, int]]) -> None:
        """Set new ranks on many tasks as one step.

        Args:
            updates: ``(task_id, new_rank)`` pairs.

        Raises:
            NotFoundError: If any ID is unknown (nothing is applied).
        """
        ...

    def insert_item(self, task: Task) -> Task:
        """Store a new task.

        Returns:
            The stored task.
        """
        ...

    def update_item(self, task: Task) -> Task:
        """Replace a stored task.

        Raises:
            NotFoundError: If the task is not stored.
        """
        ...

    def delete_item(self, task_id: str) -> list[str]:
        """Delete a task and all of its descendants.

        Returns:
            IDs removed, the requested task first. Empty if it didn't exist.
        """
        ...

    def get_item(self, task_id: str) -> Task | None:
        """Get a single task by ID, or None."""
        ...

    def all_items(self) -> list[Task]:
        """All stored tasks, active and completed."""
        ...

    def completed_items(self) -> list[Task]:
        """Completed tasks, most recently completed first."""
        ...

    def get_meta(self, key: str) -> str | None:
        """Read a backend metadata value (e.g. last cleanup time)."""
        ...

    def set_meta(self, key: str, value: str) -> None:
        """Write a backend metadata value."""
        ...

    def reload(self) -> None:
        """Clear caches and reload from source."""
        ...
