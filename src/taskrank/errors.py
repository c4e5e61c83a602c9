"""Exceptions raised by the ranking engine and its collaborators."""

from __future__ import annotations


class TaskRankError(Exception):
    """Base exception for taskrank errors."""

    pass


class InvalidRankError(TaskRankError):
    """A target rank is not valid for the task or its group."""

    def __init__(self, message: str, rank: int | None = None) -> None:
        self.rank = rank
        super().__init__(message)

    @classmethod
    def out_of_range(
        cls, rank: int, low: int, high: int, group_key: str | None = None
    ) -> InvalidRankError:
        """Rank lies outside ``[low, high]`` for a group."""
        scope = "top level" if group_key is None else f"group {group_key}"
        return cls(f"Rank {rank} is outside [{low}, {high}] for {scope}", rank=rank)


class NotFoundError(TaskRankError):
    """A task ID does not resolve to a stored task."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class StorageTransactionError(TaskRankError):
    """An atomic unit aborted; stored ranks were rolled back."""

    pass


class DuplicateInsertionError(TaskRankError):
    """A completed comparison workflow tried to insert a second time."""

    pass


class TaskValidationError(TaskRankError):
    """A task field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)
