"""Results returned by rank-mutating operations."""

from dataclasses import dataclass

from .task import Task


@dataclass(frozen=True)
class ShiftRange:
    """Ranks affected by an insertion shift.

    ``old_start`` is the lowest old rank that moved; ``new_end`` is the
    highest new rank after the shift.
    """

    old_start: int
    new_end: int


@dataclass
class InsertResult:
    """Result of inserting a task at a rank."""

    task: Task
    shifted_count: int = 0
    shift_range: ShiftRange | None = None

    @property
    def shifted(self) -> bool:
        """Whether any existing task changed rank."""
        return self.shifted_count > 0
