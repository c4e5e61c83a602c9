"""Comparison workflow states, events and context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .task import Task, TaskDraft

# Upper bound on pairwise questions per workflow
MAX_COMPARISONS = 10


class ComparisonState(str, Enum):
    """States of the comparison workflow."""

    IDLE = "idle"
    COMPARING = "comparing"  # Waiting for an answer about the probe task
    PLACING = "placing"  # Waiting for an explicit rank
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible."""
        return self in (ComparisonState.COMPLETE, ComparisonState.CANCELLED)


class Judgment(str, Enum):
    """Answer to "is the candidate more important than the probe task?"."""

    MORE_IMPORTANT = "more_important"
    LESS_IMPORTANT = "less_important"


# --- Events ---


@dataclass(frozen=True)
class Start:
    """Begin comparing ``candidate`` against ``existing`` (sorted by rank)."""

    candidate: TaskDraft
    existing: tuple[Task, ...]


@dataclass(frozen=True)
class Answer:
    """The decision source judged the candidate against the probe task."""

    judgment: Judgment


@dataclass(frozen=True)
class Skip:
    """Stop asking and fall back to manual placement."""


@dataclass(frozen=True)
class Place:
    """Choose the final rank explicitly (only valid while placing)."""

    rank: int


@dataclass(frozen=True)
class Cancel:
    """Abandon the workflow without inserting anything."""


ComparisonEvent = Start | Answer | Skip | Place | Cancel


@dataclass(frozen=True)
class ComparisonContext:
    """Immutable state of one comparison workflow.

    ``low``/``high`` bound the binary-search window over ``existing``;
    ``probe_rank`` is the index currently being asked about.
    """

    state: ComparisonState = ComparisonState.IDLE
    candidate: TaskDraft | None = None
    existing: tuple[Task, ...] = field(default_factory=tuple)
    low: int = 0
    high: int = -1
    probe_rank: int = 0
    step_count: int = 0
    final_rank: int | None = None
    suggested_rank: int | None = None

    @property
    def probe_item(self) -> Task | None:
        """The task the candidate is currently compared against."""
        if self.state != ComparisonState.COMPARING:
            return None
        if 0 <= self.probe_rank < len(self.existing):
            return self.existing[self.probe_rank]
        return None


@dataclass(frozen=True)
class ComparisonSnapshot:
    """Externally visible view of a workflow."""

    state: ComparisonState
    step_count: int
    probe_item: Task | None = None
    final_rank: int | None = None
    suggested_rank: int | None = None
    candidate: TaskDraft | None = None

    @classmethod
    def from_context(cls, context: ComparisonContext) -> ComparisonSnapshot:
        """Build a snapshot from the engine's context."""
        return cls(
            state=context.state,
            step_count=context.step_count,
            probe_item=context.probe_item,
            final_rank=context.final_rank,
            suggested_rank=context.suggested_rank,
            candidate=context.candidate,
        )
