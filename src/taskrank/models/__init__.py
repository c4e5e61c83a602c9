"""Data models."""

from .comparison import (
    MAX_COMPARISONS,
    Answer,
    Cancel,
    ComparisonContext,
    ComparisonEvent,
    ComparisonSnapshot,
    ComparisonState,
    Judgment,
    Place,
    Skip,
    Start,
)
from .results import InsertResult, ShiftRange
from .task import Task, TaskDraft, TaskUpdate

__all__ = [
    "MAX_COMPARISONS",
    "Answer",
    "Cancel",
    "ComparisonContext",
    "ComparisonEvent",
    "ComparisonSnapshot",
    "ComparisonState",
    "InsertResult",
    "Judgment",
    "Place",
    "ShiftRange",
    "Skip",
    "Start",
    "Task",
    "TaskDraft",
    "TaskUpdate",
]
