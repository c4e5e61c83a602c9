"""Service layer for business logic."""

from .cleanup_service import CleanupService
from .comparison_engine import ComparisonEngine, transition
from .placement_service import PlacementService, PlacementWorkflow
from .rank_service import RankService
from .task_service import TaskService

__all__ = [
    "CleanupService",
    "ComparisonEngine",
    "PlacementService",
    "PlacementWorkflow",
    "RankService",
    "TaskService",
    "transition",
]
