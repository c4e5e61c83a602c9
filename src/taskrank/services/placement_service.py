"""Service that turns a finished comparison workflow into an insertion."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..errors import DuplicateInsertionError, TaskRankError
from ..models import (
    ComparisonSnapshot,
    ComparisonState,
    InsertResult,
    Judgment,
    Task,
    TaskDraft,
)
from .comparison_engine import ComparisonEngine
from .rank_service import RankService

logger = logging.getLogger(__name__)

TaskFactory = Callable[[TaskDraft], Task]


class PlacementWorkflow:
    """
    One comparison workflow bound to the rank service.

    Listens to its engine and inserts the candidate exactly once when the
    engine reaches ``COMPLETE``. Later notifications of the same terminal
    state are suppressed without touching storage. An insertion failure is
    kept in ``error`` rather than raised through the notification path.
    """

    def __init__(
        self,
        rank_service: RankService,
        candidate: TaskDraft,
        task_factory: TaskFactory,
    ) -> None:
        self.candidate = candidate
        self.engine = ComparisonEngine()
        self.result: InsertResult | None = None
        self.error: TaskRankError | None = None
        self._rank_service = rank_service
        self._task_factory = task_factory
        self._insert_attempted = False
        self.engine.subscribe(self.on_state)

    # --- Engine notifications ---

    def on_state(self, snapshot: ComparisonSnapshot) -> None:
        """Handle a state change from the engine."""
        if snapshot.state != ComparisonState.COMPLETE:
            return
        try:
            self._insert_once(snapshot)
        except DuplicateInsertionError as e:
            logger.warning("Suppressed duplicate insertion: %s", e)

    def _insert_once(self, snapshot: ComparisonSnapshot) -> None:
        """Insert the candidate at the final rank, refusing a second attempt."""
        if self._insert_attempted:
            raise DuplicateInsertionError(
                f"Workflow for {self.candidate.title!r} already inserted"
            )
        self._insert_attempted = True

        if snapshot.final_rank is None:
            self.error = TaskRankError("Workflow completed without a final rank")
            return

        try:
            task = self._task_factory(self.candidate)
            self.result = self._rank_service.insert_at(
                task, snapshot.final_rank, self.candidate.parent_id
            )
        except TaskRankError as e:
            logger.error(
                "Failed to insert %r at rank %d: %s", self.candidate.title, snapshot.final_rank, e
            )
            self.error = e

    # --- Decision source ---

    def answer(self, judgment: Judgment | str) -> ComparisonSnapshot:
        """Answer the current comparison question."""
        return self.engine.answer(judgment)

    def skip(self) -> ComparisonSnapshot:
        """Skip to manual placement."""
        return self.engine.skip()

    def place(self, rank: int) -> ComparisonSnapshot:
        """Place at an explicit rank."""
        return self.engine.place(rank)

    def cancel(self) -> ComparisonSnapshot:
        """Cancel; nothing is inserted."""
        return self.engine.cancel()

    def current_state(self) -> ComparisonSnapshot:
        """Snapshot of the engine state."""
        return self.engine.current_state()

    @property
    def is_finished(self) -> bool:
        """Whether the workflow reached a terminal state."""
        return self.engine.context.state.is_terminal

    def finalize(self) -> InsertResult:
        """
        Return the insertion result.

        Raises:
            TaskRankError: The stored insertion error, or if the workflow has
                not completed.
        """
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise TaskRankError(
                f"Workflow is {self.engine.context.state.value}, nothing was inserted"
            )
        return self.result


class PlacementService:
    """Starts comparison workflows against the current contents of a group."""

    def __init__(self, rank_service: RankService, task_factory: TaskFactory) -> None:
        self.rank_service = rank_service
        self._task_factory = task_factory

    def begin(self, candidate: TaskDraft) -> PlacementWorkflow:
        """
        Start placing ``candidate`` in its group.

        The group's active tasks are snapshotted now; an empty group
        completes immediately and the candidate is inserted at rank 0.
        """
        existing = self.rank_service.store.within(candidate.parent_id)
        workflow = PlacementWorkflow(self.rank_service, candidate, self._task_factory)
        logger.debug(
            "Placement started for %r against %d tasks (group=%s)",
            candidate.title,
            len(existing),
            candidate.parent_id,
        )
        workflow.engine.start(candidate, existing)
        return workflow
