"""Service that keeps each group's active ranks dense.

Every rank-changing operation reads the group, computes the shift and
applies it inside a single ``run_atomic`` unit, so a failure at any step
leaves stored ranks exactly as they were.

Ranks of active tasks in a group are always ``0..n-1``:

    insert at 1:  [A0 B1 C2]    -> [A0 D1 B2 C3]    (B, C shift down)
    delete B:     [A0 B1 C2 D3] -> [A0 C1 D2]       (C, D shift up)
    move D 3->1:  [A0 B1 C2 D3] -> [A0 D1 B2 C3]    (B, C shift down)

Completed tasks keep the rank they had when completed and are never
shifted again.
"""

from __future__ import annotations

import logging

from ..errors import InvalidRankError, NotFoundError, TaskValidationError
from ..models import InsertResult, ShiftRange, Task
from ..repositories import RankStoreProtocol
from ..utils import now_utc

logger = logging.getLogger(__name__)


class RankService:
    """Insert, delete, move and complete tasks while maintaining rank density."""

    def __init__(self, store: RankStoreProtocol) -> None:
        self.store = store

    def insert_at(self, task: Task, target_rank: int, group_key: str | None) -> InsertResult:
        """
        Insert a task at ``target_rank`` within ``group_key``.

        Active tasks of the group at or below the target rank move down by
        one. The valid range is ``[0, n]`` where ``n`` is the number of active
        tasks in the group before the insert.

        Raises:
            InvalidRankError: If ``target_rank`` is outside ``[0, n]``.
            TaskValidationError: If a task with the same ID already exists.
        """

        def work() -> InsertResult:
            if self.store.get_item(task.id) is not None:
                raise TaskValidationError("id", f"Task already exists: {task.id}")

            active = self.store.within(group_key)
            _check_range(target_rank, 0, len(active), group_key)

            to_shift = [t for t in active if t.rank >= target_rank]
            if to_shift:
                self.store.bulk_reassign_ranks((t.id, t.rank + 1) for t in to_shift)

            now = now_utc()
            placed = task.model_copy(
                update={
                    "rank": target_rank,
                    "parent_id": group_key,
                    "completed": False,
                    "completed_at": None,
                    "updated": now,
                }
            )
            stored = self.store.insert_item(placed)

            shift_range = None
            if to_shift:
                shift_range = ShiftRange(
                    old_start=min(t.rank for t in to_shift),
                    new_end=max(t.rank for t in to_shift) + 1,
                )
            return InsertResult(task=stored, shifted_count=len(to_shift), shift_range=shift_range)

        result = self.store.run_atomic(work)
        logger.info(
            "Task inserted: %s at rank %d (group=%s, shifted=%d)",
            result.task.id,
            target_rank,
            group_key,
            result.shifted_count,
        )
        return result

    def delete_by_id(self, task_id: str) -> bool:
        """
        Delete a task, closing the gap it leaves in its group.

        Active tasks of the same group ranked after it move up by one. Deleting
        a completed task shifts nothing. Descendants are removed by the store.

        Returns:
            True if the task was deleted, False if it didn't exist.
        """

        def work() -> bool:
            task = self.store.get_item(task_id)
            if task is None:
                return False

            removed = self.store.delete_item(task_id)
            if len(removed) > 1:
                logger.debug("Cascade removed %d subtasks of %s", len(removed) - 1, task_id)

            if not task.completed:
                to_shift = [t for t in self.store.within(task.parent_id) if t.rank > task.rank]
                if to_shift:
                    self.store.bulk_reassign_ranks((t.id, t.rank - 1) for t in to_shift)
                    logger.debug("Shifted %d tasks up after delete of %s", len(to_shift), task_id)
            return True

        deleted = self.store.run_atomic(work)
        if deleted:
            logger.info("Task deleted: %s", task_id)
        else:
            logger.debug("delete_by_id: task not found: %s", task_id)
        return deleted

    def move_to(self, task_id: str, new_rank: int) -> None:
        """
        Move an active task to ``new_rank`` within its group.

        Only the tasks strictly between the old and new position shift, each
        by one toward the vacated slot.

        Raises:
            NotFoundError: If the task doesn't exist.
            InvalidRankError: If the task is completed or ``new_rank`` is
                outside ``[0, n-1]``.
        """

        def work() -> int | None:
            task = self.store.get_item(task_id)
            if task is None:
                raise NotFoundError(task_id)
            if task.completed:
                raise InvalidRankError(
                    f"Task {task_id} is completed; its rank is frozen", rank=new_rank
                )

            active = self.store.within(task.parent_id)
            _check_range(new_rank, 0, len(active) - 1, task.parent_id)

            old_rank = task.rank
            if new_rank == old_rank:
                return None

            if new_rank < old_rank:
                # Moving up: [new_rank, old_rank) shift down
                updates = [
                    (t.id, t.rank + 1)
                    for t in active
                    if t.id != task_id and new_rank <= t.rank < old_rank
                ]
            else:
                # Moving down: (old_rank, new_rank] shift up
                updates = [
                    (t.id, t.rank - 1)
                    for t in active
                    if t.id != task_id and old_rank < t.rank <= new_rank
                ]
            updates.append((task_id, new_rank))
            self.store.bulk_reassign_ranks(updates)
            return old_rank

        old_rank = self.store.run_atomic(work)
        if old_rank is None:
            logger.debug("move_to: %s already at rank %d", task_id, new_rank)
        else:
            logger.info("Task moved: %s (rank %d -> %d)", task_id, old_rank, new_rank)

    def complete(self, task_id: str) -> Task:
        """
        Mark a task completed and freeze its rank.

        The task leaves its group's active sequence, so active tasks ranked
        after it move up by one. Completing a completed task is a no-op.

        Raises:
            NotFoundError: If the task doesn't exist.
        """

        def work() -> tuple[Task, bool]:
            task = self.store.get_item(task_id)
            if task is None:
                raise NotFoundError(task_id)
            if task.completed:
                return task, False

            now = now_utc()
            done = self.store.update_item(
                task.model_copy(update={"completed": True, "completed_at": now, "updated": now})
            )
            to_shift = [t for t in self.store.within(task.parent_id) if t.rank > task.rank]
            if to_shift:
                self.store.bulk_reassign_ranks((t.id, t.rank - 1) for t in to_shift)
            return done, True

        task, changed = self.store.run_atomic(work)
        if changed:
            logger.info("Task completed: %s (frozen at rank %d)", task_id, task.rank)
        return task

    def renumber(self, group_key: str | None) -> int:
        """
        Rewrite a group's active ranks to ``0..n-1`` keeping their order.

        Repairs groups whose files were edited by hand.

        Returns:
            Number of tasks whose rank changed.
        """

        def work() -> int:
            active = self.store.within(group_key)
            updates = [(t.id, idx) for idx, t in enumerate(active) if t.rank != idx]
            if updates:
                self.store.bulk_reassign_ranks(updates)
            return len(updates)

        changed = self.store.run_atomic(work)
        if changed:
            logger.info("Renumbered group %s: %d tasks changed rank", group_key, changed)
        return changed

    def is_dense(self, group_key: str | None) -> bool:
        """Whether a group's active ranks are exactly ``0..n-1``."""
        ranks = [t.rank for t in self.store.within(group_key)]
        return ranks == list(range(len(ranks)))


def _check_range(rank: int, low: int, high: int, group_key: str | None) -> None:
    """Raise InvalidRankError unless ``low <= rank <= high``."""
    if not low <= rank <= high:
        raise InvalidRankError.out_of_range(rank, low, high, group_key)
