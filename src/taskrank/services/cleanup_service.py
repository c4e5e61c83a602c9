"""Service for purging old completed tasks."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..models import Task
from ..repositories import RankStoreProtocol
from ..utils import from_iso, now_utc, to_iso
from .rank_service import RankService

logger = logging.getLogger(__name__)

LAST_CLEANUP_KEY = "last_cleanup"
BATCH_SIZE = 100


class CleanupService:
    """
    Deletes completed tasks older than the retention window.

    Runs at most once per ``interval_hours``; the last run time is kept in
    the store's metadata. Completed tasks hold no place in the active
    sequence, so deleting them never shifts anything.
    """

    def __init__(
        self,
        rank_service: RankService,
        retention_days: int = 90,
        interval_hours: int = 24,
    ) -> None:
        self.rank_service = rank_service
        self.retention = timedelta(days=retention_days)
        self.interval = timedelta(hours=interval_hours)

    @property
    def store(self) -> RankStoreProtocol:
        return self.rank_service.store

    def should_run(self, now: datetime | None = None) -> bool:
        """Whether the interval has passed since the last cleanup."""
        now = now or now_utc()
        raw = self.store.get_meta(LAST_CLEANUP_KEY)
        try:
            last = from_iso(raw)
        except ValueError:
            logger.warning("Ignoring unreadable %s value: %r", LAST_CLEANUP_KEY, raw)
            return True
        if last is None:
            return True
        return now - last >= self.interval

    def run_cleanup(self, now: datetime | None = None, force: bool = False) -> bool:
        """
        Purge expired tasks if the interval has passed.

        Returns:
            True if cleanup ran, False if it was skipped.
        """
        now = now or now_utc()
        if not force and not self.should_run(now):
            logger.debug("Cleanup skipped: less than %s since last run", self.interval)
            return False

        deleted = self.purge_completed(now)
        self.store.set_meta(LAST_CLEANUP_KEY, to_iso(now))
        logger.info("Cleanup complete: deleted %d old tasks", deleted)
        return True

    def purge_completed(self, now: datetime | None = None) -> int:
        """
        Delete completed tasks whose completion is older than the retention window.

        Deletes in batches of ``BATCH_SIZE``, each batch one atomic unit.

        Returns:
            Number of tasks deleted (not counting cascaded subtasks).
        """
        cutoff = (now or now_utc()) - self.retention
        expired = [t.id for t in self.store.completed_items() if _expired(t, cutoff)]

        deleted = 0
        for start in range(0, len(expired), BATCH_SIZE):
            batch = expired[start : start + BATCH_SIZE]
            deleted += self.store.run_atomic(lambda batch=batch: self._delete_batch(batch))
        return deleted

    def _delete_batch(self, task_ids: list[str]) -> int:
        """Delete one batch; tasks already removed by a cascade are skipped."""
        return sum(1 for task_id in task_ids if self.rank_service.delete_by_id(task_id))


def _expired(task: Task, cutoff: datetime) -> bool:
    """Completed before ``cutoff``; tasks without a completion time are kept."""
    if task.completed_at is None:
        return False
    return from_iso(task.completed_at) < cutoff
