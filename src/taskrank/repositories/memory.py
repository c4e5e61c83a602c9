"""In-memory repository for task storage."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from ..errors import NotFoundError, StorageTransactionError, TaskRankError
from ..models import Task
from ._index import active_in_group, completed_newest_first, descendants, reassigned

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoryRankStore:
    """
    Embedded, process-local task store.

    Tasks live in a dict keyed by ID. Stored tasks are never mutated in
    place (every write stores a fresh copy) so a shallow copy of the dict is
    a complete snapshot for rollback.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {t.id: t.model_copy() for t in tasks}
        self._meta: dict[str, str] = {}
        self._lock = threading.RLock()
        self._depth = 0

    # --- Transactions ---

    def run_atomic(self, work: Callable[[], T]) -> T:
        """Run ``work`` as one all-or-nothing unit."""
        with self._unit():
            return work()

    @contextmanager
    def _unit(self) -> Iterator[None]:
        """Open a unit of work, or join the one already open on this thread."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            tasks_snapshot = dict(self._tasks)
            meta_snapshot = dict(self._meta)
            self._depth = 1
            try:
                yield
            except TaskRankError:
                self._tasks = tasks_snapshot
                self._meta = meta_snapshot
                raise
            except Exception as e:
                self._tasks = tasks_snapshot
                self._meta = meta_snapshot
                logger.warning("Atomic unit rolled back: %s", e)
                raise StorageTransactionError(f"Atomic unit aborted: {e}") from e
            finally:
                self._depth = 0

    # --- Reads ---

    def within(self, group_key: str | None) -> list[Task]:
        """Active tasks in a group, sorted by rank."""
        with self._lock:
            return [t.model_copy() for t in active_in_group(self._tasks.values(), group_key)]

    def get_item(self, task_id: str) -> Task | None:
        """Get a single task by ID."""
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy() if task else None

    def all_items(self) -> list[Task]:
        """All stored tasks."""
        with self._lock:
            return [t.model_copy() for t in self._tasks.values()]

    def completed_items(self) -> list[Task]:
        """Completed tasks, newest first."""
        with self._lock:
            return [t.model_copy() for t in completed_newest_first(self._tasks.values())]

    def get_meta(self, key: str) -> str | None:
        """Read a metadata value."""
        with self._lock:
            return self._meta.get(key)

    # --- Writes ---

    def bulk_reassign_ranks(self, updates: Iterable[tuple[str, int]]) -> None:
        """Set new ranks on many tasks as one step."""
        with self._unit():
            self._tasks.update(reassigned(self._tasks, updates))

    def insert_item(self, task: Task) -> Task:
        """Store a new task."""
        with self._unit():
            self._tasks[task.id] = task.model_copy()
            return task.model_copy()

    def update_item(self, task: Task) -> Task:
        """Replace a stored task."""
        with self._unit():
            if task.id not in self._tasks:
                raise NotFoundError(task.id)
            self._tasks[task.id] = task.model_copy()
            return task.model_copy()

    def delete_item(self, task_id: str) -> list[str]:
        """Delete a task and its descendants."""
        with self._unit():
            if task_id not in self._tasks:
                return []
            removed = [task_id, *descendants(self._tasks, task_id)]
            for removed_id in removed:
                del self._tasks[removed_id]
            return removed

    def set_meta(self, key: str, value: str) -> None:
        """Write a metadata value."""
        with self._unit():
            self._meta[key] = value

    def reload(self) -> None:
        """Nothing to reload; memory is the source."""
