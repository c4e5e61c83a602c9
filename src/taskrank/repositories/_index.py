"""Queries over an in-memory task index shared by the storage backends."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..errors import NotFoundError
from ..models import Task
from ..utils import now_utc


def active_in_group(tasks: Iterable[Task], group_key: str | None) -> list[Task]:
    """Active tasks of one group sorted by rank, then creation time."""
    members = [t for t in tasks if not t.completed and t.parent_id == group_key]
    return sorted(members, key=lambda t: (t.rank, t.created, t.id))


def completed_newest_first(tasks: Iterable[Task]) -> list[Task]:
    """Completed tasks, newest ``completed_at`` first."""
    done = [t for t in tasks if t.completed]
    return sorted(
        done,
        key=lambda t: (t.completed_at or t.updated),
        reverse=True,
    )


def descendants(tasks: Mapping[str, Task], task_id: str) -> list[str]:
    """IDs of every task below ``task_id`` in the hierarchy."""
    children: dict[str, list[str]] = {}
    for task in tasks.values():
        if task.parent_id is not None:
            children.setdefault(task.parent_id, []).append(task.id)

    found: list[str] = []
    pending = list(children.get(task_id, []))
    while pending:
        child_id = pending.pop(0)
        found.append(child_id)
        pending.extend(children.get(child_id, []))
    return found


def reassigned(tasks: Mapping[str, Task], updates: Iterable[tuple[str, int]]) -> dict[str, Task]:
    """Build re-ranked copies for ``updates`` without touching ``tasks``.

    Raises:
        NotFoundError: If any ID is unknown.
    """
    now = now_utc()
    result: dict[str, Task] = {}
    for task_id, rank in updates:
        current = result.get(task_id) or tasks.get(task_id)
        if current is None:
            raise NotFoundError(task_id)
        result[task_id] = current.model_copy(update={"rank": rank, "updated": now})
    return result
