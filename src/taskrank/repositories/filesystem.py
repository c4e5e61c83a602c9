"""Filesystem-based repository for task storage."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import frontmatter
import yaml

from ..errors import NotFoundError, StorageTransactionError, TaskRankError
from ..models import Task
from ._index import active_in_group, completed_newest_first, descendants, reassigned

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FilesystemRankStore:
    """
    Repository for task files stored on the filesystem.

    Each task is a ``<id>.md`` file with YAML front matter; the description
    is the markdown body. Backend metadata lives in ``meta.yaml``.

    Files are read into a cache on first use. Inside a unit of work every
    write is applied to the cache and staged; staged files are written only
    when the outermost unit finishes. If writing fails part way, files
    already written are put back the way they were.
    """

    META_YAML = "meta.yaml"

    def __init__(self, task_root: Path) -> None:
        """
        Initialize repository.

        Args:
            task_root: Path to the tasks directory (e.g., .taskrank/)
        """
        self.task_root = task_root
        self._tasks: dict[str, Task] | None = None
        self._meta: dict[str, str] | None = None
        self._dirty: set[str] = set()
        self._removed: set[str] = set()
        self._meta_dirty = False
        self._lock = threading.RLock()
        self._depth = 0

    def ensure_directory(self) -> None:
        """Create the tasks directory if it doesn't exist."""
        self.task_root.mkdir(parents=True, exist_ok=True)

    def get_filepath(self, task_id: str) -> Path:
        """Get the filesystem path for a task."""
        return self.task_root / f"{task_id}.md"

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

            tasks = self._load_tasks()
            meta = self._load_meta()
            tasks_snapshot = dict(tasks)
            meta_snapshot = dict(meta)
            self._depth = 1
            try:
                yield
                self._flush()
            except TaskRankError:
                self._rollback(tasks_snapshot, meta_snapshot)
                raise
            except Exception as e:
                self._rollback(tasks_snapshot, meta_snapshot)
                logger.warning("Atomic unit rolled back: %s", e)
                raise StorageTransactionError(f"Atomic unit aborted: {e}") from e
            finally:
                self._depth = 0

    def _rollback(self, tasks: dict[str, Task], meta: dict[str, str]) -> None:
        """Discard staged changes and restore the cache."""
        self._tasks = tasks
        self._meta = meta
        self._dirty.clear()
        self._removed.clear()
        self._meta_dirty = False

    def _flush(self) -> None:
        """Write staged changes to disk, restoring prior contents on failure."""
        if not (self._dirty or self._removed or self._meta_dirty):
            return

        self.ensure_directory()
        tasks = self._load_tasks()
        touched: list[tuple[Path, str | None]] = []

        try:
            for task_id in sorted(self._removed):
                filepath = self.get_filepath(task_id)
                if filepath.exists():
                    touched.append((filepath, filepath.read_text()))
                    filepath.unlink()

            for task_id in sorted(self._dirty):
                filepath = self.get_filepath(task_id)
                previous = filepath.read_text() if filepath.exists() else None
                touched.append((filepath, previous))
                self._write_task_file(filepath, tasks[task_id])

            if self._meta_dirty:
                meta_path = self.task_root / self.META_YAML
                previous = meta_path.read_text() if meta_path.exists() else None
                touched.append((meta_path, previous))
                with meta_path.open("w") as f:
                    f.write("# Auto-generated - do not edit manually\n")
                    yaml.safe_dump(self._meta, f, default_flow_style=False, sort_keys=True)
        except OSError:
            self._restore_files(touched)
            raise

        logger.debug(
            "Flushed %d written, %d removed task files",
            len(self._dirty),
            len(self._removed),
        )
        self._dirty.clear()
        self._removed.clear()
        self._meta_dirty = False

    def _restore_files(self, touched: list[tuple[Path, str | None]]) -> None:
        """Put back files changed by a failed flush."""
        for filepath, previous in reversed(touched):
            try:
                if previous is None:
                    filepath.unlink(missing_ok=True)
                else:
                    filepath.write_text(previous)
            except OSError as e:
                logger.error("Could not restore %s after failed flush: %s", filepath, e)

    # --- Reads ---

    def within(self, group_key: str | None) -> list[Task]:
        """Active tasks in a group, sorted by rank."""
        with self._lock:
            tasks = self._load_tasks()
            return [t.model_copy() for t in active_in_group(tasks.values(), group_key)]

    def get_item(self, task_id: str) -> Task | None:
        """Get a single task by ID."""
        with self._lock:
            task = self._load_tasks().get(task_id)
            return task.model_copy() if task else None

    def all_items(self) -> list[Task]:
        """All stored tasks."""
        with self._lock:
            return [t.model_copy() for t in self._load_tasks().values()]

    def completed_items(self) -> list[Task]:
        """Completed tasks, newest first."""
        with self._lock:
            tasks = self._load_tasks()
            return [t.model_copy() for t in completed_newest_first(tasks.values())]

    def get_meta(self, key: str) -> str | None:
        """Read a metadata value."""
        with self._lock:
            return self._load_meta().get(key)

    # --- Writes ---

    def bulk_reassign_ranks(self, updates: Iterable[tuple[str, int]]) -> None:
        """Set new ranks on many tasks as one step."""
        with self._unit():
            tasks = self._load_tasks()
            changed = reassigned(tasks, updates)
            tasks.update(changed)
            self._dirty.update(changed)

    def insert_item(self, task: Task) -> Task:
        """Store a new task."""
        with self._unit():
            self._load_tasks()[task.id] = task.model_copy()
            self._dirty.add(task.id)
            self._removed.discard(task.id)
            return task.model_copy()

    def update_item(self, task: Task) -> Task:
        """Replace a stored task."""
        with self._unit():
            tasks = self._load_tasks()
            if task.id not in tasks:
                raise NotFoundError(task.id)
            tasks[task.id] = task.model_copy()
            self._dirty.add(task.id)
            return task.model_copy()

    def delete_item(self, task_id: str) -> list[str]:
        """Delete a task file and the files of its descendants."""
        with self._unit():
            tasks = self._load_tasks()
            if task_id not in tasks:
                return []
            removed = [task_id, *descendants(tasks, task_id)]
            for removed_id in removed:
                del tasks[removed_id]
                self._dirty.discard(removed_id)
                self._removed.add(removed_id)
            return removed

    def set_meta(self, key: str, value: str) -> None:
        """Write a metadata value."""
        with self._unit():
            self._load_meta()[key] = value
            self._meta_dirty = True

    # --- Reload Support ---

    def reload(self) -> None:
        """Clear caches and reload from filesystem."""
        with self._lock:
            self._tasks = None
            self._meta = None

    # --- Private Methods ---

    def _load_tasks(self) -> dict[str, Task]:
        """Scan directory and load all task files (once)."""
        if self._tasks is not None:
            return self._tasks

        self._tasks = {}
        if self.task_root.exists():
            for filepath in self._iter_task_files():
                task = self._parse_task_file(filepath)
                if task:
                    self._tasks[task.id] = task
        return self._tasks

    def _iter_task_files(self) -> Iterator[Path]:
        """Iterate over all .md files in the task root."""
        yield from self.task_root.glob("*.md")

    def _parse_task_file(self, filepath: Path) -> Task | None:
        """Parse a single task file."""
        try:
            post = frontmatter.load(filepath)
            return Task.from_frontmatter(
                task_id=filepath.stem,
                metadata=post.metadata,
                body=post.content,
            )
        except Exception as e:
            # Skip files that can't be parsed
            logger.warning("Skipping unreadable task file %s: %s", filepath.name, e)
            return None

    def _write_task_file(self, filepath: Path, task: Task) -> None:
        """Write a task as markdown with front matter."""
        post = frontmatter.Post(task.description or "")
        post.metadata = task.to_frontmatter()
        # sort_keys=False preserves field order
        with filepath.open("w") as f:
            f.write(frontmatter.dumps(post, sort_keys=False))

    def _load_meta(self) -> dict[str, str]:
        """Load meta.yaml if it exists (once)."""
        if self._meta is not None:
            return self._meta

        meta_path = self.task_root / self.META_YAML
        if meta_path.exists():
            with meta_path.open() as f:
                data = yaml.safe_load(f) or {}
            self._meta = {str(k): str(v) for k, v in data.items()}
        else:
            self._meta = {}
        return self._meta
