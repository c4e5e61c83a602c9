"""Task domain model."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..utils import from_iso, now_utc

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000


def _validate_title(value: str | None) -> str:
    """Validate a title is present and within the length limit."""
    if value is None or not value.strip():
        raise ValueError("Title is required")
    if len(value) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title must not exceed {TITLE_MAX_LENGTH} characters")
    return value


def _validate_description(value: str | None) -> str | None:
    """Validate an optional description is within the length limit."""
    if value and len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters")
    return value


class Task(BaseModel):
    """A ranked task.

    Active tasks sharing a ``parent_id`` form one rank sequence: their ranks
    are exactly ``0..n-1``. Completed tasks keep the rank they had when they
    were completed and no longer take part in that sequence.
    """

    # Identity
    id: str

    # Descriptive fields (inert for ranking)
    title: str
    description: str | None = None
    deadline: datetime | None = None

    # Ranking
    rank: int = Field(default=0, ge=0)  # 0 = highest priority
    parent_id: str | None = None  # Group key; None = top level
    depth: int = Field(default=0, ge=0)

    # Lifecycle
    completed: bool = False
    completed_at: datetime | None = None
    created: datetime = Field(default_factory=now_utc)
    updated: datetime = Field(default_factory=now_utc)

    @property
    def group_key(self) -> str | None:
        """Scope of this task's rank sequence."""
        return self.parent_id

    @property
    def is_active(self) -> bool:
        """Whether the task takes part in its group's rank sequence."""
        return not self.completed

    def to_frontmatter(self) -> dict:
        """Convert to dict suitable for YAML front matter."""
        data: dict = {
            "id": self.id,
            "title": self.title,
            "rank": self.rank,
        }
        if self.parent_id:
            data["parent_id"] = self.parent_id
            data["depth"] = self.depth
        data["completed"] = self.completed
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        if self.deadline:
            data["deadline"] = self.deadline.isoformat()
        data["created"] = self.created.isoformat()
        data["updated"] = self.updated.isoformat()
        return data

    @classmethod
    def from_frontmatter(cls, task_id: str, metadata: dict, body: str) -> "Task":
        """Create Task from parsed front matter.

        The markdown body holds the description.
        """
        created = from_iso(metadata.get("created")) or now_utc()
        return cls(
            id=str(metadata.get("id", task_id)),
            title=metadata.get("title") or task_id,
            description=body or None,
            deadline=from_iso(metadata.get("deadline")),
            rank=int(metadata.get("rank", 0)),
            parent_id=metadata.get("parent_id"),
            depth=int(metadata.get("depth", 0)),
            completed=bool(metadata.get("completed", False)),
            completed_at=from_iso(metadata.get("completed_at")),
            created=created,
            updated=from_iso(metadata.get("updated")) or created,
        )


class TaskDraft(BaseModel):
    """A task that has not been placed yet.

    This is the candidate carried through the comparison workflow; it
    becomes a ``Task`` once a rank has been chosen for it.
    """

    title: str
    description: str | None = None
    deadline: datetime | None = None
    parent_id: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title must be non-blank and at most 200 characters."""
        return _validate_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        """Description must be at most 2000 characters."""
        return _validate_description(v)


class TaskUpdate(BaseModel):
    """Partial update of a task's descriptive fields.

    Only fields that were explicitly passed are applied. Passing ``None``
    for ``description`` or ``deadline`` clears it; leaving a field out keeps
    the stored value. Rank, group and completion are changed through the
    rank service instead.
    """

    title: str | None = None
    description: str | None = None
    deadline: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str:
        """An explicitly set title must still be valid."""
        return _validate_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        """Description must be at most 2000 characters."""
        return _validate_description(v)

    @property
    def changes(self) -> dict:
        """Fields explicitly set by the caller."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def apply_to(self, task: Task) -> Task:
        """Return a copy of ``task`` with the set fields replaced."""
        return task.model_copy(update=self.changes)
