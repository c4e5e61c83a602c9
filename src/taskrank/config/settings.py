"""Application settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    task_root: Path = Field(
        default=Path(".taskrank"),
        description="Directory holding task files",
    )

    backend: Literal["filesystem", "memory"] = Field(
        default="filesystem",
        description="Rank store backend",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    retention_days: int = Field(
        default=90,
        ge=1,
        description="Days completed tasks are kept before cleanup deletes them",
    )

    cleanup_interval_hours: int = Field(
        default=24,
        ge=0,
        description="Minimum hours between automatic cleanups",
    )

    model_config = {
        "env_prefix": "TASKRANK_",
    }
