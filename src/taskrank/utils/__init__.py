"""Utility helpers."""

from .datetime import from_iso, now_utc, to_iso
from .ids import generate_task_id

__all__ = [
    "from_iso",
    "generate_task_id",
    "now_utc",
    "to_iso",
]
