"""Task identifier generation."""

import uuid


def generate_task_id() -> str:
    """Generate a new opaque task ID (UUID v4)."""
    return str(uuid.uuid4())
