"""Subcommand handlers.

Each handler takes the task service and parsed arguments and returns an
exit code. Domain errors propagate to the caller.
"""

from __future__ import annotations

import argparse
from collections.abc import Callable
from datetime import datetime

from ..errors import TaskValidationError
from ..models import ComparisonState, InsertResult, Judgment, Task, TaskUpdate
from ..services import CleanupService, PlacementWorkflow, TaskService
from ..utils import from_iso
from .output import dim, error, header, info, success, warning

Prompt = Callable[[str], str]

ANSWERS = {
    "m": Judgment.MORE_IMPORTANT,
    "more": Judgment.MORE_IMPORTANT,
    "l": Judgment.LESS_IMPORTANT,
    "less": Judgment.LESS_IMPORTANT,
}


def format_task(task: Task) -> str:
    """One-line rendering of a task."""
    marker = "x" if task.completed else " "
    line = f"[{marker}] {task.rank:>3}  {task.title}  ({task.id})"
    if task.deadline:
        line += f"  due {task.deadline.date().isoformat()}"
    return line


def run_list(service: TaskService, args: argparse.Namespace) -> int:
    """Print a group's active tasks in priority order."""
    parent_id = getattr(args, "parent", None)
    tasks = service.get_subtasks(parent_id) if parent_id else service.get_active_tasks()
    if not tasks:
        info("No active tasks")
        return 0
    header("Tasks by priority")
    for task in tasks:
        print(format_task(task))
    return 0


def run_top(service: TaskService, args: argparse.Namespace) -> int:  # noqa: ARG001
    """Print the highest-priority task."""
    task = service.get_top_task()
    if task is None:
        info("No active tasks")
        return 0
    print(format_task(task))
    if task.description:
        dim(task.description)
    return 0


def run_add(
    service: TaskService,
    args: argparse.Namespace,
    prompt: Prompt = input,
) -> int:
    """Add a task at an explicit rank or by pairwise comparison."""
    deadline = _parse_deadline(args.deadline)

    if args.rank is not None:
        result = service.create_task(
            args.title,
            description=args.description,
            deadline=deadline,
            parent_id=args.parent,
            rank=args.rank,
        )
        _report_insert(result)
        return 0

    workflow = service.begin_placement(
        args.title,
        description=args.description,
        deadline=deadline,
        parent_id=args.parent,
    )
    return run_comparison(workflow, prompt)


def run_comparison(workflow: PlacementWorkflow, prompt: Prompt) -> int:
    """Drive a placement workflow from interactive answers."""
    while not workflow.is_finished:
        snapshot = workflow.current_state()

        if snapshot.state == ComparisonState.COMPARING and snapshot.probe_item is not None:
            question = (
                f"[{snapshot.step_count + 1}] Is '{workflow.candidate.title}' more important "
                f"than '{snapshot.probe_item.title}'? [m]ore/[l]ess/[s]kip/[c]ancel: "
            )
            reply = _ask(prompt, question)
            if reply is None:
                workflow.cancel()
                continue
            reply = reply.lower()
            if reply in ANSWERS:
                workflow.answer(ANSWERS[reply])
            elif reply in ("s", "skip"):
                workflow.skip()
            elif reply in ("c", "cancel"):
                workflow.cancel()
            else:
                error(f"Unrecognized answer: {reply!r}")

        elif snapshot.state == ComparisonState.PLACING:
            suggested = snapshot.suggested_rank if snapshot.suggested_rank is not None else 0
            reply = _ask(prompt, f"Rank to place at [{suggested}] (or 'c' to cancel): ")
            if reply is None or reply.lower() in ("c", "cancel"):
                workflow.cancel()
            elif not reply:
                workflow.place(suggested)
            elif reply.isdigit():
                workflow.place(int(reply))
            else:
                error(f"Not a rank: {reply!r}")

        else:
            break

    if workflow.current_state().state == ComparisonState.CANCELLED:
        warning("Cancelled; nothing was added")
        return 1

    _report_insert(workflow.finalize())
    return 0


def run_edit(service: TaskService, args: argparse.Namespace) -> int:
    """Change a task's descriptive fields."""
    fields: dict = {}
    if args.title is not None:
        fields["title"] = args.title
    if args.description is not None:
        fields["description"] = args.description or None
    if args.deadline is not None:
        fields["deadline"] = _parse_deadline(args.deadline) if args.deadline else None
    if not fields:
        info("Nothing to change")
        return 0
    task = service.update_task(args.task_id, TaskUpdate(**fields))
    success(f"Updated {task.title}")
    return 0


def run_move(service: TaskService, args: argparse.Namespace) -> int:
    """Move a task to a new rank."""
    task = service.move_task(args.task_id, args.rank)
    success(f"Moved '{task.title}' to rank {task.rank}")
    return 0


def run_complete(service: TaskService, args: argparse.Namespace) -> int:
    """Mark a task completed."""
    task = service.complete_task(args.task_id)
    success(f"Completed '{task.title}'")
    return 0


def run_delete(service: TaskService, args: argparse.Namespace) -> int:
    """Delete a task."""
    if service.delete_task(args.task_id):
        success(f"Deleted {args.task_id}")
        return 0
    error(f"Task not found: {args.task_id}")
    return 1


def run_history(service: TaskService, args: argparse.Namespace) -> int:  # noqa: ARG001
    """Print completed tasks, newest first."""
    tasks = service.get_completed_tasks()
    if not tasks:
        info("No completed tasks")
        return 0
    header("Completed tasks")
    for task in tasks:
        when = task.completed_at.date().isoformat() if task.completed_at else "?"
        print(f"{when}  {task.title}  ({task.id})")
    return 0


def run_cleanup(cleanup: CleanupService, args: argparse.Namespace) -> int:
    """Purge completed tasks past the retention window."""
    if cleanup.run_cleanup(force=args.force):
        success("Cleanup complete")
    else:
        info("Cleanup skipped: ran recently (use --force)")
    return 0


def _ask(prompt: Prompt, question: str) -> str | None:
    """Read one stripped reply; None when input is closed or interrupted."""
    try:
        return prompt(question).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return None


def _report_insert(result: InsertResult) -> None:
    """Print what an insertion did."""
    success(f"Added '{result.task.title}' at rank {result.task.rank} ({result.task.id})")
    if result.shift_range is not None:
        dim(
            f"  shifted {result.shifted_count} tasks "
            f"(ranks {result.shift_range.old_start}..{result.shift_range.new_end - 1} moved down)"
        )


def _parse_deadline(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime from the command line."""
    if not value:
        return None
    try:
        return from_iso(value)
    except ValueError as e:
        raise TaskValidationError("deadline", f"Invalid deadline {value!r}: use YYYY-MM-DD") from e
