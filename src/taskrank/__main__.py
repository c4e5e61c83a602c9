"""CLI entry point for taskrank."""

import argparse
from pathlib import Path

from . import __version__
from .config import Settings
from .logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="taskrank",
        description="Personal task priority manager with pairwise-comparison placement",
    )
    parser.add_argument(
        "--task-root",
        type=Path,
        default=None,
        help="Directory holding task files (default: .taskrank)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="List active tasks by priority")
    list_parser.add_argument("--parent", default=None, help="List subtasks of this task")

    sub.add_parser("top", help="Show the highest-priority task")

    add = sub.add_parser("add", help="Add a task (asks comparison questions unless --rank)")
    add.add_argument("title")
    add.add_argument("--description", default=None)
    add.add_argument("--deadline", default=None, help="YYYY-MM-DD")
    add.add_argument("--parent", default=None, help="Add as subtask of this task")
    add.add_argument("--rank", type=int, default=None, help="Insert at this rank directly")

    edit = sub.add_parser("edit", help="Change a task's title, description or deadline")
    edit.add_argument("task_id")
    edit.add_argument("--title", default=None)
    edit.add_argument("--description", default=None, help="Empty string clears it")
    edit.add_argument("--deadline", default=None, help="YYYY-MM-DD; empty string clears it")

    move = sub.add_parser("move", help="Move a task to a new rank")
    move.add_argument("task_id")
    move.add_argument("rank", type=int)

    complete = sub.add_parser("complete", help="Mark a task completed")
    complete.add_argument("task_id")

    delete = sub.add_parser("delete", help="Delete a task and its subtasks")
    delete.add_argument("task_id")

    sub.add_parser("history", help="List completed tasks")

    cleanup = sub.add_parser("cleanup", help="Delete completed tasks past retention")
    cleanup.add_argument("--force", action="store_true", help="Ignore the cleanup interval")

    repair = sub.add_parser("repair", help="Renumber a group's ranks to 0..n-1")
    repair.add_argument("--parent", default=None)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Build settings from CLI args
    settings_kwargs: dict = {}
    if args.task_root:
        settings_kwargs["task_root"] = args.task_root
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file

    settings = Settings(**settings_kwargs)

    setup_logging(settings.verbose, settings.log_file)

    # Import here to keep --help fast
    from .app import run

    raise SystemExit(run(settings, args))


if __name__ == "__main__":
    main()
