"""Application wiring: build the store and services from settings."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass

from .cli import commands
from .cli.output import error, info
from .config import Settings
from .errors import TaskRankError
from .repositories import FilesystemRankStore, MemoryRankStore, RankStoreProtocol
from .services import CleanupService, RankService, TaskService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Services sharing one store."""

    store: RankStoreProtocol
    rank: RankService
    tasks: TaskService
    cleanup: CleanupService


def build_store(settings: Settings) -> RankStoreProtocol:
    """Create the configured rank store."""
    if settings.backend == "memory":
        return MemoryRankStore()
    return FilesystemRankStore(settings.task_root)


def build_services(settings: Settings, store: RankStoreProtocol | None = None) -> Services:
    """Construct the service graph around a store."""
    store = store if store is not None else build_store(settings)
    rank = RankService(store)
    return Services(
        store=store,
        rank=rank,
        tasks=TaskService(store, rank_service=rank),
        cleanup=CleanupService(
            rank,
            retention_days=settings.retention_days,
            interval_hours=settings.cleanup_interval_hours,
        ),
    )


def run(settings: Settings, args: argparse.Namespace, services: Services | None = None) -> int:
    """Run one subcommand and return its exit code."""
    services = services or build_services(settings)

    try:
        if args.command != "cleanup":
            # Housekeeping on every start; cheap when the interval hasn't passed
            services.cleanup.run_cleanup()

        if args.command == "cleanup":
            return commands.run_cleanup(services.cleanup, args)
        if args.command == "repair":
            changed = services.rank.renumber(args.parent)
            info(f"Renumbered {changed} tasks")
            return 0

        handler = {
            "list": commands.run_list,
            "top": commands.run_top,
            "add": commands.run_add,
            "edit": commands.run_edit,
            "move": commands.run_move,
            "complete": commands.run_complete,
            "delete": commands.run_delete,
            "history": commands.run_history,
        }[args.command]
        return handler(services.tasks, args)
    except TaskRankError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        error(str(e))
        return 1
