"""Repository layer for data access."""

from .filesystem import FilesystemRankStore
from .memory import MemoryRankStore
from .protocol import RankStoreProtocol

__all__ = [
    "FilesystemRankStore",
    "MemoryRankStore",
    "RankStoreProtocol",
]
