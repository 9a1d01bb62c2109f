"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import SnapshotFetcher, SnapshotFetchResult
from .persistence import RecordRepository, SchemaTagRepository, SyncLogRepository
from .unit_of_work import RepositoryCollection, SyncRepositories, SyncUnitOfWork, UnitOfWork

__all__ = [
    "RecordRepository",
    "RepositoryCollection",
    "SchemaTagRepository",
    "SnapshotFetchResult",
    "SnapshotFetcher",
    "SyncLogRepository",
    "SyncRepositories",
    "SyncUnitOfWork",
    "UnitOfWork",
]
