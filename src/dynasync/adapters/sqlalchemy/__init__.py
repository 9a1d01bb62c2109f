"""SQLAlchemy adapter package for dynasync."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    enable_sqlite_savepoints,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyRecordRepository,
    SqlAlchemySchemaTagRepository,
    SqlAlchemySyncLogRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyRecordRepository",
    "SqlAlchemySchemaTagRepository",
    "SqlAlchemySyncLogRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "enable_sqlite_savepoints",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
