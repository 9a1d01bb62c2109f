"""SQLAlchemy mapping metadata for the dynasync domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    event,
    false,
    orm,
)
from sqlalchemy.orm import configure_mappers

from dynasync.domain.model import DataType, SchemaTag, SyncedRecord, SyncLogEntry, SyncStatus
from dynasync.domain.schema_drift import MAX_TAG_PATH_LENGTH

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine

log = logging.getLogger(__name__)

IDENTITY_LENGTH = 255
COLLECTION_LENGTH = 100


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

synced_record_table = Table(
    "synced_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("collection", String(COLLECTION_LENGTH), nullable=False),
    Column("identity", String(IDENTITY_LENGTH), nullable=False),
    Column("payload", Text, nullable=False),
    Column("content_hash", String(64), nullable=False),
    Column("first_seen_at", UTCDateTime(), nullable=False),
    Column("last_updated_at", UTCDateTime(), nullable=False),
    Column("update_count", Integer, nullable=False, default=0),
    Column("is_deleted", Boolean, nullable=False, default=False, server_default=false()),
    Column("deleted_at", UTCDateTime(), nullable=True),
    UniqueConstraint("collection", "identity"),
    Index("ix_synced_record_collection_deleted", "collection", "is_deleted"),
)

schema_tag_table = Table(
    "schema_tag",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("collection", String(COLLECTION_LENGTH), nullable=False),
    Column("path", String(MAX_TAG_PATH_LENGTH), nullable=False),
    Column("data_type", Enum(DataType, native_enum=False, length=16), nullable=False),
    Column("occurrence_count", Integer, nullable=False, default=0),
    Column("first_seen_at", UTCDateTime(), nullable=False),
    Column("last_seen_at", UTCDateTime(), nullable=False),
    Column("sample_value", Text, nullable=True),
    UniqueConstraint("collection", "path"),
)

sync_log_table = Table(
    "sync_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("collection", String(COLLECTION_LENGTH), nullable=False),
    Column("endpoint", String(255), nullable=False),
    Column("status", Enum(SyncStatus, native_enum=False, length=16), nullable=False),
    Column("records_count", Integer, nullable=False, default=0),
    Column("new_count", Integer, nullable=False, default=0),
    Column("updated_count", Integer, nullable=False, default=0),
    Column("unchanged_count", Integer, nullable=False, default=0),
    Column("deleted_count", Integer, nullable=False, default=0),
    Column("error_count", Integer, nullable=False, default=0),
    Column("new_tags_count", Integer, nullable=False, default=0),
    Column("message", Text, nullable=True),
    Column("execution_time_ms", Integer, nullable=False, default=0),
    Column("synced_at", UTCDateTime(), nullable=False, index=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(SyncedRecord, synced_record_table)
    mapper_registry.map_imperatively(SchemaTag, schema_tag_table)
    mapper_registry.map_imperatively(SyncLogEntry, sync_log_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own transaction boundaries on pysqlite connections.

    The pysqlite driver defers ``BEGIN`` until the first DML statement, so a
    ``SAVEPOINT`` issued first would open (and its release would commit) the outer
    transaction. Disabling the driver's handling and emitting ``BEGIN`` ourselves
    keeps per-record savepoints nested inside the run's transaction.
    """

    if engine.dialect.name != "sqlite" or event.contains(engine, "begin", _emit_begin):
        return
    event.listen(engine, "connect", _disable_driver_transactions)
    event.listen(engine, "begin", _emit_begin)


def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
    dbapi_connection.isolation_level = None


def _emit_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")
