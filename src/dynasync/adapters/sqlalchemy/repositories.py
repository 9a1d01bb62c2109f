"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import Insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from dynasync.adapters.sqlalchemy.mappings import (
    schema_tag_table,
    sync_log_table,
    synced_record_table,
)
from dynasync.domain.model import SchemaTag, SyncedRecord, SyncLogEntry

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy import Table
    from sqlalchemy.orm import Session


def _insert_ignoring_conflicts(table: Table, session: Session) -> Insert:
    """Build an INSERT that silently skips rows violating a unique constraint."""

    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table).on_conflict_do_nothing()
    if dialect == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing()
    if dialect in {"mysql", "mariadb"}:
        return table.insert().prefix_with("IGNORE")
    return table.insert()


class SqlAlchemyRecordRepository:
    """Record store used by the reconciliation engine.

    Writes go through Core statements so that classification never needs to load
    full records into the session.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def fingerprints_of(self, collection: str) -> dict[str, str]:
        return self._fingerprints(collection, deleted=False)

    def deleted_fingerprints_of(self, collection: str) -> dict[str, str]:
        return self._fingerprints(collection, deleted=True)

    def identities_of(self, collection: str) -> set[str]:
        stmt = (
            select(synced_record_table.c.identity)
            .where(synced_record_table.c.collection == collection)
            .where(synced_record_table.c.is_deleted.is_(False))
        )
        return set(self.session.execute(stmt).scalars())

    def insert(
        self,
        collection: str,
        identity: str,
        payload: str,
        content_hash: str,
        *,
        now: datetime,
    ) -> None:
        stmt = _insert_ignoring_conflicts(synced_record_table, self.session).values(
            collection=collection,
            identity=identity,
            payload=payload,
            content_hash=content_hash,
            first_seen_at=now,
            last_updated_at=now,
            update_count=0,
            is_deleted=False,
            deleted_at=None,
        )
        with self.session.begin_nested():
            self.session.execute(stmt)

    def update(
        self,
        collection: str,
        identity: str,
        payload: str,
        content_hash: str,
        *,
        now: datetime,
    ) -> None:
        self._update_one(
            collection,
            identity,
            payload=payload,
            content_hash=content_hash,
            last_updated_at=now,
            update_count=synced_record_table.c.update_count + 1,
            is_deleted=False,
            deleted_at=None,
        )

    def touch(self, collection: str, identity: str, *, now: datetime) -> None:
        self._update_one(
            collection,
            identity,
            last_updated_at=now,
            is_deleted=False,
            deleted_at=None,
        )

    def mark_deleted(self, collection: str, identity: str, *, now: datetime) -> None:
        self._update_one(collection, identity, is_deleted=True, deleted_at=now)

    def get(self, collection: str, identity: str) -> SyncedRecord | None:
        stmt = (
            select(SyncedRecord)
            .where(synced_record_table.c.collection == collection)
            .where(synced_record_table.c.identity == identity)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _fingerprints(self, collection: str, *, deleted: bool) -> dict[str, str]:
        stmt = (
            select(synced_record_table.c.identity, synced_record_table.c.content_hash)
            .where(synced_record_table.c.collection == collection)
            .where(synced_record_table.c.is_deleted.is_(deleted))
        )
        return {identity: content_hash for identity, content_hash in self.session.execute(stmt)}

    def _update_one(self, collection: str, identity: str, **values: object) -> None:
        stmt = (
            update(synced_record_table)
            .where(synced_record_table.c.collection == collection)
            .where(synced_record_table.c.identity == identity)
            .values(**values)
        )
        # a failed write rolls back to its savepoint and leaves the run transaction usable
        with self.session.begin_nested():
            result = self.session.execute(stmt)
            if cast("int", getattr(result, "rowcount", 0)) == 0:
                raise LookupError(f"No record {identity!r} in collection {collection!r}")


class SqlAlchemySchemaTagRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def tag_catalog(self, collection: str) -> dict[str, SchemaTag]:
        stmt = select(SchemaTag).where(schema_tag_table.c.collection == collection)
        return {tag.path: tag for tag in self.session.execute(stmt).scalars()}

    def upsert_tag(self, tag: SchemaTag) -> None:
        self.session.add(tag)


class SqlAlchemySyncLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entry: SyncLogEntry) -> None:
        self.session.add(entry)

    def latest(self, collection: str, *, limit: int = 10) -> list[SyncLogEntry]:
        stmt = (
            select(SyncLogEntry)
            .where(sync_log_table.c.collection == collection)
            .order_by(sync_log_table.c.synced_at.desc(), sync_log_table.c.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from dynasync.domain.ports.persistence import (
        RecordRepository,
        SchemaTagRepository,
        SyncLogRepository,
    )

    _session_stub = cast("Session", object())
    _record_repo: RecordRepository = SqlAlchemyRecordRepository(_session_stub)
    _tag_repo: SchemaTagRepository = SqlAlchemySchemaTagRepository(_session_stub)
    _log_repo: SyncLogRepository = SqlAlchemySyncLogRepository(_session_stub)
