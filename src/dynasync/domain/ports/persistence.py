"""Ports for persisting synchronized records and schema catalogs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from dynasync.domain.model import SchemaTag, SyncLogEntry


@runtime_checkable
class RecordRepository(Protocol):
    """Persistence contract consumed by the reconciliation engine.

    Lookups are scoped to one collection. ``fingerprints_of`` and ``identities_of``
    only return live records; soft-deleted ones are reachable through
    ``deleted_fingerprints_of`` so that a reappearing identity can be revived.
    """

    def fingerprints_of(self, collection: str) -> dict[str, str]: ...

    def identities_of(self, collection: str) -> set[str]: ...

    def deleted_fingerprints_of(self, collection: str) -> dict[str, str]: ...

    def insert(
        self,
        collection: str,
        identity: str,
        payload: str,
        content_hash: str,
        *,
        now: datetime,
    ) -> None: ...

    def update(
        self,
        collection: str,
        identity: str,
        payload: str,
        content_hash: str,
        *,
        now: datetime,
    ) -> None: ...

    def touch(self, collection: str, identity: str, *, now: datetime) -> None: ...

    def mark_deleted(self, collection: str, identity: str, *, now: datetime) -> None: ...


@runtime_checkable
class SchemaTagRepository(Protocol):
    """Read/write access to a collection's schema catalog."""

    def tag_catalog(self, collection: str) -> dict[str, SchemaTag]: ...

    def upsert_tag(self, tag: SchemaTag) -> None: ...


@runtime_checkable
class SyncLogRepository(Protocol):
    def add(self, entry: SyncLogEntry) -> None: ...

    def latest(self, collection: str, *, limit: int = 10) -> list[SyncLogEntry]: ...
