"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from dynasync.adapters.dynamics import DynamicsFetcher
from dynasync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from dynasync.config import get_sync_config
from dynasync.domain.collections import DEFAULT_COLLECTIONS, get_collection
from dynasync.domain.data_integration import CollectionSyncResult, sync_collection
from dynasync.domain.model import SyncStatus
from dynasync.domain.ports.unit_of_work import SyncUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dynasync.domain.model import SchemaTag, SyncLogEntry
    from dynasync.domain.ports.fetching import SnapshotFetcher

UnitOfWorkFactory = Callable[[], SyncUnitOfWork]


log = getLogger(__name__)


@dataclass(slots=True)
class SyncReport:
    """Results of syncing several collections; each collection succeeds or fails alone."""

    results: list[CollectionSyncResult] = field(default_factory=list[CollectionSyncResult])
    failures: dict[str, Exception] = field(default_factory=dict[str, Exception])

    @property
    def ok(self) -> bool:
        return not self.failures and all(r.status is not SyncStatus.ERROR for r in self.results)


def _ensure_started() -> None:
    if not is_started():
        startup()


def sync_dynamics_collections(
    names: Sequence[str] | None = None,
    *,
    source: SnapshotFetcher | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    allow_empty: bool = False,
) -> SyncReport:
    """Synchronise Dynamics collections using the configured adapters."""

    if unit_of_work_factory is None:
        _ensure_started()
    collections = [get_collection(name) for name in (names or list(DEFAULT_COLLECTIONS))]
    effective_source = source or DynamicsFetcher()
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    config = get_sync_config()

    report = SyncReport()
    for collection in collections:
        log.info(f"Starting sync of {collection.name} from {collection.endpoint}")
        try:
            result = sync_collection(
                collection=collection,
                fetcher=effective_source,
                unit_of_work_factory=effective_uow,
                config=config,
                allow_empty=allow_empty or None,
            )
        except Exception as exc:  # noqa: BLE001
            report.failures[collection.name] = exc
            continue
        report.results.append(result)

    log.info(
        f"Finished sync: succeeded={len(report.results)}, failed={len(report.failures)}"
    )
    return report


def list_schema_tags(
    collection: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[SchemaTag]:
    """Return the schema catalog of ``collection`` ordered by path."""

    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyUnitOfWork)() as uow:
        catalog = uow.repositories.tags.tag_catalog(get_collection(collection).name)
    return [catalog[path] for path in sorted(catalog)]


def sync_history(
    collection: str,
    *,
    limit: int = 10,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[SyncLogEntry]:
    """Return the most recent sync-log entries of ``collection``."""

    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyUnitOfWork)() as uow:
        return uow.repositories.sync_logs.latest(get_collection(collection).name, limit=limit)
