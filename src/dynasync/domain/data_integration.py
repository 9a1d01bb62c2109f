"""Application services for synchronizing remote collections."""

from __future__ import annotations

import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from dynasync.config.sync import SyncConfig
from dynasync.domain.model import SyncLogEntry, SyncStatus
from dynasync.domain.reconciliation import ReconciliationEngine, utcnow
from dynasync.domain.schema_drift import SchemaDriftAnalyzer

if TYPE_CHECKING:
    from collections.abc import Callable

    from dynasync.domain.collections import CollectionSpec
    from dynasync.domain.ports.fetching import SnapshotFetcher
    from dynasync.domain.ports.unit_of_work import SyncUnitOfWork
    from dynasync.domain.reconciliation import Clock, ReconciliationResult
    from dynasync.domain.schema_drift import SchemaDriftResult

log = getLogger(__name__)

# failures listed individually in the log before the rest is summarized
MAX_LOGGED_FAILURES = 20


class EmptySnapshotError(RuntimeError):
    """Raised when a fetch returned no records and empty snapshots are not allowed.

    Reconciling an empty snapshot soft-deletes every record of the collection.
    """


@dataclass(slots=True)
class CollectionSyncResult:
    """Outcome of syncing one collection."""

    collection: str
    endpoint: str
    status: SyncStatus
    reconciliation: ReconciliationResult
    schema: SchemaDriftResult
    execution_time_ms: int
    message: str


def determine_status(result: ReconciliationResult, *, fail_error_ratio: float) -> SyncStatus:
    """Map the error share of a run onto a pass/warn/fail status."""

    if result.errors == 0:
        return SyncStatus.SUCCESS
    if result.error_ratio > fail_error_ratio:
        return SyncStatus.ERROR
    return SyncStatus.WARNING


def sync_collection(
    *,
    collection: CollectionSpec,
    fetcher: SnapshotFetcher,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
    config: SyncConfig | None = None,
    allow_empty: bool | None = None,
    clock: Clock = utcnow,
) -> CollectionSyncResult:
    """Fetch a snapshot of ``collection``, reconcile it and track its schema.

    Whole-run failures (fetch, empty snapshot, persistence unavailable) are written
    to the sync log as ERROR and re-raised.
    """

    effective_config = config or SyncConfig()
    empty_allowed = effective_config.allow_empty_snapshot if allow_empty is None else allow_empty
    started = time.perf_counter()
    endpoint = collection.endpoint

    try:
        snapshot = fetcher(collection)
        endpoint = snapshot.endpoint
        records = list(snapshot.records)
        if not records and not empty_allowed:
            raise EmptySnapshotError(  # noqa: TRY301
                f"Snapshot of {collection.name} is empty; refusing to mark all records deleted"
            )

        with unit_of_work_factory() as uow:
            repositories = uow.repositories
            reconciliation = ReconciliationEngine(store=repositories.records, clock=clock).reconcile(
                collection.name, records, key=collection.key
            )
            schema = SchemaDriftAnalyzer(catalog=repositories.tags, clock=clock).analyze(
                collection.name, records
            )
            status = determine_status(
                reconciliation, fail_error_ratio=effective_config.fail_error_ratio
            )
            elapsed_ms = _elapsed_ms(started)
            message = _summary(reconciliation, schema)
            repositories.sync_logs.add(
                SyncLogEntry(
                    collection=collection.name,
                    endpoint=endpoint,
                    status=status,
                    records_count=reconciliation.total_processed,
                    new_count=reconciliation.new,
                    updated_count=reconciliation.updated,
                    unchanged_count=reconciliation.unchanged,
                    deleted_count=reconciliation.deleted,
                    error_count=reconciliation.errors,
                    new_tags_count=len(schema.new_paths),
                    message=message,
                    execution_time_ms=elapsed_ms,
                    synced_at=clock(),
                )
            )
            uow.commit()
    except Exception as exc:
        elapsed_ms = _elapsed_ms(started)
        log.exception(f"Sync of {collection.name} from {endpoint} failed")
        _record_failure(
            unit_of_work_factory,
            collection=collection.name,
            endpoint=endpoint,
            error=exc,
            elapsed_ms=elapsed_ms,
            clock=clock,
        )
        raise

    _log_failures(reconciliation)
    log.info(f"Synced {collection.name} in {elapsed_ms}ms [{status}]: {message}")

    return CollectionSyncResult(
        collection=collection.name,
        endpoint=endpoint,
        status=status,
        reconciliation=reconciliation,
        schema=schema,
        execution_time_ms=elapsed_ms,
        message=message,
    )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _summary(reconciliation: ReconciliationResult, schema: SchemaDriftResult) -> str:
    counts = reconciliation.counts()
    parts = [f"{name}={value}" for name, value in counts.items()]
    parts.append(f"new_fields={len(schema.new_paths)}")
    return " ".join(parts)


def _log_failures(reconciliation: ReconciliationResult) -> None:
    failures = reconciliation.failures
    for failure in failures[:MAX_LOGGED_FAILURES]:
        log.warning(
            "Record %s (index %s, %s) failed: %s",
            failure.identity,
            failure.index,
            failure.stage,
            failure.message,
        )
    if len(failures) > MAX_LOGGED_FAILURES:
        log.warning(f"... and {len(failures) - MAX_LOGGED_FAILURES} more failed records")


def _record_failure(
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
    *,
    collection: str,
    endpoint: str,
    error: Exception,
    elapsed_ms: int,
    clock: Clock,
) -> None:
    try:
        with unit_of_work_factory() as uow:
            uow.repositories.sync_logs.add(
                SyncLogEntry(
                    collection=collection,
                    endpoint=endpoint,
                    status=SyncStatus.ERROR,
                    message=f"{type(error).__name__}: {error}",
                    execution_time_ms=elapsed_ms,
                    synced_at=clock(),
                )
            )
            uow.commit()
    except Exception:
        log.exception(f"Could not write the sync log entry for {collection}")
