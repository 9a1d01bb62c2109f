"""Incremental reconciliation of a snapshot against persisted fingerprints.

The engine loads the live fingerprint map of a collection once, then walks the
incoming snapshot in source order:

* known identity, different hash -> ``update`` (Updated)
* known identity, same hash -> ``touch`` (Unchanged)
* soft-deleted identity -> revived through ``update``/``touch`` (never New)
* unknown identity -> ``insert`` (New)

Identities persisted before the run but absent from the snapshot are soft-deleted
afterwards. Classification needs no per-record lookups, so a run costs one pass over
the snapshot plus one over the existing identities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from dynasync.domain.fingerprint import canonical_payload, fingerprint
from dynasync.domain.identity import extract_identity
from dynasync.domain.model import Classification

from .outcome import ClassifiedRecord, ReconciliationResult, RecordFailure, RecordOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from dynasync.domain.identity import KeySpec
    from dynasync.domain.ports.persistence import RecordRepository

log = getLogger(__name__)

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class ReconciliationEngine:
    """Reconcile collections against a record repository."""

    store: RecordRepository
    clock: Clock = field(default=utcnow)

    def reconcile(
        self,
        collection: str,
        records: Iterable[Mapping[str, object]],
        *,
        key: KeySpec,
    ) -> ReconciliationResult:
        """Classify ``records`` against the persisted state of ``collection``.

        Failures while loading the persisted state propagate; failures for single
        records are reported in the result.
        """

        existing_fingerprints = self.store.fingerprints_of(collection)
        existing_identities = self.store.identities_of(collection)
        deleted_fingerprints = self.store.deleted_fingerprints_of(collection)
        log.debug(
            "Reconciling %s against %d live and %d deleted records",
            collection,
            len(existing_fingerprints),
            len(deleted_fingerprints),
        )
        return reconcile_snapshot(
            records,
            collection=collection,
            key=key,
            existing_fingerprints=existing_fingerprints,
            existing_identities=existing_identities,
            deleted_fingerprints=deleted_fingerprints,
            store=self.store,
            now=self.clock(),
        )


def reconcile_snapshot(
    records: Iterable[Mapping[str, object]],
    *,
    collection: str,
    key: KeySpec,
    existing_fingerprints: Mapping[str, str],
    existing_identities: set[str],
    store: RecordRepository,
    now: datetime,
    deleted_fingerprints: Mapping[str, str] | None = None,
) -> ReconciliationResult:
    """Classify every record and soft-delete the identities that disappeared."""

    result = ReconciliationResult(collection=collection)
    seen: set[str] = set()
    # updated after every write so a repeated identity compares against the first copy
    known = dict(existing_fingerprints)
    tombstones = dict(deleted_fingerprints or {})

    for index, record in enumerate(records):
        identity: str | None = None
        try:
            identity = extract_identity(record, key)
            seen.add(identity)
            payload = canonical_payload(record)
            content_hash = fingerprint(payload)
            outcome = _apply(
                store,
                collection=collection,
                index=index,
                identity=identity,
                payload=payload,
                content_hash=content_hash,
                known=known,
                tombstones=tombstones,
                now=now,
            )
        except Exception as exc:  # noqa: BLE001
            outcome = RecordFailure(index=index, identity=identity, error=exc)
        result.outcomes.append(outcome)

    for identity in sorted(existing_identities - seen):
        try:
            store.mark_deleted(collection, identity, now=now)
        except Exception as exc:  # noqa: BLE001
            result.delete_failures.append(
                RecordFailure(index=None, identity=identity, error=exc, stage="delete")
            )
            continue
        result.deleted_identities.append(identity)

    return result


def _apply(
    store: RecordRepository,
    *,
    collection: str,
    index: int,
    identity: str,
    payload: str,
    content_hash: str,
    known: dict[str, str],
    tombstones: dict[str, str],
    now: datetime,
) -> RecordOutcome:
    resurrected = identity not in known and identity in tombstones
    previous_hash = known.get(identity, tombstones.get(identity))

    if previous_hash is None:
        store.insert(collection, identity, payload, content_hash, now=now)
        classification = Classification.NEW
    elif previous_hash != content_hash:
        store.update(collection, identity, payload, content_hash, now=now)
        classification = Classification.UPDATED
    else:
        store.touch(collection, identity, now=now)
        classification = Classification.UNCHANGED

    known[identity] = content_hash
    tombstones.pop(identity, None)
    return ClassifiedRecord(
        index=index,
        identity=identity,
        classification=classification,
        content_hash=content_hash,
        resurrected=resurrected,
    )
