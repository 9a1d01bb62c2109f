"""Ports for fetching remote snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from dynasync.domain.collections import CollectionSpec


@dataclass(slots=True)
class SnapshotFetchResult:
    """Complete snapshot of one collection as returned by the remote system."""

    records: Sequence[Mapping[str, object]]
    endpoint: str
    payload_size: int = 0


@runtime_checkable
class SnapshotFetcher(Protocol):
    """Callable port returning the full current snapshot of a collection."""

    def __call__(self, collection: CollectionSpec) -> SnapshotFetchResult: ...


__all__ = ["SnapshotFetchResult", "SnapshotFetcher"]
