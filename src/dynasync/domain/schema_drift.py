"""Discover the field paths of a collection and track how its schema drifts.

Records are flattened into dotted paths (``Dimensions.Site``). Each path gets a
coarse type, an occurrence count and a short sample value. The observations of one
run are then merged into the persisted tag catalog; paths the catalog has never
seen are reported as new fields.

Arrays are sampled, not exhausted: only their first element is walked, so element
shapes that only appear later in an array go unnoticed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from dynasync.domain.model import DataType, SchemaTag
from dynasync.domain.reconciliation import utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from datetime import datetime

    from dynasync.domain.ports.persistence import SchemaTagRepository
    from dynasync.domain.reconciliation import Clock

log = getLogger(__name__)

MAX_TAG_PATH_LENGTH: Final[int] = 255
MAX_SAMPLE_LENGTH: Final[int] = 100
TRUNCATION_MARKER: Final[str] = "..."
PATH_SEPARATOR: Final[str] = "."


def infer_data_type(value: object) -> DataType:
    if value is None:
        return DataType.NULL
    if isinstance(value, bool):
        return DataType.BOOLEAN
    if isinstance(value, int | float):
        return DataType.NUMBER
    if isinstance(value, str):
        return DataType.STRING
    if isinstance(value, list | tuple):
        return DataType.ARRAY
    if isinstance(value, dict):
        return DataType.OBJECT
    return DataType.UNKNOWN


def truncate(value: str, limit: int) -> str:
    """Cut ``value`` to ``limit`` characters, ending with the truncation marker."""

    if len(value) <= limit:
        return value
    return value[: max(limit - len(TRUNCATION_MARKER), 0)] + TRUNCATION_MARKER


def sample_preview(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        text = value
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, dict | list | tuple):
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    else:
        text = str(value)
    return truncate(text, MAX_SAMPLE_LENGTH)


def iter_paths(value: object, prefix: str = "") -> Iterator[tuple[str, object]]:
    """Yield ``(path, value)`` for every object key reachable from ``value``."""

    if isinstance(value, dict):
        mapping: Mapping[object, object] = value
        for key, child in mapping.items():
            path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else str(key)
            yield truncate(path, MAX_TAG_PATH_LENGTH), child
            yield from iter_paths(child, path)
    elif isinstance(value, list | tuple) and value:
        yield from iter_paths(value[0], prefix)


@dataclass(slots=True)
class PathObservation:
    """What one run saw for a path."""

    path: str
    data_type: DataType
    first_seen_at: datetime
    last_seen_at: datetime
    occurrence_count: int = 1
    sample_value: str | None = None

    def observe(self, data_type: DataType, sample: str | None, *, at: datetime) -> None:
        self.occurrence_count += 1
        self.last_seen_at = max(self.last_seen_at, at)
        # a non-null reading is more informative than a null one
        if data_type is not DataType.NULL:
            self.data_type = data_type
            self.sample_value = sample

    def absorb(self, other: PathObservation) -> None:
        self.occurrence_count += other.occurrence_count
        self.first_seen_at = min(self.first_seen_at, other.first_seen_at)
        self.last_seen_at = max(self.last_seen_at, other.last_seen_at)
        if other.data_type is not DataType.NULL:
            self.data_type = other.data_type
            self.sample_value = other.sample_value


@dataclass(slots=True)
class SchemaObservations:
    """In-run map of path observations.

    Partial maps (one per worker or per batch) combine with ``merge``; merging in
    source order gives the same map as observing every record sequentially.
    """

    paths: dict[str, PathObservation] = field(default_factory=dict[str, PathObservation])
    records_seen: int = 0

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, object]], *, at: datetime
    ) -> SchemaObservations:
        observations = cls()
        for record in records:
            observations.observe_record(record, at=at)
        return observations

    def observe_record(self, record: Mapping[str, object], *, at: datetime) -> None:
        self.records_seen += 1
        for path, value in iter_paths(record):
            data_type = infer_data_type(value)
            sample = sample_preview(value)
            existing = self.paths.get(path)
            if existing is None:
                self.paths[path] = PathObservation(
                    path=path,
                    data_type=data_type,
                    first_seen_at=at,
                    last_seen_at=at,
                    sample_value=sample,
                )
            else:
                existing.observe(data_type, sample, at=at)

    def merge(self, other: SchemaObservations) -> SchemaObservations:
        """Fold ``other`` into this map and return it."""

        self.records_seen += other.records_seen
        for path, observation in other.paths.items():
            existing = self.paths.get(path)
            if existing is None:
                self.paths[path] = PathObservation(
                    path=observation.path,
                    data_type=observation.data_type,
                    first_seen_at=observation.first_seen_at,
                    last_seen_at=observation.last_seen_at,
                    occurrence_count=observation.occurrence_count,
                    sample_value=observation.sample_value,
                )
            else:
                existing.absorb(observation)
        return self

    def __len__(self) -> int:
        return len(self.paths)


@dataclass(frozen=True, slots=True)
class TypeChange:
    path: str
    previous: DataType
    current: DataType


@dataclass(slots=True)
class SchemaDriftResult:
    collection: str
    observed_paths: int = 0
    new_paths: list[str] = field(default_factory=list[str])
    updated_paths: list[str] = field(default_factory=list[str])
    type_changes: list[TypeChange] = field(default_factory=list[TypeChange])

    @property
    def has_drift(self) -> bool:
        return bool(self.new_paths or self.type_changes)


@dataclass(slots=True)
class SchemaDriftAnalyzer:
    """Merge the paths observed in a snapshot into a persisted tag catalog."""

    catalog: SchemaTagRepository
    clock: Clock = field(default=utcnow)

    def analyze(
        self, collection: str, records: Iterable[Mapping[str, object]]
    ) -> SchemaDriftResult:
        observations = SchemaObservations.from_records(records, at=self.clock())
        return self.apply(collection, observations)

    def apply(self, collection: str, observations: SchemaObservations) -> SchemaDriftResult:
        known = self.catalog.tag_catalog(collection)
        result = SchemaDriftResult(collection=collection, observed_paths=len(observations))

        for path, observation in observations.paths.items():
            tag = known.get(path)
            if tag is None:
                self.catalog.upsert_tag(
                    SchemaTag(
                        collection=collection,
                        path=path,
                        data_type=observation.data_type,
                        occurrence_count=observation.occurrence_count,
                        first_seen_at=observation.first_seen_at,
                        last_seen_at=observation.last_seen_at,
                        sample_value=observation.sample_value,
                    )
                )
                result.new_paths.append(path)
                continue

            tag.occurrence_count += observation.occurrence_count
            tag.last_seen_at = max(tag.last_seen_at, observation.last_seen_at)
            if observation.data_type is not DataType.NULL:
                if tag.data_type != observation.data_type:
                    result.type_changes.append(
                        TypeChange(path=path, previous=tag.data_type, current=observation.data_type)
                    )
                tag.data_type = observation.data_type
                tag.sample_value = observation.sample_value
            self.catalog.upsert_tag(tag)
            result.updated_paths.append(path)

        if result.new_paths:
            log.info(
                "Detected %d new schema fields in %s: %s",
                len(result.new_paths),
                collection,
                ", ".join(result.new_paths[:10]),
            )
        for change in result.type_changes:
            log.warning(
                "Schema field %s of %s changed type: %s -> %s",
                change.path,
                collection,
                change.previous,
                change.current,
            )
        return result
