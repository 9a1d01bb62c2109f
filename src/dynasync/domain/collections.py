"""Collections known to the sync: which endpoint to read and how to key records."""

from __future__ import annotations

from dataclasses import dataclass

from dynasync.domain.identity import CompositeKey, FieldKey, KeySpec


@dataclass(frozen=True, slots=True)
class CollectionSpec:
    name: str
    endpoint: str
    key: KeySpec


ARTICLES = CollectionSpec(
    name="articles",
    endpoint="BRINT34ReleasedProducts",
    key=FieldKey("ItemNumber", fallbacks=("ProductNumber",)),
)

ORDER_LINES = CollectionSpec(
    name="order-lines",
    endpoint="SalesOrderLines",
    key=CompositeKey("SalesOrderNumber", "LineCreationSequenceNumber"),
)

DEFAULT_COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec for spec in (ARTICLES, ORDER_LINES)
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return DEFAULT_COLLECTIONS[name]
    except KeyError:
        known = ", ".join(sorted(DEFAULT_COLLECTIONS))
        raise ValueError(f"Unknown collection {name!r} (known: {known})") from None
