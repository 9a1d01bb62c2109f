"""Stable identity keys for remote records.

A collection declares how its identity is built with a key spec:

* ``FieldKey`` reads one field (optionally falling back to alternative names),
* ``CompositeKey`` joins a parent key and a line number as ``"<parent>_<line>"``.

Numbers are rendered as canonical decimal strings so ``10``, ``10.0`` and ``"10"``
produce the same identity. Missing values resolve to ``UNKNOWN_IDENTITY``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

UNKNOWN_IDENTITY: Final[str] = "UNKNOWN"
COMPOSITE_SEPARATOR: Final[str] = "_"


@dataclass(frozen=True, slots=True)
class FieldKey:
    """Identity taken from a single field."""

    field: str
    fallbacks: tuple[str, ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return (self.field, *self.fallbacks)


@dataclass(frozen=True, slots=True)
class CompositeKey:
    """Identity of a line-structured record: parent id plus line number."""

    parent_field: str
    line_field: str


type KeySpec = FieldKey | CompositeKey


def extract_identity(record: Mapping[str, object], key_spec: KeySpec) -> str:
    """Return the identity of ``record`` according to ``key_spec``."""

    if isinstance(key_spec, CompositeKey):
        parent = normalize_key_value(record.get(key_spec.parent_field)) or UNKNOWN_IDENTITY
        line = normalize_key_value(record.get(key_spec.line_field)) or UNKNOWN_IDENTITY
        return f"{parent}{COMPOSITE_SEPARATOR}{line}"

    for name in key_spec.fields:
        value = normalize_key_value(record.get(name))
        if value is not None:
            return value
    return UNKNOWN_IDENTITY


def normalize_key_value(value: object) -> str | None:
    """Render a key field as a string, or ``None`` when it carries no value."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        number = Decimal(repr(value))
        if not number.is_finite():
            return None
        # -0.0 and 0 name the same key
        return "0" if number.is_zero() else _canonical_decimal(number)
    if isinstance(value, str):
        return value if value.strip() else None
    return None


def _canonical_decimal(number: Decimal) -> str:
    # normalize() strips trailing zeros, "f" keeps the plain positional form
    return format(number.normalize(), "f")
