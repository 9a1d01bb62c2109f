"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class DataType(StrEnum):
    """Coarse JSON value kind recorded for a schema path."""

    STRING = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    ARRAY = "Array"
    OBJECT = "Object"
    NULL = "Null"
    UNKNOWN = "Unknown"


class Classification(StrEnum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class SyncStatus(StrEnum):
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
