"""Synchronization defaults for collection syncs."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError

DEFAULT_FAIL_ERROR_RATIO = 0.5

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class SyncConfig:
    # runs whose share of failed records exceeds this ratio are reported as ERROR
    fail_error_ratio: float = DEFAULT_FAIL_ERROR_RATIO
    allow_empty_snapshot: bool = False


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        fail_error_ratio=_read_fail_error_ratio(),
        allow_empty_snapshot=_read_allow_empty(),
    )


def _read_fail_error_ratio() -> float:
    raw_ratio = os.getenv("DYNASYNC_FAIL_ERROR_RATIO")
    if raw_ratio is None or not raw_ratio.strip():
        return DEFAULT_FAIL_ERROR_RATIO
    try:
        ratio = float(raw_ratio)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid DYNASYNC_FAIL_ERROR_RATIO: {raw_ratio}") from exc
    if not 0.0 <= ratio <= 1.0:
        raise ConfigurationError("DYNASYNC_FAIL_ERROR_RATIO must be between 0 and 1")
    return ratio


def _read_allow_empty() -> bool:
    raw = os.getenv("DYNASYNC_ALLOW_EMPTY")
    if raw is None or not raw.strip():
        return False
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid DYNASYNC_ALLOW_EMPTY: {raw}")
