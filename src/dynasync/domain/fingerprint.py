"""Canonical serialization and content hashing of records."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


def canonical_payload(record: Mapping[str, object]) -> str:
    """Serialize ``record`` as compact JSON, keeping the source field order."""

    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


def fingerprint(payload: str | bytes) -> str:
    """Return the SHA-256 hex digest of ``payload``."""

    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    return hashlib.sha256(data).hexdigest()
