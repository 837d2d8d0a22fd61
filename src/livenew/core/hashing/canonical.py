"""Canonical JSON and SHA-256 helpers.

Everything that feeds a cache key, ETag or seed goes through these helpers
so that two semantically identical values always hash the same:

* object keys are sorted recursively;
* array elements are sorted recursively (by their own canonical form);
* ``None`` values inside objects are kept, they are part of the value.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonicalize(value: Any) -> Any:
    """Return a copy of ``value`` with sorted keys and sorted arrays."""
    if isinstance(value, dict):
        return {str(k): canonicalize(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [canonicalize(v) for v in value]
        return sorted(items, key=_dump)
    return value


def stable_stringify(value: Any) -> str:
    """Serialize ``value`` as compact canonical JSON."""
    return _dump(canonicalize(value))


def sha256_hex(text: str) -> str:
    """Hex SHA-256 of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_parts(parts: list[str]) -> str:
    """SHA-256 of ``parts`` joined with ``|``."""
    return sha256_hex("|".join(parts))


def hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON, or empty string if not serializable.

    Used for audit records so raw check-in values never reach the logs.
    """
    try:
        return sha256_hex(stable_stringify(data))
    except (TypeError, ValueError):
        return ""


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
