"""
Deterministic hashing utilities.

Used for workflow definition fingerprints (change detection on snapshots)
and for the audit hash chain. Output must be stable across processes.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Strip trailing zeros so 10.50 and 10.5 hash the same
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to a canonical JSON string.

    Keys sorted, no whitespace, and a fixed rendering for Decimal, datetime,
    UUID and Enum values.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: Any) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash of an audit event.

    H(entity_type|entity_id|action|payload_hash|prev_hash), with the
    literal "GENESIS" standing in for the first event's missing predecessor.
    """
    data = "|".join(
        [
            entity_type,
            str(entity_id),
            action,
            payload_hash,
            prev_hash or "GENESIS",
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
