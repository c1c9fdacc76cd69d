"""
Hashes for the audit chain.

Audit payloads are hashed over their canonical JSON form (sorted keys,
compact separators, UUID / date / datetime / enum rendered as strings), so
an entry re-read from any backend hashes to the value stored with it.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# Stands in for the predecessor hash of the first entry in the chain.
GENESIS = "GENESIS"

_SEPARATOR = "|"


def _encode_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"cannot encode {type(value).__name__} in an audit payload")


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_value)


def to_json_safe(data: Any) -> Any:
    """``data`` as plain JSON types, exactly as a JSON column will return it."""
    return json.loads(canonicalize_json(data))


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict | None) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_entry(
    entity_type: str,
    entity_id: str | UUID,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """SHA-256 over ``entity_type|entity_id|action|payload_hash|prev_hash``.

    ``prev_hash`` of None (first entry) is hashed as ``GENESIS``.
    """
    return _sha256(
        _SEPARATOR.join(
            (entity_type, str(entity_id), action, payload_hash, prev_hash or GENESIS)
        )
    )
