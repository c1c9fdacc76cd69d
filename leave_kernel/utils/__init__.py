"""Utility modules for the leave workflow kernel."""

from leave_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_entry,
    hash_payload,
    to_json_safe,
)

__all__ = [
    "canonicalize_json",
    "hash_audit_entry",
    "hash_payload",
    "to_json_safe",
]
