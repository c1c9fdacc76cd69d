"""
Leave Kernel - decision workflow engine for leave requests.

A five-level, role-gated approval pipeline with:
- Explicit transition table (blocking and consultative levels, HR final)
- Exactly-once, append-only approval recording
- Atomic decision units (approval + status + balance + audit)
- Serialized concurrent decisions per request
- Hash-chained audit trail
"""

__version__ = "0.1.0"
