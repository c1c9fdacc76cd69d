"""Services for the leave workflow kernel (write side)."""

from leave_kernel.services.approval_ledger import ApprovalLedger
from leave_kernel.services.audit_recorder import AuditRecorder
from leave_kernel.services.balance_ledger import BalanceLedger
from leave_kernel.services.decision_service import (
    SYSTEM_ACTOR_ID,
    DecisionService,
    DecisionSettings,
)
from leave_kernel.services.level_registry import (
    ApprovalLevelRegistry,
    LevelSeed,
    seed_approval_levels,
)
from leave_kernel.services.sequence_service import SequenceService

__all__ = [
    "ApprovalLedger",
    "ApprovalLevelRegistry",
    "AuditRecorder",
    "BalanceLedger",
    "DecisionService",
    "DecisionSettings",
    "LevelSeed",
    "SYSTEM_ACTOR_ID",
    "SequenceService",
    "seed_approval_levels",
]
