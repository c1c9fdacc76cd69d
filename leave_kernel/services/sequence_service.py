"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for the audit trail.
    Uses the ``sequence_counters`` table with row-level locking
    (``SELECT ... FOR UPDATE``) so concurrent decisions never share or
    reorder a value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditRecorder.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value; aggregate-max-plus-one is never used.
    - The increment is transactional: a rolled-back unit gives its value
      back.

Counters are created up front by ``initialize_sequences()`` (run from
``create_tables``), so allocation never has to race on counter creation.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from leave_kernel.logging_config import get_logger
from leave_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- the atomic unit does.
    """

    AUDIT_ENTRY = "audit_entry"

    KNOWN_SEQUENCES = (AUDIT_ENTRY,)

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row, increments it and flushes.  The row stays
        locked until the caller's transaction ends.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # Setup skipped initialize_sequences(); the unique name still
            # guarantees a single counter under a race (loser's flush fails).
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing (None if the sequence is unknown)."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def initialize_sequences(self) -> None:
        """Create every known counter that does not exist yet."""
        for name in self.KNOWN_SEQUENCES:
            existing = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == name)
            ).scalar_one_or_none()

            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))

        self._session.flush()
