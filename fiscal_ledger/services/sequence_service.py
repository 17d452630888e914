"""
SequenceService -- monotonic sequence allocation via counter rows.

Responsibility:
    Hands out strictly increasing numbers for named sequences.  The ledger
    uses the ``journal_entry`` sequence to record the order in which
    journal entries were created; ledger projections break same-day ties
    with it.

Invariants enforced:
    - The counter row is the sole source of truth.  max()+1 over the
      journal table is never used.
    - Each allocation is a single ``UPDATE ... RETURNING``; the row stays
      locked until the caller's transaction ends, and a rollback returns
      the value.

Failure modes:
    - IntegrityError if two transactions create the same missing counter
      at once.  ``initialize_sequences`` (run by ``create_tables``) creates
      the well-known counters up front so this cannot happen for them.
"""

from sqlalchemy import BigInteger, String, select, update
from sqlalchemy.orm import Mapped, Session, mapped_column

from fiscal_ledger.db.base import Base
from fiscal_ledger.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """Named counter; one row per sequence."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Values are unique and increasing, not gap-free across rollbacks
          of unrelated work.

    Usage:
        seq = sequence_service.next_value(SequenceService.JOURNAL_ENTRY)
    """

    JOURNAL_ENTRY = "journal_entry"

    WELL_KNOWN = (JOURNAL_ENTRY,)

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """
        Increment and return the named sequence.

        Postconditions:
            Returns an integer > 0 strictly greater than any value
            previously returned for ``sequence_name``.
        """
        value = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if value is None:
            # First use of an ad-hoc sequence
            self._session.add(SequenceCounter(name=sequence_name, current_value=1))
            self._session.flush()
            value = 1

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if the sequence is unknown."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def initialize_sequences(self) -> None:
        """Create every well-known counter that does not exist yet."""
        for name in self.WELL_KNOWN:
            if self.current_value(name) is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
        self._session.flush()
