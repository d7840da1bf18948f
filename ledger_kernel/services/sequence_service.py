"""
SequenceService -- year-scoped document numbers from locked counter rows.

Responsibility:
    Allocates strictly increasing numbers for journal entries
    (``JE-2024-000001``) and reconciliation reports (``RECON-2024-0001``).
    Each (kind, year) pair has its own counter row in ``sequence_counters``.

Invariants enforced:
    - The locked counter row is the sole source of the next value.  The
      aggregate max-plus-one pattern is never used.
    - Allocation is transactional: if the caller's savepoint rolls back, the
      increment rolls back with it.

Failure modes:
    - IntegrityError when two transactions create the same counter row at
      once; handled by rolling back an inner savepoint and re-reading.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One named counter, e.g. ``journal_entry:2024``."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(60),
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
    Transactional sequence allocation.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    JOURNAL_ENTRY = "journal_entry"
    RECONCILIATION_REPORT = "reconciliation_report"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        # FOR UPDATE serializes concurrent allocations; SQLite ignores it and
        # relies on its database-level write lock instead.
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment, and
        return the new value.  Always > 0.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_number(self, kind: str, prefix: str, year: int, width: int) -> str:
        """Allocate and format ``<prefix>-<year>-<zero-padded value>``."""
        value = self.next_value(f"{kind}:{year}")
        return f"{prefix}-{year}-{value:0{width}d}"

    def next_journal_number(self, prefix: str, year: int) -> str:
        return self.next_number(self.JOURNAL_ENTRY, prefix, year, 6)

    def next_report_number(self, prefix: str, year: int) -> str:
        return self.next_number(self.RECONCILIATION_REPORT, prefix, year, 4)
