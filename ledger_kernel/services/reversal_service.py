"""
ReversalService -- undo an approved journal entry with a mirror entry.

Responsibility:
    Builds the reversal entry (every line's debit and credit swapped),
    posts it, and flips the original from approved to reversed, all inside
    one savepoint.

Invariants enforced:
    - Amounts on the original never change; only its status and reversal
      audit fields move.
    - At most one reversal per original: the status compare-and-swap is the
      primary guard, the unique constraint on reversal_of_id the second.
    - The pair nets to zero on every account, so balances derived from the
      ledger are exactly as if the original had never been approved.

Failure modes:
    - EntryNotFoundError: unknown id.
    - InvalidEntryStateError: original is draft or rejected.
    - EntryAlreadyReversedError: original already reversed, including when a
      concurrent reversal wins the race.
    - ValidationError: blank reason.
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalEntryRecord, LineSpec
from ledger_kernel.exceptions import (
    EntryAlreadyReversedError,
    InvalidEntryStateError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, SourceType
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService

logger = get_logger("services.reversal")


class ReversalService(BaseService):
    """
    Full reversal of approved entries.

    Non-goals:
        - Partial (line-level) reversal.
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        journal: JournalService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock or (journal.clock if journal else None))
        self.journal = journal or JournalService(session, clock=self.clock)

    @staticmethod
    def mirror_lines(original: JournalEntry) -> list[LineSpec]:
        return [
            LineSpec(
                account_id=line.account_id,
                debit=line.debit_amount,
                credit=line.credit_amount,
                description=line.description,
                reference=line.reference,
            ).swapped()
            for line in original.lines
        ]

    def reverse_entry(self, entry_id: UUID, reason: str, reverser: UUID) -> JournalEntryRecord:
        """
        Reverse an approved entry.

        Postconditions:
            - A new APPROVED entry dated today (per the injected clock) with
              reference ``REV-<original number>`` and reversal_of_id set.
            - The original is REVERSED with reverser, time and reason.

        Returns:
            The reversal entry.
        """
        if not reason or not reason.strip():
            raise ValidationError(
                ["Reversal reason is required"],
                field_errors={"reason": ["Reversal reason is required"]},
            )
        reason = reason.strip()

        with LogContext.bind(actor_id=reverser, entry_id=entry_id):
            try:
                with self.session.begin_nested():
                    original = self.journal.load_for_update(entry_id)
                    if original.status == JournalEntryStatus.REVERSED:
                        raise EntryAlreadyReversedError(str(entry_id))
                    if original.status != JournalEntryStatus.APPROVED:
                        raise InvalidEntryStateError(
                            str(entry_id), original.status.value, "reverse"
                        )

                    draft = self.journal.create_entry(
                        entry_date=self.clock.today(),
                        description=f"Reversal of {original.entry_number}: {reason}",
                        lines=self.mirror_lines(original),
                        creator=reverser,
                        reference=f"REV-{original.entry_number}",
                        source_type=SourceType.REVERSAL.value,
                        source_id=str(original.id),
                        supplier_id=original.supplier_id,
                        branch_id=original.branch_id,
                        reversal_of_id=original.id,
                    )
                    reversal = self.journal.post_entry(draft.id, reverser)

                    self.journal.compare_and_swap(
                        original,
                        JournalEntryStatus.APPROVED,
                        JournalEntryStatus.REVERSED,
                        conflict=EntryAlreadyReversedError(str(entry_id)),
                        reversed_by_id=reverser,
                        reversed_at=self.clock.now(),
                        reversal_reason=reason,
                        updated_by_id=reverser,
                    )
            except IntegrityError as exc:
                if "reversal_of" not in str(exc.orig):
                    raise
                logger.warning("reversal_conflict", extra={"error": str(exc.orig)})
                raise EntryAlreadyReversedError(str(entry_id)) from exc

            logger.info(
                "reversal_completed",
                extra={
                    "original_number": original.entry_number,
                    "reversal_number": reversal.entry_number,
                    "amount": reversal.total_debit,
                },
            )
            return reversal
