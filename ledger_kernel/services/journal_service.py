"""
JournalService -- create, validate, post and reject journal entries.

Responsibility:
    The single write path for journal entries.  Validates lines against the
    chart of accounts, writes header and lines together, allocates entry
    numbers, and moves entries through draft -> approved / rejected.

Architecture position:
    Kernel > Services -- imperative shell.  Uses AccountDirectory for
    account state, SequenceService for numbering, domain.validation for the
    pure checks, and LedgerPolicy for the balance tolerance.

Invariants enforced:
    - Balance: |sum(debit) - sum(credit)| <= balance_tolerance, checked
      before the header is written and again at posting time.
    - Atomicity: header, lines and sequence increment share one savepoint;
      a failure after the header flush leaves no row behind.
    - Status transitions are compare-and-swap on (id, status, version).  A
      transition that matches zero rows raises instead of overwriting.

Failure modes:
    - ValidationError: malformed input, nothing written.
    - EntryNotFoundError / InvalidEntryStateError / UnbalancedEntryError:
      posting preconditions failed, state unchanged.
    - OptimisticLockError: another transaction moved the entry first.

Audit relevance:
    approved_by_id / approved_at and rejected_by_id / rejected_at /
    rejection_reason record who decided and when.  Every transition bumps
    ``version``.
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerPolicy, default_policy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import EntryValidationResult, JournalEntryRecord, LineSpec
from ledger_kernel.domain.validation import line_totals, validate_entry
from ledger_kernel.exceptions import (
    EntryNotFoundError,
    InvalidEntryStateError,
    OptimisticLockError,
    PostingError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    SourceType,
)
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")


class JournalService(BaseService):
    """
    Journal entry lifecycle.

    Contract:
        create_entry() returns a DRAFT record; post_entry() and
        reject_entry() are the only ways out of DRAFT.  Reversal lives in
        ReversalService and builds on this class.

    Non-goals:
        - Does NOT call session.commit(); wrap calls in session_scope() or
          the caller's own transaction.
    """

    def __init__(
        self,
        session: Session,
        directory: AccountDirectory | None = None,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self.directory = directory or AccountDirectory(session)
        self.policy = policy or default_policy()
        self._sequences = sequences or SequenceService(session)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_entry(
        self,
        entry_date: date | None,
        description: str | None,
        lines: Sequence[LineSpec],
    ) -> EntryValidationResult:
        """
        Run every creation check without writing anything.

        Returns:
            EntryValidationResult; inactive accounts appear as warnings.
        """
        accounts = self.directory.get_many(line.account_id for line in lines)
        return validate_entry(
            entry_date,
            description,
            lines,
            accounts,
            self.policy.balance_tolerance,
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_entry(
        self,
        entry_date: date,
        description: str,
        lines: Sequence[LineSpec],
        creator: UUID,
        reference: str | None = None,
        source_type: str | None = None,
        source_id: str | None = None,
        supplier_id: UUID | None = None,
        branch_id: str | None = None,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntryRecord:
        """
        Validate and persist a DRAFT entry with its lines.

        Preconditions:
            - At least two lines, each naming an existing account with
              exactly one positive side.
            - Lines balance within the policy tolerance.

        Postconditions:
            - A DRAFT entry with a fresh entry_number exists, or nothing was
              written at all.

        Raises:
            ValidationError: carrying every problem found.
        """
        lines = list(lines)
        with LogContext.bind(actor_id=creator, source_id=source_id):
            result = self.validate_entry(entry_date, description, lines)
            if not result.is_valid:
                logger.warning(
                    "journal_entry_validation_failed",
                    extra={"errors": list(result.errors), "line_count": len(lines)},
                )
                raise ValidationError(
                    list(result.errors),
                    warnings=list(result.warnings),
                    field_errors=result.field_errors,
                )
            for warning in result.warnings:
                logger.warning("journal_entry_warning", extra={"warning": warning})

            total_debit, total_credit = line_totals(lines)

            with self.session.begin_nested():
                entry_number = self._sequences.next_journal_number(
                    self.policy.numbering.journal_prefix, entry_date.year
                )
                entry = JournalEntry(
                    entry_number=entry_number,
                    entry_date=entry_date,
                    description=description.strip(),
                    reference=reference,
                    total_debit=total_debit,
                    total_credit=total_credit,
                    status=JournalEntryStatus.DRAFT,
                    source_type=source_type or SourceType.MANUAL.value,
                    source_id=source_id,
                    supplier_id=supplier_id,
                    branch_id=branch_id,
                    reversal_of_id=reversal_of_id,
                    version=1,
                    created_by_id=creator,
                )
                self.session.add(entry)
                self.session.flush()
                self._write_lines(entry, lines, creator)
                self.session.flush()

            logger.info(
                "journal_entry_created",
                extra={
                    "entry_id": str(entry.id),
                    "entry_number": entry_number,
                    "total_debit": total_debit,
                    "line_count": len(lines),
                    "source_type": entry.source_type,
                },
            )
            return JournalEntryRecord.from_model(entry)

    def _write_lines(
        self,
        entry: JournalEntry,
        lines: Sequence[LineSpec],
        creator: UUID,
    ) -> None:
        for seq, spec in enumerate(lines):
            entry.lines.append(
                JournalEntryLine(
                    journal_entry_id=entry.id,
                    account_id=spec.account_id,
                    description=spec.description or entry.description,
                    debit_amount=spec.debit,
                    credit_amount=spec.credit,
                    reference=spec.reference,
                    line_seq=seq,
                    created_by_id=creator,
                )
            )

    # =========================================================================
    # Transitions
    # =========================================================================

    def load_for_update(self, entry_id: UUID) -> JournalEntry:
        """Fresh, row-locked entry.

        Raises:
            EntryNotFoundError: if the id is unknown.
        """
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def compare_and_swap(
        self,
        entry: JournalEntry,
        expected: JournalEntryStatus,
        new_status: JournalEntryStatus,
        conflict: PostingError | OptimisticLockError | None = None,
        **fields,
    ) -> None:
        """
        Move ``entry`` from ``expected`` to ``new_status`` if, and only if,
        neither its status nor its version changed since it was read.

        Raises:
            ``conflict`` (default OptimisticLockError) when zero rows match.
        """
        result = self.session.execute(
            update(JournalEntry)
            .where(
                JournalEntry.id == entry.id,
                JournalEntry.status == expected,
                JournalEntry.version == entry.version,
            )
            .values(status=new_status, version=JournalEntry.version + 1, **fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "journal_entry_transition_conflict",
                extra={
                    "entry_id": str(entry.id),
                    "expected": expected.value,
                    "target": new_status.value,
                    "version": entry.version,
                },
            )
            raise conflict or OptimisticLockError("JournalEntry", str(entry.id))
        self.session.refresh(entry)

    def _stored_problems(self, entry: JournalEntry) -> list[str]:
        """Re-run validation over what is actually stored."""
        specs = [
            LineSpec(
                account_id=line.account_id,
                debit=line.debit_amount,
                credit=line.credit_amount,
            )
            for line in entry.lines
        ]
        result = self.validate_entry(entry.entry_date, entry.description, specs)
        problems = list(result.errors)

        line_debit, line_credit = line_totals(specs)
        tolerance = self.policy.balance_tolerance
        if abs(entry.total_debit - entry.total_credit) > tolerance:
            problems.append(
                f"Stored totals differ: debit {entry.total_debit}, credit {entry.total_credit}"
            )
        if entry.total_debit != line_debit or entry.total_credit != line_credit:
            problems.append("Stored totals do not match the entry lines")
        return problems

    def post_entry(self, entry_id: UUID, approver: UUID) -> JournalEntryRecord:
        """
        Approve a DRAFT entry.

        Raises:
            EntryNotFoundError, InvalidEntryStateError, UnbalancedEntryError.
            A lost compare-and-swap also raises InvalidEntryStateError.  On
            any of these nothing changes.
        """
        with LogContext.bind(actor_id=approver, entry_id=entry_id):
            with self.session.begin_nested():
                entry = self.load_for_update(entry_id)
                if entry.status != JournalEntryStatus.DRAFT:
                    raise InvalidEntryStateError(str(entry_id), entry.status.value, "post")

                problems = self._stored_problems(entry)
                if problems:
                    logger.warning(
                        "journal_entry_post_rejected",
                        extra={"errors": problems},
                    )
                    raise UnbalancedEntryError(str(entry_id), problems)

                self.compare_and_swap(
                    entry,
                    JournalEntryStatus.DRAFT,
                    JournalEntryStatus.APPROVED,
                    conflict=InvalidEntryStateError(str(entry_id), "modified", "post"),
                    approved_by_id=approver,
                    approved_at=self.clock.now(),
                    updated_by_id=approver,
                )

            logger.info(
                "journal_entry_posted",
                extra={"entry_number": entry.entry_number, "version": entry.version},
            )
            return JournalEntryRecord.from_model(entry)

    def reject_entry(self, entry_id: UUID, rejecter: UUID, reason: str) -> JournalEntryRecord:
        """
        Reject a DRAFT entry.  Terminal; the entry never reaches the ledger.

        Raises:
            ValidationError: blank reason.
            EntryNotFoundError, InvalidEntryStateError, OptimisticLockError.
        """
        if not reason or not reason.strip():
            raise ValidationError(
                ["Rejection reason is required"],
                field_errors={"reason": ["Rejection reason is required"]},
            )

        with LogContext.bind(actor_id=rejecter, entry_id=entry_id):
            with self.session.begin_nested():
                entry = self.load_for_update(entry_id)
                if entry.status != JournalEntryStatus.DRAFT:
                    raise InvalidEntryStateError(str(entry_id), entry.status.value, "reject")

                self.compare_and_swap(
                    entry,
                    JournalEntryStatus.DRAFT,
                    JournalEntryStatus.REJECTED,
                    rejected_by_id=rejecter,
                    rejected_at=self.clock.now(),
                    rejection_reason=reason.strip(),
                    updated_by_id=rejecter,
                )

            logger.info("journal_entry_rejected", extra={"entry_number": entry.entry_number})
            return JournalEntryRecord.from_model(entry)
