"""
ReconciliationService -- book-versus-statement reconciliation.

Responsibility:
    Creates reconciliation reports for one account and period, tracks
    reconciling items, books manual adjustments through the ledger, and
    gates completion on the variance threshold.

State machine:
    draft -> in_progress -> completed -> reviewed

    Adding or reconciling an item, or adding an adjustment, moves a draft
    report to in_progress.  Completed and reviewed reports are closed: any
    further edit raises ReconciliationClosedError.  A closed report is never
    reopened; a corrected statement gets a new report whose supersedes_id
    points at the closed one.

Invariants enforced:
    - book_balance is computed from ledger history inside the caller's
      transaction, never supplied.
    - reconciled_balance and variance are recomputed from scratch by
      domain.reconciliation after every change; callers cannot set them.
    - An adjustment exists only together with its approved journal entry;
      both are written in one savepoint.

Failure modes:
    - ReconciliationError: inactive/unknown account, item already
      reconciled, bad supersedes target, adjustment on another account.
    - ReportNotFoundError / ReconciliationItemNotFoundError.
    - ReconciliationClosedError.
    - VarianceExceededError: completion with variance above the threshold.
    - AccountMappingError: offset account missing from the chart.
    - ValidationError: non-positive amounts, unknown types, blank reason.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerPolicy, default_policy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    LineSpec,
    Period,
    ReconciliationAdjustmentRecord,
    ReconciliationItemRecord,
    ReconciliationItemSpec,
    ReconciliationReportRecord,
    to_decimal,
)
from ledger_kernel.domain.reconciliation import (
    ADJUSTMENT_TYPES,
    ITEM_TYPES,
    compute_reconciled_balance,
    compute_variance,
    within_threshold,
)
from ledger_kernel.exceptions import (
    ReconciliationClosedError,
    ReconciliationError,
    ReconciliationItemNotFoundError,
    ReportNotFoundError,
    ValidationError,
    VarianceExceededError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.reconciliation import (
    AdjustmentType,
    ReconciliationAdjustment,
    ReconciliationItem,
    ReconciliationItemType,
    ReconciliationReport,
    ReconciliationStatus,
)
from ledger_kernel.models.journal import SourceType
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reconciliation")

ZERO = Decimal("0")


def _invalid(field: str, message: str) -> ValidationError:
    return ValidationError([message], field_errors={field: [message]})


class ReconciliationService(BaseService):
    """
    Reconciliation workflow.

    Non-goals:
        - Statement import or matching; items are entered by the caller.
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        journal: JournalService | None = None,
        directory: AccountDirectory | None = None,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock or (journal.clock if journal else None))
        self.policy = policy or (journal.policy if journal else default_policy())
        self.directory = directory or (journal.directory if journal else AccountDirectory(session))
        self.journal = journal or JournalService(
            session, directory=self.directory, policy=self.policy, clock=self.clock
        )
        self.ledger = LedgerSelector(session)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Loading and recomputation
    # =========================================================================

    def _load_report(self, report_id: UUID) -> ReconciliationReport:
        report = self.session.execute(
            select(ReconciliationReport)
            .where(ReconciliationReport.id == report_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if report is None:
            raise ReportNotFoundError(str(report_id))
        return report

    def _load_open_report(self, report_id: UUID) -> ReconciliationReport:
        report = self._load_report(report_id)
        if report.status.is_closed:
            raise ReconciliationClosedError(str(report_id), report.status.value)
        return report

    def _recompute(self, report: ReconciliationReport) -> None:
        report.reconciled_balance = compute_reconciled_balance(
            report.book_balance, report.items, report.adjustments
        )
        report.variance = compute_variance(report.reconciled_balance, report.statement_balance)

    def _touch(self, report: ReconciliationReport, actor: UUID) -> None:
        if report.status == ReconciliationStatus.DRAFT:
            report.status = ReconciliationStatus.IN_PROGRESS
        report.updated_by_id = actor
        self._recompute(report)
        self.session.flush()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_reconciliation(
        self,
        account_id: UUID,
        period: Period,
        statement_balance: Decimal | str,
        creator: UUID,
        notes: str | None = None,
        supersedes_id: UUID | None = None,
    ) -> ReconciliationReportRecord:
        """
        Open a report for ``account_id`` over ``period``.

        book_balance is read from approved ledger history in the current
        transaction; reconciled_balance starts equal to it.
        """
        statement_balance = to_decimal(statement_balance, "statement_balance")

        with LogContext.bind(actor_id=creator):
            account = self.directory.get_by_id(account_id)
            if account is None or not account.is_active:
                raise ReconciliationError(
                    "Account not found or inactive", account_id=str(account_id)
                )

            with self.session.begin_nested():
                if supersedes_id is not None:
                    self._check_supersedes(supersedes_id, account_id)

                book_balance = self.ledger.book_balance(account_id, period.start, period.end)
                report_number = self._sequences.next_report_number(
                    self.policy.numbering.report_prefix, period.start.year
                )
                report = ReconciliationReport(
                    report_number=report_number,
                    period_start=period.start,
                    period_end=period.end,
                    fiscal_year=period.start.year,
                    account_id=account_id,
                    book_balance=book_balance,
                    statement_balance=statement_balance,
                    reconciled_balance=book_balance,
                    variance=compute_variance(book_balance, statement_balance),
                    status=ReconciliationStatus.DRAFT,
                    notes=notes,
                    supersedes_id=supersedes_id,
                    created_by_id=creator,
                )
                self.session.add(report)
                self.session.flush()

            logger.info(
                "reconciliation_created",
                extra={
                    "report_id": str(report.id),
                    "report_number": report_number,
                    "account_code": account.code,
                    "book_balance": book_balance,
                    "statement_balance": statement_balance,
                    "variance": report.variance,
                },
            )
            return ReconciliationReportRecord.from_model(report)

    def _check_supersedes(self, supersedes_id: UUID, account_id: UUID) -> None:
        previous = self.session.get(ReconciliationReport, supersedes_id)
        if previous is None:
            raise ReportNotFoundError(str(supersedes_id))
        if not previous.status.is_closed:
            raise ReconciliationError(
                "Only a completed or reviewed report can be superseded",
                report_id=str(supersedes_id),
                status=previous.status.value,
            )
        if previous.account_id != account_id:
            raise ReconciliationError(
                "Superseded report belongs to a different account",
                report_id=str(supersedes_id),
            )

    # =========================================================================
    # Items
    # =========================================================================

    def add_item(
        self,
        report_id: UUID,
        spec: ReconciliationItemSpec,
        creator: UUID,
    ) -> ReconciliationItemRecord:
        """Attach a reconciling item.  It carries no weight until reconciled."""
        if spec.amount <= ZERO:
            raise _invalid("amount", "Item amount must be positive")
        if spec.item_type not in ITEM_TYPES:
            raise _invalid("item_type", f"Unknown item type: {spec.item_type}")
        if not spec.description or not spec.description.strip():
            raise _invalid("description", "Item description is required")

        with LogContext.bind(actor_id=creator, report_id=report_id):
            with self.session.begin_nested():
                report = self._load_open_report(report_id)
                item = ReconciliationItem(
                    report_id=report.id,
                    description=spec.description.strip(),
                    amount=spec.amount,
                    item_type=ReconciliationItemType(spec.item_type),
                    is_reconciled=False,
                    transaction_id=spec.transaction_id,
                    notes=spec.notes,
                    created_by_id=creator,
                )
                report.items.append(item)
                self._touch(report, creator)

            logger.info(
                "reconciliation_item_added",
                extra={"item_type": spec.item_type, "amount": spec.amount},
            )
            return ReconciliationItemRecord.from_model(item)

    def reconcile_item(self, item_id: UUID, reconciler: UUID) -> ReconciliationItemRecord:
        """
        Mark an item reconciled.  One-way: a second call raises.
        """
        with LogContext.bind(actor_id=reconciler):
            with self.session.begin_nested():
                item = self.session.get(ReconciliationItem, item_id, populate_existing=True)
                if item is None:
                    raise ReconciliationItemNotFoundError(str(item_id))
                report = self._load_open_report(item.report_id)
                if item.is_reconciled:
                    raise ReconciliationError(
                        "Item is already reconciled", item_id=str(item_id)
                    )

                item.is_reconciled = True
                item.reconciled_at = self.clock.now()
                item.reconciled_by_id = reconciler
                item.updated_by_id = reconciler
                self._touch(report, reconciler)

            logger.info(
                "reconciliation_item_reconciled",
                extra={
                    "report_id": str(report.id),
                    "item_id": str(item_id),
                    "reconciled_balance": report.reconciled_balance,
                    "variance": report.variance,
                },
            )
            return ReconciliationItemRecord.from_model(item)

    # =========================================================================
    # Adjustments
    # =========================================================================

    def add_manual_adjustment(
        self,
        report_id: UUID,
        amount: Decimal | str,
        adjustment_type: str,
        reason: str,
        account_id: UUID,
        creator: UUID,
        description: str | None = None,
    ) -> ReconciliationAdjustmentRecord:
        """
        Book a correcting entry and record it against the report.

        The entry has two lines: ``account_id`` on the adjustment side and
        the configured offset account on the other.  It is created, posted
        and linked inside one savepoint, so a failure at any step leaves
        neither the entry nor the adjustment.

        Raises:
            AccountMappingError: offset account missing or inactive.
            ReconciliationError: ``account_id`` is not the report's account,
                or the report is on the offset account itself.
        """
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise _invalid("amount", "Adjustment amount must be positive")
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise _invalid("adjustment_type", f"Unknown adjustment type: {adjustment_type}")
        if not reason or not reason.strip():
            raise _invalid("reason", "Adjustment reason is required")
        description = (description or reason).strip()

        with LogContext.bind(actor_id=creator, report_id=report_id):
            offset = self.directory.require_code(
                self.policy.account_codes.reconciliation_offset,
                context="reconciliation adjustment",
            )

            with self.session.begin_nested():
                report = self._load_open_report(report_id)
                if account_id != report.account_id:
                    raise ReconciliationError(
                        "Adjustment must post to the account being reconciled",
                        report_id=str(report.id),
                        account_id=str(account_id),
                    )
                if account_id == offset.id:
                    raise ReconciliationError(
                        "Adjustment offset account cannot be reconciled against itself",
                        report_id=str(report.id),
                        account_id=str(account_id),
                    )

                if adjustment_type == AdjustmentType.DEBIT.value:
                    lines = [
                        LineSpec.debit_line(account_id, amount, description),
                        LineSpec.credit_line(offset.id, amount, f"Offset for: {description}"),
                    ]
                else:
                    lines = [
                        LineSpec.credit_line(account_id, amount, description),
                        LineSpec.debit_line(offset.id, amount, f"Offset for: {description}"),
                    ]

                draft = self.journal.create_entry(
                    entry_date=self.clock.today(),
                    description=f"Reconciliation Adjustment: {description}",
                    lines=lines,
                    creator=creator,
                    reference=f"{report.report_number}-ADJ-{len(report.adjustments) + 1}",
                    source_type=SourceType.RECONCILIATION_ADJUSTMENT.value,
                    source_id=str(report.id),
                )
                entry = self.journal.post_entry(draft.id, creator)

                adjustment = ReconciliationAdjustment(
                    report_id=report.id,
                    journal_entry_id=entry.id,
                    account_id=account_id,
                    description=description,
                    amount=amount,
                    adjustment_type=AdjustmentType(adjustment_type),
                    reason=reason.strip(),
                    created_by_id=creator,
                )
                report.adjustments.append(adjustment)
                self._touch(report, creator)

            logger.info(
                "adjustment_posted",
                extra={
                    "entry_number": entry.entry_number,
                    "adjustment_type": adjustment_type,
                    "amount": amount,
                    "variance": report.variance,
                },
            )
            return ReconciliationAdjustmentRecord.from_model(adjustment)

    # =========================================================================
    # Closing
    # =========================================================================

    def complete_reconciliation(
        self, report_id: UUID, reconciler: UUID
    ) -> ReconciliationReportRecord:
        """
        Close the report.  A variance equal to the threshold passes.

        Raises:
            VarianceExceededError: variance above the threshold.
        """
        threshold = self.policy.variance_threshold
        with LogContext.bind(actor_id=reconciler, report_id=report_id):
            with self.session.begin_nested():
                report = self._load_open_report(report_id)
                self._recompute(report)
                if not within_threshold(report.variance, threshold):
                    logger.warning(
                        "reconciliation_variance_exceeded",
                        extra={"variance": report.variance, "threshold": threshold},
                    )
                    raise VarianceExceededError(
                        str(report_id), str(report.variance), str(threshold)
                    )

                report.status = ReconciliationStatus.COMPLETED
                report.reconciled_by_id = reconciler
                report.reconciled_at = self.clock.now()
                report.updated_by_id = reconciler
                self.session.flush()

            logger.info(
                "reconciliation_completed",
                extra={"report_number": report.report_number, "variance": report.variance},
            )
            return ReconciliationReportRecord.from_model(report)

    def review_reconciliation(
        self, report_id: UUID, reviewer: UUID
    ) -> ReconciliationReportRecord:
        """completed -> reviewed."""
        with LogContext.bind(actor_id=reviewer, report_id=report_id):
            with self.session.begin_nested():
                report = self._load_report(report_id)
                if report.status != ReconciliationStatus.COMPLETED:
                    raise ReconciliationError(
                        f"Only completed reports can be reviewed (status: {report.status.value})",
                        report_id=str(report_id),
                        status=report.status.value,
                    )
                report.status = ReconciliationStatus.REVIEWED
                report.reviewed_by_id = reviewer
                report.reviewed_at = self.clock.now()
                report.updated_by_id = reviewer
                self.session.flush()

            logger.info("reconciliation_reviewed", extra={"report_number": report.report_number})
            return ReconciliationReportRecord.from_model(report)
