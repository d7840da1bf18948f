"""
SupplierReconciliationService -- compare a supplier statement with the books.

Book balance is what the ledger says the business owes the supplier: credit
minus debit on the accounts-payable account, over approved (and reversed)
entries tagged with the supplier, inside the period.  Read-only; nothing is
written.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerPolicy, default_policy
from ledger_kernel.domain.dtos import (
    Period,
    SupplierDiscrepancy,
    SupplierReconciliationResult,
    to_decimal,
)
from ledger_kernel.domain.reconciliation import discrepancy_severity
from ledger_kernel.exceptions import SupplierNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.models.supplier import Supplier
from ledger_kernel.selectors.ledger_selector import LEDGER_STATUSES
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.base import BaseService

logger = get_logger("services.supplier_reconciliation")

AMOUNT_DIFFERENCE = "amount_difference"


class SupplierReconciliationService(BaseService):
    """Supplier statement reconciliation."""

    def __init__(
        self,
        session: Session,
        directory: AccountDirectory | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self.directory = directory or AccountDirectory(session)
        self.policy = policy or default_policy()

    def payable_balance(self, supplier_id: UUID, period: Period) -> Decimal:
        """Credit minus debit on accounts payable for the supplier's entries."""
        payable = self.directory.require_code(
            self.policy.account_codes.accounts_payable,
            context="supplier reconciliation",
        )
        row = self.session.execute(
            select(
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0).label("credits"),
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0).label("debits"),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntryLine.account_id == payable.id,
                JournalEntry.supplier_id == supplier_id,
                JournalEntry.status.in_(LEDGER_STATUSES),
                JournalEntry.entry_date >= period.start,
                JournalEntry.entry_date <= period.end,
            )
        ).one()
        return Decimal(str(row.credits)) - Decimal(str(row.debits))

    def reconcile_supplier(
        self,
        supplier_id: UUID,
        period: Period,
        statement_balance: Decimal | str,
    ) -> SupplierReconciliationResult:
        """
        Compare ``statement_balance`` with the payable balance.

        A difference beyond ``balance_tolerance`` yields one
        amount_difference discrepancy whose severity follows the policy
        bands.

        Raises:
            SupplierNotFoundError: unknown supplier.
            AccountMappingError: accounts-payable account missing.
        """
        statement_balance = to_decimal(statement_balance, "statement_balance")

        with LogContext.bind(source_id=supplier_id):
            supplier = self.session.get(Supplier, supplier_id)
            if supplier is None:
                raise SupplierNotFoundError(str(supplier_id))

            book_balance = self.payable_balance(supplier_id, period)
            difference = statement_balance - book_balance

            discrepancies: tuple[SupplierDiscrepancy, ...] = ()
            if abs(difference) > self.policy.balance_tolerance:
                bands = self.policy.discrepancy_severity
                discrepancies = (
                    SupplierDiscrepancy(
                        kind=AMOUNT_DIFFERENCE,
                        description=(
                            f"Balance difference: Supplier shows {statement_balance}, "
                            f"books show {book_balance}"
                        ),
                        expected=book_balance,
                        actual=statement_balance,
                        difference=difference,
                        severity=discrepancy_severity(
                            difference, bands.medium_above, bands.high_above
                        ),
                    ),
                )

            logger.info(
                "supplier_reconciled",
                extra={
                    "supplier_code": supplier.code,
                    "book_balance": book_balance,
                    "statement_balance": statement_balance,
                    "difference": difference,
                    "discrepancy_count": len(discrepancies),
                },
            )
            return SupplierReconciliationResult(
                supplier_id=supplier_id,
                period=period,
                book_balance=book_balance,
                statement_balance=statement_balance,
                difference=difference,
                discrepancies=discrepancies,
            )
