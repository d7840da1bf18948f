"""Read-only selectors over the ledger and reconciliation tables."""

from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LEDGER_STATUSES, LedgerSelector
from ledger_kernel.selectors.reconciliation_selector import ReconciliationSelector

__all__ = [
    "JournalSelector",
    "LedgerSelector",
    "LEDGER_STATUSES",
    "ReconciliationSelector",
]
