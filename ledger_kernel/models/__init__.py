"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    SourceType,
)
from ledger_kernel.models.reconciliation import (
    AdjustmentType,
    ReconciliationAdjustment,
    ReconciliationItem,
    ReconciliationItemType,
    ReconciliationReport,
    ReconciliationStatus,
)
from ledger_kernel.models.supplier import Supplier

__all__ = [
    "Account",
    "AccountType",
    "Supplier",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "SourceType",
    "ReconciliationReport",
    "ReconciliationItem",
    "ReconciliationAdjustment",
    "ReconciliationStatus",
    "ReconciliationItemType",
    "AdjustmentType",
]
