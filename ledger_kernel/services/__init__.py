"""
Ledger write services.

All services flush inside the caller's transaction and never commit.
"""

from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.event_posting_service import EventPostingService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService
from ledger_kernel.services.supplier_reconciliation_service import (
    SupplierReconciliationService,
)

__all__ = [
    "AccountDirectory",
    "EventPostingService",
    "JournalService",
    "ReconciliationService",
    "ReversalService",
    "SequenceCounter",
    "SequenceService",
    "SupplierReconciliationService",
]
