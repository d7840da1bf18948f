"""
Ledger Kernel

Double-entry journal ledger and reconciliation engine for the retail
operations console:
- Balanced journal entry creation, posting, rejection and reversal
- Account balances derived from approved ledger history
- Business-event generators (supplier, installment, POS)
- Bank and supplier reconciliation with ledger-backed adjustments
"""

__version__ = "0.1.0"
