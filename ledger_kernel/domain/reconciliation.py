"""
Reconciliation arithmetic -- pure functions, no I/O.

The reconciled balance starts from the book balance and applies every
reconciled item and every adjustment:

    outstanding_check, bank_charge        -> subtract
    deposit_in_transit, interest_earned,
    error_correction                      -> add
    adjustment debit                      -> add
    adjustment credit                     -> subtract

Unreconciled items carry no weight.  Variance is always
|reconciled - statement|; nothing else writes it.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol

ZERO = Decimal("0")

SUBTRACTING_ITEM_TYPES = frozenset({"outstanding_check", "bank_charge"})
ADDING_ITEM_TYPES = frozenset({"deposit_in_transit", "interest_earned", "error_correction"})
ITEM_TYPES = SUBTRACTING_ITEM_TYPES | ADDING_ITEM_TYPES
ADJUSTMENT_TYPES = frozenset({"debit", "credit"})


class ItemLike(Protocol):
    amount: Decimal
    item_type: str
    is_reconciled: bool


class AdjustmentLike(Protocol):
    amount: Decimal
    adjustment_type: str


def _kind(value) -> str:
    return getattr(value, "value", value)


def item_effect(item: ItemLike) -> Decimal:
    """Signed contribution of a single item to the reconciled balance."""
    if not item.is_reconciled:
        return ZERO
    if _kind(item.item_type) in SUBTRACTING_ITEM_TYPES:
        return -item.amount
    return item.amount


def adjustment_effect(adjustment: AdjustmentLike) -> Decimal:
    if _kind(adjustment.adjustment_type) == "debit":
        return adjustment.amount
    return -adjustment.amount


def compute_reconciled_balance(
    book_balance: Decimal,
    items: Iterable[ItemLike],
    adjustments: Iterable[AdjustmentLike],
) -> Decimal:
    """Book balance plus the signed effect of reconciled items and adjustments."""
    balance = book_balance
    for item in items:
        balance += item_effect(item)
    for adjustment in adjustments:
        balance += adjustment_effect(adjustment)
    return balance


def compute_variance(reconciled_balance: Decimal, statement_balance: Decimal) -> Decimal:
    return abs(reconciled_balance - statement_balance)


def within_threshold(variance: Decimal, threshold: Decimal) -> bool:
    """Completion gate.  A variance equal to the threshold passes."""
    return variance <= threshold


def discrepancy_severity(
    difference: Decimal,
    medium_above: Decimal,
    high_above: Decimal,
) -> str:
    magnitude = abs(difference)
    if magnitude > high_above:
        return "high"
    if magnitude > medium_above:
        return "medium"
    return "low"
