"""
Reconciliation arithmetic tests.

Tests cover:
- Item effects by type, and the reconciled-only rule
- Adjustment effects by side
- Variance as an absolute difference
- Completion threshold boundary
- Discrepancy severity bands
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import Page, Period
from ledger_kernel.domain.reconciliation import (
    adjustment_effect,
    compute_reconciled_balance,
    compute_variance,
    discrepancy_severity,
    item_effect,
    within_threshold,
)


@dataclass
class Item:
    amount: Decimal
    item_type: str
    is_reconciled: bool = True


@dataclass
class Adjustment:
    amount: Decimal
    adjustment_type: str


class TestItemEffects:
    @pytest.mark.parametrize("item_type", ["outstanding_check", "bank_charge"])
    def test_subtracting_types(self, item_type):
        assert item_effect(Item(Decimal("25"), item_type)) == Decimal("-25")

    @pytest.mark.parametrize(
        "item_type", ["deposit_in_transit", "interest_earned", "error_correction"]
    )
    def test_adding_types(self, item_type):
        assert item_effect(Item(Decimal("25"), item_type)) == Decimal("25")

    def test_unreconciled_item_has_no_effect(self):
        assert item_effect(Item(Decimal("25"), "deposit_in_transit", False)) == Decimal("0")


class TestAdjustmentEffects:
    def test_debit_adds(self):
        assert adjustment_effect(Adjustment(Decimal("10"), "debit")) == Decimal("10")

    def test_credit_subtracts(self):
        assert adjustment_effect(Adjustment(Decimal("10"), "credit")) == Decimal("-10")


class TestReconciledBalance:
    def test_combines_items_and_adjustments(self):
        balance = compute_reconciled_balance(
            Decimal("1000"),
            [
                Item(Decimal("200"), "outstanding_check"),
                Item(Decimal("50"), "deposit_in_transit"),
                Item(Decimal("999"), "interest_earned", is_reconciled=False),
            ],
            [Adjustment(Decimal("5"), "credit")],
        )
        assert balance == Decimal("845")

    def test_no_items_returns_book_balance(self):
        assert compute_reconciled_balance(Decimal("300"), [], []) == Decimal("300")

    def test_variance_is_absolute(self):
        assert compute_variance(Decimal("100"), Decimal("130")) == Decimal("30")
        assert compute_variance(Decimal("130"), Decimal("100")) == Decimal("30")


class TestThreshold:
    def test_variance_equal_to_threshold_passes(self):
        assert within_threshold(Decimal("0.01"), Decimal("0.01"))

    def test_variance_above_threshold_fails(self):
        assert not within_threshold(Decimal("0.02"), Decimal("0.01"))


class TestSeverity:
    @pytest.mark.parametrize(
        "difference, expected",
        [
            (Decimal("100"), "low"),
            (Decimal("-100.01"), "medium"),
            (Decimal("1000"), "medium"),
            (Decimal("1000.01"), "high"),
        ],
    )
    def test_bands(self, difference, expected):
        assert discrepancy_severity(difference, Decimal("100"), Decimal("1000")) == expected


class TestPeriodAndPage:
    def test_inverted_period_rejected(self):
        with pytest.raises(ValueError):
            Period(date(2024, 2, 1), date(2024, 1, 31))

    def test_month_covers_leap_february(self):
        period = Period.month(2024, 2)
        assert period.end == date(2024, 2, 29)
        assert period.contains(date(2024, 2, 29))
        assert not period.contains(date(2024, 3, 1))

    def test_page_has_more(self):
        assert Page(items=(1, 2), total=5, limit=2, offset=0).has_more
        assert not Page(items=(5,), total=5, limit=2, offset=4).has_more
