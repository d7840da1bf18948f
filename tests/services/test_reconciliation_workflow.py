"""
ReconciliationService tests.

Tests cover:
- Creation: book balance from approved history, numbering, account checks
- Items: validation, in_progress transition, reconciled-only effect
- Adjustments: posted correcting entry, offset account, variance update
- Completion: threshold boundary, VarianceExceededError
- Closure: closed reports reject edits; review; supersede
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import Period, ReconciliationItemSpec
from ledger_kernel.exceptions import (
    AccountMappingError,
    ImmutabilityViolationError,
    ReconciliationClosedError,
    ReconciliationError,
    ReconciliationItemNotFoundError,
    ReportNotFoundError,
    ValidationError,
    VarianceExceededError,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.reconciliation import ReconciliationAdjustment

JANUARY = Period.month(2024, 1)


@pytest.fixture
def bank(standard_accounts):
    return standard_accounts["BANK"]


@pytest.fixture
def revenue(standard_accounts):
    return standard_accounts["4100"]


@pytest.fixture
def expense(standard_accounts):
    return standard_accounts["EXPENSE"]


@pytest.fixture
def january_ledger(post_entry, bank, revenue, expense):
    """+500 and -200 approved on the bank account, +1000 still in draft."""
    post_entry(bank, revenue, "500", date(2024, 1, 5), "Deposit")
    post_entry(expense, bank, "200", date(2024, 1, 12), "Supplier cheque")
    post_entry(bank, revenue, "1000", date(2024, 1, 20), "Pending deposit", approve=False)


@pytest.fixture
def report(reconciliation_service, january_ledger, bank, test_actor_id):
    return reconciliation_service.create_reconciliation(bank.id, JANUARY, "300", test_actor_id)


# =========================================================================
# Creation
# =========================================================================


class TestCreateReconciliation:
    def test_book_balance_counts_only_approved(self, report):
        assert report.book_balance == Decimal("300")
        assert report.reconciled_balance == Decimal("300")
        assert report.variance == Decimal("0")
        assert report.status == "draft"

    def test_report_number_and_fiscal_year(self, report, reconciliation_service, bank, test_actor_id):
        assert report.report_number == "RECON-2024-0001"
        assert report.fiscal_year == 2024

        second = reconciliation_service.create_reconciliation(
            bank.id, Period.month(2024, 2), "0", test_actor_id
        )
        assert second.report_number == "RECON-2024-0002"

    def test_period_bounds_are_inclusive(
        self, reconciliation_service, post_entry, bank, revenue, test_actor_id
    ):
        post_entry(bank, revenue, "10", date(2024, 1, 1))
        post_entry(bank, revenue, "20", date(2024, 1, 31))
        post_entry(bank, revenue, "40", date(2024, 2, 1))

        report = reconciliation_service.create_reconciliation(
            bank.id, JANUARY, "30", test_actor_id
        )
        assert report.book_balance == Decimal("30")

    def test_inactive_account_rejected(self, reconciliation_service, create_account, test_actor_id):
        closed = create_account("OLD-BANK", is_active=False)

        with pytest.raises(ReconciliationError):
            reconciliation_service.create_reconciliation(closed.id, JANUARY, "0", test_actor_id)

    def test_unknown_account_rejected(self, reconciliation_service, test_actor_id):
        with pytest.raises(ReconciliationError):
            reconciliation_service.create_reconciliation(uuid4(), JANUARY, "0", test_actor_id)

    @pytest.mark.parametrize("statement", ["NaN", "Infinity", "n/a"])
    def test_bad_statement_balance_rejected(
        self, reconciliation_service, january_ledger, bank, test_actor_id, statement
    ):
        with pytest.raises(ValidationError) as exc_info:
            reconciliation_service.create_reconciliation(bank.id, JANUARY, statement, test_actor_id)
        assert "statement_balance" in exc_info.value.field_errors

    def test_creation_is_logged(
        self, captured_logs, reconciliation_service, january_ledger, bank, test_actor_id
    ):
        reconciliation_service.create_reconciliation(bank.id, JANUARY, "1", test_actor_id)

        created = [r for r in captured_logs() if r["message"] == "reconciliation_created"]
        assert len(created) == 1
        assert Decimal(created[0]["variance"]) == Decimal("299")
        assert created[0]["account_code"] == "BANK"


# =========================================================================
# Items
# =========================================================================


class TestItems:
    def test_item_moves_report_in_progress_without_effect(
        self, reconciliation_service, reconciliation_selector, report, test_actor_id
    ):
        item = reconciliation_service.add_item(
            report.id,
            ReconciliationItemSpec("Cheque 1042", Decimal("75"), "outstanding_check"),
            test_actor_id,
        )

        assert item.is_reconciled is False
        current = reconciliation_selector.get_report(report.id)
        assert current.status == "in_progress"
        assert current.reconciled_balance == Decimal("300")

    def test_reconciling_item_updates_balance(
        self, reconciliation_service, reconciliation_selector, report, test_actor_id
    ):
        item = reconciliation_service.add_item(
            report.id,
            ReconciliationItemSpec("Cheque 1042", Decimal("75"), "outstanding_check"),
            test_actor_id,
        )
        reconciled = reconciliation_service.reconcile_item(item.id, test_actor_id)

        assert reconciled.is_reconciled is True
        assert reconciled.reconciled_by_id == test_actor_id
        current = reconciliation_selector.get_report(report.id)
        assert current.reconciled_balance == Decimal("225")
        assert current.variance == Decimal("75")

    def test_item_reconciled_once(self, reconciliation_service, report, test_actor_id):
        item = reconciliation_service.add_item(
            report.id,
            ReconciliationItemSpec("Interest", Decimal("1.25"), "interest_earned"),
            test_actor_id,
        )
        reconciliation_service.reconcile_item(item.id, test_actor_id)

        with pytest.raises(ReconciliationError):
            reconciliation_service.reconcile_item(item.id, test_actor_id)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, reconciliation_service, report, test_actor_id, amount):
        with pytest.raises(ValidationError):
            reconciliation_service.add_item(
                report.id,
                ReconciliationItemSpec("Bad", amount, "bank_charge"),
                test_actor_id,
            )

    def test_unknown_item_type_rejected(self, reconciliation_service, report, test_actor_id):
        with pytest.raises(ValidationError):
            reconciliation_service.add_item(
                report.id,
                ReconciliationItemSpec("Bad", Decimal("5"), "mystery"),
                test_actor_id,
            )

    def test_unknown_item(self, reconciliation_service, test_actor_id):
        with pytest.raises(ReconciliationItemNotFoundError):
            reconciliation_service.reconcile_item(uuid4(), test_actor_id)

    def test_unknown_report(self, reconciliation_service, test_actor_id):
        with pytest.raises(ReportNotFoundError):
            reconciliation_service.add_item(
                uuid4(),
                ReconciliationItemSpec("Ghost", Decimal("5"), "bank_charge"),
                test_actor_id,
            )


# =========================================================================
# Adjustments
# =========================================================================


class TestAdjustments:
    def test_adjustment_posts_correcting_entry(
        self, session, reconciliation_service, journal_selector, report, bank, standard_accounts,
        test_actor_id, deterministic_clock,
    ):
        adjustment = reconciliation_service.add_manual_adjustment(
            report.id, "12.50", "credit", "Unrecorded bank fee", bank.id, test_actor_id
        )

        entry = journal_selector.get_entry(adjustment.journal_entry_id)
        assert entry.status == "approved"
        assert entry.entry_date == deterministic_clock.today()
        assert entry.source_type == "reconciliation_adjustment"
        assert entry.source_id == str(report.id)
        assert entry.reference == f"{report.report_number}-ADJ-1"
        assert entry.description == "Reconciliation Adjustment: Unrecorded bank fee"

        offset = standard_accounts["RECONCILIATION_ADJUSTMENTS"]
        sides = {line.account_id: (line.debit, line.credit) for line in entry.lines}
        assert sides[bank.id] == (Decimal("0"), Decimal("12.50"))
        assert sides[offset.id] == (Decimal("12.50"), Decimal("0"))

    def test_adjustment_changes_variance(
        self, reconciliation_service, reconciliation_selector, report, bank, test_actor_id
    ):
        reconciliation_service.add_manual_adjustment(
            report.id, "20", "debit", "Deposit not booked", bank.id, test_actor_id
        )

        current = reconciliation_selector.get_report(report.id)
        assert current.reconciled_balance == Decimal("320")
        assert current.variance == Decimal("20")
        assert len(current.adjustments) == 1
        assert current.adjustments[0].adjustment_type == "debit"

    def test_adjustment_requires_reason(self, reconciliation_service, report, bank, test_actor_id):
        with pytest.raises(ValidationError):
            reconciliation_service.add_manual_adjustment(
                report.id, "20", "debit", " ", bank.id, test_actor_id
            )

    def test_adjustment_on_another_account_rejected(
        self,
        session,
        reconciliation_service,
        reconciliation_selector,
        ledger_selector,
        report,
        bank,
        standard_accounts,
        test_actor_id,
    ):
        before = session.query(JournalEntry).count()

        with pytest.raises(ReconciliationError):
            reconciliation_service.add_manual_adjustment(
                report.id, "20", "debit", "Deposit not booked", standard_accounts["CASH"].id,
                test_actor_id,
            )

        current = reconciliation_selector.get_report(report.id)
        assert current.adjustments == ()
        assert current.reconciled_balance == report.reconciled_balance
        assert current.status == "draft"
        assert session.query(JournalEntry).count() == before
        assert ledger_selector.book_balance(bank.id, JANUARY.start, JANUARY.end) == Decimal("300")

    def test_cannot_adjust_the_offset_account(
        self, session, reconciliation_service, standard_accounts, test_actor_id
    ):
        offset = standard_accounts["RECONCILIATION_ADJUSTMENTS"]
        offset_report = reconciliation_service.create_reconciliation(
            offset.id, JANUARY, "0", test_actor_id
        )

        with pytest.raises(ReconciliationError):
            reconciliation_service.add_manual_adjustment(
                offset_report.id, "5", "debit", "Self offset", offset.id, test_actor_id
            )
        assert session.query(JournalEntry).count() == 0

    def test_missing_offset_account_writes_nothing(
        self, session, reconciliation_service, report, bank, standard_accounts, test_actor_id
    ):
        standard_accounts["RECONCILIATION_ADJUSTMENTS"].is_active = False
        session.flush()
        before = session.query(JournalEntry).count()

        with pytest.raises(AccountMappingError):
            reconciliation_service.add_manual_adjustment(
                report.id, "5", "debit", "Fee", bank.id, test_actor_id
            )
        assert session.query(JournalEntry).count() == before

    def test_adjustment_record_is_immutable(
        self, session, reconciliation_service, report, bank, test_actor_id
    ):
        record = reconciliation_service.add_manual_adjustment(
            report.id, "5", "debit", "Fee", bank.id, test_actor_id
        )
        adjustment = session.get(ReconciliationAdjustment, record.id)
        adjustment.amount = Decimal("6")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


# =========================================================================
# Completion and closure
# =========================================================================


class TestCompletion:
    def test_january_scenario_completes(
        self, reconciliation_service, report, test_actor_id, deterministic_clock
    ):
        completed = reconciliation_service.complete_reconciliation(report.id, test_actor_id)

        assert completed.status == "completed"
        assert completed.reconciled_by_id == test_actor_id
        assert completed.reconciled_at is not None

    def test_variance_equal_to_threshold_completes(
        self, reconciliation_service, january_ledger, bank, test_actor_id
    ):
        report = reconciliation_service.create_reconciliation(
            bank.id, JANUARY, "300.01", test_actor_id
        )
        completed = reconciliation_service.complete_reconciliation(report.id, test_actor_id)
        assert completed.status == "completed"

    def test_variance_above_threshold_blocks(
        self, reconciliation_service, reconciliation_selector, january_ledger, bank, test_actor_id
    ):
        report = reconciliation_service.create_reconciliation(
            bank.id, JANUARY, "300.02", test_actor_id
        )

        with pytest.raises(VarianceExceededError):
            reconciliation_service.complete_reconciliation(report.id, test_actor_id)
        assert reconciliation_selector.get_report(report.id).status == "draft"

    def test_adjustment_clears_variance_then_completes(
        self, reconciliation_service, january_ledger, bank, test_actor_id
    ):
        report = reconciliation_service.create_reconciliation(
            bank.id, JANUARY, "280", test_actor_id
        )
        reconciliation_service.add_manual_adjustment(
            report.id, "20", "credit", "Monthly service fee", bank.id, test_actor_id
        )

        completed = reconciliation_service.complete_reconciliation(report.id, test_actor_id)
        assert completed.variance == Decimal("0")

    def test_closed_report_rejects_edits(self, reconciliation_service, report, bank, test_actor_id):
        reconciliation_service.complete_reconciliation(report.id, test_actor_id)

        with pytest.raises(ReconciliationClosedError):
            reconciliation_service.add_item(
                report.id,
                ReconciliationItemSpec("Late", Decimal("5"), "bank_charge"),
                test_actor_id,
            )
        with pytest.raises(ReconciliationClosedError):
            reconciliation_service.add_manual_adjustment(
                report.id, "5", "debit", "Late", bank.id, test_actor_id
            )
        with pytest.raises(ReconciliationClosedError):
            reconciliation_service.complete_reconciliation(report.id, test_actor_id)

    def test_review_after_completion(self, reconciliation_service, report, test_actor_id):
        reviewer = uuid4()
        reconciliation_service.complete_reconciliation(report.id, test_actor_id)

        reviewed = reconciliation_service.review_reconciliation(report.id, reviewer)
        assert reviewed.status == "reviewed"
        assert reviewed.reviewed_by_id == reviewer

    def test_review_requires_completion(self, reconciliation_service, report, test_actor_id):
        with pytest.raises(ReconciliationError):
            reconciliation_service.review_reconciliation(report.id, test_actor_id)

    def test_supersede_closed_report(self, reconciliation_service, report, bank, test_actor_id):
        reconciliation_service.complete_reconciliation(report.id, test_actor_id)

        corrected = reconciliation_service.create_reconciliation(
            bank.id, JANUARY, "300", test_actor_id, supersedes_id=report.id
        )
        assert corrected.supersedes_id == report.id

    def test_cannot_supersede_open_report(self, reconciliation_service, report, bank, test_actor_id):
        with pytest.raises(ReconciliationError):
            reconciliation_service.create_reconciliation(
                bank.id, JANUARY, "300", test_actor_id, supersedes_id=report.id
            )
