"""
Concurrency and atomicity tests.

Tests cover:
- Compare-and-swap refuses a stale read (status or version moved)
- Posting that loses the swap raises a PostingError and changes nothing
- A reversal racing another reversal fails on the unique reversal link
- A failure part-way through entry creation leaves no rows and no
  consumed number
- Sequence allocation from parallel sessions (PostgreSQL only)
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import delete, update

from ledger_kernel.db.engine import get_session_factory, is_postgres
from ledger_kernel.domain.dtos import LineSpec, Period
from ledger_kernel.exceptions import (
    EntryAlreadyReversedError,
    InvalidEntryStateError,
    OptimisticLockError,
    PostingError,
)
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine, JournalEntryStatus
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService


@pytest.fixture
def bank(standard_accounts):
    return standard_accounts["BANK"]


@pytest.fixture
def revenue(standard_accounts):
    return standard_accounts["4100"]


def _bump(session, entry_id, **values):
    """Simulate a write committed by another transaction."""
    session.execute(
        update(JournalEntry)
        .where(JournalEntry.id == entry_id)
        .values(version=JournalEntry.version + 1, **values)
        .execution_options(synchronize_session=False)
    )


class TestCompareAndSwap:
    def test_stale_version_refused(
        self, session, journal_service, post_entry, bank, revenue, test_actor_id
    ):
        draft = post_entry(bank, revenue, "10", approve=False)
        entry = journal_service.load_for_update(draft.id)
        _bump(session, draft.id)

        with pytest.raises(OptimisticLockError) as exc_info:
            journal_service.compare_and_swap(
                entry, JournalEntryStatus.DRAFT, JournalEntryStatus.APPROVED
            )
        assert exc_info.value.entity_id == str(draft.id)

        fresh = session.get(JournalEntry, draft.id, populate_existing=True)
        assert fresh.status == JournalEntryStatus.DRAFT
        assert fresh.version == 2

    def test_stale_status_refused(
        self, session, journal_service, post_entry, bank, revenue, test_actor_id, captured_logs
    ):
        draft = post_entry(bank, revenue, "10", approve=False)
        entry = journal_service.load_for_update(draft.id)
        session.execute(
            update(JournalEntry)
            .where(JournalEntry.id == draft.id)
            .values(status=JournalEntryStatus.REJECTED)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(OptimisticLockError):
            journal_service.compare_and_swap(
                entry, JournalEntryStatus.DRAFT, JournalEntryStatus.APPROVED
            )
        assert any(
            r["message"] == "journal_entry_transition_conflict" for r in captured_logs()
        )

    def test_successful_swap_bumps_version(self, journal_service, post_entry, bank, revenue):
        draft = post_entry(bank, revenue, "10", approve=False)
        entry = journal_service.load_for_update(draft.id)

        journal_service.compare_and_swap(
            entry, JournalEntryStatus.DRAFT, JournalEntryStatus.REJECTED, rejection_reason="x"
        )
        assert entry.status == JournalEntryStatus.REJECTED
        assert entry.version == 2

    def test_post_losing_race_raises_posting_error(
        self, session, journal_service, post_entry, bank, revenue, test_actor_id, monkeypatch
    ):
        draft = post_entry(bank, revenue, "10", approve=False)
        load = JournalService.load_for_update

        def _load_then_bump(self, entry_id):
            entry = load(self, entry_id)
            _bump(session, entry_id)
            return entry

        monkeypatch.setattr(JournalService, "load_for_update", _load_then_bump)
        with pytest.raises(InvalidEntryStateError) as exc_info:
            journal_service.post_entry(draft.id, test_actor_id)
        assert isinstance(exc_info.value, PostingError)
        assert exc_info.value.operation == "post"

        fresh = session.get(JournalEntry, draft.id, populate_existing=True)
        assert fresh.status == JournalEntryStatus.DRAFT
        assert fresh.approved_by_id is None


class TestReversalRace:
    def test_losing_reversal_hits_unique_link(
        self, session, reversal_service, journal_selector, post_entry, bank, revenue, test_actor_id
    ):
        original = post_entry(bank, revenue, "300")
        reversal_service.reverse_entry(original.id, "First", test_actor_id)
        # The loser read the original before the winner's status change landed.
        session.execute(
            update(JournalEntry)
            .where(JournalEntry.id == original.id)
            .values(status=JournalEntryStatus.APPROVED)
            .execution_options(synchronize_session=False)
        )
        before = journal_selector.count_entries()

        with pytest.raises(EntryAlreadyReversedError):
            reversal_service.reverse_entry(original.id, "Second", test_actor_id)
        assert journal_selector.count_entries() == before


class TestAtomicity:
    def test_failed_line_write_leaves_nothing(
        self, session, journal_service, bank, revenue, test_actor_id, monkeypatch
    ):
        def _explode(self, entry, lines, creator):
            raise RuntimeError("disk full")

        lines = [LineSpec.debit_line(bank.id, "5"), LineSpec.credit_line(revenue.id, "5")]
        with monkeypatch.context() as patch:
            patch.setattr(JournalService, "_write_lines", _explode)
            with pytest.raises(RuntimeError):
                journal_service.create_entry(date(2024, 1, 9), "Doomed", lines, test_actor_id)

        assert session.query(JournalEntry).count() == 0
        assert session.query(JournalEntryLine).count() == 0

        record = journal_service.create_entry(date(2024, 1, 9), "Retry", lines, test_actor_id)
        assert record.entry_number == "JE-2024-000001"

    def test_failed_post_inside_adjustment_leaves_report_unchanged(
        self,
        session,
        reconciliation_service,
        reconciliation_selector,
        journal_service,
        post_entry,
        bank,
        revenue,
        test_actor_id,
        monkeypatch,
    ):
        post_entry(bank, revenue, "100", date(2024, 1, 5))
        report = reconciliation_service.create_reconciliation(
            bank.id, Period.month(2024, 1), "90", test_actor_id
        )

        def _refuse(self, entry_id, approver):
            raise OptimisticLockError("JournalEntry", str(entry_id))

        monkeypatch.setattr(JournalService, "post_entry", _refuse)
        with pytest.raises(OptimisticLockError):
            reconciliation_service.add_manual_adjustment(
                report.id, "10", "credit", "Bank fee", bank.id, test_actor_id
            )

        stored = reconciliation_selector.get_report(report.id)
        assert stored.adjustments == ()
        assert stored.variance == report.variance
        assert session.query(JournalEntry).count() == 1


@pytest.mark.postgres
class TestParallelSequences:
    def test_parallel_allocations_are_distinct(self, db_tables):
        if not is_postgres():
            pytest.skip("needs PostgreSQL row locks")

        factory = get_session_factory()
        name = f"parallel:{uuid4()}"

        def _allocate(_):
            with factory() as session:
                value = SequenceService(session).next_value(name)
                session.commit()
                return value

        try:
            with ThreadPoolExecutor(max_workers=8) as pool:
                values = list(pool.map(_allocate, range(40)))
            assert sorted(values) == list(range(1, 41))
        finally:
            with factory() as session:
                session.execute(delete(SequenceCounter).where(SequenceCounter.name == name))
                session.commit()
