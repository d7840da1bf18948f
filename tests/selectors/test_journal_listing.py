"""
JournalSelector tests.

Tests cover:
- Filters: status, date range, account, source, supplier, free-text search
- Pagination: total independent of the window, newest first
- Lookups by number, source and reversal link
"""

from datetime import date

import pytest

from ledger_kernel.domain.dtos import JournalEntryFilter


@pytest.fixture
def bank(standard_accounts):
    return standard_accounts["BANK"]


@pytest.fixture
def cash(standard_accounts):
    return standard_accounts["CASH"]


@pytest.fixture
def revenue(standard_accounts):
    return standard_accounts["4100"]


@pytest.fixture
def entries(post_entry, bank, cash, revenue):
    """Three approved entries across January and one February draft."""
    return [
        post_entry(bank, revenue, "100", date(2024, 1, 3), "Card settlement", reference="STL-1"),
        post_entry(cash, revenue, "40", date(2024, 1, 9), "Till takings"),
        post_entry(bank, revenue, "75", date(2024, 1, 21), "Card settlement"),
        post_entry(cash, revenue, "12", date(2024, 2, 2), "Till takings", approve=False),
    ]


class TestFilters:
    def test_no_criteria_lists_everything(self, journal_selector, entries):
        page = journal_selector.list_entries()
        assert page.total == 4
        assert not page.has_more

    def test_status_filter(self, journal_selector, entries):
        page = journal_selector.list_entries(JournalEntryFilter(status="draft"))
        assert [e.id for e in page.items] == [entries[3].id]

    def test_date_range_is_inclusive(self, journal_selector, entries):
        page = journal_selector.list_entries(
            JournalEntryFilter(date_from=date(2024, 1, 3), date_to=date(2024, 1, 21))
        )
        assert page.total == 3

    def test_account_filter(self, journal_selector, entries, cash):
        page = journal_selector.list_entries(JournalEntryFilter(account_id=cash.id))
        assert {e.id for e in page.items} == {entries[1].id, entries[3].id}

    def test_search_matches_description_number_and_reference(self, journal_selector, entries):
        by_description = journal_selector.list_entries(JournalEntryFilter(search="SETTLEMENT"))
        assert by_description.total == 2

        by_reference = journal_selector.list_entries(JournalEntryFilter(search="stl-1"))
        assert [e.id for e in by_reference.items] == [entries[0].id]

        by_number = journal_selector.list_entries(
            JournalEntryFilter(search=entries[2].entry_number)
        )
        assert [e.id for e in by_number.items] == [entries[2].id]

    def test_search_treats_wildcards_literally(self, journal_selector, entries):
        assert journal_selector.list_entries(JournalEntryFilter(search="JE-2024_")).total == 0
        assert journal_selector.list_entries(JournalEntryFilter(search="%")).total == 0

    def test_criteria_combine(self, journal_selector, entries, cash):
        page = journal_selector.list_entries(
            JournalEntryFilter(account_id=cash.id, status="approved")
        )
        assert [e.id for e in page.items] == [entries[1].id]

    def test_supplier_filter(self, journal_selector, post_entry, bank, revenue, create_supplier):
        supplier = create_supplier()
        tagged = post_entry(bank, revenue, "9", supplier_id=supplier.id)
        post_entry(bank, revenue, "9")

        page = journal_selector.list_entries(JournalEntryFilter(supplier_id=supplier.id))
        assert [e.id for e in page.items] == [tagged.id]


class TestPagination:
    def test_newest_first(self, journal_selector, entries):
        dates = [e.entry_date for e in journal_selector.list_entries().items]
        assert dates == sorted(dates, reverse=True)

    def test_total_independent_of_window(self, journal_selector, entries):
        page = journal_selector.list_entries(JournalEntryFilter(limit=2, offset=1))
        assert page.total == 4
        assert len(page.items) == 2
        assert page.has_more

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            JournalEntryFilter(limit=0)
        with pytest.raises(ValueError):
            JournalEntryFilter(offset=-1)


class TestLookups:
    def test_get_by_number(self, journal_selector, entries):
        found = journal_selector.get_by_number(entries[0].entry_number)
        assert found.id == entries[0].id
        assert journal_selector.get_by_number("JE-1999-000001") is None

    def test_count_by_status(self, journal_selector, entries):
        assert journal_selector.count_entries() == 4
        assert journal_selector.count_entries("approved") == 3

    def test_entries_for_source(self, journal_selector, post_entry, bank, revenue):
        post_entry(bank, revenue, "5", source_type="pos_sale", source_id="S-1")
        post_entry(bank, revenue, "6", source_type="pos_sale", source_id="S-2")

        found = journal_selector.entries_for_source("pos_sale", "S-1")
        assert [e.total_debit for e in found] == [5]

    def test_reversal_link(self, journal_selector, reversal_service, entries, test_actor_id):
        reversal = reversal_service.reverse_entry(entries[0].id, "Duplicate", test_actor_id)

        assert journal_selector.reversal_of(entries[0].id).id == reversal.id
        assert journal_selector.reversal_of(entries[1].id) is None
