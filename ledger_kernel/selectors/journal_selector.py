"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries and their lines,
    including the filtered, paginated listing used by entry screens.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only; returns JournalEntryRecord DTOs.
    - Listing order is entry_date desc, then entry_number desc.
    - Page.total counts every match regardless of limit/offset.
"""

from uuid import UUID

from sqlalchemy import exists, func, or_, select

from ledger_kernel.domain.dtos import JournalEntryFilter, JournalEntryRecord, Page
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine, JournalEntryStatus
from ledger_kernel.selectors.base import BaseSelector


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class JournalSelector(BaseSelector):
    """Query journal entries."""

    def get_entry(self, entry_id: UUID) -> JournalEntryRecord | None:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            return None
        return JournalEntryRecord.from_model(entry)

    def get_by_number(self, entry_number: str) -> JournalEntryRecord | None:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.entry_number == entry_number)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry else None

    def _filtered(self, criteria: JournalEntryFilter):
        query = select(JournalEntry)

        if criteria.status is not None:
            query = query.where(JournalEntry.status == JournalEntryStatus(criteria.status))
        if criteria.date_from is not None:
            query = query.where(JournalEntry.entry_date >= criteria.date_from)
        if criteria.date_to is not None:
            query = query.where(JournalEntry.entry_date <= criteria.date_to)
        if criteria.source_type is not None:
            query = query.where(JournalEntry.source_type == criteria.source_type)
        if criteria.source_id is not None:
            query = query.where(JournalEntry.source_id == criteria.source_id)
        if criteria.created_by_id is not None:
            query = query.where(JournalEntry.created_by_id == criteria.created_by_id)
        if criteria.supplier_id is not None:
            query = query.where(JournalEntry.supplier_id == criteria.supplier_id)
        if criteria.account_id is not None:
            query = query.where(
                exists().where(
                    JournalEntryLine.journal_entry_id == JournalEntry.id,
                    JournalEntryLine.account_id == criteria.account_id,
                )
            )
        if criteria.search:
            pattern = f"%{_escape_like(criteria.search.strip().lower())}%"
            query = query.where(
                or_(
                    func.lower(JournalEntry.description).like(pattern, escape="\\"),
                    func.lower(JournalEntry.entry_number).like(pattern, escape="\\"),
                    func.lower(func.coalesce(JournalEntry.reference, "")).like(
                        pattern, escape="\\"
                    ),
                )
            )
        return query

    def list_entries(self, criteria: JournalEntryFilter | None = None) -> Page[JournalEntryRecord]:
        """
        Filtered listing with pagination.

        Args:
            criteria: Filter and window; defaults to the first 50 entries.

        Returns:
            Page whose ``total`` counts all matches.
        """
        criteria = criteria or JournalEntryFilter()
        query = self._filtered(criteria)

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        entries = self.session.execute(
            query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .limit(criteria.limit)
            .offset(criteria.offset)
        ).scalars().all()

        return Page(
            items=tuple(JournalEntryRecord.from_model(e) for e in entries),
            total=total,
            limit=criteria.limit,
            offset=criteria.offset,
        )

    def entries_for_source(self, source_type: str, source_id: str) -> list[JournalEntryRecord]:
        """Every entry generated from one business event, oldest first."""
        entries = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.source_type == source_type,
                JournalEntry.source_id == source_id,
            )
            .order_by(JournalEntry.entry_number)
        ).scalars().all()
        return [JournalEntryRecord.from_model(e) for e in entries]

    def reversal_of(self, entry_id: UUID) -> JournalEntryRecord | None:
        """The entry that reverses ``entry_id``, if any."""
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry else None

    def count_entries(self, status: str | None = None) -> int:
        query = select(func.count(JournalEntry.id))
        if status is not None:
            query = query.where(JournalEntry.status == JournalEntryStatus(status))
        return self.session.execute(query).scalar_one()
