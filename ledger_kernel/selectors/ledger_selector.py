"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Derived balances.  The ledger is a view over journal lines;
    there is no stored balance anywhere in the system.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only ledger history counts: lines of APPROVED and REVERSED entries.
      A reversed original stays in the ledger together with its approved
      reversal, so the pair nets to zero.  DRAFT and REJECTED entries never
      affect a balance.
    - Period bounds are inclusive on entry_date.

Failure modes:
    - Returns zero balances when nothing matches; never raises on absence.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import AccountBalance, TrialBalance
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from ledger_kernel.selectors.base import BaseSelector

LEDGER_STATUSES = (JournalEntryStatus.APPROVED, JournalEntryStatus.REVERSED)


class LedgerSelector(BaseSelector):
    """
    Read-only balance queries.

    Balances are debit minus credit.  Callers that want the natural-side
    figure for a credit-normal account negate it (AccountBalance does this
    via natural_balance).
    """

    def _sum_query(self, start: date | None, end: date | None):
        query = (
            select(
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0).label("debits"),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0).label("credits"),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status.in_(LEDGER_STATUSES))
        )
        if start is not None:
            query = query.where(JournalEntry.entry_date >= start)
        if end is not None:
            query = query.where(JournalEntry.entry_date <= end)
        return query

    def _net(self, query) -> Decimal:
        row = self.session.execute(query).one()
        return self._decimal(row.debits) - self._decimal(row.credits)

    def book_balance(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> Decimal:
        """
        Sum of debit minus credit on the account over the inclusive period.

        Args:
            account_id: Account whose lines are summed.
            start: First entry_date included, or None for the beginning.
            end: Last entry_date included, or None for no upper bound.
        """
        query = self._sum_query(start, end).where(
            JournalEntryLine.account_id == account_id
        )
        return self._net(query)

    def account_balance(self, account_id: UUID, as_of: date | None = None) -> Decimal:
        """Cumulative balance through ``as_of``."""
        return self.book_balance(account_id, None, as_of)

    def subtree_ids(self, account_id: UUID) -> list[UUID]:
        """The account and every descendant, breadth first."""
        ids = [account_id]
        frontier = [account_id]
        while frontier:
            children = self.session.execute(
                select(Account.id).where(Account.parent_id.in_(frontier))
            ).scalars().all()
            frontier = [child for child in children if child not in ids]
            ids.extend(frontier)
        return ids

    def rollup_balance(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> Decimal:
        """Balance of the account plus all of its descendants."""
        query = self._sum_query(start, end).where(
            JournalEntryLine.account_id.in_(self.subtree_ids(account_id))
        )
        return self._net(query)

    def trial_balance(self, as_of: date) -> TrialBalance:
        """
        One row per account with ledger activity through ``as_of``,
        ordered by account code.
        """
        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                func.sum(JournalEntryLine.debit_amount).label("debits"),
                func.sum(JournalEntryLine.credit_amount).label("credits"),
            )
            .join(JournalEntryLine, JournalEntryLine.account_id == Account.id)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status.in_(LEDGER_STATUSES))
            .where(JournalEntry.entry_date <= as_of)
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )

        rows = tuple(
            AccountBalance(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=getattr(row.account_type, "value", row.account_type),
                debit_total=self._decimal(row.debits),
                credit_total=self._decimal(row.credits),
            )
            for row in self.session.execute(query).all()
        )
        return TrialBalance(
            as_of=as_of,
            rows=rows,
            total_debits=sum((r.debit_total for r in rows), Decimal("0")),
            total_credits=sum((r.credit_total for r in rows), Decimal("0")),
        )

    def total_debits_credits(self, as_of: date | None = None) -> tuple[Decimal, Decimal]:
        """Ledger-wide debit and credit totals.  Equal whenever the ledger is sound."""
        row = self.session.execute(self._sum_query(None, as_of)).one()
        return self._decimal(row.debits), self._decimal(row.credits)
