"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal entry lines --
    the single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Balance: total_debit == total_credit for every entry (checked by
      JournalService before the header is written; re-checked at posting).
    - Line shape: exactly one of debit_amount / credit_amount is non-zero
      (validated in domain/validation.py; CHECK constraints here as a
      second layer).
    - Entry numbers are unique (uq_journal_entry_number) and come from the
      locked sequence counter, never max-plus-one.
    - Immutability: approved entries and their lines cannot change except for
      the approved -> reversed status flip (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate entry_number or a second reversal of the
      same original (uq_journal_reversal_of).
    - ImmutabilityViolationError on UPDATE/DELETE of approved entries/lines.

Audit relevance:
    Reversal never edits amounts.  The original keeps its lines; the reversal
    is a separate approved entry pointing back through reversal_of_id.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: DRAFT -> APPROVED -> REVERSED, or DRAFT -> REJECTED.
    Guarantees: REJECTED and REVERSED are terminal and distinct.
    """

    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVERSED = "reversed"

    @property
    def is_terminal(self) -> bool:
        return self in (JournalEntryStatus.REJECTED, JournalEntryStatus.REVERSED)


class SourceType(str, Enum):
    """Well-known origins of journal entries."""

    MANUAL = "manual"
    ADJUSTMENT = "adjustment"
    REVERSAL = "reversal"
    RECONCILIATION_ADJUSTMENT = "reconciliation_adjustment"
    SUPPLIER_INVOICE = "supplier_invoice"
    SUPPLIER_PAYMENT = "supplier_payment"
    INSTALLMENT_CONTRACT = "installment_contract"
    INSTALLMENT_PAYMENT = "installment_payment"
    POS_SALE = "pos_sale"


def _enum_column(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda e: [m.value for m in e],
    )


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created in DRAFT together with its lines in one savepoint.  Posting
        moves it to APPROVED; approval is final except for reversal, which
        flips the status to REVERSED and leaves every amount in place.

    Guarantees:
        - total_debit == total_credit (within the configured tolerance).
        - entry_number is unique and year-scoped monotonic.
        - version increments on every status transition (compare-and-swap).

    Non-goals:
        - This model does NOT enforce balance at the ORM level; enforcement
          lives in JournalService.  is_balanced is a read-side convenience.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_source", "source_type", "source_id"),
        Index("idx_journal_supplier", "supplier_id"),
        CheckConstraint("total_debit >= 0", name="ck_journal_total_debit"),
        CheckConstraint("total_credit >= 0", name="ck_journal_total_credit"),
    )

    entry_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Accounting date (drives period membership)
    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        _enum_column(JournalEntryStatus, "journal_entry_status"),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    # Originating business event
    source_type: Mapped[str] = mapped_column(
        String(50),
        default=SourceType.MANUAL.value,
        nullable=False,
    )

    source_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("suppliers.id"),
        nullable=True,
    )

    # Passed through opaquely; partitioning policy lives outside the kernel
    branch_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # If this is a reversal, points to the original entry
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    rejected_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    rejected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    rejection_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    reversed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reversal_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Optimistic concurrency counter for status transitions
    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalEntryLine.line_seq",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status.value}>"

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_approved(self) -> bool:
        return self.status == JournalEntryStatus.APPROVED

    @property
    def is_reversed(self) -> bool:
        return self.status == JournalEntryStatus.REVERSED

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def is_balanced(self) -> bool:
        """Read-side check that stored totals agree with each other."""
        return self.total_debit == self.total_credit


class JournalEntryLine(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Each line belongs to exactly one JournalEntry, references exactly one
        Account, and carries a positive amount on exactly one side.

    Guarantees:
        - debit_amount >= 0, credit_amount >= 0, never both non-zero.
        - line_seq gives deterministic ordering within the entry.
    """

    __tablename__ = "journal_entry_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
        CheckConstraint("debit_amount >= 0", name="ck_line_debit_non_negative"),
        CheckConstraint("credit_amount >= 0", name="ck_line_credit_non_negative"),
        CheckConstraint(
            "(debit_amount = 0) <> (credit_amount = 0)",
            name="ck_line_one_side",
        ),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
    )

    def __repr__(self) -> str:
        return f"<JournalEntryLine Dr {self.debit_amount} Cr {self.credit_amount}>"

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0

    @property
    def signed_amount(self) -> Decimal:
        """Debits are positive, credits are negative."""
        return self.debit_amount - self.credit_amount
