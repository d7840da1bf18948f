"""
Module: ledger_kernel.models.reconciliation
Responsibility: ORM persistence for reconciliation reports, their reconciling
    items, and their ledger-backed manual adjustments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - reconciled_balance and variance are written only by
      ReconciliationService after a full recomputation (never hand-edited).
    - Every adjustment references exactly one journal entry
      (journal_entry_id NOT NULL, UNIQUE).
    - Items and adjustments belong to exactly one report.

Audit relevance:
    An adjustment row cannot exist without the approved journal entry that
    moved the books; the entry is written first in the same savepoint.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
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


class ReconciliationStatus(str, Enum):
    """Lifecycle: DRAFT -> IN_PROGRESS -> COMPLETED -> REVIEWED."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVIEWED = "reviewed"

    @property
    def is_closed(self) -> bool:
        return self in (ReconciliationStatus.COMPLETED, ReconciliationStatus.REVIEWED)


class ReconciliationItemType(str, Enum):
    """Known reconciling differences between the books and a statement."""

    OUTSTANDING_CHECK = "outstanding_check"
    DEPOSIT_IN_TRANSIT = "deposit_in_transit"
    BANK_CHARGE = "bank_charge"
    INTEREST_EARNED = "interest_earned"
    ERROR_CORRECTION = "error_correction"


class AdjustmentType(str, Enum):
    """Side of the reconciled account that an adjustment hits."""

    DEBIT = "debit"
    CREDIT = "credit"


def _enum_column(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=30,
        values_callable=lambda e: [m.value for m in e],
    )


class ReconciliationReport(TrackedBase):
    """Book-versus-statement comparison for one account over one period."""

    __tablename__ = "reconciliation_reports"

    __table_args__ = (
        UniqueConstraint("report_number", name="uq_reconciliation_report_number"),
        Index("idx_recon_account", "account_id"),
        Index("idx_recon_status", "status"),
        Index("idx_recon_period", "period_start", "period_end"),
        CheckConstraint("period_start <= period_end", name="ck_recon_period_order"),
        CheckConstraint("variance >= 0", name="ck_recon_variance_non_negative"),
    )

    report_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    period_start: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    period_end: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    fiscal_year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    book_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    statement_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    reconciled_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    variance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    status: Mapped[ReconciliationStatus] = mapped_column(
        _enum_column(ReconciliationStatus, "reconciliation_status"),
        default=ReconciliationStatus.DRAFT,
        nullable=False,
    )

    reconciled_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reconciled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reviewed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(2000),
        nullable=True,
    )

    # Completed report whose statement figures this report corrects
    supersedes_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("reconciliation_reports.id"),
        nullable=True,
    )

    items: Mapped[list["ReconciliationItem"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReconciliationItem.created_at",
    )

    adjustments: Mapped[list["ReconciliationAdjustment"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReconciliationAdjustment.created_at",
    )

    def __repr__(self) -> str:
        return f"<ReconciliationReport {self.report_number} status={self.status.value}>"


class ReconciliationItem(TrackedBase):
    """A known reconciling difference tracked on a report."""

    __tablename__ = "reconciliation_items"

    __table_args__ = (
        Index("idx_recon_item_report", "report_id"),
        CheckConstraint("amount > 0", name="ck_recon_item_amount_positive"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reconciliation_reports.id"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    item_type: Mapped[ReconciliationItemType] = mapped_column(
        _enum_column(ReconciliationItemType, "reconciliation_item_type"),
        nullable=False,
    )

    is_reconciled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    reconciled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reconciled_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Optional link back to the source bank/ledger transaction
    transaction_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    report: Mapped["ReconciliationReport"] = relationship(
        back_populates="items",
    )


class ReconciliationAdjustment(TrackedBase):
    """A manual correction, always backed by an approved journal entry."""

    __tablename__ = "reconciliation_adjustments"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", name="uq_recon_adjustment_entry"),
        Index("idx_recon_adjustment_report", "report_id"),
        CheckConstraint("amount > 0", name="ck_recon_adjustment_amount_positive"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reconciliation_reports.id"),
        nullable=False,
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

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        _enum_column(AdjustmentType, "adjustment_type"),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )

    report: Mapped["ReconciliationReport"] = relationship(
        back_populates="adjustments",
    )
