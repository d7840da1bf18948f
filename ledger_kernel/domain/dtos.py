"""
DTOs -- immutable data structures crossing the kernel boundary.

Responsibility:
    Defines the frozen dataclasses that services accept and selectors return:
    LineSpec (entry input), JournalEntryRecord / JournalLineRecord (journal
    read side), AccountInfo (chart of accounts), Period, Page, filters, and
    the reconciliation records.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are
    boundary converters invoked only from selectors and services.

Invariants enforced:
    - Money is always a finite Decimal with at most MONEY_SCALE decimal
      places, so nothing is rounded away on storage.  Floats, NaN and
      infinities are rejected; strings are parsed.
    - Period.start <= Period.end.

Failure modes:
    - ValueError on a reversed period or negative page window.
    - ValidationError on a float, unparseable, non-finite or over-precise
      amount.

Data flow:
    LineSpec -> JournalService -> JournalEntry (ORM) -> JournalEntryRecord
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import UUID

from ledger_kernel.exceptions import ValidationError

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel
    from ledger_kernel.models.reconciliation import (
        ReconciliationAdjustment as AdjustmentModel,
        ReconciliationItem as ItemModel,
        ReconciliationReport as ReportModel,
    )

ZERO = Decimal("0")

# Decimal places kept by the Numeric(38, 9) money columns.
MONEY_SCALE = 9

T = TypeVar("T")


def _decimal_places(amount: Decimal) -> int:
    _, digits, exponent = amount.as_tuple()
    significant = "".join(map(str, digits)).rstrip("0")
    if not significant:
        return 0
    return max(0, -(exponent + len(digits) - len(significant)))


def to_decimal(value: Decimal | str, name: str = "amount") -> Decimal:
    """
    Coerce a money input to a finite Decimal.

    Floats, unparseable text, NaN, infinities and amounts finer than
    MONEY_SCALE decimal places raise ValidationError keyed by ``name``.
    """
    if isinstance(value, bool) or not isinstance(value, (Decimal, str, int)):
        raise _amount_error(name, f"{name} must be Decimal or str, not {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation:
        raise _amount_error(name, f"{name} is not a valid amount: {value!r}") from None
    if not amount.is_finite():
        raise _amount_error(name, f"{name} must be a finite amount, not {amount}")
    if _decimal_places(amount) > MONEY_SCALE:
        raise _amount_error(
            name, f"{name} has more than {MONEY_SCALE} decimal places: {amount}"
        )
    return amount


def _amount_error(name: str, message: str) -> ValidationError:
    return ValidationError([message], field_errors={name: [message]})


# ---------------------------------------------------------------------------
# Periods and paging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Period:
    """Inclusive accounting date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}")

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    @classmethod
    def month(cls, year: int, month: int) -> Period:
        last_day = calendar.monthrange(year, month)[1]
        return cls(date(year, month, 1), date(year, month, last_day))


@dataclass(frozen=True)
class Page(Generic[T]):
    """One window of a filtered listing.  total counts every match."""

    items: tuple[T, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def _check_window(limit: int, offset: int) -> None:
    if limit <= 0:
        raise ValueError("limit must be positive")
    if offset < 0:
        raise ValueError("offset must be non-negative")


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    """Read-only view of one chart-of-accounts node."""

    id: UUID
    code: str
    name: str
    account_type: str
    category: str | None
    parent_id: UUID | None
    is_active: bool

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in ("asset", "expense")

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=getattr(model.account_type, "value", model.account_type),
            category=model.category,
            parent_id=model.parent_id,
            is_active=model.is_active,
        )


# ---------------------------------------------------------------------------
# Journal input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineSpec:
    """
    Specification for one journal line.

    Contract:
        Names an account by id and carries a debit or a credit amount.
        Shape rules (exactly one side positive, non-negative amounts) are
        checked by domain.validation so the caller gets every problem at
        once instead of the first.
    """

    account_id: UUID | None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    reference: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit, "debit"))
        object.__setattr__(self, "credit", to_decimal(self.credit, "credit"))

    @classmethod
    def debit_line(
        cls,
        account_id: UUID,
        amount: Decimal | str,
        description: str | None = None,
        reference: str | None = None,
    ) -> LineSpec:
        return cls(account_id, debit=to_decimal(amount), description=description, reference=reference)

    @classmethod
    def credit_line(
        cls,
        account_id: UUID,
        amount: Decimal | str,
        description: str | None = None,
        reference: str | None = None,
    ) -> LineSpec:
        return cls(account_id, credit=to_decimal(amount), description=description, reference=reference)

    def swapped(self) -> LineSpec:
        """Same line with debit and credit exchanged."""
        return LineSpec(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
            reference=self.reference,
        )


@dataclass(frozen=True)
class EntryValidationResult:
    """Outcome of entry validation.  Warnings never block a write."""

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    field_errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Journal read side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLineRecord:
    id: UUID
    account_id: UUID
    account_code: str
    description: str | None
    debit: Decimal
    credit: Decimal
    reference: str | None
    line_seq: int


@dataclass(frozen=True)
class JournalEntryRecord:
    """
    Read-side DTO for a journal entry and its lines.

    Guarantees:
        - total_debit == total_credit (within tolerance) for every record.
        - lines are ordered by line_seq.
    """

    id: UUID
    entry_number: str
    entry_date: date
    description: str
    reference: str | None
    total_debit: Decimal
    total_credit: Decimal
    status: str
    source_type: str
    source_id: str | None
    supplier_id: UUID | None
    branch_id: str | None
    reversal_of_id: UUID | None
    created_by_id: UUID
    created_at: datetime | None
    approved_by_id: UUID | None
    approved_at: datetime | None
    rejected_by_id: UUID | None
    rejected_at: datetime | None
    rejection_reason: str | None
    reversed_by_id: UUID | None
    reversed_at: datetime | None
    reversal_reason: str | None
    version: int
    lines: tuple[JournalLineRecord, ...]

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryRecord:
        lines = tuple(
            JournalLineRecord(
                id=line.id,
                account_id=line.account_id,
                account_code=line.account.code if line.account else "",
                description=line.description,
                debit=line.debit_amount,
                credit=line.credit_amount,
                reference=line.reference,
                line_seq=line.line_seq,
            )
            for line in sorted(model.lines, key=lambda x: x.line_seq)
        )
        return cls(
            id=model.id,
            entry_number=model.entry_number,
            entry_date=model.entry_date,
            description=model.description,
            reference=model.reference,
            total_debit=model.total_debit,
            total_credit=model.total_credit,
            status=getattr(model.status, "value", model.status),
            source_type=model.source_type,
            source_id=model.source_id,
            supplier_id=model.supplier_id,
            branch_id=model.branch_id,
            reversal_of_id=model.reversal_of_id,
            created_by_id=model.created_by_id,
            created_at=model.created_at,
            approved_by_id=model.approved_by_id,
            approved_at=model.approved_at,
            rejected_by_id=model.rejected_by_id,
            rejected_at=model.rejected_at,
            rejection_reason=model.rejection_reason,
            reversed_by_id=model.reversed_by_id,
            reversed_at=model.reversed_at,
            reversal_reason=model.reversal_reason,
            version=model.version,
            lines=lines,
        )


@dataclass(frozen=True)
class JournalEntryFilter:
    """Listing criteria.  Every criterion is optional and they combine with AND."""

    status: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    account_id: UUID | None = None
    source_type: str | None = None
    source_id: str | None = None
    created_by_id: UUID | None = None
    supplier_id: UUID | None = None
    search: str | None = None
    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        _check_window(self.limit, self.offset)


@dataclass(frozen=True)
class AccountBalance:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Debit minus credit."""
        return self.debit_total - self.credit_total

    @property
    def natural_balance(self) -> Decimal:
        """Balance expressed on the account's normal side."""
        if self.account_type in ("asset", "expense"):
            return self.balance
        return -self.balance


@dataclass(frozen=True)
class TrialBalance:
    as_of: date
    rows: tuple[AccountBalance, ...]
    total_debits: Decimal
    total_credits: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationItemSpec:
    """Input for a new reconciling item.  amount must be positive."""

    description: str
    amount: Decimal
    item_type: str
    transaction_id: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True)
class ReconciliationItemRecord:
    id: UUID
    report_id: UUID
    description: str
    amount: Decimal
    item_type: str
    is_reconciled: bool
    reconciled_at: datetime | None
    reconciled_by_id: UUID | None
    transaction_id: str | None
    notes: str | None

    @classmethod
    def from_model(cls, model: ItemModel) -> ReconciliationItemRecord:
        return cls(
            id=model.id,
            report_id=model.report_id,
            description=model.description,
            amount=model.amount,
            item_type=getattr(model.item_type, "value", model.item_type),
            is_reconciled=model.is_reconciled,
            reconciled_at=model.reconciled_at,
            reconciled_by_id=model.reconciled_by_id,
            transaction_id=model.transaction_id,
            notes=model.notes,
        )


@dataclass(frozen=True)
class ReconciliationAdjustmentRecord:
    id: UUID
    report_id: UUID
    journal_entry_id: UUID
    account_id: UUID
    description: str
    amount: Decimal
    adjustment_type: str
    reason: str

    @classmethod
    def from_model(cls, model: AdjustmentModel) -> ReconciliationAdjustmentRecord:
        return cls(
            id=model.id,
            report_id=model.report_id,
            journal_entry_id=model.journal_entry_id,
            account_id=model.account_id,
            description=model.description,
            amount=model.amount,
            adjustment_type=getattr(model.adjustment_type, "value", model.adjustment_type),
            reason=model.reason,
        )


@dataclass(frozen=True)
class ReconciliationReportRecord:
    id: UUID
    report_number: str
    period: Period
    fiscal_year: int
    account_id: UUID
    book_balance: Decimal
    statement_balance: Decimal
    reconciled_balance: Decimal
    variance: Decimal
    status: str
    created_by_id: UUID
    reconciled_by_id: UUID | None
    reconciled_at: datetime | None
    reviewed_by_id: UUID | None
    reviewed_at: datetime | None
    notes: str | None
    supersedes_id: UUID | None
    items: tuple[ReconciliationItemRecord, ...]
    adjustments: tuple[ReconciliationAdjustmentRecord, ...]

    @classmethod
    def from_model(cls, model: ReportModel) -> ReconciliationReportRecord:
        return cls(
            id=model.id,
            report_number=model.report_number,
            period=Period(model.period_start, model.period_end),
            fiscal_year=model.fiscal_year,
            account_id=model.account_id,
            book_balance=model.book_balance,
            statement_balance=model.statement_balance,
            reconciled_balance=model.reconciled_balance,
            variance=model.variance,
            status=getattr(model.status, "value", model.status),
            created_by_id=model.created_by_id,
            reconciled_by_id=model.reconciled_by_id,
            reconciled_at=model.reconciled_at,
            reviewed_by_id=model.reviewed_by_id,
            reviewed_at=model.reviewed_at,
            notes=model.notes,
            supersedes_id=model.supersedes_id,
            items=tuple(ReconciliationItemRecord.from_model(i) for i in model.items),
            adjustments=tuple(
                ReconciliationAdjustmentRecord.from_model(a) for a in model.adjustments
            ),
        )


@dataclass(frozen=True)
class ReconciliationFilter:
    account_id: UUID | None = None
    status: str | None = None
    period_from: date | None = None
    period_to: date | None = None
    reconciled_by_id: UUID | None = None
    search: str | None = None
    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        _check_window(self.limit, self.offset)


@dataclass(frozen=True)
class ReconciliationSummary:
    total_reports: int
    completed_reports: int
    pending_reports: int
    total_variance: Decimal
    average_variance: Decimal
    accounts_reconciled: int


@dataclass(frozen=True)
class SupplierDiscrepancy:
    kind: str
    description: str
    expected: Decimal
    actual: Decimal
    difference: Decimal
    severity: str


@dataclass(frozen=True)
class SupplierReconciliationResult:
    supplier_id: UUID
    period: Period
    book_balance: Decimal
    statement_balance: Decimal
    difference: Decimal
    discrepancies: tuple[SupplierDiscrepancy, ...]

    @property
    def is_reconciled(self) -> bool:
        return not self.discrepancies
