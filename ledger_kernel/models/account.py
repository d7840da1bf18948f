"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every journal entry line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is globally unique (uq_account_code).
    - No stored balance.  Balances are derived from approved journal lines
      by the ledger selector; the chart of accounts only carries structure.

Failure modes:
    - Lookups of unknown codes surface as AccountMappingError (generators)
      or ValidationError (entry lines), never from this model.

Audit relevance:
    Deactivation (is_active=False) never deletes history; lines that already
    reference the account keep their meaning.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum as SAEnum, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntryLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(TrackedBase):
    """
    Chart of Accounts entry -- a single node in the general ledger structure.

    Contract:
        Created by chart-of-accounts setup outside the kernel; read-only to
        the ledger and reconciliation services.

    Guarantees:
        - code is unique and non-null.
        - account_type is one of ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE.
        - parent_id (optional) forms a rollup hierarchy.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
        Index("idx_account_parent", "parent_id"),
    )

    # Human-meaningful identifier (e.g. "1000", "ACCOUNTS_PAYABLE")
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(
            AccountType,
            name="account_type",
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    # Free-form grouping (current_asset, operating_expense, ...)
    category: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    journal_lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return AccountType(self.account_type).is_debit_normal
