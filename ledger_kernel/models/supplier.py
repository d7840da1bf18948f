"""
Supplier party record.

Suppliers are maintained by the purchasing screens; the kernel only reads
them to tag supplier-sourced journal entries and to reconcile supplier
statements.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Supplier(TrackedBase):
    """A supplier (vendor) that invoices and is paid through the ledger."""

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_supplier_code"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Supplier {self.code}: {self.name}>"
