"""
Business events that produce journal entries.

Events are frozen value objects built by the surrounding application
(purchasing, payments, point of sale).  Amounts are Decimal; strings and
ints are accepted and converted, floats are refused.
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import ZERO, to_decimal


class _Event:
    """Mixin: coerce every Decimal-annotated field and refuse negatives."""

    _amount_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in self._amount_fields:
            value = getattr(self, name)
            if value is None:
                continue
            amount = to_decimal(value, name)
            if amount < ZERO:
                raise ValueError(f"{name} cannot be negative")
            object.__setattr__(self, name, amount)

    @property
    def source_id(self) -> str:
        return str(getattr(self, fields(self)[0].name))


@dataclass(frozen=True)
class SupplierInvoice(_Event):
    invoice_id: UUID
    invoice_number: str
    supplier_id: UUID
    invoice_date: date
    subtotal: Decimal
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    supplier_name: str | None = None
    branch_id: str | None = None

    _amount_fields = ("subtotal", "tax_amount", "discount_amount")

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.discount_amount > self.subtotal:
            raise ValueError("discount_amount cannot exceed subtotal")

    @property
    def net_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount

    @property
    def total_amount(self) -> Decimal:
        return self.subtotal + self.tax_amount - self.discount_amount


@dataclass(frozen=True)
class SupplierPayment(_Event):
    payment_id: UUID
    payment_number: str
    supplier_id: UUID
    payment_date: date
    amount: Decimal
    payment_method: str
    bank_fee: Decimal = ZERO
    supplier_name: str | None = None
    branch_id: str | None = None

    _amount_fields = ("amount", "bank_fee")


@dataclass(frozen=True)
class InstallmentContract(_Event):
    """A sale on installments: part paid now, the rest financed."""

    contract_id: UUID
    contract_number: str
    customer_name: str
    contract_date: date
    total_amount: Decimal
    down_payment: Decimal
    payment_method: str = "cash"
    branch_id: str | None = None

    _amount_fields = ("total_amount", "down_payment")

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.down_payment > self.total_amount:
            raise ValueError("down_payment cannot exceed total_amount")

    @property
    def financed_amount(self) -> Decimal:
        return self.total_amount - self.down_payment


@dataclass(frozen=True)
class InstallmentPayment(_Event):
    """
    One installment received against a contract.

    principal and interest are optional; when both are omitted the
    generator splits ``amount`` using the configured interest share.
    """

    payment_id: UUID
    contract_number: str
    payment_date: date
    amount: Decimal
    payment_method: str = "cash"
    principal: Decimal | None = None
    interest: Decimal | None = None
    days_late: int = 0
    branch_id: str | None = None

    _amount_fields = ("amount", "principal", "interest")

    def __post_init__(self) -> None:
        super().__post_init__()
        if (self.principal is None) != (self.interest is None):
            raise ValueError("principal and interest must be given together")
        if self.principal is not None and self.principal + self.interest != self.amount:
            raise ValueError("principal + interest must equal amount")
        if self.days_late < 0:
            raise ValueError("days_late cannot be negative")


@dataclass(frozen=True)
class PosSale(_Event):
    sale_id: UUID
    sale_number: str
    sale_date: date
    subtotal: Decimal
    payment_method: str
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    branch_id: str | None = None

    _amount_fields = ("subtotal", "tax_amount", "discount_amount")

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.discount_amount > self.subtotal:
            raise ValueError("discount_amount cannot exceed subtotal")

    @property
    def total_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount + self.tax_amount
