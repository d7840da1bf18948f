"""Point-of-sale generator."""

from typing import TYPE_CHECKING

from ledger_kernel.domain.dtos import ZERO, LineSpec
from ledger_kernel.generators.base import EntryGenerator, GeneratedEntry, method_code
from ledger_kernel.generators.events import PosSale
from ledger_kernel.models.journal import SourceType

if TYPE_CHECKING:
    from ledger_kernel.services.account_directory import AccountDirectory


class PosSaleGenerator(EntryGenerator):
    """
    Dr receipt account (total), Dr sales discount, Cr sales revenue
    (subtotal), Cr output VAT (tax).
    """

    @property
    def source_type(self) -> str:
        return SourceType.POS_SALE.value

    def build(self, event: PosSale, directory: "AccountDirectory") -> GeneratedEntry:
        codes = self.policy.account_codes
        context = f"sale {event.sale_number}"

        receipt_code = method_code(
            self.policy.receipt_account_code(event.payment_method),
            event.payment_method,
            context,
        )
        required = [receipt_code, codes.sales_revenue]
        if event.discount_amount > ZERO:
            required.append(codes.sales_discount)
        if event.tax_amount > ZERO:
            required.append(codes.vat_output)
        accounts = directory.require_codes(required, context)

        ref = event.sale_number
        lines = []
        if event.total_amount > ZERO:
            lines.append(
                LineSpec.debit_line(
                    accounts[receipt_code].id,
                    event.total_amount,
                    f"Sale {event.sale_number} ({event.payment_method})",
                    ref,
                )
            )
        if event.discount_amount > ZERO:
            lines.append(
                LineSpec.debit_line(
                    accounts[codes.sales_discount].id, event.discount_amount, "Sales discount", ref
                )
            )
        lines.append(
            LineSpec.credit_line(accounts[codes.sales_revenue].id, event.subtotal, "Sales revenue", ref)
        )
        if event.tax_amount > ZERO:
            lines.append(
                LineSpec.credit_line(accounts[codes.vat_output].id, event.tax_amount, "Output VAT", ref)
            )

        return GeneratedEntry(
            entry_date=event.sale_date,
            description=f"POS Sale {event.sale_number}",
            reference=ref,
            source_type=self.source_type,
            source_id=str(event.sale_id),
            lines=tuple(lines),
            branch_id=event.branch_id,
        )
