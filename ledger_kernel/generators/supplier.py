"""Supplier invoice and supplier payment generators."""

from typing import TYPE_CHECKING

from ledger_kernel.domain.dtos import ZERO, LineSpec
from ledger_kernel.generators.base import EntryGenerator, GeneratedEntry, method_code
from ledger_kernel.generators.events import SupplierInvoice, SupplierPayment
from ledger_kernel.models.journal import SourceType

if TYPE_CHECKING:
    from ledger_kernel.services.account_directory import AccountDirectory

PAYMENT_METHOD_LABELS = {
    "cash": "Cash",
    "bank_transfer": "Bank Transfer",
    "check": "Check",
    "credit_card": "Credit Card",
    "ach": "ACH Transfer",
    "wire_transfer": "Wire Transfer",
    "digital_wallet": "Digital Wallet",
}


class SupplierInvoiceGenerator(EntryGenerator):
    """
    Dr expense (net of discount), Dr input VAT, Cr accounts payable.

    The expense side falls back to the inventory account when no active
    expense account exists.  Input VAT is required only when the invoice
    carries tax.
    """

    @property
    def source_type(self) -> str:
        return SourceType.SUPPLIER_INVOICE.value

    def build(self, event: SupplierInvoice, directory: "AccountDirectory") -> GeneratedEntry:
        codes = self.policy.account_codes
        context = f"supplier invoice {event.invoice_number}"

        expense = directory.get_by_code(codes.expense) or directory.get_by_code(codes.inventory)
        required = [codes.accounts_payable]
        if expense is None:
            required.insert(0, codes.expense)
        if event.tax_amount > ZERO:
            required.append(codes.vat_input)
        accounts = directory.require_codes(required, context)

        supplier = event.supplier_name or "Supplier"
        ref = event.invoice_number
        lines = []
        if event.net_amount > ZERO:
            lines.append(
                LineSpec.debit_line(expense.id, event.net_amount, f"Purchase from {supplier}", ref)
            )
        if event.tax_amount > ZERO:
            lines.append(
                LineSpec.debit_line(accounts[codes.vat_input].id, event.tax_amount, "Input VAT", ref)
            )
        lines.append(
            LineSpec.credit_line(
                accounts[codes.accounts_payable].id,
                event.total_amount,
                f"Payable to {supplier}",
                ref,
            )
        )

        return GeneratedEntry(
            entry_date=event.invoice_date,
            description=f"Supplier Invoice {event.invoice_number}",
            reference=ref,
            source_type=self.source_type,
            source_id=str(event.invoice_id),
            lines=tuple(lines),
            supplier_id=event.supplier_id,
            branch_id=event.branch_id,
        )


class SupplierPaymentGenerator(EntryGenerator):
    """Dr accounts payable, Cr the payment-method account; bank fee on top."""

    @property
    def source_type(self) -> str:
        return SourceType.SUPPLIER_PAYMENT.value

    def build(self, event: SupplierPayment, directory: "AccountDirectory") -> GeneratedEntry:
        codes = self.policy.account_codes
        context = f"supplier payment {event.payment_number}"

        pay_code = method_code(
            self.policy.payment_account_code(event.payment_method),
            event.payment_method,
            context,
        )
        required = [codes.accounts_payable, pay_code]
        if event.bank_fee > ZERO:
            required.append(codes.bank_charges)
        accounts = directory.require_codes(required, context)

        method = PAYMENT_METHOD_LABELS.get(event.payment_method.lower(), event.payment_method)
        supplier = event.supplier_name or "Supplier"
        ref = event.payment_number
        paid_from = accounts[pay_code].id
        lines = [
            LineSpec.debit_line(
                accounts[codes.accounts_payable].id, event.amount, f"Payment to {supplier}", ref
            ),
            LineSpec.credit_line(paid_from, event.amount, f"Payment via {method}", ref),
        ]
        if event.bank_fee > ZERO:
            lines.append(
                LineSpec.debit_line(
                    accounts[codes.bank_charges].id, event.bank_fee, "Bank charges", ref
                )
            )
            lines.append(LineSpec.credit_line(paid_from, event.bank_fee, "Bank charges", ref))

        return GeneratedEntry(
            entry_date=event.payment_date,
            description=f"Supplier Payment {event.payment_number}",
            reference=ref,
            source_type=self.source_type,
            source_id=str(event.payment_id),
            lines=tuple(lines),
            supplier_id=event.supplier_id,
            branch_id=event.branch_id,
        )
