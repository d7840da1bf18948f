"""
Installment sale generators.

Contract:
    down payment      Dr receipt account        Cr sales revenue
    financed amount   Dr installment receivable Cr sales revenue

Payment:
    Dr receipt account   amount + late fee
    Cr receivable        principal
    Cr interest revenue  interest
    Cr late-fee revenue  late fee

When principal and interest are not given, interest is
``amount * interest_share`` and principal is the remainder.  The late fee
is ``amount * rate_per_day * days_late`` capped at ``amount * cap_ratio``.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from ledger_kernel.domain.dtos import ZERO, LineSpec
from ledger_kernel.generators.base import EntryGenerator, GeneratedEntry, method_code, money
from ledger_kernel.generators.events import InstallmentContract, InstallmentPayment
from ledger_kernel.models.journal import SourceType

if TYPE_CHECKING:
    from ledger_kernel.services.account_directory import AccountDirectory


class InstallmentContractGenerator(EntryGenerator):
    @property
    def source_type(self) -> str:
        return SourceType.INSTALLMENT_CONTRACT.value

    def build(self, event: InstallmentContract, directory: "AccountDirectory") -> GeneratedEntry:
        codes = self.policy.account_codes
        context = f"installment contract {event.contract_number}"

        required = [codes.sales_revenue]
        receipt_code = None
        if event.down_payment > ZERO:
            receipt_code = method_code(
                self.policy.receipt_account_code(event.payment_method),
                event.payment_method,
                context,
            )
            required.append(receipt_code)
        if event.financed_amount > ZERO:
            required.append(codes.installment_receivable)
        accounts = directory.require_codes(required, context)

        ref = event.contract_number
        revenue = accounts[codes.sales_revenue].id
        lines = []
        if event.down_payment > ZERO:
            lines += [
                LineSpec.debit_line(accounts[receipt_code].id, event.down_payment, "Down payment", ref),
                LineSpec.credit_line(revenue, event.down_payment, "Installment sale: down payment", ref),
            ]
        if event.financed_amount > ZERO:
            lines += [
                LineSpec.debit_line(
                    accounts[codes.installment_receivable].id,
                    event.financed_amount,
                    f"Installment receivable from {event.customer_name}",
                    ref,
                ),
                LineSpec.credit_line(revenue, event.financed_amount, "Installment sale: financed", ref),
            ]

        return GeneratedEntry(
            entry_date=event.contract_date,
            description=f"Installment Contract {event.contract_number}",
            reference=ref,
            source_type=self.source_type,
            source_id=str(event.contract_id),
            lines=tuple(lines),
            branch_id=event.branch_id,
        )


class InstallmentPaymentGenerator(EntryGenerator):
    def split(self, event: InstallmentPayment) -> tuple[Decimal, Decimal]:
        """(principal, interest) for the payment."""
        if event.principal is not None:
            return event.principal, event.interest
        interest = money(event.amount * self.policy.installment.interest_share)
        return event.amount - interest, interest

    def late_fee(self, event: InstallmentPayment) -> Decimal:
        if event.days_late <= 0:
            return ZERO
        terms = self.policy.installment
        fee = event.amount * terms.late_fee_rate_per_day * event.days_late
        return money(min(fee, event.amount * terms.late_fee_cap_ratio))

    @property
    def source_type(self) -> str:
        return SourceType.INSTALLMENT_PAYMENT.value

    def build(self, event: InstallmentPayment, directory: "AccountDirectory") -> GeneratedEntry:
        codes = self.policy.account_codes
        context = f"installment payment {event.contract_number}"

        principal, interest = self.split(event)
        fee = self.late_fee(event)

        receipt_code = method_code(
            self.policy.receipt_account_code(event.payment_method),
            event.payment_method,
            context,
        )
        required = [receipt_code]
        if principal > ZERO:
            required.append(codes.installment_receivable)
        if interest > ZERO:
            required.append(codes.interest_revenue)
        if fee > ZERO:
            required.append(codes.late_fee_revenue)
        accounts = directory.require_codes(required, context)

        ref = event.contract_number
        lines = [
            LineSpec.debit_line(
                accounts[receipt_code].id, event.amount + fee, "Installment received", ref
            )
        ]
        if principal > ZERO:
            lines.append(
                LineSpec.credit_line(
                    accounts[codes.installment_receivable].id, principal, "Principal", ref
                )
            )
        if interest > ZERO:
            lines.append(
                LineSpec.credit_line(accounts[codes.interest_revenue].id, interest, "Interest", ref)
            )
        if fee > ZERO:
            lines.append(
                LineSpec.credit_line(
                    accounts[codes.late_fee_revenue].id,
                    fee,
                    f"Late fee ({event.days_late} days)",
                    ref,
                )
            )

        return GeneratedEntry(
            entry_date=event.payment_date,
            description=f"Installment Payment {event.contract_number}",
            reference=ref,
            source_type=self.source_type,
            source_id=str(event.payment_id),
            lines=tuple(lines),
            branch_id=event.branch_id,
        )
