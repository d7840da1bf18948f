"""Derived-entry generators: business events to balanced journal lines."""

from ledger_kernel.config import LedgerPolicy
from ledger_kernel.generators.base import (
    EntryGenerator,
    GeneratedEntry,
    GeneratorNotFoundError,
    GeneratorRegistry,
)
from ledger_kernel.generators.events import (
    InstallmentContract,
    InstallmentPayment,
    PosSale,
    SupplierInvoice,
    SupplierPayment,
)
from ledger_kernel.generators.installment import (
    InstallmentContractGenerator,
    InstallmentPaymentGenerator,
)
from ledger_kernel.generators.pos import PosSaleGenerator
from ledger_kernel.generators.supplier import (
    SupplierInvoiceGenerator,
    SupplierPaymentGenerator,
)


def default_registry(policy: LedgerPolicy) -> GeneratorRegistry:
    """Registry with every built-in generator bound to ``policy``."""
    registry = GeneratorRegistry()
    registry.register(SupplierInvoice, SupplierInvoiceGenerator(policy))
    registry.register(SupplierPayment, SupplierPaymentGenerator(policy))
    registry.register(InstallmentContract, InstallmentContractGenerator(policy))
    registry.register(InstallmentPayment, InstallmentPaymentGenerator(policy))
    registry.register(PosSale, PosSaleGenerator(policy))
    return registry


__all__ = [
    "EntryGenerator",
    "GeneratedEntry",
    "GeneratorNotFoundError",
    "GeneratorRegistry",
    "InstallmentContract",
    "InstallmentContractGenerator",
    "InstallmentPayment",
    "InstallmentPaymentGenerator",
    "PosSale",
    "PosSaleGenerator",
    "SupplierInvoice",
    "SupplierInvoiceGenerator",
    "SupplierPayment",
    "SupplierPaymentGenerator",
    "default_registry",
]
