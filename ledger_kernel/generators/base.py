"""
Entry generator protocol, result type, and registry.

An EntryGenerator is a pure mapping from one business event to a balanced
set of journal lines.  It reads the chart of accounts through the
AccountDirectory and the policy, and has NO other side effects: it never
writes, never reads the clock, and never posts.  EventPostingService hands
the result to the ledger.

Every account a generator needs is resolved before any line is built, so a
missing code surfaces as AccountMappingError before anything is written.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ledger_kernel.config import LedgerPolicy
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.validation import line_totals
from ledger_kernel.exceptions import AccountMappingError, LedgerKernelError, ValidationError
from ledger_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from ledger_kernel.services.account_directory import AccountDirectory

logger = get_logger("generators")

CENT = Decimal("0.01")


class GeneratorNotFoundError(LedgerKernelError):
    """No generator is registered for an event type."""

    code: str = "GENERATOR_NOT_FOUND"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"No entry generator registered for event type: {event_type}")


@dataclass(frozen=True)
class GeneratedEntry:
    """A proposed journal entry, ready for JournalService.create_entry()."""

    entry_date: date
    description: str
    reference: str | None
    source_type: str
    source_id: str
    lines: tuple[LineSpec, ...]
    supplier_id: UUID | None = None
    branch_id: str | None = None

    def as_create_kwargs(self) -> dict[str, Any]:
        return {
            "entry_date": self.entry_date,
            "description": self.description,
            "lines": list(self.lines),
            "reference": self.reference,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "supplier_id": self.supplier_id,
            "branch_id": self.branch_id,
        }


class EntryGenerator(ABC):
    """
    Abstract base for event-to-entry generators.

    Subclasses implement ``source_type`` and ``build()``; ``generate()`` adds
    the balance check every generator shares.
    """

    def __init__(self, policy: LedgerPolicy):
        self.policy = policy

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Source type stamped on generated entries."""
        ...

    @abstractmethod
    def build(self, event: Any, directory: "AccountDirectory") -> GeneratedEntry:
        ...

    def generate(self, event: Any, directory: "AccountDirectory") -> GeneratedEntry:
        """
        Build the entry for ``event`` and check that it balances.

        Raises:
            AccountMappingError: a required account code is missing.
            ValidationError: the produced lines do not balance.
        """
        entry = self.build(event, directory)
        total_debit, total_credit = line_totals(entry.lines)
        if abs(total_debit - total_credit) > self.policy.balance_tolerance:
            message = (
                f"Generated entry for {entry.source_type} {entry.source_id} does not "
                f"balance: debits {total_debit}, credits {total_credit}"
            )
            logger.error(
                "generated_entry_unbalanced",
                extra={
                    "source_type": entry.source_type,
                    "source_id": entry.source_id,
                    "total_debit": total_debit,
                    "total_credit": total_credit,
                },
            )
            raise ValidationError([message])
        return entry


class GeneratorRegistry:
    """Maps event classes to their generators."""

    def __init__(self) -> None:
        self._generators: dict[type, EntryGenerator] = {}

    def register(self, event_type: type, generator: EntryGenerator) -> None:
        if event_type in self._generators:
            existing = self._generators[event_type]
            raise ValueError(
                f"Generator already registered for {event_type.__name__}: "
                f"{existing.__class__.__name__}"
            )
        self._generators[event_type] = generator

    def get(self, event_type: type) -> EntryGenerator:
        try:
            return self._generators[event_type]
        except KeyError:
            raise GeneratorNotFoundError(event_type.__name__) from None

    def for_event(self, event: Any) -> EntryGenerator:
        return self.get(type(event))

    def has_generator(self, event_type: type) -> bool:
        return event_type in self._generators

    def event_types(self) -> list[str]:
        return sorted(event_type.__name__ for event_type in self._generators)


def method_code(code: str | None, method: str, context: str) -> str:
    """Account code mapped to a payment method, or AccountMappingError."""
    if code is None:
        logger.warning(
            "payment_method_unmapped",
            extra={"payment_method": method, "context": context},
        )
        raise AccountMappingError([f"payment method '{method}'"], context)
    return code


def money(value: Decimal) -> Decimal:
    """Round a computed amount to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
