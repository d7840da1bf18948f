"""
Pure journal-entry validation.

No I/O: the caller resolves the referenced accounts first and passes them
in.  Every problem is collected, so one call reports every bad line rather
than stopping at the first.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import ZERO, AccountInfo, EntryValidationResult, LineSpec

GENERAL = "general"


def line_totals(lines: Sequence[LineSpec]) -> tuple[Decimal, Decimal]:
    """Sum of debits and sum of credits."""
    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    return total_debit, total_credit


def is_balanced(lines: Sequence[LineSpec], tolerance: Decimal) -> bool:
    total_debit, total_credit = line_totals(lines)
    return abs(total_debit - total_credit) <= tolerance


def validate_entry(
    entry_date: date | None,
    description: str | None,
    lines: Sequence[LineSpec],
    accounts: Mapping[UUID, AccountInfo],
    tolerance: Decimal,
) -> EntryValidationResult:
    """
    Check an entry header and its lines.

    Args:
        entry_date: Accounting date; required.
        description: Entry description; required and non-blank.
        lines: Candidate lines.
        accounts: Every resolvable account referenced by ``lines``, keyed by
            id.  A line whose account is missing here is reported as not found.
        tolerance: Largest allowed |debits - credits|.

    Returns:
        EntryValidationResult.  Inactive accounts yield warnings only.
    """
    errors: list[str] = []
    warnings: list[str] = []
    field_errors: dict[str, list[str]] = {}

    def fail(key: str, message: str) -> None:
        errors.append(message)
        field_errors.setdefault(key, []).append(message)

    if not description or not description.strip():
        fail("description", "Description is required")
    if entry_date is None:
        fail("entry_date", "Date is required")

    if len(lines) < 2:
        fail(GENERAL, "At least two journal entry lines are required")

    for index, line in enumerate(lines):
        key = f"lines[{index}]"
        label = f"Line {index + 1}"

        if line.account_id is None:
            fail(f"{key}.account_id", f"{label}: Account is required")
        else:
            account = accounts.get(line.account_id)
            if account is None:
                fail(f"{key}.account_id", f"{label}: Account not found")
            elif not account.is_active:
                warnings.append(f"{label}: Account {account.code} is inactive")

        if line.debit < ZERO or line.credit < ZERO:
            fail(f"{key}.amount", f"{label}: Amounts cannot be negative")
        elif line.debit > ZERO and line.credit > ZERO:
            fail(f"{key}.amount", f"{label}: Cannot have both debit and credit amounts")
        elif line.debit == ZERO and line.credit == ZERO:
            fail(f"{key}.amount", f"{label}: Must have either debit or credit amount")

    if lines:
        total_debit, total_credit = line_totals(lines)
        if abs(total_debit - total_credit) > tolerance:
            fail(
                GENERAL,
                f"Total debits ({total_debit}) must equal total credits ({total_credit})",
            )

    return EntryValidationResult(
        errors=tuple(errors),
        warnings=tuple(warnings),
        field_errors=field_errors,
    )
