"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (entry forms, automated integrations, report screens)
need to tell three situations apart without parsing message strings:

  - "fix your input"          -> ValidationError
  - "fix your configuration"  -> AccountMappingError, ConfigurationError
  - "illegal state / failure" -> PostingError, ReconciliationError,
                                 ConcurrencyError, ImmutabilityViolationError

Every exception therefore:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes, rendered by to_dict()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    +-- AccountMappingError
    +-- ConfigurationError
    |
    +-- PostingError
    |   +-- EntryNotFoundError
    |   +-- InvalidEntryStateError
    |   +-- UnbalancedEntryError
    |   +-- EntryAlreadyReversedError
    |
    +-- ReconciliationError
    |   +-- ReportNotFoundError
    |   +-- ReconciliationItemNotFoundError
    |   +-- ReconciliationClosedError
    |   +-- VarianceExceededError
    |   +-- SupplierNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | VALIDATION_FAILED           | Malformed or unbalanced entry/line data
Configuration   | ACCOUNT_MAPPING_FAILED      | Well-known account code not resolvable
                | CONFIGURATION_INVALID       | Policy file missing keys / wrong types
----------------|-----------------------------|-----------------------------------------
Posting         | ENTRY_NOT_FOUND             | Entry ID doesn't exist
                | INVALID_ENTRY_STATE         | Transition not allowed from status
                | UNBALANCED_ENTRY            | Stored entry no longer balances
                | ENTRY_ALREADY_REVERSED      | Second reversal of the same entry
----------------|-----------------------------|-----------------------------------------
Reconciliation  | REPORT_NOT_FOUND            | Report ID doesn't exist
                | RECONCILIATION_ITEM_NOT_FOUND | Item ID doesn't exist
                | RECONCILIATION_CLOSED       | Edit attempted on completed report
                | VARIANCE_EXCEEDED           | Completion with variance above threshold
                | SUPPLIER_NOT_FOUND          | Supplier ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Status compare-and-swap lost a race
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an approved entry / its lines

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        entry = journal.create_entry(...)
    except ValidationError as e:
        return form_errors(e.field_errors)      # actionable per-field messages
    except AccountMappingError as e:
        alert_operator(e.missing_codes)         # chart of accounts is incomplete
"""

from typing import Any


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for callers that serialize errors."""
        details = {
            k: v for k, v in vars(self).items() if not k.startswith("_")
        }
        return {"code": self.code, "message": str(self), "details": details}


# Input and configuration errors


class ValidationError(LedgerKernelError):
    """Entry or line data is malformed or unbalanced.

    Always recoverable by the caller correcting its input.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(
        self,
        errors: list[str],
        warnings: list[str] | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        self.field_errors = dict(field_errors or {})
        super().__init__(f"Validation failed: {'; '.join(self.errors)}")


class AccountMappingError(LedgerKernelError):
    """A required well-known account code could not be resolved."""

    code: str = "ACCOUNT_MAPPING_FAILED"

    def __init__(self, missing_codes: list[str], context: str | None = None):
        self.missing_codes = list(missing_codes)
        self.context = context
        where = f" for {context}" if context else ""
        super().__init__(
            f"Required accounts not found{where}: {', '.join(self.missing_codes)}"
        )


class ConfigurationError(LedgerKernelError):
    """Ledger policy configuration is missing or malformed."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, reason: str, key: str | None = None):
        self.reason = reason
        self.key = key
        super().__init__(f"Invalid ledger configuration: {reason}")


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for illegal journal entry state transitions."""

    code: str = "POSTING_ERROR"


class EntryNotFoundError(PostingError):
    """Journal entry does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Journal entry not found: {journal_entry_id}")


class InvalidEntryStateError(PostingError):
    """The requested transition is not allowed from the entry's status."""

    code: str = "INVALID_ENTRY_STATE"

    def __init__(self, journal_entry_id: str, status: str, operation: str):
        self.journal_entry_id = journal_entry_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} journal entry {journal_entry_id} with status: {status}"
        )


class UnbalancedEntryError(PostingError):
    """Stored entry fails re-validation at posting time."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, journal_entry_id: str, errors: list[str]):
        self.journal_entry_id = journal_entry_id
        self.errors = list(errors)
        super().__init__(
            f"Cannot post invalid journal entry {journal_entry_id}: "
            f"{'; '.join(self.errors)}"
        )


class EntryAlreadyReversedError(PostingError):
    """Entry has already been reversed."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Entry {journal_entry_id} has already been reversed")


# Reconciliation-related exceptions


class ReconciliationError(LedgerKernelError):
    """Base exception for reconciliation failures."""

    code: str = "RECONCILIATION_ERROR"

    def __init__(self, message: str, **details: Any):
        for key, value in details.items():
            setattr(self, key, value)
        super().__init__(message)


class ReportNotFoundError(ReconciliationError):
    """Reconciliation report does not exist."""

    code: str = "REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        super().__init__(
            f"Reconciliation report not found: {report_id}", report_id=report_id
        )


class ReconciliationItemNotFoundError(ReconciliationError):
    """Reconciliation item does not exist."""

    code: str = "RECONCILIATION_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        super().__init__(
            f"Reconciliation item not found: {item_id}", item_id=item_id
        )


class ReconciliationClosedError(ReconciliationError):
    """Report is completed or reviewed and no longer accepts edits."""

    code: str = "RECONCILIATION_CLOSED"

    def __init__(self, report_id: str, status: str):
        super().__init__(
            f"Reconciliation {report_id} is {status} and cannot be modified",
            report_id=report_id,
            status=status,
        )


class VarianceExceededError(ReconciliationError):
    """Completion attempted while variance is above the policy threshold."""

    code: str = "VARIANCE_EXCEEDED"

    def __init__(self, report_id: str, variance: str, threshold: str):
        super().__init__(
            f"Cannot complete reconciliation {report_id}: "
            f"variance {variance} exceeds threshold {threshold}",
            report_id=report_id,
            variance=variance,
            threshold=threshold,
        )


class SupplierNotFoundError(ReconciliationError):
    """Supplier does not exist."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        super().__init__(
            f"Supplier not found: {supplier_id}", supplier_id=supplier_id
        )


# Concurrency-related exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityViolationError(LedgerKernelError):
    """Attempt to modify an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
