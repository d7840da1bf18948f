"""
ORM-level immutability enforcement for ledger history.

===============================================================================
WHAT IS PROTECTED
===============================================================================

Entity                    | When Immutable                 | Allowed change
--------------------------|--------------------------------|-------------------------------
JournalEntry              | status approved or reversed    | approved -> reversed flip with
                          |                                | reversed_by_id / reversed_at /
                          |                                | reversal_reason / version
JournalEntryLine          | parent approved or reversed    | none
ReconciliationAdjustment  | ALWAYS (from creation)         | none

Audit metadata (updated_at, updated_by_id) may always change.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() ---------/

Status transitions performed by the services are compare-and-swap UPDATE
statements issued through session.execute(update(...)); those do not pass
through the unit of work and are therefore not intercepted here.  The
listeners guard against ORM attribute edits on approved history.

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent

Tests that need to violate the rules on purpose call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_REVERSAL_FIELDS = frozenset(
    {"status", "reversed_by_id", "reversed_at", "reversal_reason", "version"}
)


def _status_value(status) -> str | None:
    if status is None:
        return None
    return getattr(status, "value", status)


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Prevent updates to approved or reversed JournalEntry records.

    Logic:
        1. Status changing FROM draft: allow (posting / rejection).
        2. Status changing approved -> reversed: allow only reversal fields.
        3. Status unchanged and approved/reversed: block every non-audit field.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        old_status = _status_value(status_history.deleted[0])
        new_status = _status_value(
            status_history.added[0] if status_history.added else None
        )
    else:
        old_status = _status_value(target.status)
        new_status = old_status

    if old_status not in ("approved", "reversed"):
        return

    if old_status == "approved" and new_status == "reversed":
        allowed = _AUDIT_FIELDS | _REVERSAL_FIELDS
    else:
        allowed = _AUDIT_FIELDS

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in allowed:
            continue
        if attr.history.has_changes():
            _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on {old_status} journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    """Approved and reversed entries cannot be deleted."""
    if _status_value(target.status) in ("approved", "reversed"):
        _blocked(
            "JournalEntry",
            target.id,
            "DELETE",
            f"{_status_value(target.status).capitalize()} journal entries cannot be deleted",
        )


def _parent_is_final(target) -> bool:
    entry = target.entry
    return entry is not None and _status_value(entry.status) in ("approved", "reversed")


def _check_journal_line_immutability(mapper, connection, target):
    if _parent_is_final(target):
        _blocked(
            "JournalEntryLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified after the parent entry is approved",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_final(target):
        _blocked(
            "JournalEntryLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted after the parent entry is approved",
        )


def _check_adjustment_immutability(mapper, connection, target):
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                "ReconciliationAdjustment",
                target.id,
                "UPDATE",
                "Reconciliation adjustments are immutable",
            )


def _check_adjustment_delete(mapper, connection, target):
    _blocked(
        "ReconciliationAdjustment",
        target.id,
        "DELETE",
        "Reconciliation adjustments cannot be deleted",
    )


def _listeners():
    from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
    from ledger_kernel.models.reconciliation import ReconciliationAdjustment

    return [
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalEntryLine, "before_update", _check_journal_line_immutability),
        (JournalEntryLine, "before_delete", _check_journal_line_delete),
        (ReconciliationAdjustment, "before_update", _check_adjustment_immutability),
        (ReconciliationAdjustment, "before_delete", _check_adjustment_delete),
    ]


def register_immutability_listeners() -> None:
    """Install the mapper listeners.  Safe to call more than once."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the mapper listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
