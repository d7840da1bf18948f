"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/dtos.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: public methods return frozen dataclasses or
      computed values, never ORM instances.
    - Session ownership: the caller owns the session and its transaction, so
      a selector reads whatever that transaction can see (including its own
      uncommitted writes).
"""

from abc import ABC
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Abstract base for selectors.  Stores the caller's session."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _decimal(value: Any) -> Decimal:
        """Aggregate results arrive as Decimal, or None for empty sets."""
        if value is None:
            return Decimal("0")
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
