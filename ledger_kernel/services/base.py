"""
BaseService -- common constructor for write services.

Services flush within the caller's transaction and never commit or roll
back the outer transaction themselves.  Each public mutation wraps its
steps in ``session.begin_nested()`` so a failure part-way through discards
every row the operation wrote, while leaving the caller's earlier work
intact.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for ledger write services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``clock`` is the only source of "now".
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
