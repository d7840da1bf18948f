"""
Declarative base for the ledger tables.

Every ledger table (accounts, journal entries and lines, reconciliation
reports, items and adjustments, suppliers, sequence counters) derives from
Base.  Tables that record who changed them derive from TrackedBase.

Column conventions:
    - Primary keys are uuid4 values stored as String(36), so the same schema
      runs on PostgreSQL and on the in-memory SQLite used by the tests.
    - Decimal columns are Numeric(38, 9).  Inputs finer than nine places are
      refused before they get here (domain.dtos.MONEY_SCALE); the column
      must never be the thing that rounds an amount.
    - Entry and report dates are plain Date; audit instants are timezone
      aware DateTime.

Nothing here imports from models/, services/ or selectors/.

The audit columns (updated_at, updated_by_id) may change on an approved
entry; db/immutability.py guards only the financial columns.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID bound as text and read back as uuid.UUID."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """Base for ledger tables: uuid4 key plus the column type map above."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Adds who-and-when columns.

    created_by_id is required: the ledger never writes a row without an
    explicit actor.  The timestamps come from the database clock, not from
    the services' injected Clock, so they are audit metadata only.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
