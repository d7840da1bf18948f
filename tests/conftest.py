"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- Database sessions with per-test rollback isolation
- Chart-of-accounts and supplier factories
- Service fixtures wired to a deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: connection URL.  Defaults to an in-memory SQLite database;
  set a postgresql:// URL to run the suite against PostgreSQL.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_kernel.config import default_policy
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.supplier import Supplier
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.event_posting_service import EventPostingService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.supplier_reconciliation_service import (
    SupplierReconciliationService,
)
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.reconciliation_selector import ReconciliationSelector


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"

# code -> (name, type)
STANDARD_CHART = {
    "CASH": ("Cash on Hand", AccountType.ASSET),
    "BANK": ("Operating Bank Account", AccountType.ASSET),
    "CREDIT_CARD": ("Corporate Credit Card", AccountType.LIABILITY),
    "DIGITAL_WALLET": ("Digital Wallet", AccountType.ASSET),
    "1100": ("Till Cash", AccountType.ASSET),
    "1110": ("Card Clearing", AccountType.ASSET),
    "1120": ("Transfer Clearing", AccountType.ASSET),
    "1300": ("Installment Receivable", AccountType.ASSET),
    "INVENTORY": ("Inventory", AccountType.ASSET),
    "VAT_INPUT": ("VAT Input", AccountType.ASSET),
    "ACCOUNTS_PAYABLE": ("Accounts Payable", AccountType.LIABILITY),
    "VAT_OUTPUT": ("VAT Output", AccountType.LIABILITY),
    "4100": ("Sales Revenue", AccountType.REVENUE),
    "4200": ("Interest Revenue", AccountType.REVENUE),
    "4300": ("Late Fee Revenue", AccountType.REVENUE),
    "EXPENSE": ("General Expense", AccountType.EXPENSE),
    "BANK_CHARGES": ("Bank Charges", AccountType.EXPENSE),
    "6200": ("Sales Discounts", AccountType.EXPENSE),
    "RECONCILIATION_ADJUSTMENTS": ("Reconciliation Adjustments", AccountType.EXPENSE),
}


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, journal_service):
            journal_service.create_entry(...)
            logs = captured_logs()
            assert any(r["message"] == "journal_entry_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_mode`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Services run their work in SAVEPOINTs inside it
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing (2024-01-31 12:00 UTC)."""
    return DeterministicClock()


@pytest.fixture
def policy():
    return default_policy()


# =============================================================================
# Reference data factories
# =============================================================================


@pytest.fixture
def create_account(session: Session, test_actor_id: UUID):
    """Factory fixture to create test accounts."""

    def _create_account(
        code: str,
        name: str | None = None,
        account_type: AccountType = AccountType.ASSET,
        is_active: bool = True,
        parent: Account | None = None,
    ) -> Account:
        account = Account(
            code=code,
            name=name or code.replace("_", " ").title(),
            account_type=account_type,
            is_active=is_active,
            parent_id=parent.id if parent else None,
            created_by_id=test_actor_id,
        )
        session.add(account)
        session.flush()
        return account

    return _create_account


@pytest.fixture
def standard_accounts(create_account) -> dict[str, Account]:
    """Every account the default policy names, keyed by code."""
    return {
        code: create_account(code, name, account_type)
        for code, (name, account_type) in STANDARD_CHART.items()
    }


@pytest.fixture
def create_supplier(session: Session, test_actor_id: UUID):
    """Factory fixture to create suppliers."""

    def _create_supplier(code: str = "SUP-001", name: str = "Acme Wholesale") -> Supplier:
        supplier = Supplier(code=code, name=name, is_active=True, created_by_id=test_actor_id)
        session.add(supplier)
        session.flush()
        return supplier

    return _create_supplier


# =============================================================================
# Service and selector fixtures
# =============================================================================


@pytest.fixture
def directory(session: Session) -> AccountDirectory:
    return AccountDirectory(session)


@pytest.fixture
def journal_service(session, directory, policy, deterministic_clock) -> JournalService:
    return JournalService(session, directory=directory, policy=policy, clock=deterministic_clock)


@pytest.fixture
def reversal_service(session, journal_service) -> ReversalService:
    return ReversalService(session, journal=journal_service)


@pytest.fixture
def reconciliation_service(session, journal_service) -> ReconciliationService:
    return ReconciliationService(session, journal=journal_service)


@pytest.fixture
def supplier_reconciliation_service(session, directory, policy) -> SupplierReconciliationService:
    return SupplierReconciliationService(session, directory=directory, policy=policy)


@pytest.fixture
def event_posting_service(session, journal_service) -> EventPostingService:
    return EventPostingService(session, journal=journal_service)


@pytest.fixture
def journal_selector(session) -> JournalSelector:
    return JournalSelector(session)


@pytest.fixture
def ledger_selector(session) -> LedgerSelector:
    return LedgerSelector(session)


@pytest.fixture
def reconciliation_selector(session) -> ReconciliationSelector:
    return ReconciliationSelector(session)


# =============================================================================
# Posting helpers
# =============================================================================


@pytest.fixture
def post_entry(journal_service, test_actor_id):
    """
    Create (and by default approve) a two-line entry.

    Usage::

        entry = post_entry(bank, revenue, "500.00", date(2024, 1, 5))
    """

    def _post(
        debit_account: Account,
        credit_account: Account,
        amount: Decimal | str,
        entry_date: date = date(2024, 1, 15),
        description: str = "Test entry",
        approve: bool = True,
        **kwargs,
    ):
        record = journal_service.create_entry(
            entry_date=entry_date,
            description=description,
            lines=[
                LineSpec.debit_line(debit_account.id, amount),
                LineSpec.credit_line(credit_account.id, amount),
            ],
            creator=test_actor_id,
            **kwargs,
        )
        if approve:
            record = journal_service.post_entry(record.id, test_actor_id)
        return record

    return _post
