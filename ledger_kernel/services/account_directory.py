"""
AccountDirectory -- read-only chart-of-accounts lookup.

The ledger, the generators and the reconciliation engine resolve accounts
here.  Results are frozen AccountInfo DTOs; the directory never writes and
never carries balances (see LedgerSelector for those).

Lookup rules:
    - get_by_code() hides inactive accounts unless include_inactive=True.
    - require_code() / require_codes() raise AccountMappingError naming
      every missing code at once, so a generator fails before any write.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountMappingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account

logger = get_logger("services.account_directory")


class AccountDirectory:
    """Chart-of-accounts lookups bound to the caller's session."""

    def __init__(self, session: Session):
        self._session = session

    def get_by_id(self, account_id: UUID) -> AccountInfo | None:
        account = self._session.get(Account, account_id)
        return AccountInfo.from_model(account) if account else None

    def get_by_code(self, code: str, include_inactive: bool = False) -> AccountInfo | None:
        query = select(Account).where(Account.code == code)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        account = self._session.execute(query).scalar_one_or_none()
        return AccountInfo.from_model(account) if account else None

    def is_active(self, account_id: UUID) -> bool:
        account = self._session.get(Account, account_id)
        return bool(account and account.is_active)

    def get_many(self, account_ids: Iterable[UUID]) -> dict[UUID, AccountInfo]:
        """Every existing account among ``account_ids``, active or not."""
        ids = {account_id for account_id in account_ids if account_id is not None}
        if not ids:
            return {}
        accounts = self._session.execute(
            select(Account).where(Account.id.in_(ids))
        ).scalars().all()
        return {account.id: AccountInfo.from_model(account) for account in accounts}

    def require_code(self, code: str, context: str | None = None) -> AccountInfo:
        """Active account for ``code``.

        Raises:
            AccountMappingError: if no active account carries the code.
        """
        return self.require_codes([code], context)[code]

    def require_codes(
        self, codes: Iterable[str], context: str | None = None
    ) -> dict[str, AccountInfo]:
        codes = list(dict.fromkeys(codes))
        accounts = self._session.execute(
            select(Account).where(Account.code.in_(codes), Account.is_active.is_(True))
        ).scalars().all()
        found = {account.code: AccountInfo.from_model(account) for account in accounts}

        missing = [code for code in codes if code not in found]
        if missing:
            logger.warning(
                "account_mapping_failed",
                extra={"missing_codes": missing, "context": context},
            )
            raise AccountMappingError(missing, context)
        return found

    def children(self, account_id: UUID) -> list[AccountInfo]:
        """Direct children in the rollup hierarchy, ordered by code."""
        accounts = self._session.execute(
            select(Account).where(Account.parent_id == account_id).order_by(Account.code)
        ).scalars().all()
        return [AccountInfo.from_model(account) for account in accounts]
