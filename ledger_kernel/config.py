"""
Ledger policy configuration.

Responsibility
--------------
Loads the YAML policy file (tolerances, well-known account codes, payment
method mappings, installment percentages, numbering prefixes, discrepancy
severity bands) and parses it into a frozen ``LedgerPolicy``.  Services and
generators receive the policy through their constructors; nothing reads the
file at import time.

Invariants enforced
-------------------
* Every monetary or ratio value is parsed to ``Decimal`` from its string
  form; YAML floats are refused so no binary rounding leaks in.
* Unknown keys, missing keys and wrong types raise ``ConfigurationError``
  naming the offending key.

Failure modes
-------------
* Missing file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_POLICY_PATH = Path(__file__).with_name("policy.yaml")


@dataclass(frozen=True)
class AccountCodes:
    accounts_payable: str
    vat_input: str
    vat_output: str
    expense: str
    inventory: str
    reconciliation_offset: str
    bank_charges: str
    sales_revenue: str
    sales_discount: str
    installment_receivable: str
    interest_revenue: str
    late_fee_revenue: str


@dataclass(frozen=True)
class InstallmentPolicy:
    interest_share: Decimal
    late_fee_rate_per_day: Decimal
    late_fee_cap_ratio: Decimal


@dataclass(frozen=True)
class NumberingPolicy:
    journal_prefix: str
    report_prefix: str


@dataclass(frozen=True)
class SeverityPolicy:
    medium_above: Decimal
    high_above: Decimal


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Immutable ledger policy.

    Guarantees:
        - balance_tolerance and variance_threshold are non-negative Decimals.
        - payment_method_accounts / receipt_method_accounts are read-only maps.
        - installment ratios lie in [0, 1].
    """

    balance_tolerance: Decimal
    variance_threshold: Decimal
    account_codes: AccountCodes
    payment_method_accounts: Mapping[str, str]
    receipt_method_accounts: Mapping[str, str]
    installment: InstallmentPolicy
    numbering: NumberingPolicy
    discrepancy_severity: SeverityPolicy

    def payment_account_code(self, method: str) -> str | None:
        """Account credited when a supplier is paid by ``method``."""
        return self.payment_method_accounts.get(method.lower())

    def receipt_account_code(self, method: str) -> str | None:
        """Account debited when a customer pays by ``method``."""
        return self.receipt_method_accounts.get(method.lower())


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _section(data: Any, key: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{key}' must be a mapping", key=key)
    return data


def _check_keys(data: dict[str, Any], expected: set[str], prefix: str = "") -> None:
    unknown = sorted(set(data) - expected)
    if unknown:
        key = f"{prefix}{unknown[0]}"
        raise ConfigurationError(f"unknown key '{key}'", key=key)
    missing = sorted(expected - set(data))
    if missing:
        key = f"{prefix}{missing[0]}"
        raise ConfigurationError(f"missing key '{key}'", key=key)


def _decimal(value: Any, key: str, *, upper: Decimal | None = None) -> Decimal:
    if isinstance(value, (bool, float)) or not isinstance(value, (str, int, Decimal)):
        raise ConfigurationError(
            f"'{key}' must be a quoted decimal string, got {type(value).__name__}",
            key=key,
        )
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"'{key}' is not a decimal: {value!r}", key=key)
    if not result.is_finite() or result < 0:
        raise ConfigurationError(f"'{key}' must be a non-negative number", key=key)
    if upper is not None and result > upper:
        raise ConfigurationError(f"'{key}' must not exceed {upper}", key=key)
    return result


def _string(value: Any, key: str) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"'{key}' must be a non-empty string", key=key)
    return value


def _string_map(data: Any, key: str) -> Mapping[str, str]:
    section = _section(data, key)
    if not section:
        raise ConfigurationError(f"'{key}' must not be empty", key=key)
    return MappingProxyType(
        {
            _string(method, key).lower(): _string(code, f"{key}.{method}")
            for method, code in section.items()
        }
    )


def policy_from_dict(data: Any) -> LedgerPolicy:
    """
    Build a LedgerPolicy from a parsed YAML document.

    Raises:
        ConfigurationError: on unknown, missing or mistyped keys.
    """
    data = _section(data, "<root>")
    _check_keys(
        data,
        {
            "balance_tolerance",
            "variance_threshold",
            "account_codes",
            "payment_method_accounts",
            "receipt_method_accounts",
            "installment",
            "numbering",
            "discrepancy_severity",
        },
    )

    codes = _section(data["account_codes"], "account_codes")
    code_fields = set(AccountCodes.__dataclass_fields__)
    _check_keys(codes, code_fields, "account_codes.")
    account_codes = AccountCodes(
        **{name: _string(codes[name], f"account_codes.{name}") for name in code_fields}
    )

    installment = _section(data["installment"], "installment")
    _check_keys(
        installment,
        {"interest_share", "late_fee_rate_per_day", "late_fee_cap_ratio"},
        "installment.",
    )

    numbering = _section(data["numbering"], "numbering")
    _check_keys(numbering, {"journal_prefix", "report_prefix"}, "numbering.")

    severity = _section(data["discrepancy_severity"], "discrepancy_severity")
    _check_keys(severity, {"medium_above", "high_above"}, "discrepancy_severity.")
    medium_above = _decimal(severity["medium_above"], "discrepancy_severity.medium_above")
    high_above = _decimal(severity["high_above"], "discrepancy_severity.high_above")
    if medium_above > high_above:
        raise ConfigurationError(
            "'discrepancy_severity.medium_above' must not exceed 'high_above'",
            key="discrepancy_severity.medium_above",
        )

    one = Decimal("1")
    return LedgerPolicy(
        balance_tolerance=_decimal(data["balance_tolerance"], "balance_tolerance"),
        variance_threshold=_decimal(data["variance_threshold"], "variance_threshold"),
        account_codes=account_codes,
        payment_method_accounts=_string_map(
            data["payment_method_accounts"], "payment_method_accounts"
        ),
        receipt_method_accounts=_string_map(
            data["receipt_method_accounts"], "receipt_method_accounts"
        ),
        installment=InstallmentPolicy(
            interest_share=_decimal(
                installment["interest_share"], "installment.interest_share", upper=one
            ),
            late_fee_rate_per_day=_decimal(
                installment["late_fee_rate_per_day"],
                "installment.late_fee_rate_per_day",
                upper=one,
            ),
            late_fee_cap_ratio=_decimal(
                installment["late_fee_cap_ratio"], "installment.late_fee_cap_ratio", upper=one
            ),
        ),
        numbering=NumberingPolicy(
            journal_prefix=_string(numbering["journal_prefix"], "numbering.journal_prefix"),
            report_prefix=_string(numbering["report_prefix"], "numbering.report_prefix"),
        ),
        discrepancy_severity=SeverityPolicy(medium_above=medium_above, high_above=high_above),
    )


def load_policy(path: Path | str) -> LedgerPolicy:
    """Load and validate a policy YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"policy file not found: {path}")
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"policy file {path} is not valid YAML: {exc}")

    policy = policy_from_dict(data)
    logger.info(
        "ledger_policy_loaded",
        extra={
            "path": str(path),
            "balance_tolerance": policy.balance_tolerance,
            "variance_threshold": policy.variance_threshold,
        },
    )
    return policy


@lru_cache(maxsize=1)
def default_policy() -> LedgerPolicy:
    """The bundled policy.yaml, parsed once per process."""
    return load_policy(DEFAULT_POLICY_PATH)
