"""Typed domain models shared across runtime layers.

This module provides simple data contracts for cross-layer communication,
including the closed set of ledger source types used by db and ledger layers.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


class LedgerSourceType(str, Enum):
    """Closed set of reasons a balance ledger entry exists."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRADE_PNL = "TRADE_PNL"
    COMMISSION = "COMMISSION"
    SWAP = "SWAP"
    ADJUSTMENT = "ADJUSTMENT"
    BONUS = "BONUS"
    BONUS_REMOVAL = "BONUS_REMOVAL"


def domain_parse_source_type(value: object) -> LedgerSourceType:
    """Parse one source-type tag without defaulting unknown values.

    Args:
        value: Enum member or tag text.

    Returns:
        LedgerSourceType: Matching closed-set member.

    Raises:
        ValueError: Raised when value is missing or not part of the closed set.
    """

    if isinstance(value, LedgerSourceType):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("source_type must be a non-empty string")

    normalized_value = value.strip().upper()
    try:
        return LedgerSourceType(normalized_value)
    except ValueError as error:
        raise ValueError(f"unsupported source_type={normalized_value}") from error
