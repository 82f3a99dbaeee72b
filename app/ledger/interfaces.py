"""Typed interfaces for balance ledger engine computations."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

from app.db import LedgerEntryRecord
from app.domain import LedgerSourceType


class LedgerEntryValidationError(ValueError):
    """Raised when a ledger input is rejected before anything is persisted."""


@dataclass(frozen=True)
class LedgerEntryInput:
    """Normalized ledger entry accepted by the entry recorder.

    Attributes:
        balance_account_id: Owning balance account identifier.
        amount: Signed amount; sign follows the source type convention.
        source_type: Closed-set source type tag.
        currency: Informational currency code.
        occurred_at: Logical event time; None means now, naive values are UTC.
        source_ref_id: Optional correlation key.
        meta: Opaque side-channel payload.
    """

    balance_account_id: str
    amount: Decimal
    source_type: LedgerSourceType
    currency: str = "USD"
    occurred_at: datetime | str | None = None
    source_ref_id: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TradeSettlementInput:
    """Closed-trade settlement values booked as PnL, commission and swap entries.

    Attributes:
        balance_account_id: Balance account the trade settles into.
        order_id: Originating order identifier, used as source_ref_id.
        gross_pnl: Raw signed gross profit or loss.
        commission: Commission value; always booked as a cost.
        swap: Swap value; always booked as a cost.
        occurred_at: Close time of the trade.
        currency: Informational currency code.
        meta: Opaque side-channel payload copied to every entry.
    """

    balance_account_id: str
    order_id: str
    gross_pnl: Decimal
    commission: Decimal = Decimal("0")
    swap: Decimal = Decimal("0")
    occurred_at: datetime | str | None = None
    currency: str = "USD"
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecomputeResult:
    """Summary of one running-balance recompute pass.

    Attributes:
        balance_account_id: Recomputed balance account identifier.
        entry_count: Number of entries walked.
        updated_count: Number of entries whose balance_after changed.
        anchor_balance: Ending balance read before the pass.
        starting_balance: Balance before the first entry implied by the anchor.
    """

    balance_account_id: str
    entry_count: int
    updated_count: int
    anchor_balance: Decimal
    starting_balance: Decimal


@dataclass(frozen=True)
class AppendEntriesResult:
    """Result of one append call.

    Attributes:
        entries: Inserted rows, re-read after recompute so balance_after is final.
        recompute_results: One recompute summary per affected account.
    """

    entries: list[LedgerEntryRecord]
    recompute_results: list[RecomputeResult]


@dataclass(frozen=True)
class DailyBalanceSnapshot:
    """Per-account, per-day balance rollup.

    Attributes:
        balance_account_id: Balance account identifier.
        snapshot_date: Day in the reporting timezone.
        opening_balance: Balance before the first in-window entry.
        closing_balance: Balance after the last in-window entry.
        net_change: Closing minus opening.
        deposit_amount: Deposits as positive magnitude.
        withdraw_amount: Withdrawals as positive magnitude.
        transfer_in_amount: Incoming transfers.
        transfer_out_amount: Outgoing transfers as positive magnitude.
        trading_net_result: Trade PnL plus commission plus swap.
        adjustment_amount: Adjustments plus bonuses plus bonus removals.
        entry_count: Number of in-window entries.
    """

    balance_account_id: str
    snapshot_date: date
    opening_balance: Decimal
    closing_balance: Decimal
    net_change: Decimal
    deposit_amount: Decimal
    withdraw_amount: Decimal
    transfer_in_amount: Decimal
    transfer_out_amount: Decimal
    trading_net_result: Decimal
    adjustment_amount: Decimal
    entry_count: int


@dataclass(frozen=True)
class TransferReconciliationFinding:
    """One transfer inconsistency found by reconciliation.

    Attributes:
        code: Finding code (`MISSING_IN_LEG`, `MISSING_OUT_LEG`, `AMOUNT_MISMATCH`, `UNCORRELATED_LEG`).
        source_ref_id: Correlation key, or None for uncorrelated legs.
        ledger_entry_ids: Entries involved in the finding.
        balance_account_ids: Accounts involved in the finding.
        net_amount: Sum of the legs' amounts.
    """

    code: str
    source_ref_id: str | None
    ledger_entry_ids: list[int]
    balance_account_ids: list[str]
    net_amount: Decimal


@dataclass(frozen=True)
class TransferReconciliationReport:
    """Result of one transfer reconciliation scan.

    Attributes:
        transfer_count: Number of distinct correlated transfers inspected.
        leg_count: Number of transfer legs inspected.
        findings: Detected inconsistencies in deterministic order.
    """

    transfer_count: int
    leg_count: int
    findings: list[TransferReconciliationFinding]


class BalanceLedgerPort(Protocol):
    """Port definition for the balance ledger engine operations."""

    def ledger_entries_append(self, entries: list[LedgerEntryInput]) -> AppendEntriesResult:
        """Persist entries and recompute every affected account.

        Args:
            entries: Normalized entries, possibly spanning accounts.

        Returns:
            AppendEntriesResult: Inserted rows and recompute summaries.

        Raises:
            LedgerEntryValidationError: Raised when an input is invalid.
            RuntimeError: Raised when persistence fails.
        """

    def ledger_record_deposit(
        self,
        balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        """Record one deposit as a positive entry."""

    def ledger_record_withdraw(
        self,
        balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        """Record one withdrawal as a negative entry."""

    def ledger_record_transfer(
        self,
        from_balance_account_id: str,
        to_balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        """Record both legs of a transfer sharing one correlation key."""

    def ledger_record_trade_settlement(self, settlement: TradeSettlementInput) -> AppendEntriesResult:
        """Record trade PnL with optional commission and swap costs."""

    def ledger_recompute(self, balance_account_id: str) -> RecomputeResult:
        """Recompute running balances for one account."""

    def ledger_daily_snapshot_recompute(
        self,
        balance_account_id: str,
        snapshot_date: date | str,
    ) -> DailyBalanceSnapshot:
        """Rebuild and upsert one daily snapshot."""
