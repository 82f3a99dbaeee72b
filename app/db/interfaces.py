"""Typed interfaces for database-layer services.

All SQL and ORM access must remain in the db package and its submodules.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from app.domain import HealthStatus


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class LedgerPersistenceError(RuntimeError):
    """Raised when a ledger read or write is rejected by the database."""


class LedgerConcurrentModificationError(LedgerPersistenceError):
    """Raised when an account's entries changed between recompute read and rewrite."""


@dataclass(frozen=True)
class LedgerEntryRecord:
    """Persistence model for one balance ledger entry row.

    Attributes:
        ledger_entry_id: Monotonic entry identifier, final canonical-order tie-break.
        balance_account_id: Owning balance account identifier.
        source_type: Closed-set source type tag.
        source_ref_id: Optional correlation key (order id, transfer id).
        amount: Signed decimal amount as text.
        currency: Currency code.
        occurred_at_utc: Logical event time.
        created_at_utc: Physical insertion time.
        balance_after: Running balance after this entry as text.
        meta: Opaque side-channel payload.
    """

    ledger_entry_id: int
    balance_account_id: str
    source_type: str
    source_ref_id: str | None
    amount: str
    currency: str
    occurred_at_utc: datetime
    created_at_utc: datetime
    balance_after: str
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerEntryInsertRequest:
    """Input payload for one ledger entry insert inside a batch.

    Attributes:
        balance_account_id: Owning balance account identifier.
        source_type: Closed-set source type tag.
        source_ref_id: Optional correlation key.
        amount: Signed decimal amount as text.
        currency: Currency code.
        occurred_at_utc: Offset-aware logical event time.
        balance_after: Provisional running balance as text, rewritten by recompute.
        meta: Opaque side-channel payload.
        expected_ending_balance: Ending balance the provisional value was seeded from; when set,
            the insert aborts if the account ending balance differs at write time.
    """

    balance_account_id: str
    source_type: str
    source_ref_id: str | None
    amount: str
    currency: str
    occurred_at_utc: datetime
    balance_after: str
    meta: dict[str, Any] = field(default_factory=dict)
    expected_ending_balance: str | None = None


@dataclass(frozen=True)
class BalanceAfterUpdateRequest:
    """One `balance_after` rewrite produced by a recompute pass.

    Attributes:
        ledger_entry_id: Entry identifier to update.
        balance_after: Recomputed running balance as text.
    """

    ledger_entry_id: int
    balance_after: str


@dataclass(frozen=True)
class LedgerAccountVersion:
    """Entry-set fingerprint read by a recompute pass.

    Entries are never deleted and identifiers are monotonic, so an unchanged
    count and maximum identifier mean no entry was appended in between.

    Attributes:
        entry_count: Number of entries for the account.
        max_ledger_entry_id: Largest entry identifier, or None for an empty ledger.
    """

    entry_count: int
    max_ledger_entry_id: int | None


@dataclass(frozen=True)
class DailySnapshotUpsertRequest:
    """Input payload for one daily balance snapshot upsert.

    Attributes:
        balance_account_id: Balance account identifier.
        snapshot_date: Snapshot date in YYYY-MM-DD format.
        opening_balance: Balance before the first in-window entry.
        closing_balance: Balance after the last in-window entry.
        net_change: Closing minus opening balance.
        deposit_amount: Deposit sum as positive magnitude.
        withdraw_amount: Withdrawal sum as positive magnitude.
        transfer_in_amount: Incoming transfer sum.
        transfer_out_amount: Outgoing transfer sum as positive magnitude.
        trading_net_result: Trade PnL plus commission plus swap.
        adjustment_amount: Adjustment plus bonus plus bonus removal.
    """

    balance_account_id: str
    snapshot_date: str
    opening_balance: str
    closing_balance: str
    net_change: str
    deposit_amount: str
    withdraw_amount: str
    transfer_in_amount: str
    transfer_out_amount: str
    trading_net_result: str
    adjustment_amount: str


@dataclass(frozen=True)
class DailySnapshotRecord:
    """Persistence model for one daily balance snapshot row.

    Attributes:
        balance_snapshot_daily_id: Snapshot row identifier.
        balance_account_id: Balance account identifier.
        snapshot_date: Snapshot date.
        opening_balance: Opening balance as text.
        closing_balance: Closing balance as text.
        net_change: Net change as text.
        deposit_amount: Deposit sum as text.
        withdraw_amount: Withdrawal magnitude as text.
        transfer_in_amount: Incoming transfer sum as text.
        transfer_out_amount: Outgoing transfer magnitude as text.
        trading_net_result: Trading net result as text.
        adjustment_amount: Adjustment sum as text.
        created_at_utc: Row creation timestamp.
        updated_at_utc: Last upsert timestamp.
    """

    balance_snapshot_daily_id: UUID
    balance_account_id: str
    snapshot_date: date
    opening_balance: str
    closing_balance: str
    net_change: str
    deposit_amount: str
    withdraw_amount: str
    transfer_in_amount: str
    transfer_out_amount: str
    trading_net_result: str
    adjustment_amount: str
    created_at_utc: datetime
    updated_at_utc: datetime


class BalanceLedgerRepositoryPort(Protocol):
    """Port definition for balance ledger entry and daily snapshot persistence."""

    def db_ledger_entry_insert_many(self, requests: list[LedgerEntryInsertRequest]) -> list[LedgerEntryRecord]:
        """Insert ledger entries in one all-or-nothing batch.

        Args:
            requests: Entry insert requests in insertion order.

        Returns:
            list[LedgerEntryRecord]: Inserted rows in request order.

        Raises:
            ValueError: Raised when request values are invalid.
            LedgerConcurrentModificationError: Raised when an expected ending balance no longer holds.
            LedgerPersistenceError: Raised when the batch is rejected; nothing is written.
        """

    def db_ledger_entry_list_for_account(self, balance_account_id: str) -> list[LedgerEntryRecord]:
        """List every entry of one account in canonical order.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            list[LedgerEntryRecord]: Entries ordered by occurred_at, created_at, id.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_entry_latest_for_account(self, balance_account_id: str) -> LedgerEntryRecord | None:
        """Return the chronologically-last entry of one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            LedgerEntryRecord | None: Last entry in canonical order, or None.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_entry_latest_before(self, balance_account_id: str, before_utc: datetime) -> LedgerEntryRecord | None:
        """Return the most recent entry strictly before a timestamp.

        Args:
            balance_account_id: Balance account identifier.
            before_utc: Exclusive upper bound on occurred_at.

        Returns:
            LedgerEntryRecord | None: Matching entry, or None.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_entry_list_in_window(
        self,
        balance_account_id: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[LedgerEntryRecord]:
        """List entries with occurred_at in `[start_utc, end_utc)` in canonical order.

        Args:
            balance_account_id: Balance account identifier.
            start_utc: Inclusive window start.
            end_utc: Exclusive window end.

        Returns:
            list[LedgerEntryRecord]: In-window entries.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_account_version(self, balance_account_id: str) -> LedgerAccountVersion:
        """Read the entry-set fingerprint for one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            LedgerAccountVersion: Entry count and maximum entry id.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_balance_after_update_many(
        self,
        balance_account_id: str,
        updates: list[BalanceAfterUpdateRequest],
        expected_version: LedgerAccountVersion,
    ) -> int:
        """Rewrite `balance_after` values for one account in one locked transaction.

        Args:
            balance_account_id: Balance account identifier.
            updates: Per-entry rewrites.
            expected_version: Fingerprint read before computing the rewrites.

        Returns:
            int: Number of rows updated.

        Raises:
            LedgerConcurrentModificationError: Raised when the account changed since the read.
            LedgerPersistenceError: Raised when the rewrite fails; nothing is written.
        """

    def db_ledger_source_ref_id_list_existing(self, source_type: str, source_ref_ids: list[str]) -> set[str]:
        """Return which correlation keys already exist for one source type.

        Args:
            source_type: Closed-set source type tag.
            source_ref_ids: Candidate correlation keys.

        Returns:
            set[str]: Keys already present in the ledger.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_transfer_leg_list(self, occurred_from_utc: datetime | None = None) -> list[LedgerEntryRecord]:
        """List transfer legs ordered by correlation key and canonical order.

        Args:
            occurred_from_utc: Optional inclusive lower bound on occurred_at.

        Returns:
            list[LedgerEntryRecord]: TRANSFER_IN and TRANSFER_OUT entries.

        Raises:
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_ledger_entry_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
    ) -> list[LedgerEntryRecord]:
        """List one page of account entries in canonical or reversed order.

        Args:
            balance_account_id: Balance account identifier.
            limit: Maximum row count.
            offset: Number of rows to skip.
            sort_dir: `asc` or `desc`.

        Returns:
            list[LedgerEntryRecord]: Page of entries.

        Raises:
            ValueError: Raised when pagination arguments are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

    def db_daily_snapshot_upsert(self, request: DailySnapshotUpsertRequest) -> None:
        """UPSERT one daily snapshot keyed by account and date.

        Args:
            request: Snapshot upsert request.

        Returns:
            None: Persistence is applied as side effect.

        Raises:
            ValueError: Raised when request values are invalid.
            LedgerPersistenceError: Raised when persistence fails.
        """

    def db_daily_snapshot_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
        snapshot_date_from: str | None = None,
        snapshot_date_to: str | None = None,
    ) -> list[DailySnapshotRecord]:
        """List persisted daily snapshots for one account.

        Args:
            balance_account_id: Balance account identifier.
            limit: Maximum row count.
            offset: Number of rows to skip.
            sort_dir: `asc` or `desc` on snapshot date.
            snapshot_date_from: Optional inclusive lower date bound.
            snapshot_date_to: Optional inclusive upper date bound.

        Returns:
            list[DailySnapshotRecord]: Ordered snapshot rows.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """
