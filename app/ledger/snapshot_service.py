"""Daily balance snapshot assembly and persistence service."""
# pylint: disable=too-few-public-methods

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from app.db import BalanceLedgerRepositoryPort, DailySnapshotUpsertRequest, LedgerEntryRecord
from app.domain import LedgerSourceType, domain_parse_source_type

from .interfaces import DailyBalanceSnapshot
from .running_balance import ledger_sort_canonical
from .snapshot_dates import (
    snapshot_list_dates,
    snapshot_normalize_date,
    snapshot_resolve_day_window,
    snapshot_resolve_timezone,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

SNAPSHOT_BUCKET_DEPOSIT = "deposit"
SNAPSHOT_BUCKET_WITHDRAW = "withdraw"
SNAPSHOT_BUCKET_TRANSFER_IN = "transfer_in"
SNAPSHOT_BUCKET_TRANSFER_OUT = "transfer_out"
SNAPSHOT_BUCKET_TRADING = "trading"
SNAPSHOT_BUCKET_ADJUSTMENT = "adjustment"

SNAPSHOT_BUCKET_BY_SOURCE_TYPE: dict[LedgerSourceType, str] = {
    LedgerSourceType.DEPOSIT: SNAPSHOT_BUCKET_DEPOSIT,
    LedgerSourceType.WITHDRAW: SNAPSHOT_BUCKET_WITHDRAW,
    LedgerSourceType.TRANSFER_IN: SNAPSHOT_BUCKET_TRANSFER_IN,
    LedgerSourceType.TRANSFER_OUT: SNAPSHOT_BUCKET_TRANSFER_OUT,
    LedgerSourceType.TRADE_PNL: SNAPSHOT_BUCKET_TRADING,
    LedgerSourceType.COMMISSION: SNAPSHOT_BUCKET_TRADING,
    LedgerSourceType.SWAP: SNAPSHOT_BUCKET_TRADING,
    LedgerSourceType.ADJUSTMENT: SNAPSHOT_BUCKET_ADJUSTMENT,
    LedgerSourceType.BONUS: SNAPSHOT_BUCKET_ADJUSTMENT,
    LedgerSourceType.BONUS_REMOVAL: SNAPSHOT_BUCKET_ADJUSTMENT,
}

_UNBUCKETED_SOURCE_TYPES = set(LedgerSourceType) - set(SNAPSHOT_BUCKET_BY_SOURCE_TYPE)
if _UNBUCKETED_SOURCE_TYPES:
    raise RuntimeError(
        "every source type needs a snapshot bucket; missing: "
        + ", ".join(sorted(source_type.value for source_type in _UNBUCKETED_SOURCE_TYPES))
    )


def ledger_build_daily_snapshot(
    balance_account_id: str,
    snapshot_date: date,
    opening_entry: LedgerEntryRecord | None,
    window_entries: list[LedgerEntryRecord],
) -> DailyBalanceSnapshot:
    """Build one daily snapshot from the pre-window entry and in-window entries.

    Args:
        balance_account_id: Balance account identifier.
        snapshot_date: Snapshot day in the reporting timezone.
        opening_entry: Most recent entry before the window, or None.
        window_entries: Entries whose occurred_at falls inside the day window.

    Returns:
        DailyBalanceSnapshot: Opening/closing balances and bucket sums.

    Raises:
        ValueError: Raised when an entry carries an unknown source type.
    """

    ordered_entries = ledger_sort_canonical(window_entries)
    opening_balance = _ZERO if opening_entry is None else Decimal(opening_entry.balance_after)
    closing_balance = opening_balance if not ordered_entries else Decimal(ordered_entries[-1].balance_after)

    bucket_sums = {bucket_name: _ZERO for bucket_name in set(SNAPSHOT_BUCKET_BY_SOURCE_TYPE.values())}
    for entry in ordered_entries:
        bucket_name = SNAPSHOT_BUCKET_BY_SOURCE_TYPE[domain_parse_source_type(entry.source_type)]
        bucket_sums[bucket_name] = bucket_sums[bucket_name] + Decimal(entry.amount)

    return DailyBalanceSnapshot(
        balance_account_id=balance_account_id,
        snapshot_date=snapshot_date,
        opening_balance=opening_balance,
        closing_balance=closing_balance,
        net_change=closing_balance - opening_balance,
        deposit_amount=bucket_sums[SNAPSHOT_BUCKET_DEPOSIT],
        withdraw_amount=-bucket_sums[SNAPSHOT_BUCKET_WITHDRAW],
        transfer_in_amount=bucket_sums[SNAPSHOT_BUCKET_TRANSFER_IN],
        transfer_out_amount=-bucket_sums[SNAPSHOT_BUCKET_TRANSFER_OUT],
        trading_net_result=bucket_sums[SNAPSHOT_BUCKET_TRADING],
        adjustment_amount=bucket_sums[SNAPSHOT_BUCKET_ADJUSTMENT],
        entry_count=len(ordered_entries),
    )


class DailyBalanceSnapshotService:
    """Build and persist per-account daily balance snapshots from the ledger."""

    def __init__(self, repository: BalanceLedgerRepositoryPort, report_timezone_name: str = "UTC"):
        """Initialize snapshot service dependencies.

        Args:
            repository: DB-layer balance ledger repository.
            report_timezone_name: IANA timezone defining day boundaries.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when repository or timezone is invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        self._repository = repository
        self._report_timezone = snapshot_resolve_timezone(report_timezone_name)

    def ledger_daily_snapshot_recompute(self, balance_account_id: str, snapshot_date: date | str) -> DailyBalanceSnapshot:
        """Rebuild and upsert one daily snapshot.

        Args:
            balance_account_id: Balance account identifier.
            snapshot_date: Snapshot day as date or YYYY-MM-DD text.

        Returns:
            DailyBalanceSnapshot: Snapshot that was upserted.

        Raises:
            ValueError: Raised when input values are invalid.
            RuntimeError: Raised when persistence fails.
        """

        if not isinstance(balance_account_id, str) or not balance_account_id.strip():
            raise ValueError("balance_account_id must be a non-empty string")
        normalized_account_id = balance_account_id.strip()
        normalized_date = snapshot_normalize_date(snapshot_date)

        window_start_utc, window_end_utc = snapshot_resolve_day_window(normalized_date, self._report_timezone)
        opening_entry = self._repository.db_ledger_entry_latest_before(normalized_account_id, window_start_utc)
        window_entries = self._repository.db_ledger_entry_list_in_window(
            normalized_account_id,
            window_start_utc,
            window_end_utc,
        )

        snapshot = ledger_build_daily_snapshot(normalized_account_id, normalized_date, opening_entry, window_entries)
        self._repository.db_daily_snapshot_upsert(
            DailySnapshotUpsertRequest(
                balance_account_id=snapshot.balance_account_id,
                snapshot_date=snapshot.snapshot_date.isoformat(),
                opening_balance=str(snapshot.opening_balance),
                closing_balance=str(snapshot.closing_balance),
                net_change=str(snapshot.net_change),
                deposit_amount=str(snapshot.deposit_amount),
                withdraw_amount=str(snapshot.withdraw_amount),
                transfer_in_amount=str(snapshot.transfer_in_amount),
                transfer_out_amount=str(snapshot.transfer_out_amount),
                trading_net_result=str(snapshot.trading_net_result),
                adjustment_amount=str(snapshot.adjustment_amount),
            )
        )

        logger.info(
            "upserted daily snapshot %s %s: opening=%s closing=%s entries=%s",
            normalized_account_id,
            normalized_date.isoformat(),
            snapshot.opening_balance,
            snapshot.closing_balance,
            snapshot.entry_count,
        )
        return snapshot

    def ledger_daily_snapshot_recompute_range(
        self,
        balance_account_id: str,
        date_from: date | str,
        date_to: date | str,
    ) -> list[DailyBalanceSnapshot]:
        """Rebuild and upsert snapshots for every day in an inclusive range.

        Args:
            balance_account_id: Balance account identifier.
            date_from: First day.
            date_to: Last day.

        Returns:
            list[DailyBalanceSnapshot]: Snapshots in ascending date order.

        Raises:
            ValueError: Raised when the range is invalid.
            RuntimeError: Raised when persistence fails.
        """

        snapshot_dates = snapshot_list_dates(snapshot_normalize_date(date_from), snapshot_normalize_date(date_to))
        return [
            self.ledger_daily_snapshot_recompute(balance_account_id, snapshot_date) for snapshot_date in snapshot_dates
        ]


__all__ = [
    "DailyBalanceSnapshotService",
    "SNAPSHOT_BUCKET_BY_SOURCE_TYPE",
    "ledger_build_daily_snapshot",
]
