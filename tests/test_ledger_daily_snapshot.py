"""Tests for daily balance snapshot assembly, day windows and upserts."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from app.domain import LedgerSourceType
from app.ledger import (
    SNAPSHOT_BUCKET_BY_SOURCE_TYPE,
    BalanceLedgerService,
    LedgerEntryInput,
    TradeSettlementInput,
    snapshot_list_dates,
    snapshot_normalize_date,
    snapshot_resolve_day_window,
    snapshot_resolve_report_date_local,
    snapshot_resolve_timezone,
)


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def test_snapshot_buckets_cover_every_source_type() -> None:
    """Map every source type to exactly one snapshot bucket."""

    assert set(SNAPSHOT_BUCKET_BY_SOURCE_TYPE) == set(LedgerSourceType)


def test_snapshot_resolve_day_window_uses_reporting_clock() -> None:
    """Resolve local midnight bounds to UTC."""

    start_utc, end_utc = snapshot_resolve_day_window(date(2026, 3, 10), ZoneInfo("Asia/Jerusalem"))

    assert start_utc == _utc(9, 22)
    assert end_utc == _utc(10, 22)


def test_snapshot_resolve_report_date_local_requires_aware_timestamp() -> None:
    """Reject naive timestamps when resolving the local day."""

    assert snapshot_resolve_report_date_local(_utc(9, 23), ZoneInfo("Asia/Jerusalem")) == date(2026, 3, 10)
    with pytest.raises(ValueError, match="offset-aware"):
        snapshot_resolve_report_date_local(datetime(2026, 3, 9, 23), ZoneInfo("UTC"))


def test_snapshot_resolve_timezone_rejects_unknown_name() -> None:
    """Reject timezone names that are not in the IANA database."""

    with pytest.raises(ValueError, match="unknown timezone_name"):
        snapshot_resolve_timezone("Mars/Olympus_Mons")


def test_snapshot_normalize_date_rejects_datetime_and_bad_text() -> None:
    """Accept dates and YYYY-MM-DD text only."""

    assert snapshot_normalize_date(" 2026-03-01 ") == date(2026, 3, 1)
    with pytest.raises(ValueError):
        snapshot_normalize_date(_utc(1, 0))
    with pytest.raises(ValueError, match="YYYY-MM-DD"):
        snapshot_normalize_date("03/01/2026")


def test_snapshot_list_dates_enforces_order_and_span() -> None:
    """Reject reversed ranges and ranges longer than one leap year."""

    assert snapshot_list_dates(date(2026, 1, 30), date(2026, 2, 1)) == [
        date(2026, 1, 30),
        date(2026, 1, 31),
        date(2026, 2, 1),
    ]
    assert len(snapshot_list_dates(date(2026, 1, 1), date(2027, 1, 1))) == 366
    with pytest.raises(ValueError, match="earlier"):
        snapshot_list_dates(date(2026, 2, 1), date(2026, 1, 1))
    with pytest.raises(ValueError, match="366"):
        snapshot_list_dates(date(2026, 1, 1), date(2027, 1, 2))


def test_snapshot_buckets_report_positive_magnitudes(ledger_repository) -> None:
    """Fold every in-window entry into its bucket with outflows as magnitudes."""

    service = BalanceLedgerService(ledger_repository)
    service.ledger_record_deposit("acct-a", Decimal("500"), occurred_at=_utc(1, 8))
    service.ledger_record_deposit("acct-a", Decimal("1000"), occurred_at=_utc(2, 9))
    service.ledger_record_withdraw("acct-a", Decimal("150"), occurred_at=_utc(2, 10))
    service.ledger_record_transfer("acct-a", "acct-b", Decimal("200"), occurred_at=_utc(2, 11))
    service.ledger_record_transfer("acct-b", "acct-a", Decimal("40"), occurred_at=_utc(2, 12))
    service.ledger_record_trade_settlement(
        TradeSettlementInput(
            balance_account_id="acct-a",
            order_id="order-1",
            gross_pnl=Decimal("75"),
            commission=Decimal("3"),
            swap=Decimal("1.5"),
            occurred_at=_utc(2, 13),
        )
    )
    service.ledger_entries_append(
        [
            LedgerEntryInput(
                balance_account_id="acct-a",
                amount=Decimal("25"),
                source_type=LedgerSourceType.BONUS,
                occurred_at=_utc(2, 14),
            ),
            LedgerEntryInput(
                balance_account_id="acct-a",
                amount=Decimal("-10"),
                source_type=LedgerSourceType.BONUS_REMOVAL,
                occurred_at=_utc(2, 15),
            ),
        ]
    )

    snapshot = service.ledger_daily_snapshot_recompute("acct-a", "2026-03-02")

    assert snapshot.opening_balance == Decimal("500")
    assert snapshot.deposit_amount == Decimal("1000")
    assert snapshot.withdraw_amount == Decimal("150")
    assert snapshot.transfer_in_amount == Decimal("40")
    assert snapshot.transfer_out_amount == Decimal("200")
    assert snapshot.trading_net_result == Decimal("70.5")
    assert snapshot.adjustment_amount == Decimal("15")
    assert snapshot.closing_balance == Decimal("1275.5")
    assert snapshot.net_change == Decimal("775.5")
    assert snapshot.entry_count == 9


def test_snapshot_flat_day_carries_previous_balance(ledger_repository) -> None:
    """A day with no entries opens and closes at the prior balance."""

    service = BalanceLedgerService(ledger_repository)
    service.ledger_record_deposit("acct-a", Decimal("300"), occurred_at=_utc(1, 8))

    snapshot = service.ledger_daily_snapshot_recompute("acct-a", date(2026, 3, 5))

    assert snapshot.opening_balance == snapshot.closing_balance == Decimal("300")
    assert snapshot.net_change == Decimal("0")
    assert snapshot.entry_count == 0


def test_snapshot_account_without_history_is_zero(ledger_repository) -> None:
    """An account with no entries snapshots to zero."""

    snapshot = BalanceLedgerService(ledger_repository).ledger_daily_snapshot_recompute("acct-new", "2026-03-05")

    assert snapshot.opening_balance == snapshot.closing_balance == Decimal("0")


def test_snapshot_range_is_continuous(ledger_repository) -> None:
    """Each day's opening equals the previous day's closing."""

    service = BalanceLedgerService(ledger_repository)
    service.ledger_record_deposit("acct-a", Decimal("100"), occurred_at=_utc(1, 8))
    service.ledger_record_withdraw("acct-a", Decimal("20"), occurred_at=_utc(3, 8))
    service.ledger_record_deposit("acct-a", Decimal("5"), occurred_at=_utc(4, 23, 59))

    snapshots = service.ledger_daily_snapshot_recompute_range("acct-a", "2026-03-01", "2026-03-05")

    assert [snapshot.snapshot_date for snapshot in snapshots] == snapshot_list_dates(date(2026, 3, 1), date(2026, 3, 5))
    for previous_snapshot, snapshot in zip(snapshots, snapshots[1:]):
        assert snapshot.opening_balance == previous_snapshot.closing_balance
    assert [snapshot.closing_balance for snapshot in snapshots] == [
        Decimal("100"),
        Decimal("100"),
        Decimal("80"),
        Decimal("85"),
        Decimal("85"),
    ]


def test_snapshot_day_window_follows_reporting_timezone(ledger_repository) -> None:
    """Assign entries to days using the reporting clock, not UTC."""

    service = BalanceLedgerService(ledger_repository, report_timezone_name="Asia/Jerusalem")
    # 23:00 UTC on March 9 is already March 10 in Jerusalem (+02:00)
    service.ledger_record_deposit("acct-a", Decimal("10"), occurred_at=_utc(9, 23))
    # 22:30 UTC on March 10 is March 11 locally
    service.ledger_record_deposit("acct-a", Decimal("7"), occurred_at=_utc(10, 22, 30))

    march_10 = service.ledger_daily_snapshot_recompute("acct-a", "2026-03-10")
    march_11 = service.ledger_daily_snapshot_recompute("acct-a", "2026-03-11")

    assert (march_10.opening_balance, march_10.closing_balance, march_10.entry_count) == (
        Decimal("0"),
        Decimal("10"),
        1,
    )
    assert (march_11.opening_balance, march_11.closing_balance, march_11.entry_count) == (
        Decimal("10"),
        Decimal("17"),
        1,
    )


def test_snapshot_recompute_upserts_one_row_per_day(ledger_repository) -> None:
    """Rebuilding a day replaces its row instead of adding another."""

    service = BalanceLedgerService(ledger_repository)
    service.ledger_record_deposit("acct-a", Decimal("50"), occurred_at=_utc(1, 8))
    service.ledger_daily_snapshot_recompute("acct-a", "2026-03-01")
    first_row = ledger_repository.snapshots[("acct-a", date(2026, 3, 1))]

    service.ledger_record_deposit("acct-a", Decimal("25"), occurred_at=_utc(1, 9))
    service.ledger_daily_snapshot_recompute("acct-a", "2026-03-01")

    assert len(ledger_repository.snapshots) == 1
    second_row = ledger_repository.snapshots[("acct-a", date(2026, 3, 1))]
    assert second_row.balance_snapshot_daily_id == first_row.balance_snapshot_daily_id
    assert Decimal(second_row.closing_balance) == Decimal("75")
    assert Decimal(second_row.deposit_amount) == Decimal("75")


def test_snapshot_recompute_rejects_blank_account(ledger_repository) -> None:
    """Reject blank account identifiers before reading anything."""

    with pytest.raises(ValueError, match="balance_account_id"):
        BalanceLedgerService(ledger_repository).ledger_daily_snapshot_recompute(" ", "2026-03-01")
