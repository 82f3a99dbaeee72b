"""Tests for entry validation, sign conventions and atomic appends."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.db import LedgerConcurrentModificationError, LedgerPersistenceError
from app.domain import LedgerSourceType
from app.ledger import (
    BalanceLedgerService,
    LedgerEntryInput,
    LedgerEntryValidationError,
    TradeSettlementInput,
    ledger_normalize_amount,
    ledger_normalize_occurred_at,
)

_FIXED_NOW = datetime(2026, 4, 2, 9, 30, tzinfo=timezone.utc)


def _build_service(repository) -> BalanceLedgerService:
    return BalanceLedgerService(repository, now_provider=lambda: _FIXED_NOW)


def test_ledger_normalize_occurred_at_accepts_z_suffix() -> None:
    """Parse `Z`-suffixed ISO text as UTC."""

    assert ledger_normalize_occurred_at("2026-04-01T10:15:00Z") == datetime(2026, 4, 1, 10, 15, tzinfo=timezone.utc)


def test_ledger_normalize_occurred_at_treats_naive_as_utc() -> None:
    """Interpret offset-naive values as UTC."""

    assert ledger_normalize_occurred_at(datetime(2026, 4, 1, 10, 15)) == datetime(
        2026, 4, 1, 10, 15, tzinfo=timezone.utc
    )


def test_ledger_normalize_occurred_at_converts_offsets_to_utc() -> None:
    """Convert offset-aware text to UTC."""

    assert ledger_normalize_occurred_at("2026-04-01T13:15:00+03:00") == datetime(
        2026, 4, 1, 10, 15, tzinfo=timezone.utc
    )


def test_ledger_normalize_occurred_at_rejects_garbage() -> None:
    """Reject unparseable timestamps with a validation error."""

    with pytest.raises(LedgerEntryValidationError, match="ISO-8601"):
        ledger_normalize_occurred_at("yesterday")


def test_ledger_normalize_amount_rejects_float_and_non_finite() -> None:
    """Accept exact decimal inputs only."""

    assert ledger_normalize_amount("12.50") == Decimal("12.50")
    assert ledger_normalize_amount(7) == Decimal("7")
    with pytest.raises(LedgerEntryValidationError):
        ledger_normalize_amount(0.1)
    with pytest.raises(LedgerEntryValidationError):
        ledger_normalize_amount(True)
    with pytest.raises(LedgerEntryValidationError, match="finite"):
        ledger_normalize_amount(Decimal("NaN"))
    with pytest.raises(LedgerEntryValidationError, match="decimal"):
        ledger_normalize_amount("ten")


def test_ledger_record_deposit_and_withdraw_follow_sign_conventions(ledger_repository) -> None:
    """Book deposits positive and withdrawals negative regardless of input sign."""

    service = _build_service(ledger_repository)

    deposit = service.ledger_record_deposit("acct-a", Decimal("-100"))
    withdraw = service.ledger_record_withdraw("acct-a", Decimal("30"))

    assert Decimal(deposit.entries[0].amount) == Decimal("100")
    assert deposit.entries[0].source_type == LedgerSourceType.DEPOSIT.value
    assert Decimal(withdraw.entries[0].amount) == Decimal("-30")
    assert withdraw.entries[0].source_type == LedgerSourceType.WITHDRAW.value
    assert deposit.entries[0].occurred_at_utc == _FIXED_NOW
    assert ledger_repository.balances("acct-a") == [Decimal("100"), Decimal("70")]


def test_ledger_record_transfer_generates_shared_reference(ledger_repository) -> None:
    """Generate one correlation key and one timestamp for both transfer legs."""

    service = _build_service(ledger_repository)

    result = service.ledger_record_transfer("acct-a", "acct-b", Decimal("25"))

    out_leg, in_leg = result.entries
    assert out_leg.source_ref_id and out_leg.source_ref_id == in_leg.source_ref_id
    assert out_leg.occurred_at_utc == in_leg.occurred_at_utc == _FIXED_NOW
    assert len(result.recompute_results) == 2


def test_ledger_record_transfer_keeps_caller_reference(ledger_repository) -> None:
    """Use the caller's correlation key when provided."""

    result = _build_service(ledger_repository).ledger_record_transfer(
        "acct-a",
        "acct-b",
        Decimal("25"),
        source_ref_id=" xfer-7 ",
    )

    assert {entry.source_ref_id for entry in result.entries} == {"xfer-7"}


def test_ledger_record_transfer_rejects_same_account(ledger_repository) -> None:
    """Reject transfers whose source and destination accounts are equal."""

    with pytest.raises(LedgerEntryValidationError, match="must differ"):
        _build_service(ledger_repository).ledger_record_transfer("acct-a", "acct-a", Decimal("5"))

    assert ledger_repository.entries == {}


def test_ledger_entries_append_rejects_unknown_source_type_without_writing(ledger_repository) -> None:
    """Reject the whole batch when any entry has an unknown source type."""

    service = _build_service(ledger_repository)

    with pytest.raises(LedgerEntryValidationError, match="unsupported source_type=REBATE"):
        service.ledger_entries_append(
            [
                LedgerEntryInput(balance_account_id="acct-a", amount=Decimal("10"), source_type=LedgerSourceType.DEPOSIT),
                LedgerEntryInput(balance_account_id="acct-a", amount=Decimal("1"), source_type="rebate"),
            ]
        )

    assert ledger_repository.entries == {}


def test_ledger_entries_append_rejects_blank_account(ledger_repository) -> None:
    """Reject entries without an owning account."""

    with pytest.raises(LedgerEntryValidationError, match="balance_account_id"):
        _build_service(ledger_repository).ledger_entries_append(
            [LedgerEntryInput(balance_account_id=" ", amount=Decimal("1"), source_type=LedgerSourceType.BONUS)]
        )


def test_ledger_entries_append_insert_failure_writes_nothing(ledger_repository) -> None:
    """Surface insert failures without partially persisting a multi-account batch."""

    ledger_repository.fail_next_insert = True

    with pytest.raises(LedgerPersistenceError):
        _build_service(ledger_repository).ledger_record_transfer("acct-a", "acct-b", Decimal("5"))

    assert ledger_repository.entries == {}
    assert ledger_repository.update_calls == []


def test_ledger_entries_append_rejects_meta_that_is_not_json(ledger_repository) -> None:
    """Reject meta values the jsonb column cannot store before anything is written."""

    with pytest.raises(LedgerEntryValidationError, match="meta must be JSON-serializable"):
        _build_service(ledger_repository).ledger_record_deposit(
            "acct-a",
            Decimal("10"),
            meta={"fee": Decimal("1.5")},
        )

    assert ledger_repository.entries == {}


def test_ledger_entries_append_rejects_stale_ending_balance(ledger_repository, monkeypatch) -> None:
    """Abort the insert when another writer moved the ending balance after it was read."""

    ledger_repository.seed_entry(amount="100", balance_after="100")
    read_latest = ledger_repository.db_ledger_entry_latest_for_account
    reads: list[str] = []

    def _latest_missing_on_first_read(balance_account_id):
        reads.append(balance_account_id)
        return None if len(reads) == 1 else read_latest(balance_account_id)

    monkeypatch.setattr(ledger_repository, "db_ledger_entry_latest_for_account", _latest_missing_on_first_read)

    with pytest.raises(LedgerConcurrentModificationError, match="ending balance changed"):
        _build_service(ledger_repository).ledger_record_deposit("acct-a", Decimal("50"))

    assert ledger_repository.balances("acct-a") == [Decimal("100")]
    assert ledger_repository.update_calls == []


def test_ledger_entries_append_normalizes_currency_and_accepts_lowercase_tags(ledger_repository) -> None:
    """Uppercase currency codes and source-type tags."""

    result = _build_service(ledger_repository).ledger_entries_append(
        [
            LedgerEntryInput(
                balance_account_id="acct-a",
                amount=Decimal("3"),
                source_type="bonus",
                currency="eur",
                occurred_at="2026-04-01T00:00:00Z",
                meta={"campaign": "spring"},
            )
        ]
    )

    entry = result.entries[0]
    assert entry.source_type == "BONUS"
    assert entry.currency == "EUR"
    assert entry.meta == {"campaign": "spring"}
    assert entry.occurred_at_utc == datetime(2026, 4, 1, tzinfo=timezone.utc)


def test_ledger_entries_append_empty_batch_is_noop(ledger_repository) -> None:
    """Return an empty result for an empty batch."""

    result = _build_service(ledger_repository).ledger_entries_append([])

    assert result.entries == []
    assert result.recompute_results == []


def test_ledger_record_trade_settlement_skips_zero_costs(ledger_repository) -> None:
    """Book only the PnL entry when commission and swap are zero."""

    result = _build_service(ledger_repository).ledger_record_trade_settlement(
        TradeSettlementInput(balance_account_id="acct-a", order_id="order-9", gross_pnl=Decimal("-12.5"))
    )

    assert [(entry.source_type, Decimal(entry.amount)) for entry in result.entries] == [
        ("TRADE_PNL", Decimal("-12.5"))
    ]
    assert result.entries[0].source_ref_id == "order-9"


def test_ledger_record_trade_settlement_books_costs_as_negative(ledger_repository) -> None:
    """Book commission and swap as costs even when supplied as credits."""

    result = _build_service(ledger_repository).ledger_record_trade_settlement(
        TradeSettlementInput(
            balance_account_id="acct-a",
            order_id="order-10",
            gross_pnl=Decimal("20"),
            commission=Decimal("-1.5"),
            swap=Decimal("0.75"),
        )
    )

    assert [(entry.source_type, Decimal(entry.amount)) for entry in result.entries] == [
        ("TRADE_PNL", Decimal("20")),
        ("COMMISSION", Decimal("-1.5")),
        ("SWAP", Decimal("-0.75")),
    ]
    assert {entry.source_ref_id for entry in result.entries} == {"order-10"}
    assert ledger_repository.balances("acct-a")[-1] == Decimal("17.75")


def test_ledger_record_trade_settlement_requires_order_id(ledger_repository) -> None:
    """Reject settlements without an order identifier."""

    with pytest.raises(LedgerEntryValidationError, match="order_id"):
        _build_service(ledger_repository).ledger_record_trade_settlement(
            TradeSettlementInput(balance_account_id="acct-a", order_id="", gross_pnl=Decimal("1"))
        )
