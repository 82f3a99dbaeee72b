"""Shared test fixtures: in-memory balance ledger repository honoring canonical order."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from app.db import (
    BalanceAfterUpdateRequest,
    DailySnapshotRecord,
    DailySnapshotUpsertRequest,
    LedgerAccountVersion,
    LedgerConcurrentModificationError,
    LedgerEntryInsertRequest,
    LedgerEntryRecord,
    LedgerPersistenceError,
)
from app.domain import domain_parse_source_type


def _canonical_key(entry: LedgerEntryRecord) -> tuple:
    return (entry.occurred_at_utc, entry.created_at_utc, entry.ledger_entry_id)


class InMemoryBalanceLedgerRepository:
    """Repository stub backed by Python lists.

    Identifiers are monotonic and all rows of one insert batch share one
    `created_at_utc`, mirroring a PostgreSQL identity column and `now()`.
    """

    def __init__(self):
        self.entries: dict[int, LedgerEntryRecord] = {}
        self.snapshots: dict[tuple[str, date], DailySnapshotRecord] = {}
        self.update_calls: list[list[BalanceAfterUpdateRequest]] = []
        self.source_ref_lookups: list[list[str]] = []
        self.fail_next_insert = False
        self.fail_next_update = False
        self._next_entry_id = 1
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def seed_entry(self, **overrides) -> LedgerEntryRecord:
        """Insert one row directly, bypassing the engine, for anchor tests."""

        values = {
            "balance_account_id": "acct-a",
            "source_type": "ADJUSTMENT",
            "source_ref_id": None,
            "amount": "0",
            "currency": "USD",
            "occurred_at_utc": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "balance_after": "0",
            "meta": {},
        }
        values.update(overrides)
        return self.db_ledger_entry_insert_many([LedgerEntryInsertRequest(**values)])[0]

    def account_entries(self, balance_account_id: str) -> list[LedgerEntryRecord]:
        """Return one account's entries in canonical order."""

        return sorted(
            (entry for entry in self.entries.values() if entry.balance_account_id == balance_account_id),
            key=_canonical_key,
        )

    def balances(self, balance_account_id: str) -> list[Decimal]:
        """Return one account's balance_after values in canonical order."""

        return [Decimal(entry.balance_after) for entry in self.account_entries(balance_account_id)]

    def db_ledger_entry_insert_many(self, requests: list[LedgerEntryInsertRequest]) -> list[LedgerEntryRecord]:
        if self.fail_next_insert:
            self.fail_next_insert = False
            raise LedgerPersistenceError("ledger entry batch insert failed")

        for request in requests:
            domain_parse_source_type(request.source_type)
            if request.occurred_at_utc.tzinfo is None:
                raise ValueError("request.occurred_at_utc must be offset-aware")
        for request in requests:
            if request.expected_ending_balance is None:
                continue
            latest_entry = self.db_ledger_entry_latest_for_account(request.balance_account_id)
            current_ending_balance = Decimal("0") if latest_entry is None else Decimal(latest_entry.balance_after)
            if current_ending_balance != Decimal(request.expected_ending_balance):
                raise LedgerConcurrentModificationError("ending balance changed before insert")

        self._clock = self._clock + timedelta(seconds=1)
        inserted_rows = []
        for request in requests:
            record = LedgerEntryRecord(
                ledger_entry_id=self._next_entry_id,
                balance_account_id=request.balance_account_id,
                source_type=request.source_type,
                source_ref_id=request.source_ref_id,
                amount=request.amount,
                currency=request.currency,
                occurred_at_utc=request.occurred_at_utc,
                created_at_utc=self._clock,
                balance_after=request.balance_after,
                meta=dict(request.meta),
            )
            self._next_entry_id += 1
            self.entries[record.ledger_entry_id] = record
            inserted_rows.append(record)
        return inserted_rows

    def db_ledger_entry_list_for_account(self, balance_account_id: str) -> list[LedgerEntryRecord]:
        return self.account_entries(balance_account_id)

    def db_ledger_entry_latest_for_account(self, balance_account_id: str) -> LedgerEntryRecord | None:
        entries = self.account_entries(balance_account_id)
        return entries[-1] if entries else None

    def db_ledger_entry_latest_before(self, balance_account_id: str, before_utc: datetime) -> LedgerEntryRecord | None:
        entries = [entry for entry in self.account_entries(balance_account_id) if entry.occurred_at_utc < before_utc]
        return entries[-1] if entries else None

    def db_ledger_entry_list_in_window(
        self,
        balance_account_id: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[LedgerEntryRecord]:
        return [
            entry
            for entry in self.account_entries(balance_account_id)
            if start_utc <= entry.occurred_at_utc < end_utc
        ]

    def db_ledger_account_version(self, balance_account_id: str) -> LedgerAccountVersion:
        entries = self.account_entries(balance_account_id)
        return LedgerAccountVersion(
            entry_count=len(entries),
            max_ledger_entry_id=max((entry.ledger_entry_id for entry in entries), default=None),
        )

    def db_ledger_balance_after_update_many(
        self,
        balance_account_id: str,
        updates: list[BalanceAfterUpdateRequest],
        expected_version: LedgerAccountVersion,
    ) -> int:
        if self.db_ledger_account_version(balance_account_id) != expected_version:
            raise LedgerConcurrentModificationError(
                f"ledger entries changed during recompute for balance_account_id={balance_account_id}"
            )
        if self.fail_next_update:
            self.fail_next_update = False
            raise LedgerPersistenceError(f"balance_after rewrite failed for balance_account_id={balance_account_id}")

        self.update_calls.append(list(updates))
        for update in updates:
            self.entries[update.ledger_entry_id] = replace(
                self.entries[update.ledger_entry_id],
                balance_after=update.balance_after,
            )
        return len(updates)

    def db_ledger_source_ref_id_list_existing(self, source_type: str, source_ref_ids: list[str]) -> set[str]:
        self.source_ref_lookups.append(list(source_ref_ids))
        wanted = set(source_ref_ids)
        return {
            entry.source_ref_id
            for entry in self.entries.values()
            if entry.source_type == source_type and entry.source_ref_id in wanted
        }

    def db_ledger_transfer_leg_list(self, occurred_from_utc: datetime | None = None) -> list[LedgerEntryRecord]:
        legs = [
            entry
            for entry in self.entries.values()
            if entry.source_type in {"TRANSFER_IN", "TRANSFER_OUT"}
            and (occurred_from_utc is None or entry.occurred_at_utc >= occurred_from_utc)
        ]
        return sorted(legs, key=lambda entry: (entry.source_ref_id is None, entry.source_ref_id or "", _canonical_key(entry)))

    def db_ledger_entry_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
    ) -> list[LedgerEntryRecord]:
        entries = self.account_entries(balance_account_id)
        if sort_dir == "desc":
            entries.reverse()
        return entries[offset : offset + limit]

    def db_daily_snapshot_upsert(self, request: DailySnapshotUpsertRequest) -> None:
        snapshot_date = date.fromisoformat(request.snapshot_date)
        key = (request.balance_account_id, snapshot_date)
        existing = self.snapshots.get(key)
        now_utc = datetime.now(timezone.utc)
        self.snapshots[key] = DailySnapshotRecord(
            balance_snapshot_daily_id=existing.balance_snapshot_daily_id if existing else uuid4(),
            balance_account_id=request.balance_account_id,
            snapshot_date=snapshot_date,
            opening_balance=request.opening_balance,
            closing_balance=request.closing_balance,
            net_change=request.net_change,
            deposit_amount=request.deposit_amount,
            withdraw_amount=request.withdraw_amount,
            transfer_in_amount=request.transfer_in_amount,
            transfer_out_amount=request.transfer_out_amount,
            trading_net_result=request.trading_net_result,
            adjustment_amount=request.adjustment_amount,
            created_at_utc=existing.created_at_utc if existing else now_utc,
            updated_at_utc=now_utc,
        )

    def db_daily_snapshot_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
        snapshot_date_from: str | None = None,
        snapshot_date_to: str | None = None,
    ) -> list[DailySnapshotRecord]:
        rows = [row for (account_id, _), row in self.snapshots.items() if account_id == balance_account_id]
        if snapshot_date_from is not None:
            rows = [row for row in rows if row.snapshot_date >= date.fromisoformat(snapshot_date_from)]
        if snapshot_date_to is not None:
            rows = [row for row in rows if row.snapshot_date <= date.fromisoformat(snapshot_date_to)]
        rows.sort(key=lambda row: row.snapshot_date, reverse=sort_dir == "desc")
        return rows[offset : offset + limit]


@pytest.fixture
def ledger_repository() -> InMemoryBalanceLedgerRepository:
    """Provide an empty in-memory ledger repository."""

    return InMemoryBalanceLedgerRepository()
