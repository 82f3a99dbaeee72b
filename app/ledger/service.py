"""Balance ledger service exposing the engine operations behind one object."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.db import BalanceLedgerRepositoryPort

from .entry_recorder import BalanceLedgerEntryRecorder
from .interfaces import (
    AppendEntriesResult,
    BalanceLedgerPort,
    DailyBalanceSnapshot,
    LedgerEntryInput,
    RecomputeResult,
    TradeSettlementInput,
    TransferReconciliationReport,
)
from .locks import BalanceAccountLockRegistry
from .reconciliation import TransferReconciliationService
from .running_balance import RunningBalanceRecomputer
from .snapshot_service import DailyBalanceSnapshotService
from .trade_sync import ClosedTradeOrder, TradeSettlementSyncResult, TradeSettlementSyncService


class BalanceLedgerService(BalanceLedgerPort):
    """Wire recorder, recomputer, snapshot builder and reconciliation over one repository.

    One lock registry is shared by every component, so append and recompute
    for the same account are serialized inside this process.
    """

    def __init__(
        self,
        repository: BalanceLedgerRepositoryPort,
        report_timezone_name: str = "UTC",
        lock_registry: BalanceAccountLockRegistry | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ):
        """Initialize balance ledger service components.

        Args:
            repository: DB-layer balance ledger repository.
            report_timezone_name: IANA timezone defining snapshot day boundaries.
            lock_registry: Optional shared per-account lock registry.
            now_provider: Optional clock for entries without occurred_at.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when repository or timezone is invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")

        self._repository = repository
        self._lock_registry = lock_registry or BalanceAccountLockRegistry()
        self._recomputer = RunningBalanceRecomputer(repository, self._lock_registry)
        self._entry_recorder = BalanceLedgerEntryRecorder(
            repository,
            self._recomputer,
            self._lock_registry,
            now_provider=now_provider,
        )
        self._snapshot_service = DailyBalanceSnapshotService(repository, report_timezone_name)
        self._reconciliation_service = TransferReconciliationService(repository)
        self._trade_sync_service = TradeSettlementSyncService(repository, self._entry_recorder)

    def ledger_entries_append(self, entries: list[LedgerEntryInput]) -> AppendEntriesResult:
        return self._entry_recorder.ledger_entries_append(entries)

    def ledger_record_deposit(
        self,
        balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        return self._entry_recorder.ledger_record_deposit(
            balance_account_id,
            amount,
            occurred_at=occurred_at,
            currency=currency,
            source_ref_id=source_ref_id,
            meta=meta,
        )

    def ledger_record_withdraw(
        self,
        balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        return self._entry_recorder.ledger_record_withdraw(
            balance_account_id,
            amount,
            occurred_at=occurred_at,
            currency=currency,
            source_ref_id=source_ref_id,
            meta=meta,
        )

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
        return self._entry_recorder.ledger_record_transfer(
            from_balance_account_id,
            to_balance_account_id,
            amount,
            occurred_at=occurred_at,
            currency=currency,
            source_ref_id=source_ref_id,
            meta=meta,
        )

    def ledger_record_trade_settlement(self, settlement: TradeSettlementInput) -> AppendEntriesResult:
        return self._entry_recorder.ledger_record_trade_settlement(settlement)

    def ledger_recompute(self, balance_account_id: str) -> RecomputeResult:
        return self._recomputer.ledger_recompute(balance_account_id)

    def ledger_daily_snapshot_recompute(
        self,
        balance_account_id: str,
        snapshot_date: date | str,
    ) -> DailyBalanceSnapshot:
        return self._snapshot_service.ledger_daily_snapshot_recompute(balance_account_id, snapshot_date)

    def ledger_daily_snapshot_recompute_range(
        self,
        balance_account_id: str,
        date_from: date | str,
        date_to: date | str,
    ) -> list[DailyBalanceSnapshot]:
        """Rebuild snapshots for every day of an inclusive range."""

        return self._snapshot_service.ledger_daily_snapshot_recompute_range(balance_account_id, date_from, date_to)

    def ledger_reconcile_transfers(self, occurred_from_utc: datetime | None = None) -> TransferReconciliationReport:
        """Report one-sided or unbalanced transfers."""

        return self._reconciliation_service.ledger_reconcile_transfers(occurred_from_utc)

    def ledger_sync_trade_settlements(self, orders: list[ClosedTradeOrder]) -> TradeSettlementSyncResult:
        """Book closed orders that are not yet in the ledger."""

        return self._trade_sync_service.ledger_sync_trade_settlements(orders)


__all__ = ["BalanceLedgerService"]
