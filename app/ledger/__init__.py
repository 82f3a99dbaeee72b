"""Ledger layer package for the balance ledger engine."""

from .entry_recorder import BalanceLedgerEntryRecorder, ledger_normalize_amount, ledger_normalize_occurred_at
from .interfaces import (
	AppendEntriesResult,
	BalanceLedgerPort,
	DailyBalanceSnapshot,
	LedgerEntryInput,
	LedgerEntryValidationError,
	RecomputeResult,
	TradeSettlementInput,
	TransferReconciliationFinding,
	TransferReconciliationReport,
)
from .locks import BalanceAccountLockRegistry
from .reconciliation import TransferReconciliationService, ledger_reconcile_transfer_legs
from .running_balance import RunningBalanceRecomputer, ledger_compute_running_balances, ledger_sort_canonical
from .service import BalanceLedgerService
from .snapshot_dates import (
	snapshot_list_dates,
	snapshot_normalize_date,
	snapshot_resolve_day_window,
	snapshot_resolve_report_date_local,
	snapshot_resolve_timezone,
)
from .snapshot_service import SNAPSHOT_BUCKET_BY_SOURCE_TYPE, DailyBalanceSnapshotService, ledger_build_daily_snapshot
from .trade_sync import (
	ClosedTradeOrder,
	TradeSettlementSyncError,
	TradeSettlementSyncResult,
	TradeSettlementSyncService,
)

__all__ = [
	"AppendEntriesResult",
	"BalanceAccountLockRegistry",
	"BalanceLedgerEntryRecorder",
	"BalanceLedgerPort",
	"BalanceLedgerService",
	"ClosedTradeOrder",
	"DailyBalanceSnapshot",
	"DailyBalanceSnapshotService",
	"LedgerEntryInput",
	"LedgerEntryValidationError",
	"RecomputeResult",
	"RunningBalanceRecomputer",
	"SNAPSHOT_BUCKET_BY_SOURCE_TYPE",
	"TradeSettlementInput",
	"TradeSettlementSyncError",
	"TradeSettlementSyncResult",
	"TradeSettlementSyncService",
	"TransferReconciliationFinding",
	"TransferReconciliationReport",
	"TransferReconciliationService",
	"ledger_build_daily_snapshot",
	"ledger_compute_running_balances",
	"ledger_normalize_amount",
	"ledger_normalize_occurred_at",
	"ledger_reconcile_transfer_legs",
	"ledger_sort_canonical",
	"snapshot_list_dates",
	"snapshot_normalize_date",
	"snapshot_resolve_day_window",
	"snapshot_resolve_report_date_local",
	"snapshot_resolve_timezone",
]
