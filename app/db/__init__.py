"""Database layer package for all SQL and persistence boundaries."""

from .balance_ledger import SQLAlchemyBalanceLedgerService
from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	BalanceAfterUpdateRequest,
	BalanceLedgerRepositoryPort,
	DailySnapshotRecord,
	DailySnapshotUpsertRequest,
	DatabaseHealthPort,
	LedgerAccountVersion,
	LedgerConcurrentModificationError,
	LedgerEntryInsertRequest,
	LedgerEntryRecord,
	LedgerPersistenceError,
)
from .session import db_create_engine

__all__ = [
	"BalanceAfterUpdateRequest",
	"BalanceLedgerRepositoryPort",
	"DailySnapshotRecord",
	"DailySnapshotUpsertRequest",
	"DatabaseHealthPort",
	"LedgerAccountVersion",
	"LedgerConcurrentModificationError",
	"LedgerEntryInsertRequest",
	"LedgerEntryRecord",
	"LedgerPersistenceError",
	"SQLAlchemyBalanceLedgerService",
	"SQLAlchemyDatabaseHealthService",
	"db_create_engine",
]
