"""Trade settlement sync: books closed orders that are not yet in the ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.db import BalanceLedgerRepositoryPort
from app.domain import LedgerSourceType

from .entry_recorder import BalanceLedgerEntryRecorder
from .interfaces import TradeSettlementInput

logger = logging.getLogger(__name__)

TRADE_SYNC_LOOKUP_CHUNK_SIZE = 80


class TradeSettlementSyncError(RuntimeError):
    """Raised when a settlement write fails; carries the count synced before it."""

    def __init__(self, message: str, order_id: str, synced_count: int):
        super().__init__(message)
        self.order_id = order_id
        self.synced_count = synced_count


@dataclass(frozen=True)
class ClosedTradeOrder:
    """Closed trade order eligible for settlement booking.

    Attributes:
        order_id: Order identifier, stored as the entries' source_ref_id.
        balance_account_id: Balance account the trade settles into.
        pnl_amount: Gross profit or loss.
        commission: Commission value.
        swap: Swap value.
        close_time: Close time, or None when unknown.
        open_time: Open time used when close time is missing.
        currency: Informational currency code.
    """

    order_id: str
    balance_account_id: str
    pnl_amount: Decimal
    commission: Decimal = Decimal("0")
    swap: Decimal = Decimal("0")
    close_time: datetime | str | None = None
    open_time: datetime | str | None = None
    currency: str = "USD"


@dataclass(frozen=True)
class TradeSettlementSyncResult:
    """Summary of one sync pass.

    Attributes:
        order_count: Orders received.
        synced_count: Orders booked in this pass.
        skipped_count: Orders already present as `TRADE_PNL` entries.
    """

    order_count: int
    synced_count: int
    skipped_count: int


class TradeSettlementSyncService:
    """Book trade settlements for closed orders missing from the ledger."""

    def __init__(
        self,
        repository: BalanceLedgerRepositoryPort,
        entry_recorder: BalanceLedgerEntryRecorder,
        lookup_chunk_size: int = TRADE_SYNC_LOOKUP_CHUNK_SIZE,
    ):
        """Initialize trade sync dependencies.

        Args:
            repository: DB-layer balance ledger repository.
            entry_recorder: Recorder used to book settlements.
            lookup_chunk_size: Number of order ids per existence lookup.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies or chunk size are invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if entry_recorder is None:
            raise ValueError("entry_recorder must not be None")
        if lookup_chunk_size < 1:
            raise ValueError("lookup_chunk_size must be >= 1")
        self._repository = repository
        self._entry_recorder = entry_recorder
        self._lookup_chunk_size = lookup_chunk_size

    def ledger_sync_trade_settlements(self, orders: list[ClosedTradeOrder]) -> TradeSettlementSyncResult:
        """Book every order whose id is not yet a `TRADE_PNL` source_ref_id.

        Args:
            orders: Closed orders in the order they should be booked.

        Returns:
            TradeSettlementSyncResult: Counts for this pass.

        Raises:
            ValueError: Raised when orders is None.
            TradeSettlementSyncError: Raised on the first failed or rejected write.
            RuntimeError: Raised when the existence lookup fails.
        """

        if orders is None:
            raise ValueError("orders must not be None")
        if not orders:
            return TradeSettlementSyncResult(order_count=0, synced_count=0, skipped_count=0)

        existing_order_ids = self._ledger_existing_order_ids([order.order_id for order in orders])
        pending_orders = [order for order in orders if order.order_id not in existing_order_ids]

        synced_count = 0
        for order in pending_orders:
            try:
                self._entry_recorder.ledger_record_trade_settlement(
                    TradeSettlementInput(
                        balance_account_id=order.balance_account_id,
                        order_id=order.order_id,
                        gross_pnl=order.pnl_amount,
                        commission=order.commission,
                        swap=order.swap,
                        occurred_at=order.close_time if order.close_time is not None else order.open_time,
                        currency=order.currency,
                        meta={"order_id": order.order_id},
                    )
                )
            except (RuntimeError, ValueError) as error:
                logger.error("trade settlement write failed for order %s after %s synced", order.order_id, synced_count)
                raise TradeSettlementSyncError(
                    f"trade settlement write failed for order_id={order.order_id}",
                    order_id=order.order_id,
                    synced_count=synced_count,
                ) from error
            synced_count += 1

        logger.info(
            "trade settlement sync: orders=%s synced=%s skipped=%s",
            len(orders),
            synced_count,
            len(orders) - len(pending_orders),
        )
        return TradeSettlementSyncResult(
            order_count=len(orders),
            synced_count=synced_count,
            skipped_count=len(orders) - len(pending_orders),
        )

    def _ledger_existing_order_ids(self, order_ids: list[str]) -> set[str]:
        """Look up already-booked order ids in fixed-size chunks."""

        existing_order_ids: set[str] = set()
        for chunk_start in range(0, len(order_ids), self._lookup_chunk_size):
            existing_order_ids.update(
                self._repository.db_ledger_source_ref_id_list_existing(
                    LedgerSourceType.TRADE_PNL.value,
                    order_ids[chunk_start : chunk_start + self._lookup_chunk_size],
                )
            )
        return existing_order_ids


__all__ = [
    "ClosedTradeOrder",
    "TRADE_SYNC_LOOKUP_CHUNK_SIZE",
    "TradeSettlementSyncError",
    "TradeSettlementSyncResult",
    "TradeSettlementSyncService",
]
