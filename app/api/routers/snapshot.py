"""Snapshot API router composition for daily balance snapshot reads and rebuilds."""
# pylint: disable=duplicate-code

from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.config import AppSettings
from app.db import BalanceLedgerRepositoryPort, DailySnapshotRecord, LedgerPersistenceError
from app.ledger import BalanceLedgerService, DailyBalanceSnapshot

from .errors import api_error_response, api_ledger_error_response


def api_create_snapshot_router(
    settings: AppSettings,
    snapshot_repository: BalanceLedgerRepositoryPort,
    ledger_service: BalanceLedgerService,
) -> APIRouter:
    """Create snapshot router exposing daily balance snapshot APIs.

    Args:
        settings: Runtime settings used for pagination defaults.
        snapshot_repository: DB-layer repository for snapshot reads.
        ledger_service: Balance ledger service for snapshot rebuilds.

    Returns:
        APIRouter: Router exposing snapshot endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if snapshot_repository is None:
        raise ValueError("snapshot_repository must not be None")
    if ledger_service is None:
        raise ValueError("ledger_service must not be None")

    router = APIRouter(prefix="/snapshots", tags=["snapshots"])

    @router.get("/daily")
    def api_snapshot_daily_list(
        balance_account_id: str = Query(min_length=1),
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
        sort_dir: str = Query(default="desc"),
        snapshot_date_from: str | None = Query(default=None),
        snapshot_date_to: str | None = Query(default=None),
    ) -> JSONResponse:
        """List persisted daily balance snapshots for one account.

        Args:
            balance_account_id: Balance account identifier.
            limit: Max rows to return.
            offset: Rows to skip.
            sort_dir: Sort direction on snapshot date.
            snapshot_date_from: Optional inclusive lower date bound.
            snapshot_date_to: Optional inclusive upper date bound.

        Returns:
            JSONResponse: Snapshot list envelope payload.

        Raises:
            RuntimeError: Raised when an unmapped error occurs.
        """

        normalized_sort_dir = sort_dir.strip().lower()
        if normalized_sort_dir not in {"asc", "desc"}:
            return api_error_response(
                "INVALID_SORT_DIRECTION",
                f"unsupported sort_dir={normalized_sort_dir}",
                status.HTTP_400_BAD_REQUEST,
            )

        applied_limit = min(limit, settings.api_max_limit)
        try:
            snapshot_rows = snapshot_repository.db_daily_snapshot_list(
                balance_account_id=balance_account_id,
                limit=applied_limit,
                offset=offset,
                sort_dir=normalized_sort_dir,
                snapshot_date_from=snapshot_date_from,
                snapshot_date_to=snapshot_date_to,
            )
        except (ValueError, LedgerPersistenceError) as error:
            return api_ledger_error_response(error)

        payload = {
            "items": [api_serialize_daily_snapshot_row(snapshot_row) for snapshot_row in snapshot_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(snapshot_rows),
            },
            "sort": {"sort_dir": normalized_sort_dir},
            "filters": {
                "balance_account_id": balance_account_id,
                "snapshot_date_from": snapshot_date_from,
                "snapshot_date_to": snapshot_date_to,
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/daily/rebuild")
    def api_snapshot_daily_rebuild(
        balance_account_id: str = Query(min_length=1),
        date_from: str = Query(min_length=1),
        date_to: str | None = Query(default=None),
    ) -> JSONResponse:
        """Rebuild and upsert daily snapshots for an inclusive date range.

        Args:
            balance_account_id: Balance account identifier.
            date_from: First day in YYYY-MM-DD format.
            date_to: Last day; defaults to `date_from`.

        Returns:
            JSONResponse: Rebuilt snapshot payloads.

        Raises:
            RuntimeError: Raised when an unmapped error occurs.
        """

        try:
            snapshots = ledger_service.ledger_daily_snapshot_recompute_range(
                balance_account_id,
                date_from,
                date_to if date_to is not None else date_from,
            )
        except (ValueError, LedgerPersistenceError) as error:
            return api_ledger_error_response(error)

        payload = {
            "status": "ok",
            "balance_account_id": balance_account_id,
            "items": [api_serialize_daily_balance_snapshot(snapshot) for snapshot in snapshots],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_daily_snapshot_row(snapshot_row: DailySnapshotRecord) -> dict[str, object]:
    """Serialize one persisted daily snapshot row to JSON payload.

    Args:
        snapshot_row: Typed daily snapshot row.

    Returns:
        dict[str, object]: JSON-serializable snapshot payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "balance_snapshot_daily_id": str(snapshot_row.balance_snapshot_daily_id),
        "balance_account_id": snapshot_row.balance_account_id,
        "snapshot_date": snapshot_row.snapshot_date.isoformat(),
        "opening_balance": snapshot_row.opening_balance,
        "closing_balance": snapshot_row.closing_balance,
        "net_change": snapshot_row.net_change,
        "deposit_amount": snapshot_row.deposit_amount,
        "withdraw_amount": snapshot_row.withdraw_amount,
        "transfer_in_amount": snapshot_row.transfer_in_amount,
        "transfer_out_amount": snapshot_row.transfer_out_amount,
        "trading_net_result": snapshot_row.trading_net_result,
        "adjustment_amount": snapshot_row.adjustment_amount,
        "created_at_utc": snapshot_row.created_at_utc.isoformat(),
        "updated_at_utc": snapshot_row.updated_at_utc.isoformat(),
    }


def api_serialize_daily_balance_snapshot(snapshot: DailyBalanceSnapshot) -> dict[str, object]:
    """Serialize one freshly built snapshot to JSON payload."""

    return {
        "balance_account_id": snapshot.balance_account_id,
        "snapshot_date": snapshot.snapshot_date.isoformat(),
        "opening_balance": str(snapshot.opening_balance),
        "closing_balance": str(snapshot.closing_balance),
        "net_change": str(snapshot.net_change),
        "deposit_amount": str(snapshot.deposit_amount),
        "withdraw_amount": str(snapshot.withdraw_amount),
        "transfer_in_amount": str(snapshot.transfer_in_amount),
        "transfer_out_amount": str(snapshot.transfer_out_amount),
        "trading_net_result": str(snapshot.trading_net_result),
        "adjustment_amount": str(snapshot.adjustment_amount),
        "entry_count": snapshot.entry_count,
    }


__all__ = [
    "api_create_snapshot_router",
    "api_serialize_daily_balance_snapshot",
    "api_serialize_daily_snapshot_row",
]
