"""Ledger API router composition for entry reads, recompute and transfer reconciliation."""
# pylint: disable=duplicate-code

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.config import AppSettings
from app.db import BalanceLedgerRepositoryPort, LedgerEntryRecord, LedgerPersistenceError
from app.ledger import BalanceLedgerService, ledger_normalize_occurred_at

from .errors import api_error_response, api_ledger_error_response


def api_create_ledger_router(
    settings: AppSettings,
    ledger_repository: BalanceLedgerRepositoryPort,
    ledger_service: BalanceLedgerService,
) -> APIRouter:
    """Create ledger router exposing operational ledger endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        ledger_repository: DB-layer balance ledger repository for reads.
        ledger_service: Balance ledger service for recompute and reconciliation.

    Returns:
        APIRouter: Router exposing `/ledger` endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if ledger_repository is None:
        raise ValueError("ledger_repository must not be None")
    if ledger_service is None:
        raise ValueError("ledger_service must not be None")

    router = APIRouter(prefix="/ledger", tags=["ledger"])

    @router.get("/accounts/{balance_account_id}/entries")
    def api_ledger_entry_list(
        balance_account_id: str,
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
        sort_dir: str = Query(default="asc"),
    ) -> JSONResponse:
        """List one page of account entries in canonical order.

        Args:
            balance_account_id: Balance account identifier.
            limit: Max rows to return.
            offset: Rows to skip.
            sort_dir: `asc` for canonical order, `desc` for newest first.

        Returns:
            JSONResponse: Entry list envelope payload.

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
            entry_rows = ledger_repository.db_ledger_entry_list(
                balance_account_id=balance_account_id,
                limit=applied_limit,
                offset=offset,
                sort_dir=normalized_sort_dir,
            )
        except (ValueError, LedgerPersistenceError) as error:
            return api_ledger_error_response(error)

        payload = {
            "items": [api_serialize_ledger_entry_row(entry_row) for entry_row in entry_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(entry_rows),
            },
            "sort": {"sort_dir": normalized_sort_dir},
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/accounts/{balance_account_id}/recompute")
    def api_ledger_recompute_trigger(balance_account_id: str) -> JSONResponse:
        """Recompute running balances for one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            JSONResponse: Recompute summary payload.

        Raises:
            RuntimeError: Raised when an unmapped error occurs.
        """

        try:
            recompute_result = ledger_service.ledger_recompute(balance_account_id)
        except (ValueError, LedgerPersistenceError) as error:
            return api_ledger_error_response(error)

        payload = {
            "status": "ok",
            "balance_account_id": recompute_result.balance_account_id,
            "entry_count": recompute_result.entry_count,
            "updated_count": recompute_result.updated_count,
            "anchor_balance": str(recompute_result.anchor_balance),
            "starting_balance": str(recompute_result.starting_balance),
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/transfers/reconciliation")
    def api_ledger_transfer_reconciliation(
        occurred_from_utc: str | None = Query(default=None),
    ) -> JSONResponse:
        """Report one-sided or unbalanced transfers.

        Args:
            occurred_from_utc: Optional inclusive ISO-8601 lower bound on leg time.

        Returns:
            JSONResponse: Reconciliation report payload.

        Raises:
            RuntimeError: Raised when an unmapped error occurs.
        """

        try:
            occurred_from: datetime | None = None
            if occurred_from_utc is not None:
                occurred_from = ledger_normalize_occurred_at(occurred_from_utc)
            report = ledger_service.ledger_reconcile_transfers(occurred_from)
        except (ValueError, LedgerPersistenceError) as error:
            return api_ledger_error_response(error)

        payload = {
            "transfer_count": report.transfer_count,
            "leg_count": report.leg_count,
            "findings": [
                {
                    "code": finding.code,
                    "source_ref_id": finding.source_ref_id,
                    "ledger_entry_ids": finding.ledger_entry_ids,
                    "balance_account_ids": finding.balance_account_ids,
                    "net_amount": str(finding.net_amount),
                }
                for finding in report.findings
            ],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_ledger_entry_row(entry_row: LedgerEntryRecord) -> dict[str, object]:
    """Serialize one typed ledger entry row to JSON payload.

    Args:
        entry_row: Typed ledger entry row.

    Returns:
        dict[str, object]: JSON-serializable entry payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "ledger_entry_id": entry_row.ledger_entry_id,
        "balance_account_id": entry_row.balance_account_id,
        "source_type": entry_row.source_type,
        "source_ref_id": entry_row.source_ref_id,
        "amount": entry_row.amount,
        "currency": entry_row.currency,
        "occurred_at_utc": entry_row.occurred_at_utc.isoformat(),
        "created_at_utc": entry_row.created_at_utc.isoformat(),
        "balance_after": entry_row.balance_after,
        "meta": entry_row.meta,
    }


__all__ = ["api_create_ledger_router", "api_serialize_ledger_entry_row"]
