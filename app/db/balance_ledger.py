"""Database service for balance ledger entries and daily balance snapshots."""
# pylint: disable=duplicate-code

from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from app.db.interfaces import (
    BalanceAfterUpdateRequest,
    BalanceLedgerRepositoryPort,
    DailySnapshotRecord,
    DailySnapshotUpsertRequest,
    LedgerAccountVersion,
    LedgerConcurrentModificationError,
    LedgerEntryInsertRequest,
    LedgerEntryRecord,
    LedgerPersistenceError,
)
from app.domain import LedgerSourceType, domain_parse_source_type

logger = logging.getLogger(__name__)


class SQLAlchemyBalanceLedgerService(BalanceLedgerRepositoryPort):
    """SQLAlchemy implementation for balance ledger and snapshot DB operations."""

    _ALLOWED_SORT_DIRECTIONS = {"asc", "desc"}

    _ENTRY_SELECT_COLUMNS = (
        "SELECT "
        "ledger_entry_id, balance_account_id, source_type, source_ref_id, amount, currency, "
        "occurred_at_utc, created_at_utc, balance_after, meta "
        "FROM balance_ledger_entry "
    )

    _ENTRY_RETURNING_COLUMNS = (
        "RETURNING "
        "ledger_entry_id, balance_account_id, source_type, source_ref_id, amount, currency, "
        "occurred_at_utc, created_at_utc, balance_after, meta"
    )

    _ENTRY_CANONICAL_ORDER_ASC = "ORDER BY occurred_at_utc asc, created_at_utc asc, ledger_entry_id asc"
    _ENTRY_CANONICAL_ORDER_DESC = "ORDER BY occurred_at_utc desc, created_at_utc desc, ledger_entry_id desc"

    _ENTRY_LIST_QUERY_BY_SORT = {
        "asc": _ENTRY_SELECT_COLUMNS
        + "WHERE balance_account_id = :balance_account_id "
        + _ENTRY_CANONICAL_ORDER_ASC
        + " LIMIT :limit OFFSET :offset",
        "desc": _ENTRY_SELECT_COLUMNS
        + "WHERE balance_account_id = :balance_account_id "
        + _ENTRY_CANONICAL_ORDER_DESC
        + " LIMIT :limit OFFSET :offset",
    }

    _ACCOUNT_VERSION_QUERY = (
        "SELECT count(*) AS entry_count, max(ledger_entry_id) AS max_ledger_entry_id "
        "FROM balance_ledger_entry "
        "WHERE balance_account_id = :balance_account_id"
    )

    _SNAPSHOT_SELECT_COLUMNS = (
        "SELECT "
        "balance_snapshot_daily_id, balance_account_id, snapshot_date, opening_balance, closing_balance, net_change, "
        "deposit_amount, withdraw_amount, transfer_in_amount, transfer_out_amount, trading_net_result, "
        "adjustment_amount, created_at_utc, updated_at_utc "
        "FROM balance_snapshot_daily "
    )

    _SNAPSHOT_LIST_QUERY_BY_SORT = {
        "asc": _SNAPSHOT_SELECT_COLUMNS
        + "WHERE balance_account_id = :balance_account_id "
        + "AND (CAST(:snapshot_date_from AS date) IS NULL OR snapshot_date >= CAST(:snapshot_date_from AS date)) "
        + "AND (CAST(:snapshot_date_to AS date) IS NULL OR snapshot_date <= CAST(:snapshot_date_to AS date)) "
        + "ORDER BY snapshot_date asc LIMIT :limit OFFSET :offset",
        "desc": _SNAPSHOT_SELECT_COLUMNS
        + "WHERE balance_account_id = :balance_account_id "
        + "AND (CAST(:snapshot_date_from AS date) IS NULL OR snapshot_date >= CAST(:snapshot_date_from AS date)) "
        + "AND (CAST(:snapshot_date_to AS date) IS NULL OR snapshot_date <= CAST(:snapshot_date_to AS date)) "
        + "ORDER BY snapshot_date desc LIMIT :limit OFFSET :offset",
    }

    def __init__(self, engine: Engine):
        """Initialize balance ledger database service.

        Args:
            engine: SQLAlchemy engine used for persistence and reads.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when engine is invalid.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_ledger_entry_insert_many(self, requests: list[LedgerEntryInsertRequest]) -> list[LedgerEntryRecord]:
        """Insert ledger entries in one transaction and return inserted rows.

        Args:
            requests: Entry insert requests in insertion order.

        Returns:
            list[LedgerEntryRecord]: Inserted rows in request order.

        Requests carrying `expected_ending_balance` take the account advisory lock
        inside the insert transaction and re-read the ending balance, so two
        writers seeded from the same balance cannot both land.

        Raises:
            ValueError: Raised when request values are invalid.
            LedgerConcurrentModificationError: Raised when an account ending balance moved since it was read.
            LedgerPersistenceError: Raised when the batch is rejected; nothing is written.
        """

        if requests is None:
            raise ValueError("requests must not be None")
        if len(requests) == 0:
            return []

        normalized_requests = [self._db_ledger_validate_insert_request(request) for request in requests]
        expected_ending_balances: dict[str, str] = {}
        for request, normalized_request in zip(requests, normalized_requests):
            if request.expected_ending_balance is not None:
                expected_ending_balances.setdefault(
                    normalized_request["balance_account_id"],
                    self._db_ledger_validate_decimal_text(
                        request.expected_ending_balance,
                        "request.expected_ending_balance",
                    ),
                )

        inserted_rows = []
        try:
            with self._engine.begin() as connection:
                for balance_account_id in sorted(expected_ending_balances):
                    self._db_ledger_check_ending_balance(
                        connection,
                        balance_account_id,
                        expected_ending_balances[balance_account_id],
                    )
                for normalized_request in normalized_requests:
                    inserted_row = connection.execute(
                        text(
                            "INSERT INTO balance_ledger_entry ("
                            "balance_account_id, source_type, source_ref_id, amount, currency, "
                            "occurred_at_utc, balance_after, meta"
                            ") VALUES ("
                            ":balance_account_id, :source_type, :source_ref_id, CAST(:amount AS numeric), :currency, "
                            "CAST(:occurred_at_utc AS timestamptz), CAST(:balance_after AS numeric), "
                            "CAST(:meta AS jsonb)"
                            ") "
                            + self._ENTRY_RETURNING_COLUMNS
                        ),
                        normalized_request,
                    ).mappings().one()
                    inserted_rows.append(inserted_row)
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger entry batch insert failed") from error

        return [self._db_ledger_map_entry_row(row) for row in inserted_rows]

    def db_ledger_entry_list_for_account(self, balance_account_id: str) -> list[LedgerEntryRecord]:
        """List every entry of one account in canonical order.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            list[LedgerEntryRecord]: Entries ordered by occurred_at, created_at, id.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        self._ENTRY_SELECT_COLUMNS
                        + "WHERE balance_account_id = :balance_account_id "
                        + self._ENTRY_CANONICAL_ORDER_ASC
                    ),
                    {"balance_account_id": normalized_account_id},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger entry read for recompute failed") from error

        return [self._db_ledger_map_entry_row(row) for row in rows]

    def db_ledger_entry_latest_for_account(self, balance_account_id: str) -> LedgerEntryRecord | None:
        """Return the chronologically-last entry of one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            LedgerEntryRecord | None: Last entry in canonical order, or None.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        self._ENTRY_SELECT_COLUMNS
                        + "WHERE balance_account_id = :balance_account_id "
                        + self._ENTRY_CANONICAL_ORDER_DESC
                        + " LIMIT 1"
                    ),
                    {"balance_account_id": normalized_account_id},
                ).mappings().first()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger ending balance read failed") from error

        return None if row is None else self._db_ledger_map_entry_row(row)

    def db_ledger_entry_latest_before(self, balance_account_id: str, before_utc: datetime) -> LedgerEntryRecord | None:
        """Return the most recent entry strictly before a timestamp.

        Args:
            balance_account_id: Balance account identifier.
            before_utc: Exclusive upper bound on occurred_at.

        Returns:
            LedgerEntryRecord | None: Matching entry, or None.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        normalized_before = self._db_ledger_validate_aware_datetime(before_utc, "before_utc")

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        self._ENTRY_SELECT_COLUMNS
                        + "WHERE balance_account_id = :balance_account_id "
                        + "AND occurred_at_utc < CAST(:before_utc AS timestamptz) "
                        + self._ENTRY_CANONICAL_ORDER_DESC
                        + " LIMIT 1"
                    ),
                    {"balance_account_id": normalized_account_id, "before_utc": normalized_before},
                ).mappings().first()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger opening balance read failed") from error

        return None if row is None else self._db_ledger_map_entry_row(row)

    def db_ledger_entry_list_in_window(
        self,
        balance_account_id: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[LedgerEntryRecord]:
        """List entries with occurred_at in `[start_utc, end_utc)` in canonical order.

        Args:
            balance_account_id: Balance account identifier.
            start_utc: Inclusive window start.
            end_utc: Exclusive window end.

        Returns:
            list[LedgerEntryRecord]: In-window entries.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        normalized_start = self._db_ledger_validate_aware_datetime(start_utc, "start_utc")
        normalized_end = self._db_ledger_validate_aware_datetime(end_utc, "end_utc")
        if end_utc <= start_utc:
            raise ValueError("end_utc must be later than start_utc")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        self._ENTRY_SELECT_COLUMNS
                        + "WHERE balance_account_id = :balance_account_id "
                        + "AND occurred_at_utc >= CAST(:start_utc AS timestamptz) "
                        + "AND occurred_at_utc < CAST(:end_utc AS timestamptz) "
                        + self._ENTRY_CANONICAL_ORDER_ASC
                    ),
                    {
                        "balance_account_id": normalized_account_id,
                        "start_utc": normalized_start,
                        "end_utc": normalized_end,
                    },
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger entry read for snapshot failed") from error

        return [self._db_ledger_map_entry_row(row) for row in rows]

    def db_ledger_account_version(self, balance_account_id: str) -> LedgerAccountVersion:
        """Read the entry-set fingerprint for one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            LedgerAccountVersion: Entry count and maximum entry id.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(self._ACCOUNT_VERSION_QUERY),
                    {"balance_account_id": normalized_account_id},
                ).mappings().one()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger account version read failed") from error

        return self._db_ledger_map_version_row(row)

    def db_ledger_balance_after_update_many(
        self,
        balance_account_id: str,
        updates: list[BalanceAfterUpdateRequest],
        expected_version: LedgerAccountVersion,
    ) -> int:
        """Rewrite `balance_after` values under an account-scoped advisory lock.

        The lock and the fingerprint check run inside the same transaction as the
        row updates, so a stale recompute pass writes nothing.

        Args:
            balance_account_id: Balance account identifier.
            updates: Per-entry rewrites.
            expected_version: Fingerprint read before computing the rewrites.

        Returns:
            int: Number of rows updated.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerConcurrentModificationError: Raised when the account changed since the read.
            LedgerPersistenceError: Raised when the rewrite fails; nothing is written.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        if updates is None:
            raise ValueError("updates must not be None")
        if expected_version is None:
            raise ValueError("expected_version must not be None")
        if len(updates) == 0:
            return 0

        normalized_updates = [
            {
                "balance_account_id": normalized_account_id,
                "ledger_entry_id": self._db_ledger_validate_entry_id(update.ledger_entry_id),
                "balance_after": self._db_ledger_validate_decimal_text(update.balance_after, "update.balance_after"),
            }
            for update in updates
        ]
        advisory_key_1, advisory_key_2 = self._db_ledger_build_advisory_lock_keys(normalized_account_id)

        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text("SELECT pg_advisory_xact_lock(:key_1, :key_2)"),
                    {"key_1": advisory_key_1, "key_2": advisory_key_2},
                )
                current_version = self._db_ledger_map_version_row(
                    connection.execute(
                        text(self._ACCOUNT_VERSION_QUERY),
                        {"balance_account_id": normalized_account_id},
                    ).mappings().one()
                )
                if current_version != expected_version:
                    raise LedgerConcurrentModificationError(
                        f"ledger entries changed during recompute for balance_account_id={normalized_account_id}"
                    )

                connection.execute(
                    text(
                        "UPDATE balance_ledger_entry "
                        "SET balance_after = CAST(:balance_after AS numeric) "
                        "WHERE ledger_entry_id = :ledger_entry_id AND balance_account_id = :balance_account_id"
                    ),
                    normalized_updates,
                )
        except SQLAlchemyError as error:
            raise LedgerPersistenceError(
                f"balance_after rewrite failed for balance_account_id={normalized_account_id}"
            ) from error

        logger.debug("rewrote balance_after for %s entries of %s", len(normalized_updates), normalized_account_id)
        return len(normalized_updates)

    def db_ledger_source_ref_id_list_existing(self, source_type: str, source_ref_ids: list[str]) -> set[str]:
        """Return which correlation keys already exist for one source type.

        Args:
            source_type: Closed-set source type tag.
            source_ref_ids: Candidate correlation keys.

        Returns:
            set[str]: Keys already present in the ledger.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_source_type = self._db_ledger_validate_source_type(source_type)
        if source_ref_ids is None:
            raise ValueError("source_ref_ids must not be None")
        normalized_ref_ids = [
            self._db_ledger_validate_non_empty_text(source_ref_id, "source_ref_id") for source_ref_id in source_ref_ids
        ]
        if not normalized_ref_ids:
            return set()

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        "SELECT DISTINCT source_ref_id "
                        "FROM balance_ledger_entry "
                        "WHERE source_type = :source_type "
                        "AND source_ref_id = ANY(CAST(:source_ref_ids AS text[]))"
                    ),
                    {"source_type": normalized_source_type, "source_ref_ids": normalized_ref_ids},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger source reference lookup failed") from error

        return {str(row["source_ref_id"]) for row in rows}

    def db_ledger_transfer_leg_list(self, occurred_from_utc: datetime | None = None) -> list[LedgerEntryRecord]:
        """List transfer legs ordered by correlation key and canonical order.

        Args:
            occurred_from_utc: Optional inclusive lower bound on occurred_at.

        Returns:
            list[LedgerEntryRecord]: TRANSFER_IN and TRANSFER_OUT entries.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_from = None
        if occurred_from_utc is not None:
            normalized_from = self._db_ledger_validate_aware_datetime(occurred_from_utc, "occurred_from_utc")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        self._ENTRY_SELECT_COLUMNS
                        + "WHERE source_type IN (:transfer_in, :transfer_out) "
                        + "AND (CAST(:occurred_from_utc AS timestamptz) IS NULL "
                        + "OR occurred_at_utc >= CAST(:occurred_from_utc AS timestamptz)) "
                        + "ORDER BY source_ref_id asc NULLS LAST, occurred_at_utc asc, created_at_utc asc, "
                        + "ledger_entry_id asc"
                    ),
                    {
                        "transfer_in": LedgerSourceType.TRANSFER_IN.value,
                        "transfer_out": LedgerSourceType.TRANSFER_OUT.value,
                        "occurred_from_utc": normalized_from,
                    },
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger transfer leg read failed") from error

        return [self._db_ledger_map_entry_row(row) for row in rows]

    def db_ledger_entry_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
    ) -> list[LedgerEntryRecord]:
        """List one page of account entries in canonical or reversed order.

        Args:
            balance_account_id: Balance account identifier.
            limit: Maximum row count.
            offset: Number of rows to skip.
            sort_dir: `asc` or `desc`.

        Returns:
            list[LedgerEntryRecord]: Page of entries.

        Raises:
            ValueError: Raised when pagination arguments are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        normalized_sort_dir = self._db_ledger_validate_pagination(limit, offset, sort_dir)

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(self._ENTRY_LIST_QUERY_BY_SORT[normalized_sort_dir]),
                    {"balance_account_id": normalized_account_id, "limit": limit, "offset": offset},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("ledger entry list failed") from error

        return [self._db_ledger_map_entry_row(row) for row in rows]

    def db_daily_snapshot_upsert(self, request: DailySnapshotUpsertRequest) -> None:
        """UPSERT one daily snapshot keyed by account and date.

        Args:
            request: Snapshot upsert request.

        Returns:
            None: Persistence is applied as side effect.

        Raises:
            ValueError: Raised when request values are invalid.
            LedgerPersistenceError: Raised when persistence fails.
        """

        normalized_request = self._db_ledger_validate_snapshot_upsert_request(request)

        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO balance_snapshot_daily ("
                        "balance_account_id, snapshot_date, opening_balance, closing_balance, net_change, "
                        "deposit_amount, withdraw_amount, transfer_in_amount, transfer_out_amount, "
                        "trading_net_result, adjustment_amount"
                        ") VALUES ("
                        ":balance_account_id, CAST(:snapshot_date AS date), CAST(:opening_balance AS numeric), "
                        "CAST(:closing_balance AS numeric), CAST(:net_change AS numeric), "
                        "CAST(:deposit_amount AS numeric), CAST(:withdraw_amount AS numeric), "
                        "CAST(:transfer_in_amount AS numeric), CAST(:transfer_out_amount AS numeric), "
                        "CAST(:trading_net_result AS numeric), CAST(:adjustment_amount AS numeric)"
                        ") ON CONFLICT ON CONSTRAINT uq_balance_snapshot_daily_account_date DO UPDATE SET "
                        "opening_balance = EXCLUDED.opening_balance, "
                        "closing_balance = EXCLUDED.closing_balance, "
                        "net_change = EXCLUDED.net_change, "
                        "deposit_amount = EXCLUDED.deposit_amount, "
                        "withdraw_amount = EXCLUDED.withdraw_amount, "
                        "transfer_in_amount = EXCLUDED.transfer_in_amount, "
                        "transfer_out_amount = EXCLUDED.transfer_out_amount, "
                        "trading_net_result = EXCLUDED.trading_net_result, "
                        "adjustment_amount = EXCLUDED.adjustment_amount, "
                        "updated_at_utc = now()"
                    ),
                    normalized_request,
                )
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("daily balance snapshot upsert failed") from error

    def db_daily_snapshot_list(
        self,
        balance_account_id: str,
        limit: int,
        offset: int,
        sort_dir: str,
        snapshot_date_from: str | None = None,
        snapshot_date_to: str | None = None,
    ) -> list[DailySnapshotRecord]:
        """List persisted daily snapshots for one account.

        Args:
            balance_account_id: Balance account identifier.
            limit: Maximum row count.
            offset: Number of rows to skip.
            sort_dir: `asc` or `desc` on snapshot date.
            snapshot_date_from: Optional inclusive lower date bound.
            snapshot_date_to: Optional inclusive upper date bound.

        Returns:
            list[DailySnapshotRecord]: Ordered snapshot rows.

        Raises:
            ValueError: Raised when input values are invalid.
            LedgerPersistenceError: Raised when database read fails.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        normalized_sort_dir = self._db_ledger_validate_pagination(limit, offset, sort_dir)
        normalized_date_from = self._db_ledger_validate_optional_date_text(snapshot_date_from, "snapshot_date_from")
        normalized_date_to = self._db_ledger_validate_optional_date_text(snapshot_date_to, "snapshot_date_to")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(self._SNAPSHOT_LIST_QUERY_BY_SORT[normalized_sort_dir]),
                    {
                        "balance_account_id": normalized_account_id,
                        "limit": limit,
                        "offset": offset,
                        "snapshot_date_from": normalized_date_from,
                        "snapshot_date_to": normalized_date_to,
                    },
                ).mappings().all()
        except SQLAlchemyError as error:
            raise LedgerPersistenceError("daily balance snapshot list failed") from error

        return [self._db_ledger_map_snapshot_row(row) for row in rows]

    def _db_ledger_check_ending_balance(
        self,
        connection,
        balance_account_id: str,
        expected_ending_balance: str,
    ) -> None:
        """Lock one account and verify its ending balance inside an open transaction.

        Args:
            connection: Transaction-bound SQLAlchemy connection.
            balance_account_id: Normalized balance account identifier.
            expected_ending_balance: Ending balance the caller seeded from.

        Raises:
            LedgerConcurrentModificationError: Raised when the ending balance differs.
        """

        advisory_key_1, advisory_key_2 = self._db_ledger_build_advisory_lock_keys(balance_account_id)
        connection.execute(
            text("SELECT pg_advisory_xact_lock(:key_1, :key_2)"),
            {"key_1": advisory_key_1, "key_2": advisory_key_2},
        )
        latest_row = connection.execute(
            text(
                "SELECT balance_after FROM balance_ledger_entry "
                "WHERE balance_account_id = :balance_account_id "
                + self._ENTRY_CANONICAL_ORDER_DESC
                + " LIMIT 1"
            ),
            {"balance_account_id": balance_account_id},
        ).mappings().first()
        current_ending_balance = Decimal("0") if latest_row is None else Decimal(str(latest_row["balance_after"]))
        if current_ending_balance != Decimal(expected_ending_balance):
            raise LedgerConcurrentModificationError(
                f"ending balance changed before insert for balance_account_id={balance_account_id}"
            )

    def _db_ledger_validate_insert_request(self, request: LedgerEntryInsertRequest) -> dict[str, Any]:
        """Validate one entry insert request.

        Args:
            request: Entry insert request.

        Returns:
            dict[str, Any]: SQL-ready request payload.

        Raises:
            ValueError: Raised when request values are invalid.
        """

        if request is None:
            raise ValueError("request must not be None")
        try:
            meta_json = json.dumps(request.meta or {})
        except (TypeError, ValueError) as error:
            raise ValueError("request.meta must be JSON-serializable") from error

        return {
            "balance_account_id": self._db_ledger_validate_non_empty_text(
                request.balance_account_id,
                "request.balance_account_id",
            ),
            "source_type": self._db_ledger_validate_source_type(request.source_type),
            "source_ref_id": self._db_ledger_validate_optional_text(request.source_ref_id),
            "amount": self._db_ledger_validate_decimal_text(request.amount, "request.amount"),
            "currency": self._db_ledger_validate_non_empty_text(request.currency, "request.currency"),
            "occurred_at_utc": self._db_ledger_validate_aware_datetime(
                request.occurred_at_utc,
                "request.occurred_at_utc",
            ),
            "balance_after": self._db_ledger_validate_decimal_text(request.balance_after, "request.balance_after"),
            "meta": meta_json,
        }

    def _db_ledger_validate_snapshot_upsert_request(self, request: DailySnapshotUpsertRequest) -> dict[str, Any]:
        """Validate one daily snapshot upsert request.

        Args:
            request: Daily snapshot upsert request.

        Returns:
            dict[str, Any]: SQL-ready request payload.

        Raises:
            ValueError: Raised when request values are invalid.
        """

        if request is None:
            raise ValueError("request must not be None")

        return {
            "balance_account_id": self._db_ledger_validate_non_empty_text(
                request.balance_account_id,
                "request.balance_account_id",
            ),
            "snapshot_date": self._db_ledger_validate_date_text(request.snapshot_date, "request.snapshot_date"),
            "opening_balance": self._db_ledger_validate_decimal_text(request.opening_balance, "request.opening_balance"),
            "closing_balance": self._db_ledger_validate_decimal_text(request.closing_balance, "request.closing_balance"),
            "net_change": self._db_ledger_validate_decimal_text(request.net_change, "request.net_change"),
            "deposit_amount": self._db_ledger_validate_decimal_text(request.deposit_amount, "request.deposit_amount"),
            "withdraw_amount": self._db_ledger_validate_decimal_text(request.withdraw_amount, "request.withdraw_amount"),
            "transfer_in_amount": self._db_ledger_validate_decimal_text(
                request.transfer_in_amount,
                "request.transfer_in_amount",
            ),
            "transfer_out_amount": self._db_ledger_validate_decimal_text(
                request.transfer_out_amount,
                "request.transfer_out_amount",
            ),
            "trading_net_result": self._db_ledger_validate_decimal_text(
                request.trading_net_result,
                "request.trading_net_result",
            ),
            "adjustment_amount": self._db_ledger_validate_decimal_text(
                request.adjustment_amount,
                "request.adjustment_amount",
            ),
        }

    def _db_ledger_map_entry_row(self, row: Any) -> LedgerEntryRecord:
        """Map SQLAlchemy row to typed ledger entry record.

        Args:
            row: SQLAlchemy row mapping.

        Returns:
            LedgerEntryRecord: Typed ledger entry model.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        meta = row["meta"]
        if isinstance(meta, str):
            meta = json.loads(meta)

        return LedgerEntryRecord(
            ledger_entry_id=int(row["ledger_entry_id"]),
            balance_account_id=row["balance_account_id"],
            source_type=row["source_type"],
            source_ref_id=row["source_ref_id"],
            amount=str(row["amount"]),
            currency=row["currency"],
            occurred_at_utc=row["occurred_at_utc"],
            created_at_utc=row["created_at_utc"],
            balance_after=str(row["balance_after"]),
            meta=meta or {},
        )

    def _db_ledger_map_snapshot_row(self, row: Any) -> DailySnapshotRecord:
        """Map SQLAlchemy row to typed daily snapshot record.

        Args:
            row: SQLAlchemy row mapping.

        Returns:
            DailySnapshotRecord: Typed daily snapshot model.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return DailySnapshotRecord(
            balance_snapshot_daily_id=row["balance_snapshot_daily_id"],
            balance_account_id=row["balance_account_id"],
            snapshot_date=row["snapshot_date"],
            opening_balance=str(row["opening_balance"]),
            closing_balance=str(row["closing_balance"]),
            net_change=str(row["net_change"]),
            deposit_amount=str(row["deposit_amount"]),
            withdraw_amount=str(row["withdraw_amount"]),
            transfer_in_amount=str(row["transfer_in_amount"]),
            transfer_out_amount=str(row["transfer_out_amount"]),
            trading_net_result=str(row["trading_net_result"]),
            adjustment_amount=str(row["adjustment_amount"]),
            created_at_utc=row["created_at_utc"],
            updated_at_utc=row["updated_at_utc"],
        )

    def _db_ledger_map_version_row(self, row: Any) -> LedgerAccountVersion:
        """Map aggregate row to entry-set fingerprint.

        Args:
            row: SQLAlchemy row mapping with `entry_count` and `max_ledger_entry_id`.

        Returns:
            LedgerAccountVersion: Typed fingerprint.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        max_entry_id = row["max_ledger_entry_id"]
        return LedgerAccountVersion(
            entry_count=int(row["entry_count"]),
            max_ledger_entry_id=None if max_entry_id is None else int(max_entry_id),
        )

    def _db_ledger_build_advisory_lock_keys(self, balance_account_id: str) -> tuple[int, int]:
        """Create deterministic advisory lock keys for account-scoped rewrites.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            tuple[int, int]: Two signed int32 lock keys for PostgreSQL advisory lock.

        Raises:
            ValueError: Raised when balance_account_id is blank.
        """

        normalized_account_id = self._db_ledger_validate_non_empty_text(balance_account_id, "balance_account_id")
        digest = hashlib.sha256(f"balance_ledger:{normalized_account_id}".encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2

    def _db_ledger_validate_pagination(self, limit: int, offset: int, sort_dir: str) -> str:
        """Validate pagination arguments and return normalized sort direction.

        Args:
            limit: Maximum row count.
            offset: Number of rows to skip.
            sort_dir: Sort direction.

        Returns:
            str: Normalized sort direction.

        Raises:
            ValueError: Raised when values are invalid.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")
        normalized_sort_dir = self._db_ledger_validate_non_empty_text(sort_dir, "sort_dir").lower()
        if normalized_sort_dir not in self._ALLOWED_SORT_DIRECTIONS:
            raise ValueError(f"unsupported sort_dir={normalized_sort_dir}")
        return normalized_sort_dir

    def _db_ledger_validate_source_type(self, value: str) -> str:
        """Validate source type against the closed set.

        Args:
            value: Source type tag.

        Returns:
            str: Normalized source type tag.

        Raises:
            ValueError: Raised when source type is missing or unknown.
        """

        return domain_parse_source_type(value).value

    def _db_ledger_validate_entry_id(self, value: int) -> int:
        """Validate a ledger entry identifier.

        Args:
            value: Candidate identifier.

        Returns:
            int: Identifier value.

        Raises:
            ValueError: Raised when identifier is not a positive integer.
        """

        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError("ledger_entry_id must be a positive integer")
        return value

    def _db_ledger_validate_decimal_text(self, value: str, field_name: str) -> str:
        """Validate finite decimal text.

        Args:
            value: Decimal text value.
            field_name: Field name for deterministic error text.

        Returns:
            str: Normalized decimal text.

        Raises:
            ValueError: Raised when value is not a finite decimal.
        """

        normalized_value = self._db_ledger_validate_non_empty_text(value, field_name)
        try:
            parsed_value = Decimal(normalized_value)
        except InvalidOperation as error:
            raise ValueError(f"{field_name} must be a decimal string") from error
        if not parsed_value.is_finite():
            raise ValueError(f"{field_name} must be finite")
        return str(parsed_value)

    def _db_ledger_validate_aware_datetime(self, value: datetime, field_name: str) -> str:
        """Validate offset-aware datetime and render ISO-8601 text.

        Args:
            value: Candidate timestamp.
            field_name: Field name for deterministic error text.

        Returns:
            str: ISO-8601 timestamp text.

        Raises:
            ValueError: Raised when value is not an offset-aware datetime.
        """

        if not isinstance(value, datetime):
            raise ValueError(f"{field_name} must be a datetime")
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError(f"{field_name} must be offset-aware")
        return value.isoformat()

    def _db_ledger_validate_non_empty_text(self, value: str, field_name: str) -> str:
        """Validate required text and normalize surrounding whitespace.

        Args:
            value: Candidate text value.
            field_name: Field name for deterministic error text.

        Returns:
            str: Normalized text value.

        Raises:
            ValueError: Raised when value is invalid.
        """

        if not isinstance(value, str):
            raise ValueError(f"{field_name} must be a string")

        normalized_value = value.strip()
        if not normalized_value:
            raise ValueError(f"{field_name} must not be blank")

        return normalized_value

    def _db_ledger_validate_optional_text(self, value: str | None) -> str | None:
        """Validate optional text and normalize surrounding whitespace.

        Args:
            value: Optional text value.

        Returns:
            str | None: Normalized text value or None.

        Raises:
            ValueError: Raised when provided type is invalid.
        """

        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("optional text value must be a string when provided")

        normalized_value = value.strip()
        if not normalized_value:
            return None

        return normalized_value

    def _db_ledger_validate_date_text(self, value: str, field_name: str) -> str:
        """Validate YYYY-MM-DD date text input.

        Args:
            value: Date text input.
            field_name: Field name for deterministic error text.

        Returns:
            str: Normalized date text in YYYY-MM-DD format.

        Raises:
            ValueError: Raised when value is invalid.
        """

        normalized_value = self._db_ledger_validate_non_empty_text(value, field_name)
        try:
            parsed_date = date.fromisoformat(normalized_value)
        except ValueError as error:
            raise ValueError(f"{field_name} must be a valid YYYY-MM-DD date string") from error
        return parsed_date.isoformat()

    def _db_ledger_validate_optional_date_text(self, value: str | None, field_name: str) -> str | None:
        """Validate optional YYYY-MM-DD date text input.

        Args:
            value: Optional date text input.
            field_name: Field name for deterministic error text.

        Returns:
            str | None: Normalized date text or None.

        Raises:
            ValueError: Raised when value is invalid.
        """

        normalized_value = self._db_ledger_validate_optional_text(value)
        if normalized_value is None:
            return None

        return self._db_ledger_validate_date_text(normalized_value, field_name)


__all__ = ["SQLAlchemyBalanceLedgerService"]
