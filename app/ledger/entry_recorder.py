"""Entry recorder: validates, places and persists signed ledger entries."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from app.db import BalanceLedgerRepositoryPort, LedgerEntryInsertRequest, LedgerEntryRecord
from app.domain import LedgerSourceType, domain_parse_source_type

from .interfaces import AppendEntriesResult, LedgerEntryInput, LedgerEntryValidationError, TradeSettlementInput
from .locks import BalanceAccountLockRegistry
from .running_balance import RunningBalanceRecomputer

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def ledger_normalize_occurred_at(
    value: datetime | str | None,
    now_provider: Callable[[], datetime] | None = None,
) -> datetime:
    """Normalize an event time to an offset-aware UTC datetime.

    Args:
        value: Datetime, ISO-8601 text (a trailing `Z` is accepted), or None for now.
        now_provider: Optional clock used when value is None.

    Returns:
        datetime: UTC datetime.

    Raises:
        LedgerEntryValidationError: Raised when value cannot be parsed.
    """

    if value is None:
        current_time = now_provider() if now_provider is not None else datetime.now(timezone.utc)
        return ledger_normalize_occurred_at(current_time)

    if isinstance(value, str):
        normalized_text = value.strip()
        if not normalized_text:
            raise LedgerEntryValidationError("occurred_at must not be blank")
        if normalized_text.endswith(("Z", "z")):
            normalized_text = normalized_text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(normalized_text)
        except ValueError as error:
            raise LedgerEntryValidationError(f"occurred_at must be a valid ISO-8601 timestamp: {normalized_text}") from error

    if not isinstance(value, datetime):
        raise LedgerEntryValidationError("occurred_at must be a datetime, ISO-8601 string, or None")

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ledger_normalize_amount(value: Any, field_name: str = "amount") -> Decimal:
    """Normalize a monetary value to a finite Decimal.

    Args:
        value: Decimal, int, or decimal text.
        field_name: Field name for deterministic error text.

    Returns:
        Decimal: Finite decimal value.

    Raises:
        LedgerEntryValidationError: Raised for floats, booleans, malformed or non-finite values.
    """

    if isinstance(value, bool) or isinstance(value, float):
        raise LedgerEntryValidationError(f"{field_name} must be a Decimal, int, or decimal string")
    if isinstance(value, Decimal):
        parsed_value = value
    elif isinstance(value, (int, str)):
        try:
            parsed_value = Decimal(str(value).strip())
        except InvalidOperation as error:
            raise LedgerEntryValidationError(f"{field_name} must be a decimal value") from error
    else:
        raise LedgerEntryValidationError(f"{field_name} must be a Decimal, int, or decimal string")

    if not parsed_value.is_finite():
        raise LedgerEntryValidationError(f"{field_name} must be finite")
    return parsed_value


def _ledger_validate_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise LedgerEntryValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def _ledger_optional_text(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise LedgerEntryValidationError(f"{field_name} must be a string when provided")
    return value.strip() or None


class BalanceLedgerEntryRecorder:
    """Persist signed entries and recompute every affected account."""

    def __init__(
        self,
        repository: BalanceLedgerRepositoryPort,
        recomputer: RunningBalanceRecomputer,
        lock_registry: BalanceAccountLockRegistry,
        now_provider: Callable[[], datetime] | None = None,
    ):
        """Initialize entry recorder dependencies.

        Args:
            repository: DB-layer balance ledger repository.
            recomputer: Running-balance recomputer sharing the same lock registry.
            lock_registry: Per-account lock registry.
            now_provider: Optional clock used for entries without occurred_at.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when a dependency is missing.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if recomputer is None:
            raise ValueError("recomputer must not be None")
        if lock_registry is None:
            raise ValueError("lock_registry must not be None")
        self._repository = repository
        self._recomputer = recomputer
        self._lock_registry = lock_registry
        self._now_provider = now_provider

    def ledger_entries_append(self, entries: list[LedgerEntryInput]) -> AppendEntriesResult:
        """Validate, place and persist entries, then recompute each affected account.

        Entries are grouped by account. Inside each group they are inserted in
        `(occurred_at, source_ref_id)` order with a provisional `balance_after`
        continuing from the account's current ending balance. The whole batch is
        one insert; recompute then runs per account while its lock is still held.
        The insert re-checks that ending balance under the store lock, so a writer
        in another process that moved it first makes this call fail cleanly.

        Args:
            entries: Normalized entries, possibly spanning accounts.

        Returns:
            AppendEntriesResult: Inserted rows with final balances and recompute summaries.

        Raises:
            LedgerEntryValidationError: Raised when an input is invalid; nothing is written.
            LedgerConcurrentModificationError: Raised when the ending balance moved before the insert.
            LedgerPersistenceError: Raised when the batch insert or a recompute fails.
        """

        if entries is None:
            raise LedgerEntryValidationError("entries must not be None")
        if len(entries) == 0:
            return AppendEntriesResult(entries=[], recompute_results=[])

        normalized_entries = [self._ledger_validate_entry(entry) for entry in entries]
        grouped_entries: dict[str, list[LedgerEntryInput]] = {}
        for normalized_entry in normalized_entries:
            grouped_entries.setdefault(normalized_entry.balance_account_id, []).append(normalized_entry)

        with self._lock_registry.ledger_hold(grouped_entries.keys()):
            insert_requests: list[LedgerEntryInsertRequest] = []
            for balance_account_id, account_entries in grouped_entries.items():
                latest_entry = self._repository.db_ledger_entry_latest_for_account(balance_account_id)
                ending_balance = _ZERO if latest_entry is None else Decimal(latest_entry.balance_after)
                running_balance = ending_balance

                for account_entry in sorted(
                    account_entries,
                    key=lambda item: (item.occurred_at, item.source_ref_id or ""),
                ):
                    running_balance = running_balance + account_entry.amount
                    insert_requests.append(
                        LedgerEntryInsertRequest(
                            balance_account_id=balance_account_id,
                            source_type=account_entry.source_type.value,
                            source_ref_id=account_entry.source_ref_id,
                            amount=str(account_entry.amount),
                            currency=account_entry.currency,
                            occurred_at_utc=account_entry.occurred_at,
                            balance_after=str(running_balance),
                            meta=dict(account_entry.meta),
                            expected_ending_balance=str(ending_balance),
                        )
                    )

            inserted_rows = self._repository.db_ledger_entry_insert_many(insert_requests)
            logger.info(
                "appended %s ledger entries across %s accounts",
                len(inserted_rows),
                len(grouped_entries),
            )

            recompute_results = [
                self._recomputer.ledger_recompute(balance_account_id) for balance_account_id in grouped_entries
            ]
            final_rows = self._ledger_reload_rows(inserted_rows, list(grouped_entries))

        return AppendEntriesResult(entries=final_rows, recompute_results=recompute_results)

    def ledger_record_deposit(
        self,
        balance_account_id: str,
        amount: Decimal,
        occurred_at: datetime | str | None = None,
        currency: str = "USD",
        source_ref_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AppendEntriesResult:
        """Record a deposit as `+|amount|`."""

        return self.ledger_entries_append(
            [
                LedgerEntryInput(
                    balance_account_id=balance_account_id,
                    amount=abs(ledger_normalize_amount(amount)),
                    source_type=LedgerSourceType.DEPOSIT,
                    currency=currency,
                    occurred_at=occurred_at,
                    source_ref_id=source_ref_id,
                    meta=dict(meta or {}),
                )
            ]
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
        """Record a withdrawal as `-|amount|`."""

        return self.ledger_entries_append(
            [
                LedgerEntryInput(
                    balance_account_id=balance_account_id,
                    amount=-abs(ledger_normalize_amount(amount)),
                    source_type=LedgerSourceType.WITHDRAW,
                    currency=currency,
                    occurred_at=occurred_at,
                    source_ref_id=source_ref_id,
                    meta=dict(meta or {}),
                )
            ]
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
        """Record a transfer as two legs sharing one correlation key.

        Args:
            from_balance_account_id: Account debited with `TRANSFER_OUT`.
            to_balance_account_id: Account credited with `TRANSFER_IN`.
            amount: Transfer amount; only its magnitude is used.
            occurred_at: Transfer time shared by both legs.
            currency: Informational currency code.
            source_ref_id: Correlation key; a UUID is generated when absent.
            meta: Opaque payload copied to both legs.

        Returns:
            AppendEntriesResult: Both inserted legs and both recompute summaries.

        Raises:
            LedgerEntryValidationError: Raised when accounts match or inputs are invalid.
            LedgerPersistenceError: Raised when persistence fails.
        """

        normalized_from = _ledger_validate_text(from_balance_account_id, "from_balance_account_id")
        normalized_to = _ledger_validate_text(to_balance_account_id, "to_balance_account_id")
        if normalized_from == normalized_to:
            raise LedgerEntryValidationError("transfer source and destination accounts must differ")

        magnitude = abs(ledger_normalize_amount(amount))
        transfer_time = ledger_normalize_occurred_at(occurred_at, self._now_provider)
        transfer_ref_id = _ledger_optional_text(source_ref_id, "source_ref_id") or str(uuid.uuid4())
        shared_meta = dict(meta or {})

        return self.ledger_entries_append(
            [
                LedgerEntryInput(
                    balance_account_id=normalized_from,
                    amount=-magnitude,
                    source_type=LedgerSourceType.TRANSFER_OUT,
                    currency=currency,
                    occurred_at=transfer_time,
                    source_ref_id=transfer_ref_id,
                    meta=shared_meta,
                ),
                LedgerEntryInput(
                    balance_account_id=normalized_to,
                    amount=magnitude,
                    source_type=LedgerSourceType.TRANSFER_IN,
                    currency=currency,
                    occurred_at=transfer_time,
                    source_ref_id=transfer_ref_id,
                    meta=shared_meta,
                ),
            ]
        )

    def ledger_record_trade_settlement(self, settlement: TradeSettlementInput) -> AppendEntriesResult:
        """Record gross PnL plus commission and swap costs for one closed trade.

        Commission and swap are always booked as `-|value|`, so a positive swap
        credit is recorded as a cost. Zero values produce no entry.

        Args:
            settlement: Trade settlement values.

        Returns:
            AppendEntriesResult: Inserted entries and the recompute summary.

        Raises:
            LedgerEntryValidationError: Raised when inputs are invalid.
            LedgerPersistenceError: Raised when persistence fails.
        """

        if settlement is None:
            raise LedgerEntryValidationError("settlement must not be None")

        order_id = _ledger_validate_text(settlement.order_id, "order_id")
        settled_at = ledger_normalize_occurred_at(settlement.occurred_at, self._now_provider)
        gross_pnl = ledger_normalize_amount(settlement.gross_pnl, "gross_pnl")
        commission = ledger_normalize_amount(settlement.commission, "commission")
        swap = ledger_normalize_amount(settlement.swap, "swap")

        component_amounts = [(LedgerSourceType.TRADE_PNL, gross_pnl)]
        if commission != _ZERO:
            component_amounts.append((LedgerSourceType.COMMISSION, -abs(commission)))
        if swap != _ZERO:
            component_amounts.append((LedgerSourceType.SWAP, -abs(swap)))

        return self.ledger_entries_append(
            [
                LedgerEntryInput(
                    balance_account_id=settlement.balance_account_id,
                    amount=component_amount,
                    source_type=source_type,
                    currency=settlement.currency,
                    occurred_at=settled_at,
                    source_ref_id=order_id,
                    meta=dict(settlement.meta),
                )
                for source_type, component_amount in component_amounts
            ]
        )

    def _ledger_validate_entry(self, entry: LedgerEntryInput) -> LedgerEntryInput:
        """Validate one raw entry and return its normalized copy.

        Args:
            entry: Raw entry input.

        Returns:
            LedgerEntryInput: Entry with parsed source type, Decimal amount and UTC time.

        Raises:
            LedgerEntryValidationError: Raised when any field is invalid.
        """

        if entry is None:
            raise LedgerEntryValidationError("entry must not be None")

        try:
            source_type = domain_parse_source_type(entry.source_type)
        except ValueError as error:
            raise LedgerEntryValidationError(str(error)) from error

        if entry.meta is not None and not isinstance(entry.meta, dict):
            raise LedgerEntryValidationError("meta must be a mapping when provided")
        try:
            json.dumps(entry.meta or {})
        except (TypeError, ValueError) as error:
            raise LedgerEntryValidationError("meta must be JSON-serializable") from error

        return LedgerEntryInput(
            balance_account_id=_ledger_validate_text(entry.balance_account_id, "balance_account_id"),
            amount=ledger_normalize_amount(entry.amount),
            source_type=source_type,
            currency=_ledger_validate_text(entry.currency, "currency").upper(),
            occurred_at=ledger_normalize_occurred_at(entry.occurred_at, self._now_provider),
            source_ref_id=_ledger_optional_text(entry.source_ref_id, "source_ref_id"),
            meta=dict(entry.meta or {}),
        )

    def _ledger_reload_rows(
        self,
        inserted_rows: list[LedgerEntryRecord],
        balance_account_ids: list[str],
    ) -> list[LedgerEntryRecord]:
        """Re-read inserted rows so returned balances reflect the recompute."""

        inserted_ids = {row.ledger_entry_id for row in inserted_rows}
        refreshed_by_id = {
            row.ledger_entry_id: row
            for balance_account_id in balance_account_ids
            for row in self._repository.db_ledger_entry_list_for_account(balance_account_id)
            if row.ledger_entry_id in inserted_ids
        }
        return [refreshed_by_id.get(row.ledger_entry_id, row) for row in inserted_rows]


__all__ = ["BalanceLedgerEntryRecorder", "ledger_normalize_amount", "ledger_normalize_occurred_at"]
