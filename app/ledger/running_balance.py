"""Running-balance recompute for one balance account.

Entries are summed in canonical order `(occurred_at, created_at, ledger_entry_id)`.
A pass is anchored on the account's current ending balance, i.e. the stored
`balance_after` of the chronologically-last entry, so the rewritten history
always ends on the balance that was known before the pass ran.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from app.db import (
    BalanceAfterUpdateRequest,
    BalanceLedgerRepositoryPort,
    LedgerConcurrentModificationError,
    LedgerEntryRecord,
)

from .interfaces import RecomputeResult
from .locks import BalanceAccountLockRegistry

logger = logging.getLogger(__name__)


def ledger_sort_canonical(entries: list[LedgerEntryRecord]) -> list[LedgerEntryRecord]:
    """Return entries sorted by `(occurred_at, created_at, ledger_entry_id)`.

    Args:
        entries: Entries of one account in any order.

    Returns:
        list[LedgerEntryRecord]: New list in canonical order.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return sorted(
        entries,
        key=lambda entry: (entry.occurred_at_utc, entry.created_at_utc, entry.ledger_entry_id),
    )


def ledger_compute_running_balances(
    amounts: list[Decimal],
    anchor_balance: Decimal,
) -> tuple[Decimal, list[Decimal]]:
    """Compute anchored running balances for amounts in canonical order.

    Args:
        amounts: Signed amounts in canonical order.
        anchor_balance: Ending balance the last running balance must equal.

    Returns:
        tuple[Decimal, list[Decimal]]: Starting balance and one running balance per amount.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    total_delta = sum(amounts, Decimal("0"))
    starting_balance = anchor_balance - total_delta

    running_balance = starting_balance
    running_balances: list[Decimal] = []
    for amount in amounts:
        running_balance = running_balance + amount
        running_balances.append(running_balance)

    return starting_balance, running_balances


class RunningBalanceRecomputer:
    """Rewrite `balance_after` for every entry of one account."""

    def __init__(
        self,
        repository: BalanceLedgerRepositoryPort,
        lock_registry: BalanceAccountLockRegistry | None = None,
    ):
        """Initialize recompute dependencies.

        Args:
            repository: DB-layer balance ledger repository.
            lock_registry: Per-account lock registry shared with the entry recorder.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when repository is invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        self._repository = repository
        self._lock_registry = lock_registry or BalanceAccountLockRegistry()

    def ledger_recompute(self, balance_account_id: str) -> RecomputeResult:
        """Recompute running balances for one account.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            RecomputeResult: Pass summary; `updated_count` is the number of rows rewritten.

        Raises:
            ValueError: Raised when account id is blank.
            LedgerConcurrentModificationError: Raised when entries changed during the pass.
            RuntimeError: Raised when persistence fails.
        """

        if not isinstance(balance_account_id, str) or not balance_account_id.strip():
            raise ValueError("balance_account_id must be a non-empty string")
        normalized_account_id = balance_account_id.strip()

        with self._lock_registry.ledger_hold([normalized_account_id]):
            expected_version = self._repository.db_ledger_account_version(normalized_account_id)
            entries = ledger_sort_canonical(self._repository.db_ledger_entry_list_for_account(normalized_account_id))

            if not entries:
                return RecomputeResult(
                    balance_account_id=normalized_account_id,
                    entry_count=0,
                    updated_count=0,
                    anchor_balance=Decimal("0"),
                    starting_balance=Decimal("0"),
                )

            max_entry_id = max(entry.ledger_entry_id for entry in entries)
            if len(entries) != expected_version.entry_count or max_entry_id != expected_version.max_ledger_entry_id:
                raise LedgerConcurrentModificationError(
                    f"ledger entries changed during recompute for balance_account_id={normalized_account_id}"
                )

            anchor_balance = Decimal(entries[-1].balance_after)
            starting_balance, running_balances = ledger_compute_running_balances(
                [Decimal(entry.amount) for entry in entries],
                anchor_balance,
            )

            updates = [
                BalanceAfterUpdateRequest(ledger_entry_id=entry.ledger_entry_id, balance_after=str(running_balance))
                for entry, running_balance in zip(entries, running_balances)
                if Decimal(entry.balance_after) != running_balance
            ]
            updated_count = self._repository.db_ledger_balance_after_update_many(
                normalized_account_id,
                updates,
                expected_version,
            )

        logger.info(
            "recomputed %s: entries=%s rewritten=%s anchor=%s start=%s",
            normalized_account_id,
            len(entries),
            updated_count,
            anchor_balance,
            starting_balance,
        )
        return RecomputeResult(
            balance_account_id=normalized_account_id,
            entry_count=len(entries),
            updated_count=updated_count,
            anchor_balance=anchor_balance,
            starting_balance=starting_balance,
        )


__all__ = ["RunningBalanceRecomputer", "ledger_compute_running_balances", "ledger_sort_canonical"]
