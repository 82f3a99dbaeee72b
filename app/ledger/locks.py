"""Per-account lock registry serializing append and recompute work."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager


class BalanceAccountLockRegistry:
    """Hand out one re-entrant lock per balance account.

    Locks for several accounts are always taken in sorted account order so
    two callers touching overlapping account sets cannot deadlock.

    Locks are kept for the life of the registry, one per account ever seen.
    The process touches a bounded set of accounts, so entries are never evicted.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def ledger_lock_for(self, balance_account_id: str) -> threading.RLock:
        """Return the lock owned by one account, creating it on first use.

        Args:
            balance_account_id: Balance account identifier.

        Returns:
            threading.RLock: Account-scoped re-entrant lock.

        Raises:
            ValueError: Raised when account id is blank.
        """

        if not isinstance(balance_account_id, str) or not balance_account_id.strip():
            raise ValueError("balance_account_id must be a non-empty string")

        with self._registry_lock:
            account_lock = self._locks.get(balance_account_id)
            if account_lock is None:
                account_lock = threading.RLock()
                self._locks[balance_account_id] = account_lock
            return account_lock

    @contextmanager
    def ledger_hold(self, balance_account_ids: Iterable[str]) -> Iterator[None]:
        """Hold the locks of every given account for the duration of the block.

        Args:
            balance_account_ids: Accounts to lock; duplicates are ignored.

        Returns:
            Iterator[None]: Context manager body.

        Raises:
            ValueError: Raised when an account id is blank.
        """

        with ExitStack() as stack:
            for balance_account_id in sorted(set(balance_account_ids)):
                stack.enter_context(self.ledger_lock_for(balance_account_id))
            yield


__all__ = ["BalanceAccountLockRegistry"]
