"""
In-memory ledger: the shared world state the VM and the factory act on.

Accounts are immutable records replaced on every write, so a snapshot is a
shallow copy of the account and storage maps. Snapshots nest: each CALL or
CREATE opens one, and closes it with commit() (keep writes) or rollback()
(discard writes, including those of inner scopes that already committed).
"""

from __future__ import annotations

import logging
from typing import Optional

from create3.common.types import Account


logger = logging.getLogger(__name__)


class InsufficientBalance(Exception):
    """Raised when a debit would take an account balance below zero."""

    def __init__(self, address: bytes, balance: int, amount: int):
        self.address = address
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient balance at 0x{address.hex()}: have {balance}, need {amount}"
        )


class Ledger:
    """Account state with nested snapshot scopes."""

    def __init__(self) -> None:
        self._accounts: dict[bytes, Account] = {}
        self._storage: dict[tuple[bytes, int], int] = {}
        self._snapshots: list[tuple[dict[bytes, Account], dict[tuple[bytes, int], int]]] = []

    # -----------------------------------------------------------------
    # Account state
    # -----------------------------------------------------------------

    def get_account(self, address: bytes) -> Optional[Account]:
        return self._accounts.get(address)

    def _account(self, address: bytes) -> Account:
        return self._accounts.get(address) or Account()

    def _put(self, address: bytes, account: Account) -> None:
        self._accounts[address] = account

    def account_exists(self, address: bytes) -> bool:
        return address in self._accounts

    def is_occupied(self, address: bytes) -> bool:
        return self._account(address).is_occupied

    def get_nonce(self, address: bytes) -> int:
        return self._account(address).nonce

    def set_nonce(self, address: bytes, nonce: int) -> None:
        if nonce < 0:
            raise ValueError(f"Nonce cannot be negative: {nonce}")
        self._put(address, self._account(address).with_changes(nonce=nonce))

    def increment_nonce(self, address: bytes) -> int:
        nonce = self.get_nonce(address) + 1
        self.set_nonce(address, nonce)
        return nonce

    def get_balance(self, address: bytes) -> int:
        return self._account(address).balance

    def set_balance(self, address: bytes, balance: int) -> None:
        if balance < 0:
            raise ValueError(f"Balance cannot be negative: {balance}")
        self._put(address, self._account(address).with_changes(balance=balance))

    def add_balance(self, address: bytes, amount: int) -> None:
        self.set_balance(address, self.get_balance(address) + amount)

    def sub_balance(self, address: bytes, amount: int) -> None:
        balance = self.get_balance(address)
        if amount > balance:
            raise InsufficientBalance(address, balance, amount)
        self.set_balance(address, balance - amount)

    def get_code(self, address: bytes) -> bytes:
        return self._account(address).code

    def set_code(self, address: bytes, code: bytes) -> None:
        self._put(address, self._account(address).with_changes(code=bytes(code)))

    def get_storage(self, address: bytes, key: int) -> int:
        return self._storage.get((address, key), 0)

    def set_storage(self, address: bytes, key: int, value: int) -> None:
        if value == 0:
            self._storage.pop((address, key), None)
        else:
            self._storage[(address, key)] = value

    # -----------------------------------------------------------------
    # Snapshots
    # -----------------------------------------------------------------

    @property
    def depth(self) -> int:
        """Number of open snapshot scopes."""
        return len(self._snapshots)

    def snapshot(self) -> int:
        self._snapshots.append((dict(self._accounts), dict(self._storage)))
        return len(self._snapshots) - 1

    def _check_snapshot(self, snap_id: int) -> None:
        if not 0 <= snap_id < len(self._snapshots):
            raise ValueError(f"Unknown snapshot id {snap_id} (depth {self.depth})")

    def rollback(self, snap_id: int) -> None:
        self._check_snapshot(snap_id)
        self._accounts, self._storage = self._snapshots[snap_id]
        del self._snapshots[snap_id:]
        logger.debug("Rolled back to snapshot %d", snap_id)

    def commit(self, snap_id: int) -> None:
        self._check_snapshot(snap_id)
        del self._snapshots[snap_id:]
