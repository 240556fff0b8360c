"""Tests for the in-memory ledger and its nested snapshots."""

import pytest

from create3.storage.ledger import InsufficientBalance, Ledger

A = b"\x0a" * 20
B = b"\x0b" * 20


class TestAccounts:
    def test_defaults(self):
        ledger = Ledger()
        assert ledger.get_nonce(A) == 0
        assert ledger.get_balance(A) == 0
        assert ledger.get_code(A) == b""
        assert not ledger.account_exists(A)
        assert ledger.get_account(A) is None

    def test_writes_create_account(self):
        ledger = Ledger()
        ledger.set_balance(A, 5)
        assert ledger.account_exists(A)
        assert ledger.get_account(A).balance == 5

    def test_increment_nonce(self):
        ledger = Ledger()
        assert ledger.increment_nonce(A) == 1
        assert ledger.increment_nonce(A) == 2
        assert ledger.get_nonce(A) == 2

    def test_occupied_by_nonce_or_code(self):
        ledger = Ledger()
        assert not ledger.is_occupied(A)
        ledger.set_balance(A, 1)
        assert not ledger.is_occupied(A)
        ledger.set_nonce(A, 1)
        assert ledger.is_occupied(A)
        ledger.set_code(B, b"\x00")
        assert ledger.is_occupied(B)

    def test_sub_balance_insufficient(self):
        ledger = Ledger()
        ledger.set_balance(A, 10)
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.sub_balance(A, 11)
        assert exc_info.value.amount == 11
        assert ledger.get_balance(A) == 10

    def test_negative_values_rejected(self):
        ledger = Ledger()
        with pytest.raises(ValueError):
            ledger.set_nonce(A, -1)
        with pytest.raises(ValueError):
            ledger.set_balance(A, -1)

    def test_storage_zero_clears_slot(self):
        ledger = Ledger()
        ledger.set_storage(A, 1, 99)
        assert ledger.get_storage(A, 1) == 99
        ledger.set_storage(A, 1, 0)
        assert ledger.get_storage(A, 1) == 0


class TestSnapshots:
    def test_rollback_discards(self):
        ledger = Ledger()
        ledger.set_balance(A, 1)
        snap = ledger.snapshot()
        ledger.set_balance(A, 2)
        ledger.set_code(B, b"\x01")
        ledger.rollback(snap)
        assert ledger.get_balance(A) == 1
        assert not ledger.account_exists(B)
        assert ledger.depth == 0

    def test_commit_keeps(self):
        ledger = Ledger()
        snap = ledger.snapshot()
        ledger.set_nonce(A, 3)
        ledger.commit(snap)
        assert ledger.get_nonce(A) == 3
        assert ledger.depth == 0

    def test_inner_rollback_keeps_outer_writes(self):
        ledger = Ledger()
        outer = ledger.snapshot()
        ledger.set_nonce(A, 1)
        inner = ledger.snapshot()
        ledger.set_nonce(A, 2)
        ledger.set_code(B, b"\xfe")
        ledger.rollback(inner)
        assert ledger.get_nonce(A) == 1
        assert ledger.get_code(B) == b""
        ledger.commit(outer)
        assert ledger.get_nonce(A) == 1

    def test_outer_rollback_discards_committed_inner(self):
        ledger = Ledger()
        outer = ledger.snapshot()
        inner = ledger.snapshot()
        ledger.set_code(B, b"\x01\x02")
        ledger.commit(inner)
        assert ledger.depth == 1
        ledger.rollback(outer)
        assert ledger.get_code(B) == b""

    def test_rollback_of_outer_closes_inner(self):
        ledger = Ledger()
        outer = ledger.snapshot()
        ledger.snapshot()
        ledger.rollback(outer)
        assert ledger.depth == 0

    def test_storage_is_snapshotted(self):
        ledger = Ledger()
        snap = ledger.snapshot()
        ledger.set_storage(A, 0, 7)
        ledger.rollback(snap)
        assert ledger.get_storage(A, 0) == 0

    def test_unknown_snapshot(self):
        ledger = Ledger()
        with pytest.raises(ValueError):
            ledger.rollback(0)
        snap = ledger.snapshot()
        ledger.commit(snap)
        with pytest.raises(ValueError):
            ledger.commit(snap)
