"""Tests for accounts and address helpers."""

import pytest

from create3.common.types import (
    EMPTY_CODE_HASH,
    Account,
    address_to_word,
    format_address,
    pad_address,
    to_address,
    validate_address,
    validate_salt,
)


class TestAccount:
    def test_defaults(self):
        account = Account()
        assert account.is_empty
        assert not account.is_occupied
        assert account.code_hash == EMPTY_CODE_HASH

    def test_balance_alone_does_not_occupy(self):
        assert not Account(balance=10).is_occupied

    @pytest.mark.parametrize("account", [Account(nonce=1), Account(code=b"\x00")])
    def test_occupied(self, account):
        assert account.is_occupied

    def test_with_changes(self):
        account = Account(nonce=1)
        changed = account.with_changes(balance=5)
        assert changed == Account(nonce=1, balance=5)
        assert account.balance == 0


class TestAddressHelpers:
    def test_word_roundtrip_truncates_high_bits(self):
        assert to_address((1 << 200) | 0xAB) == bytes(19) + b"\xab"
        assert address_to_word(b"\x00" * 19 + b"\x01") == 1

    def test_pad_address(self):
        assert pad_address(b"\xff" * 20) == bytes(12) + b"\xff" * 20

    def test_validate_address(self):
        assert validate_address(bytearray(20)) == bytes(20)
        with pytest.raises(ValueError):
            validate_address(bytes(21))
        with pytest.raises(TypeError):
            validate_address("0x" + "00" * 20)

    def test_validate_salt(self):
        with pytest.raises(ValueError):
            validate_salt(bytes(33))
        with pytest.raises(TypeError):
            validate_salt(0)

    def test_format_address(self):
        address = bytes.fromhex("7e5f4552091a69125d5dfcb7b8c2659029395bdf")
        assert format_address(address) == "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
