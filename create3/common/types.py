"""
Core types: Account and address helpers.

Addresses are raw 20-byte values everywhere; 256-bit stack words are
converted at the VM boundary with to_address() / address_to_word().
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from eth_utils import to_checksum_address

from create3.common.crypto import keccak256


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ADDRESS_SIZE = 20
SALT_SIZE = 32
WORD_SIZE = 32

ZERO_ADDRESS = b"\x00" * ADDRESS_SIZE
EMPTY_CODE_HASH = keccak256(b"")


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Account:
    nonce: int = 0
    balance: int = 0
    code: bytes = b""

    @property
    def code_hash(self) -> bytes:
        return keccak256(self.code)

    @property
    def is_occupied(self) -> bool:
        """True if a creation at this address must be rejected (EIP-684)."""
        return self.nonce != 0 or len(self.code) > 0

    @property
    def is_empty(self) -> bool:
        return self.nonce == 0 and self.balance == 0 and not self.code

    def with_changes(self, **changes) -> Account:
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Address helpers
# ---------------------------------------------------------------------------

def validate_address(address: bytes, name: str = "address") -> bytes:
    if not isinstance(address, (bytes, bytearray)):
        raise TypeError(f"{name} must be bytes, got {type(address).__name__}")
    if len(address) != ADDRESS_SIZE:
        raise ValueError(f"{name} must be {ADDRESS_SIZE} bytes, got {len(address)}")
    return bytes(address)


def validate_salt(salt: bytes) -> bytes:
    if not isinstance(salt, (bytes, bytearray)):
        raise TypeError(f"salt must be bytes, got {type(salt).__name__}")
    if len(salt) != SALT_SIZE:
        raise ValueError(f"Salt must be {SALT_SIZE} bytes, got {len(salt)}")
    return bytes(salt)


def to_address(word: int) -> bytes:
    """Low 160 bits of a 256-bit word as a 20-byte address."""
    return (word & ((1 << 160) - 1)).to_bytes(ADDRESS_SIZE, "big")


def address_to_word(address: bytes) -> int:
    return int.from_bytes(address, "big")


def pad_address(address: bytes) -> bytes:
    """Left-zero-pad a 20-byte address to a 32-byte word."""
    return validate_address(address).rjust(WORD_SIZE, b"\x00")


def format_address(address: bytes) -> str:
    """EIP-55 checksummed hex, for logs and reprs."""
    return to_checksum_address(address)
