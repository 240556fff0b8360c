"""
Deterministic address derivation.

Two creation schemes decide where new code lands:

- counter scheme (CREATE):
      address = keccak256(rlp([creator, counter]))[12:]
- hash scheme (CREATE2, EIP-1014):
      address = keccak256(0xff ++ creator ++ salt ++ code_hash)[12:]

The deployment protocol chains them: the factory places a relay with the
hash scheme at a salt that is namespaced by the caller, and the relay
creates the target with the counter scheme at its first counter value.
The target address therefore depends only on (salt, caller, factory).

Everything here is pure and can be evaluated before anything is deployed.
"""

from __future__ import annotations

from create3.common.crypto import keccak256
from create3.common.types import validate_address, validate_salt
from create3.relay import RELAY_CODE_HASH

# Counter value the relay creates its target at: accounts created by a
# creation start at counter 1 (EIP-161), and the relay creates exactly once.
RELAY_TARGET_COUNTER = 1

MAX_COUNTER = 0xFFFFFFFF


class OutOfRange(ValueError):
    """The counter is outside the supported 0 .. 2**32 - 1 range."""

    def __init__(self, counter: int):
        self.counter = counter
        super().__init__(f"Counter {counter} outside supported range 0..{MAX_COUNTER}")


# RLP of [creator, counter] for a 20-byte creator, indexed by the counter's
# width in bytes: (list header, counter header). Counters 1..0x7F are a single
# byte that is its own encoding and share the width-0 list header.
# fmt: off
_COUNTER_BUCKETS: tuple[tuple[bytes, bytes], ...] = (
    (b"\xd6\x94", b"\x80"),  # zero is the empty string
    (b"\xd7\x94", b"\x81"),
    (b"\xd8\x94", b"\x82"),
    (b"\xd9\x94", b"\x83"),
    (b"\xda\x94", b"\x84"),
)
# fmt: on
_SINGLE_BYTE_LIMIT = 0x7F


def encode_counter_preimage(creator: bytes, counter: int) -> bytes:
    """RLP encoding of [creator, counter] as hashed by the counter scheme."""
    creator = validate_address(creator, "creator")
    if counter < 0 or counter > MAX_COUNTER:
        raise OutOfRange(counter)
    if 0 < counter <= _SINGLE_BYTE_LIMIT:
        return _COUNTER_BUCKETS[0][0] + creator + bytes([counter])
    width = (counter.bit_length() + 7) // 8
    list_header, counter_header = _COUNTER_BUCKETS[width]
    return list_header + creator + counter_header + counter.to_bytes(width, "big")


def derive_counter_address(creator: bytes, counter: int) -> bytes:
    """Address of the contract `creator` makes when its counter is `counter`.

    Raises OutOfRange for counters at or beyond 2**32.
    """
    return keccak256(encode_counter_preimage(creator, counter))[12:]


def derive_hash_address(salt: bytes, creator: bytes, code_hash: bytes) -> bytes:
    """Address of a CREATE2 by `creator` with `salt` and init code hash `code_hash`."""
    salt = validate_salt(salt)
    creator = validate_address(creator, "creator")
    if len(code_hash) != 32:
        raise ValueError(f"Code hash must be 32 bytes, got {len(code_hash)}")
    return keccak256(b"\xff" + creator + salt + code_hash)[12:]


def namespace_salt(salt: bytes, caller: bytes) -> bytes:
    """Bind a caller-chosen salt to the caller: keccak256(salt ++ caller)."""
    return keccak256(validate_salt(salt) + validate_address(caller, "caller"))


def derive_relay_address(salt: bytes, caller: bytes, factory: bytes) -> bytes:
    """Where the factory places the relay for (caller, salt)."""
    return derive_hash_address(namespace_salt(salt, caller), factory, RELAY_CODE_HASH)


def derive_target_address(salt: bytes, caller: bytes, factory: bytes) -> bytes:
    """Where the caller's code lands when deployed through `factory` with `salt`."""
    relay = derive_relay_address(salt, caller, factory)
    return derive_counter_address(relay, RELAY_TARGET_COUNTER)


# The address a deployment will report, known before it happens.
predict_address = derive_target_address
