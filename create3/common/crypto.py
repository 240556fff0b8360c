"""
Cryptographic utilities.

- keccak256 hashing
- secp256k1 key -> address derivation for caller identities
"""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak_mod
from coincurve import PrivateKey


def keccak256(data: bytes) -> bytes:
    """Compute Keccak-256 hash (NOT SHA3-256)."""
    h = _keccak_mod.new(digest_bits=256)
    h.update(data)
    return h.digest()


def pubkey_to_address(pubkey: bytes) -> bytes:
    """Derive an account address from an uncompressed public key.

    Takes 65-byte uncompressed key (0x04 || x || y) or 64-byte raw (x || y).
    Returns 20-byte address.
    """
    if len(pubkey) == 65:
        pubkey = pubkey[1:]  # strip 0x04 prefix
    if len(pubkey) != 64:
        raise ValueError(f"Expected 64-byte public key, got {len(pubkey)}")
    return keccak256(pubkey)[12:]


def private_key_to_address(private_key: bytes) -> bytes:
    """Derive an account address from a 32-byte private key."""
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    pk = PrivateKey(private_key)
    return pubkey_to_address(pk.public_key.format(compressed=False))
