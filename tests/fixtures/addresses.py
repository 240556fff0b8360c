"""Standard test accounts.

Caller addresses are derived from well-known private keys so they are
real secp256k1 accounts, not arbitrary byte strings.
"""

from create3.common.crypto import private_key_to_address

ALICE_PRIVATE_KEY = (1).to_bytes(32, "big")
ALICE_ADDRESS = private_key_to_address(ALICE_PRIVATE_KEY)

BOB_PRIVATE_KEY = (2).to_bytes(32, "big")
BOB_ADDRESS = private_key_to_address(BOB_PRIVATE_KEY)

OTHER_FACTORY_ADDRESS = bytes.fromhex("00" * 19 + "f1")

ZERO_SALT = bytes(32)
SALT_1 = bytes(31) + b"\x01"
SALT_2 = bytes(31) + b"\x02"
