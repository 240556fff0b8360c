"""
Relay program.

The relay is a tiny contract the factory places at a salt-derived address.
Called with a payload and a value, it runs one CREATE with them and
returns the created address as a 32-byte word, or zero when the creation
failed. It has no REVERT and no branches: whatever the payload does, the
relay itself halts normally and only its return value tells the outcome.

Runtime code (14 bytes):

    pc  bytes  instruction      stack after
    00  36     CALLDATASIZE     [n]
    01  5f     PUSH0            [0, n]
    02  5f     PUSH0            [0, 0, n]
    03  37     CALLDATACOPY     []            mem[0:n] = calldata
    04  36     CALLDATASIZE     [n]
    05  5f     PUSH0            [0, n]
    06  34     CALLVALUE        [v, 0, n]
    07  f0     CREATE           [addr]        addr = 0 on failure
    08  5f     PUSH0            [0, addr]
    09  52     MSTORE           []            mem[0:32] = addr
    0a  6020   PUSH1 0x20       [32]
    0c  5f     PUSH0            [0, 32]
    0d  f3     RETURN                         return mem[0:32]

Init code (22 bytes) pushes the runtime, stores it right-aligned in the
first memory word and returns its last 14 bytes.
"""

from __future__ import annotations

from create3.common.crypto import keccak256
from create3.vm.opcodes import MNEMONICS, Op

RELAY_RUNTIME_CODE = bytes.fromhex("365f5f37365f34f05f5260205ff3")

RELAY_INIT_CODE = (
    bytes([Op.PUSH1 + len(RELAY_RUNTIME_CODE) - 1])
    + RELAY_RUNTIME_CODE
    + bytes([Op.PUSH0, Op.MSTORE])
    + bytes([Op.PUSH1, len(RELAY_RUNTIME_CODE)])
    + bytes([Op.PUSH1, 32 - len(RELAY_RUNTIME_CODE)])
    + bytes([Op.RETURN])
)

RELAY_CODE_HASH = keccak256(RELAY_INIT_CODE)


def disassemble(code: bytes) -> list[tuple[int, str, bytes]]:
    """List (pc, mnemonic, immediate) for each instruction in `code`.

    Bytes without an instruction are reported as INVALID. A PUSH running
    past the end of the code keeps only the bytes that are present.
    """
    listing = []
    pc = 0
    while pc < len(code):
        op = code[pc]
        name = MNEMONICS.get(op, "INVALID")
        width = op - Op.PUSH0 if Op.PUSH1 <= op <= Op.PUSH32 else 0
        listing.append((pc, name, code[pc + 1 : pc + 1 + width]))
        pc += 1 + width
    return listing
