"""
Gas schedule.

Flat per-opcode base costs plus the dynamic parts the deployment path
depends on: memory expansion, copying, hashing, creation, code deposit
and the 63/64 forwarding rule (EIP-150).
"""

from __future__ import annotations

G_ZERO = 0
G_JUMPDEST = 1
G_BASE = 2
G_VERY_LOW = 3
G_LOW = 5
G_MID = 8
G_HIGH = 10
G_EXP = 10
G_EXP_BYTE = 50
G_KECCAK256 = 30
G_KECCAK256_WORD = 6
G_COPY = 3
G_MEMORY = 3
G_ACCOUNT_ACCESS = 100
G_SLOAD = 100
G_SSET = 20000
G_SRESET = 2900
G_CREATE = 32000
G_CODEDEPOSIT = 200
G_INITCODE_WORD = 2         # EIP-3860
G_CALL = 100
G_CALLVALUE = 9000
G_CALLSTIPEND = 2300
G_NEW_ACCOUNT = 25000


def memory_word_size(byte_size: int) -> int:
    return (byte_size + 31) // 32


def _memory_total(words: int) -> int:
    return G_MEMORY * words + (words * words) // 512


def memory_cost(current_size: int, offset: int, length: int) -> int:
    """Extra gas to grow memory from current_size bytes to cover [offset, offset+length)."""
    if length == 0:
        return 0
    current = memory_word_size(current_size)
    needed = memory_word_size(offset + length)
    if needed <= current:
        return 0
    return _memory_total(needed) - _memory_total(current)


def copy_cost(length: int) -> int:
    return G_COPY * memory_word_size(length)


def exp_cost(exponent: int) -> int:
    return G_EXP + G_EXP_BYTE * ((exponent.bit_length() + 7) // 8)


def create_cost(init_code_size: int, hashed: bool) -> int:
    """Dynamic part of CREATE / CREATE2 (the base G_CREATE is charged by the table)."""
    cost = G_INITCODE_WORD * memory_word_size(init_code_size)
    if hashed:
        cost += G_KECCAK256_WORD * memory_word_size(init_code_size)
    return cost


def all_but_one_64th(gas: int) -> int:
    return gas - gas // 64


def call_gas(available: int, requested: int, has_value: bool, is_new_account: bool) -> tuple[int, int]:
    """Returns (cost charged to the caller, gas handed to the callee)."""
    extra = 0
    if has_value:
        extra += G_CALLVALUE
    if is_new_account:
        extra += G_NEW_ACCOUNT
    callee = min(requested, all_but_one_64th(max(available - extra, 0)))
    cost = extra + callee
    if has_value:
        callee += G_CALLSTIPEND
    return cost, callee
