"""
Opcode definitions and handlers.

Each handler takes a CallFrame and an ExecutionEnvironment, updates them
and advances the program counter. Handlers are registered in OPCODE_TABLE
together with their base gas cost. The table covers what deployment code
needs: arithmetic, hashing, environment queries, memory, storage, flow
control, CREATE/CREATE2, CALL/STATICCALL and the halting instructions.
Any byte missing from the table is an illegal instruction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from create3.common.crypto import keccak256
from create3.common.types import address_to_word, to_address
from create3.vm.gas import (
    G_ACCOUNT_ACCESS,
    G_BASE,
    G_CALL,
    G_EXP,
    G_CREATE,
    G_HIGH,
    G_JUMPDEST,
    G_KECCAK256,
    G_KECCAK256_WORD,
    G_LOW,
    G_MID,
    G_SLOAD,
    G_SRESET,
    G_SSET,
    G_VERY_LOW,
    G_ZERO,
    call_gas,
    copy_cost,
    create_cost,
    exp_cost,
    memory_cost,
    memory_word_size,
)
from create3.vm.memory import (
    UINT256_MAX,
    EvmError,
    InvalidJumpDest,
    InvalidOpcode,
    ReturnData,
    Revert,
    StopExecution,
    WriteProtection,
)

if TYPE_CHECKING:
    from create3.vm.call_frame import CallFrame
    from create3.vm.evm import ExecutionEnvironment


# fmt: off
class Op:
    STOP            = 0x00
    ADD             = 0x01
    MUL             = 0x02
    SUB             = 0x03
    DIV             = 0x04
    MOD             = 0x06
    EXP             = 0x0A
    LT              = 0x10
    GT              = 0x11
    EQ              = 0x14
    ISZERO          = 0x15
    AND             = 0x16
    OR              = 0x17
    XOR             = 0x18
    NOT             = 0x19
    BYTE            = 0x1A
    SHL             = 0x1B
    SHR             = 0x1C
    KECCAK256       = 0x20
    ADDRESS         = 0x30
    BALANCE         = 0x31
    ORIGIN          = 0x32
    CALLER          = 0x33
    CALLVALUE       = 0x34
    CALLDATALOAD    = 0x35
    CALLDATASIZE    = 0x36
    CALLDATACOPY    = 0x37
    CODESIZE        = 0x38
    CODECOPY        = 0x39
    EXTCODESIZE     = 0x3B
    RETURNDATASIZE  = 0x3D
    RETURNDATACOPY  = 0x3E
    EXTCODEHASH     = 0x3F
    CHAINID         = 0x46
    SELFBALANCE     = 0x47
    POP             = 0x50
    MLOAD           = 0x51
    MSTORE          = 0x52
    MSTORE8         = 0x53
    SLOAD           = 0x54
    SSTORE          = 0x55
    JUMP            = 0x56
    JUMPI           = 0x57
    PC              = 0x58
    MSIZE           = 0x59
    GAS             = 0x5A
    JUMPDEST        = 0x5B
    PUSH0           = 0x5F
    PUSH1           = 0x60
    PUSH32          = 0x7F
    DUP1            = 0x80
    DUP16           = 0x8F
    SWAP1           = 0x90
    SWAP16          = 0x9F
    CREATE          = 0xF0
    CALL            = 0xF1
    RETURN          = 0xF3
    CREATE2         = 0xF5
    STATICCALL      = 0xFA
    REVERT          = 0xFD
    INVALID         = 0xFE
# fmt: on


def _binary(fn: Callable[[int, int], int]):
    def op(frame, env):
        a, b = frame.stack.pop_many(2)
        frame.stack.push(fn(a, b))
        frame.pc += 1
    return op


def _read_memory(frame: CallFrame, offset: int, length: int) -> bytes:
    frame.consume_gas(memory_cost(frame.memory.size, offset, length))
    return frame.memory.read(offset, length)


def _copy_to_memory(frame: CallFrame, dest: int, source: bytes, offset: int, length: int) -> None:
    frame.consume_gas(copy_cost(length) + memory_cost(frame.memory.size, dest, length))
    chunk = source[offset : offset + length] if offset < len(source) else b""
    frame.memory.write(dest, chunk.ljust(length, b"\x00"))


# ---------------------------------------------------------------------------
# Arithmetic, comparison, bitwise
# ---------------------------------------------------------------------------

def op_stop(frame, env):
    raise StopExecution()


op_add = _binary(lambda a, b: a + b)
op_mul = _binary(lambda a, b: a * b)
op_sub = _binary(lambda a, b: a - b)
op_div = _binary(lambda a, b: a // b if b else 0)
op_mod = _binary(lambda a, b: a % b if b else 0)
op_lt = _binary(lambda a, b: int(a < b))
op_gt = _binary(lambda a, b: int(a > b))
op_eq = _binary(lambda a, b: int(a == b))
op_and = _binary(lambda a, b: a & b)
op_or = _binary(lambda a, b: a | b)
op_xor = _binary(lambda a, b: a ^ b)
op_byte = _binary(lambda i, x: (x >> (248 - i * 8)) & 0xFF if i < 32 else 0)
op_shl = _binary(lambda shift, x: x << shift if shift < 256 else 0)
op_shr = _binary(lambda shift, x: x >> shift if shift < 256 else 0)


def op_exp(frame, env):
    base, exponent = frame.stack.pop_many(2)
    frame.consume_gas(exp_cost(exponent) - exp_cost(0))
    frame.stack.push(pow(base, exponent, UINT256_MAX + 1))
    frame.pc += 1


def op_iszero(frame, env):
    frame.stack.push(int(frame.stack.pop() == 0))
    frame.pc += 1


def op_not(frame, env):
    frame.stack.push(UINT256_MAX ^ frame.stack.pop())
    frame.pc += 1


def op_keccak256(frame, env):
    offset, length = frame.stack.pop_many(2)
    frame.consume_gas(G_KECCAK256_WORD * memory_word_size(length))
    data = _read_memory(frame, offset, length)
    frame.stack.push(int.from_bytes(keccak256(data), "big"))
    frame.pc += 1


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

def op_address(frame, env):
    frame.stack.push(address_to_word(frame.address))
    frame.pc += 1


def op_balance(frame, env):
    frame.stack.push(env.state.get_balance(to_address(frame.stack.pop())))
    frame.pc += 1


def op_origin(frame, env):
    frame.stack.push(address_to_word(frame.origin))
    frame.pc += 1


def op_caller(frame, env):
    frame.stack.push(address_to_word(frame.caller))
    frame.pc += 1


def op_callvalue(frame, env):
    frame.stack.push(frame.value)
    frame.pc += 1


def op_calldataload(frame, env):
    offset = frame.stack.pop()
    chunk = frame.calldata[offset : offset + 32] if offset < len(frame.calldata) else b""
    frame.stack.push(int.from_bytes(chunk.ljust(32, b"\x00"), "big"))
    frame.pc += 1


def op_calldatasize(frame, env):
    frame.stack.push(len(frame.calldata))
    frame.pc += 1


def op_calldatacopy(frame, env):
    dest, offset, length = frame.stack.pop_many(3)
    _copy_to_memory(frame, dest, frame.calldata, offset, length)
    frame.pc += 1


def op_codesize(frame, env):
    frame.stack.push(len(frame.code))
    frame.pc += 1


def op_codecopy(frame, env):
    dest, offset, length = frame.stack.pop_many(3)
    _copy_to_memory(frame, dest, frame.code, offset, length)
    frame.pc += 1


def op_extcodesize(frame, env):
    frame.stack.push(len(env.state.get_code(to_address(frame.stack.pop()))))
    frame.pc += 1


def op_extcodehash(frame, env):
    address = to_address(frame.stack.pop())
    account = env.state.get_account(address)
    if account is None or account.is_empty:
        frame.stack.push(0)
    else:
        frame.stack.push(int.from_bytes(account.code_hash, "big"))
    frame.pc += 1


def op_returndatasize(frame, env):
    frame.stack.push(len(frame.return_data))
    frame.pc += 1


def op_returndatacopy(frame, env):
    dest, offset, length = frame.stack.pop_many(3)
    if offset + length > len(frame.return_data):
        raise EvmError("RETURNDATACOPY out of bounds")
    _copy_to_memory(frame, dest, frame.return_data, offset, length)
    frame.pc += 1


def op_chainid(frame, env):
    frame.stack.push(env.config.chain_id)
    frame.pc += 1


def op_selfbalance(frame, env):
    frame.stack.push(env.state.get_balance(frame.address))
    frame.pc += 1


# ---------------------------------------------------------------------------
# Stack, memory, storage, flow
# ---------------------------------------------------------------------------

def op_pop(frame, env):
    frame.stack.pop()
    frame.pc += 1


def op_mload(frame, env):
    offset = frame.stack.pop()
    frame.consume_gas(memory_cost(frame.memory.size, offset, 32))
    frame.stack.push(frame.memory.read_word(offset))
    frame.pc += 1


def op_mstore(frame, env):
    offset, value = frame.stack.pop_many(2)
    frame.consume_gas(memory_cost(frame.memory.size, offset, 32))
    frame.memory.write_word(offset, value)
    frame.pc += 1


def op_mstore8(frame, env):
    offset, value = frame.stack.pop_many(2)
    frame.consume_gas(memory_cost(frame.memory.size, offset, 1))
    frame.memory.write_byte(offset, value)
    frame.pc += 1


def op_sload(frame, env):
    frame.stack.push(env.state.get_storage(frame.address, frame.stack.pop()))
    frame.pc += 1


def op_sstore(frame, env):
    if frame.is_static:
        raise WriteProtection("SSTORE in static call")
    key, value = frame.stack.pop_many(2)
    current = env.state.get_storage(frame.address, key)
    frame.consume_gas(G_SSET if current == 0 and value != 0 else G_SRESET)
    env.state.set_storage(frame.address, key, value)
    frame.pc += 1


def op_jump(frame, env):
    dest = frame.stack.pop()
    if not frame.is_valid_jump(dest):
        raise InvalidJumpDest(f"Invalid JUMP destination: {dest}")
    frame.pc = dest


def op_jumpi(frame, env):
    dest, cond = frame.stack.pop_many(2)
    if not cond:
        frame.pc += 1
        return
    if not frame.is_valid_jump(dest):
        raise InvalidJumpDest(f"Invalid JUMPI destination: {dest}")
    frame.pc = dest


def op_pc(frame, env):
    frame.stack.push(frame.pc)
    frame.pc += 1


def op_msize(frame, env):
    frame.stack.push(frame.memory.size)
    frame.pc += 1


def op_gas(frame, env):
    frame.stack.push(frame.remaining_gas)
    frame.pc += 1


def op_jumpdest(frame, env):
    frame.pc += 1


def op_push0(frame, env):
    frame.stack.push(0)
    frame.pc += 1


def _make_push(n: int):
    def op_push(frame, env):
        data = frame.code[frame.pc + 1 : frame.pc + 1 + n]
        frame.stack.push(int.from_bytes(data.ljust(n, b"\x00"), "big"))
        frame.pc += 1 + n
    return op_push


def _make_dup(n: int):
    def op_dup(frame, env):
        frame.stack.dup(n)
        frame.pc += 1
    return op_dup


def _make_swap(n: int):
    def op_swap(frame, env):
        frame.stack.swap(n)
        frame.pc += 1
    return op_swap


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

def op_create(frame, env):
    if frame.is_static:
        raise WriteProtection("CREATE in static call")
    value, offset, length = frame.stack.pop_many(3)
    frame.consume_gas(create_cost(length, hashed=False))
    init_code = _read_memory(frame, offset, length)
    frame.stack.push(env.do_create(frame, value, init_code, None))
    frame.pc += 1


def op_create2(frame, env):
    if frame.is_static:
        raise WriteProtection("CREATE2 in static call")
    value, offset, length, salt = frame.stack.pop_many(4)
    frame.consume_gas(create_cost(length, hashed=True))
    init_code = _read_memory(frame, offset, length)
    frame.stack.push(env.do_create(frame, value, init_code, salt.to_bytes(32, "big")))
    frame.pc += 1


def _call(frame, env, gas_req, to, value, args_offset, args_size, ret_offset, ret_size, is_static):
    end = max(
        args_offset + args_size if args_size else 0,
        ret_offset + ret_size if ret_size else 0,
    )
    frame.consume_gas(memory_cost(frame.memory.size, 0, end))
    frame.memory.extend(0, end)
    calldata = frame.memory.read(args_offset, args_size)
    is_new = value > 0 and not env.state.account_exists(to)
    cost, callee_gas = call_gas(frame.remaining_gas, gas_req, value > 0, is_new)
    frame.consume_gas(cost)

    success, output = env.do_call(frame, to, value, calldata, callee_gas, is_static)
    frame.return_data = output
    if ret_size > 0:
        frame.memory.write(ret_offset, output[:ret_size])
    frame.stack.push(int(success))
    frame.pc += 1


def op_call(frame, env):
    gas_req, to, value, args_offset, args_size, ret_offset, ret_size = frame.stack.pop_many(7)
    if frame.is_static and value > 0:
        raise WriteProtection("CALL with value in static context")
    _call(frame, env, gas_req, to_address(to), value,
          args_offset, args_size, ret_offset, ret_size, frame.is_static)


def op_staticcall(frame, env):
    gas_req, to, args_offset, args_size, ret_offset, ret_size = frame.stack.pop_many(6)
    _call(frame, env, gas_req, to_address(to), 0,
          args_offset, args_size, ret_offset, ret_size, True)


def op_return(frame, env):
    offset, length = frame.stack.pop_many(2)
    raise ReturnData(_read_memory(frame, offset, length))


def op_revert(frame, env):
    offset, length = frame.stack.pop_many(2)
    raise Revert(_read_memory(frame, offset, length))


def op_invalid(frame, env):
    raise InvalidOpcode("INVALID opcode (0xFE)")


# ---------------------------------------------------------------------------
# Opcode table: opcode -> (handler, base gas)
# ---------------------------------------------------------------------------

OPCODE_TABLE: dict[int, tuple[Callable[[CallFrame, ExecutionEnvironment], None], int]] = {}

MNEMONICS: dict[int, str] = {
    value: name for name, value in vars(Op).items() if not name.startswith("_")
}
for _n in range(1, 33):
    MNEMONICS[Op.PUSH1 + _n - 1] = f"PUSH{_n}"
for _n in range(1, 17):
    MNEMONICS[Op.DUP1 + _n - 1] = f"DUP{_n}"
    MNEMONICS[Op.SWAP1 + _n - 1] = f"SWAP{_n}"


def _register():
    t = OPCODE_TABLE

    t[Op.STOP] = (op_stop, G_ZERO)
    t[Op.ADD] = (op_add, G_VERY_LOW)
    t[Op.MUL] = (op_mul, G_LOW)
    t[Op.SUB] = (op_sub, G_VERY_LOW)
    t[Op.DIV] = (op_div, G_LOW)
    t[Op.MOD] = (op_mod, G_LOW)
    t[Op.EXP] = (op_exp, G_EXP)
    t[Op.LT] = (op_lt, G_VERY_LOW)
    t[Op.GT] = (op_gt, G_VERY_LOW)
    t[Op.EQ] = (op_eq, G_VERY_LOW)
    t[Op.ISZERO] = (op_iszero, G_VERY_LOW)
    t[Op.AND] = (op_and, G_VERY_LOW)
    t[Op.OR] = (op_or, G_VERY_LOW)
    t[Op.XOR] = (op_xor, G_VERY_LOW)
    t[Op.NOT] = (op_not, G_VERY_LOW)
    t[Op.BYTE] = (op_byte, G_VERY_LOW)
    t[Op.SHL] = (op_shl, G_VERY_LOW)
    t[Op.SHR] = (op_shr, G_VERY_LOW)
    t[Op.KECCAK256] = (op_keccak256, G_KECCAK256)

    t[Op.ADDRESS] = (op_address, G_BASE)
    t[Op.BALANCE] = (op_balance, G_ACCOUNT_ACCESS)
    t[Op.ORIGIN] = (op_origin, G_BASE)
    t[Op.CALLER] = (op_caller, G_BASE)
    t[Op.CALLVALUE] = (op_callvalue, G_BASE)
    t[Op.CALLDATALOAD] = (op_calldataload, G_VERY_LOW)
    t[Op.CALLDATASIZE] = (op_calldatasize, G_BASE)
    t[Op.CALLDATACOPY] = (op_calldatacopy, G_VERY_LOW)
    t[Op.CODESIZE] = (op_codesize, G_BASE)
    t[Op.CODECOPY] = (op_codecopy, G_VERY_LOW)
    t[Op.EXTCODESIZE] = (op_extcodesize, G_ACCOUNT_ACCESS)
    t[Op.RETURNDATASIZE] = (op_returndatasize, G_BASE)
    t[Op.RETURNDATACOPY] = (op_returndatacopy, G_VERY_LOW)
    t[Op.EXTCODEHASH] = (op_extcodehash, G_ACCOUNT_ACCESS)
    t[Op.CHAINID] = (op_chainid, G_BASE)
    t[Op.SELFBALANCE] = (op_selfbalance, G_LOW)

    t[Op.POP] = (op_pop, G_BASE)
    t[Op.MLOAD] = (op_mload, G_VERY_LOW)
    t[Op.MSTORE] = (op_mstore, G_VERY_LOW)
    t[Op.MSTORE8] = (op_mstore8, G_VERY_LOW)
    t[Op.SLOAD] = (op_sload, G_SLOAD)
    t[Op.SSTORE] = (op_sstore, G_ZERO)
    t[Op.JUMP] = (op_jump, G_MID)
    t[Op.JUMPI] = (op_jumpi, G_HIGH)
    t[Op.PC] = (op_pc, G_BASE)
    t[Op.MSIZE] = (op_msize, G_BASE)
    t[Op.GAS] = (op_gas, G_BASE)
    t[Op.JUMPDEST] = (op_jumpdest, G_JUMPDEST)

    t[Op.PUSH0] = (op_push0, G_BASE)
    for n in range(1, 33):
        t[Op.PUSH1 + n - 1] = (_make_push(n), G_VERY_LOW)
    for n in range(1, 17):
        t[Op.DUP1 + n - 1] = (_make_dup(n), G_VERY_LOW)
        t[Op.SWAP1 + n - 1] = (_make_swap(n), G_VERY_LOW)

    t[Op.CREATE] = (op_create, G_CREATE)
    t[Op.CALL] = (op_call, G_CALL)
    t[Op.RETURN] = (op_return, G_ZERO)
    t[Op.CREATE2] = (op_create2, G_CREATE)
    t[Op.STATICCALL] = (op_staticcall, G_CALL)
    t[Op.REVERT] = (op_revert, G_ZERO)
    t[Op.INVALID] = (op_invalid, G_ZERO)


_register()
