"""
VM main execution loop.

ExecutionEnvironment connects frames to the ledger and performs nested
CREATE/CREATE2 and CALL, each in its own ledger snapshot.
run_bytecode() is the fetch-decode-execute loop.
execute_tx() runs one top-level call as an all-or-nothing unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from create3.address import OutOfRange, derive_counter_address, derive_hash_address
from create3.common.config import DEFAULT_VM_CONFIG, VMConfig
from create3.common.crypto import keccak256
from create3.common.types import address_to_word, format_address, validate_address
from create3.storage.ledger import Ledger
from create3.vm.call_frame import CallFrame
from create3.vm.gas import G_CODEDEPOSIT, all_but_one_64th
from create3.vm.hooks import DefaultHook, ExecutionHook
from create3.vm.memory import (
    EvmError,
    InvalidOpcode,
    ReturnData,
    Revert,
    StopExecution,
)
from create3.vm.opcodes import OPCODE_TABLE


logger = logging.getLogger(__name__)

# A contract implemented in Python. It halts the same way bytecode does:
# by raising StopExecution, ReturnData, Revert or another EvmError.
NativeContract = Callable[[CallFrame, "ExecutionEnvironment"], None]


# ---------------------------------------------------------------------------
# Execution environment
# ---------------------------------------------------------------------------

class ExecutionEnvironment:
    """Interface between running frames and the ledger."""

    def __init__(
        self,
        state: Optional[Ledger] = None,
        config: Optional[VMConfig] = None,
        hook: Optional[ExecutionHook] = None,
    ) -> None:
        self.state: Ledger = state if state is not None else Ledger()
        self.config: VMConfig = config or DEFAULT_VM_CONFIG
        self.hook: ExecutionHook = hook or DefaultHook()
        self._natives: dict[bytes, NativeContract] = {}

    # -- Native contracts --

    def register_native(self, address: bytes, contract: NativeContract) -> None:
        self._natives[validate_address(address)] = contract

    def is_native(self, address: bytes) -> bool:
        return address in self._natives

    def get_native(self, address: bytes) -> Optional[NativeContract]:
        return self._natives.get(address)

    # -- Value transfer --

    def transfer(self, sender: bytes, recipient: bytes, value: int) -> bool:
        """Move `value` from sender to recipient. Returns False if sender can't cover it."""
        if value == 0:
            return True
        balance = self.state.get_balance(sender)
        if balance < value:
            return False
        self.state.sub_balance(sender, value)
        self.hook.on_balance_change(sender, balance, balance - value)
        old = self.state.get_balance(recipient)
        self.state.add_balance(recipient, value)
        self.hook.on_balance_change(recipient, old, old + value)
        return True

    # -- CREATE / CREATE2 --

    def do_create(
        self,
        frame: CallFrame,
        value: int,
        init_code: bytes,
        salt: Optional[bytes],
    ) -> int:
        """Run CREATE (salt is None) or CREATE2 from `frame`.

        Returns the new address as a word, or 0 if the creation failed.
        The creator's counter is bumped inside the creation's snapshot, so
        it only advances when the init code halts normally.
        """
        creator = frame.address
        frame.return_data = b""

        if frame.depth >= self.config.max_call_depth:
            return 0

        try:
            if salt is None:
                address = derive_counter_address(creator, self.state.get_nonce(creator))
            else:
                address = derive_hash_address(salt, creator, keccak256(init_code))
        except OutOfRange as exc:
            logger.warning("CREATE from %s refused: %s", format_address(creator), exc)
            return 0

        snap = self.state.snapshot()
        committed = False
        try:
            self.state.increment_nonce(creator)

            if self.state.is_occupied(address):
                logger.debug("CREATE collision at %s", format_address(address))
                self.hook.on_create(creator, address, False)
                return 0

            if not self.transfer(creator, address, value):
                self.hook.on_create(creator, address, False)
                return 0

            self.state.set_nonce(address, 1)

            child_gas = all_but_one_64th(frame.remaining_gas)
            frame.consume_gas(child_gas)
            child = CallFrame(
                caller=creator,
                address=address,
                origin=frame.origin,
                code=init_code,
                gas=child_gas,
                value=value,
                depth=frame.depth + 1,
            )

            self.hook.before_call(child)
            success, output = run_bytecode(child, self)
            if success:
                success = self._deposit_code(child, output)
                if not success:
                    output = b""
            self.hook.after_call(child, success, output)

            frame.gas_used -= child.remaining_gas
            self.hook.on_create(creator, address, success)

            if not success:
                frame.return_data = output
                return 0
            committed = True
            return address_to_word(address)
        finally:
            # Anything escaping the run loop still closes this creation's scope.
            if committed:
                self.state.commit(snap)
            else:
                self.state.rollback(snap)

    def _deposit_code(self, child: CallFrame, code: bytes) -> bool:
        """Store the init code's result as the new account's code, if allowed."""
        if len(code) > self.config.max_code_size:
            return False
        if self.config.reject_ef_code and code[:1] == b"\xef":
            return False
        cost = G_CODEDEPOSIT * len(code)
        if cost > child.remaining_gas:
            child.gas_used = child.gas
            return False
        child.gas_used += cost
        self.state.set_code(child.address, code)
        return True

    # -- CALL --

    def do_call(
        self,
        parent: CallFrame,
        to: bytes,
        value: int,
        calldata: bytes,
        gas: int,
        is_static: bool,
    ) -> tuple[bool, bytes]:
        """Call `to` with `gas` the parent has already paid for.

        Unused gas goes back to the parent. Returns (success, output).
        """
        if parent.depth >= self.config.max_call_depth:
            parent.gas_used -= gas
            return False, b""

        snap = self.state.snapshot()
        success = False
        try:
            if not self.transfer(parent.address, to, value):
                parent.gas_used -= gas
                return False, b""

            frame = CallFrame(
                caller=parent.address,
                address=to,
                origin=parent.origin,
                code=self.state.get_code(to),
                gas=gas,
                value=value,
                calldata=calldata,
                depth=parent.depth + 1,
                is_static=is_static,
            )

            self.hook.before_call(frame)
            success, output = run_frame(frame, self)
            self.hook.after_call(frame, success, output)

            parent.gas_used -= frame.remaining_gas
            return success, output
        finally:
            if success:
                self.state.commit(snap)
            else:
                self.state.rollback(snap)


# ---------------------------------------------------------------------------
# Main execution loop
# ---------------------------------------------------------------------------

def _halt(frame: CallFrame, body: Callable[[], None]) -> tuple[bool, bytes]:
    """Run `body` and translate how it halted into (success, output)."""
    try:
        body()
        return True, b""
    except StopExecution:
        return True, b""
    except ReturnData as ret:
        return True, ret.data
    except Revert as rev:
        return False, rev.data
    except (EvmError, RecursionError) as exc:
        # nesting that outgrows the interpreter stack traps like any other fault
        logger.debug("Frame at %s trapped: %s", frame.address.hex(), exc)
        frame.gas_used = frame.gas
        return False, b""


def run_bytecode(frame: CallFrame, env: ExecutionEnvironment) -> tuple[bool, bytes]:
    """Execute frame.code. Returns (success, output)."""

    def loop() -> None:
        code = frame.code
        while frame.pc < len(code):
            opcode = code[frame.pc]
            entry = OPCODE_TABLE.get(opcode)
            if entry is None:
                raise InvalidOpcode(f"Unknown opcode: 0x{opcode:02x}")
            handler, base_gas = entry
            frame.consume_gas(base_gas)
            handler(frame, env)
        # Ran off the end: implicit STOP

    return _halt(frame, loop)


def run_frame(frame: CallFrame, env: ExecutionEnvironment) -> tuple[bool, bytes]:
    """Execute whatever lives at frame.address: a native contract or bytecode."""
    native = env.get_native(frame.address)
    if native is not None:
        return _halt(frame, lambda: native(frame, env))
    if not frame.code:
        return True, b""
    return run_bytecode(frame, env)


# ---------------------------------------------------------------------------
# Top-level call
# ---------------------------------------------------------------------------

@dataclass
class TxResult:
    success: bool = True
    gas_used: int = 0
    return_data: bytes = b""
    error: Optional[str] = None


def execute_tx(
    env: ExecutionEnvironment,
    sender: bytes,
    to: bytes,
    value: int,
    data: bytes,
    gas_limit: Optional[int] = None,
    hook: Optional[ExecutionHook] = None,
) -> TxResult:
    """Run one top-level call from `sender` to `to`.

    Every state change commits together on success and rolls back together
    on failure; only the sender's counter advances either way.

    Args:
        env: execution environment with the ledger
        sender: caller address (20 bytes)
        to: callee address (20 bytes)
        value: amount to transfer with the call
        data: calldata
        gas_limit: compute budget; defaults to config.default_gas_limit
        hook: optional execution hook, replaces env.hook
    """
    sender = validate_address(sender, "sender")
    to = validate_address(to, "to")
    if hook:
        env.hook = hook
    if gas_limit is None:
        gas_limit = env.config.default_gas_limit

    tx_data = {"sender": sender, "to": to, "value": value, "data": data, "gas_limit": gas_limit}
    env.hook.before_execution(tx_data)

    env.state.increment_nonce(sender)
    snap = env.state.snapshot()
    success = False
    try:
        funded = env.transfer(sender, to, value)
        if funded:
            frame = CallFrame(
                caller=sender,
                address=to,
                origin=sender,
                code=env.state.get_code(to),
                gas=gas_limit,
                value=value,
                calldata=data,
                depth=0,
            )

            env.hook.before_call(frame)
            success, return_data = run_frame(frame, env)
            env.hook.after_call(frame, success, return_data)
    finally:
        if success:
            env.state.commit(snap)
        else:
            env.state.rollback(snap)

    if not funded:
        env.hook.after_execution(tx_data, False, 0)
        return TxResult(success=False, error="Insufficient balance")

    env.hook.after_execution(tx_data, success, frame.gas_used)

    return TxResult(
        success=success,
        gas_used=frame.gas_used,
        return_data=return_data,
        error=None if success else "execution reverted",
    )
