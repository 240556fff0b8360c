"""
Call frame: one execution context.

Every top-level call, CALL and CREATE runs in its own CallFrame with a
fresh stack and memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from create3.common.types import ZERO_ADDRESS
from create3.vm.memory import Memory, OutOfGas, Stack


@dataclass
class CallFrame:
    caller: bytes = ZERO_ADDRESS
    address: bytes = ZERO_ADDRESS
    origin: bytes = ZERO_ADDRESS

    code: bytes = b""
    pc: int = 0

    gas: int = 0
    gas_used: int = 0

    value: int = 0
    calldata: bytes = b""
    depth: int = 0
    is_static: bool = False

    stack: Stack = field(default_factory=Stack)
    memory: Memory = field(default_factory=Memory)

    # Output of the most recent sub-call or failed sub-creation
    return_data: bytes = b""

    _jumpdests: Optional[frozenset[int]] = field(default=None, repr=False)

    @property
    def remaining_gas(self) -> int:
        return self.gas - self.gas_used

    def consume_gas(self, amount: int) -> None:
        if amount > self.remaining_gas:
            raise OutOfGas(f"Out of gas: need {amount}, have {self.remaining_gas}")
        self.gas_used += amount

    def is_valid_jump(self, dest: int) -> bool:
        if self._jumpdests is None:
            self._jumpdests = find_jumpdests(self.code)
        return dest in self._jumpdests


def find_jumpdests(code: bytes) -> frozenset[int]:
    """Positions of JUMPDEST bytes that are not PUSH immediates."""
    found = set()
    pc = 0
    while pc < len(code):
        op = code[pc]
        if op == 0x5B:
            found.add(pc)
        elif 0x60 <= op <= 0x7F:
            pc += op - 0x5F
        pc += 1
    return frozenset(found)
