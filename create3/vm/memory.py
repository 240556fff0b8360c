"""
VM stack, memory and halting signals.

Stack: 1024-deep, 256-bit (uint256) items.
Memory: byte-addressable, grows in 32-byte words.

Halting is signalled with exceptions raised by opcode handlers and caught
by the run loop: StopExecution / ReturnData end a frame successfully,
Revert ends it unsuccessfully with data, every other EvmError is a trap
that ends it unsuccessfully with no data and all gas consumed.
"""

from __future__ import annotations

UINT256_MAX = (1 << 256) - 1

MAX_STACK_DEPTH = 1024


class EvmError(Exception):
    """Base class for VM execution errors."""
    pass


class StackOverflow(EvmError):
    pass


class StackUnderflow(EvmError):
    pass


class InvalidJumpDest(EvmError):
    pass


class OutOfGas(EvmError):
    pass


class WriteProtection(EvmError):
    pass


class InvalidOpcode(EvmError):
    pass


class StopExecution(EvmError):
    """STOP, or running off the end of the code."""
    pass


class ReturnData(EvmError):
    """RETURN: normal halt with an explicit body."""

    def __init__(self, data: bytes = b""):
        self.data = data
        super().__init__()


class Revert(EvmError):
    """REVERT: abort, undo the frame's writes, hand data to the caller."""

    def __init__(self, data: bytes = b""):
        self.data = data
        super().__init__()


class Stack:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[int] = []

    def push(self, value: int) -> None:
        if len(self._items) >= MAX_STACK_DEPTH:
            raise StackOverflow(f"Stack overflow (max {MAX_STACK_DEPTH})")
        self._items.append(value & UINT256_MAX)

    def pop(self) -> int:
        if not self._items:
            raise StackUnderflow("Stack underflow")
        return self._items.pop()

    def pop_many(self, count: int) -> list[int]:
        """Pop `count` items, top of stack first."""
        if count > len(self._items):
            raise StackUnderflow(f"Stack underflow: need {count}, have {len(self._items)}")
        return [self._items.pop() for _ in range(count)]

    def peek(self, depth: int = 0) -> int:
        if depth >= len(self._items):
            raise StackUnderflow(f"Stack underflow: peek({depth})")
        return self._items[-(depth + 1)]

    def dup(self, depth: int) -> None:
        """DUPn: copy the n-th item (1-indexed) to the top."""
        if depth > len(self._items):
            raise StackUnderflow(f"Stack underflow: dup({depth})")
        self.push(self._items[-depth])

    def swap(self, depth: int) -> None:
        """SWAPn: exchange the top with the item n below it."""
        if depth >= len(self._items):
            raise StackUnderflow(f"Stack underflow: swap({depth})")
        top, other = -1, -(depth + 1)
        self._items[top], self._items[other] = self._items[other], self._items[top]

    def __len__(self) -> int:
        return len(self._items)


class Memory:
    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data = bytearray()

    @property
    def size(self) -> int:
        return len(self._data)

    def extend(self, offset: int, length: int) -> None:
        """Grow memory to cover [offset, offset+length), word aligned."""
        if length == 0:
            return
        end = offset + length
        if end > len(self._data):
            words = (end + 31) // 32
            self._data.extend(bytes(words * 32 - len(self._data)))

    def read(self, offset: int, length: int) -> bytes:
        if length == 0:
            return b""
        self.extend(offset, length)
        return bytes(self._data[offset : offset + length])

    def read_word(self, offset: int) -> int:
        return int.from_bytes(self.read(offset, 32), "big")

    def write(self, offset: int, data: bytes) -> None:
        if not data:
            return
        self.extend(offset, len(data))
        self._data[offset : offset + len(data)] = data

    def write_word(self, offset: int, value: int) -> None:
        self.write(offset, (value & UINT256_MAX).to_bytes(32, "big"))

    def write_byte(self, offset: int, value: int) -> None:
        self.extend(offset, 1)
        self._data[offset] = value & 0xFF
