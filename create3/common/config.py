"""
Execution configuration.

The deployment protocol has no settings of its own; the only tunables are
the limits of the execution model the protocol runs on.
"""

from __future__ import annotations

from dataclasses import dataclass


# Well-known address the factory is installed at unless told otherwise.
DEFAULT_FACTORY_ADDRESS = bytes.fromhex("00000000000000000000000000000000c3ea7001")


@dataclass(frozen=True)
class VMConfig:
    chain_id: int = 1
    max_call_depth: int = 1024
    max_code_size: int = 24576      # EIP-170
    reject_ef_code: bool = True     # EIP-3541
    default_gas_limit: int = 30_000_000


DEFAULT_VM_CONFIG = VMConfig()
