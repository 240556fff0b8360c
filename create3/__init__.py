"""Counterfactual deployment: code addresses derived from (factory, caller, salt)."""

from .address import (
    OutOfRange,
    derive_counter_address,
    derive_hash_address,
    derive_relay_address,
    derive_target_address,
    namespace_salt,
    predict_address,
)
from .factory import Create3Factory, DeploymentFailed, DeployStage, ERROR_TAG
from .relay import RELAY_CODE_HASH, RELAY_INIT_CODE, RELAY_RUNTIME_CODE
from .storage.ledger import Ledger
from .vm.evm import ExecutionEnvironment, TxResult, execute_tx

__all__ = [
    "OutOfRange",
    "derive_counter_address",
    "derive_hash_address",
    "derive_relay_address",
    "derive_target_address",
    "namespace_salt",
    "predict_address",
    "Create3Factory",
    "DeploymentFailed",
    "DeployStage",
    "ERROR_TAG",
    "RELAY_CODE_HASH",
    "RELAY_INIT_CODE",
    "RELAY_RUNTIME_CODE",
    "Ledger",
    "ExecutionEnvironment",
    "TxResult",
    "execute_tx",
]
