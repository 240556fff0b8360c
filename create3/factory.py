"""
Deployment factory: put arbitrary code at an address that depends only on
(factory, caller, salt).

The factory runs as a native contract. Calldata is a 32-byte salt followed
by the init code to deploy. A call walks through these stages:

    START -> NAMESPACE -> DEPLOY_RELAY -> RELAY_FAIL -> FAIL
                                       -> RELAY_OK -> INVOKE_RELAY -> VERIFY -> EMPTY -> FAIL
                                                                             -> NONEMPTY -> SUCCESS

1. NAMESPACE: the salt is bound to the caller, keccak256(salt ++ caller),
   so no caller can claim or front-run another caller's salt.
2. DEPLOY_RELAY: CREATE2 of the relay program at the namespaced salt. The
   relay address is occupied from then on, so a (caller, salt) pair can
   only ever get this far once.
3. INVOKE_RELAY: the relay CREATEs the payload with the forwarded value at
   its first counter value and returns the resulting address.
4. VERIFY: the returned address must be non-zero and hold code. Init code
   that halts without returning a body yields an address with no code.

On success the call returns the address left-padded to 32 bytes. Every
failure, including running out of gas, reverts with the same 4-byte tag
and nothing else, so caller-supplied code can't push its own revert data
through the factory.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from create3.address import derive_relay_address, namespace_salt, predict_address
from create3.common.config import DEFAULT_FACTORY_ADDRESS
from create3.common.crypto import keccak256
from create3.common.types import (
    SALT_SIZE,
    WORD_SIZE,
    ZERO_ADDRESS,
    format_address,
    pad_address,
    to_address,
    validate_address,
    validate_salt,
)
from create3.relay import RELAY_INIT_CODE
from create3.vm.call_frame import CallFrame
from create3.vm.evm import ExecutionEnvironment, execute_tx
from create3.vm.gas import (
    G_ACCOUNT_ACCESS,
    G_CALL,
    G_CREATE,
    G_KECCAK256,
    G_KECCAK256_WORD,
    call_gas,
    create_cost,
    memory_word_size,
)
from create3.vm.memory import EvmError, ReturnData, Revert


logger = logging.getLogger(__name__)

ERROR_SIGNATURE = b"DeploymentFailed()"
ERROR_TAG = keccak256(ERROR_SIGNATURE)[:4]


class DeploymentFailed(Exception):
    """The deployment did not leave code at the target address.

    The reason is for local diagnostics only; the wire carries ERROR_TAG alone.
    """

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(reason or "deployment failed")


class DeployStage(Enum):
    START = "start"
    NAMESPACE = "namespace"
    DEPLOY_RELAY = "deploy_relay"
    RELAY_FAIL = "relay_fail"
    RELAY_OK = "relay_ok"
    INVOKE_RELAY = "invoke_relay"
    VERIFY = "verify"
    EMPTY = "empty"
    NONEMPTY = "nonempty"
    SUCCESS = "success"
    FAIL = "fail"


class Create3Factory:
    """Native deployment factory installed at a fixed address."""

    def __init__(self, address: bytes = DEFAULT_FACTORY_ADDRESS) -> None:
        self.address = validate_address(address, "factory address")

    def __repr__(self) -> str:
        return f"Create3Factory({format_address(self.address)})"

    def install(self, env: ExecutionEnvironment) -> None:
        """Register in `env` and make the factory account a live account."""
        env.register_native(self.address, self)
        if env.state.get_nonce(self.address) == 0:
            env.state.set_nonce(self.address, 1)

    # -----------------------------------------------------------------
    # Offline
    # -----------------------------------------------------------------

    def predict(self, salt: bytes, caller: bytes) -> bytes:
        return predict_address(salt, caller, self.address)

    def relay_address(self, salt: bytes, caller: bytes) -> bytes:
        return derive_relay_address(salt, caller, self.address)

    @staticmethod
    def encode_calldata(salt: bytes, payload: bytes) -> bytes:
        return validate_salt(salt) + bytes(payload)

    @staticmethod
    def decode_result(data: bytes) -> bytes:
        """The deployed address from a successful call's 32-byte output."""
        if len(data) != WORD_SIZE or any(data[:12]):
            raise ValueError(f"Not a left-padded address word: 0x{data.hex()}")
        return data[12:]

    # -----------------------------------------------------------------
    # Live
    # -----------------------------------------------------------------

    def deploy(
        self,
        env: ExecutionEnvironment,
        caller: bytes,
        salt: bytes,
        payload: bytes,
        value: int = 0,
        gas_limit: Optional[int] = None,
    ) -> bytes:
        """Deploy `payload` as `caller` in its own top-level call.

        Returns the 20-byte target address; raises DeploymentFailed otherwise.
        """
        data = self.encode_calldata(salt, payload)
        result = execute_tx(env, caller, self.address, value, data, gas_limit)
        if not result.success:
            raise DeploymentFailed(result.error or "")
        return self.decode_result(result.return_data)

    def __call__(self, frame: CallFrame, env: ExecutionEnvironment) -> None:
        stage = env.hook.on_deploy_stage
        try:
            target = self._run(frame, env)
        except (DeploymentFailed, EvmError, RecursionError) as exc:
            stage(DeployStage.FAIL)
            logger.debug("Deployment by %s failed: %s", format_address(frame.caller), exc)
            raise Revert(ERROR_TAG) from None
        stage(DeployStage.SUCCESS)
        logger.info(
            "Deployed %d bytes at %s for %s",
            len(env.state.get_code(target)), format_address(target), format_address(frame.caller),
        )
        raise ReturnData(pad_address(target))

    def _run(self, frame: CallFrame, env: ExecutionEnvironment) -> bytes:
        stage = env.hook.on_deploy_stage
        stage(DeployStage.START)
        if frame.is_static:
            raise DeploymentFailed("static context")
        if len(frame.calldata) < SALT_SIZE:
            raise DeploymentFailed(f"calldata is {len(frame.calldata)} bytes, need a {SALT_SIZE}-byte salt")
        salt, payload = frame.calldata[:SALT_SIZE], frame.calldata[SALT_SIZE:]

        stage(DeployStage.NAMESPACE)
        frame.consume_gas(G_KECCAK256 + G_KECCAK256_WORD * memory_word_size(SALT_SIZE + WORD_SIZE))
        namespaced = namespace_salt(salt, frame.caller)

        stage(DeployStage.DEPLOY_RELAY)
        frame.consume_gas(G_CREATE + create_cost(len(RELAY_INIT_CODE), hashed=True))
        relay_word = env.do_create(frame, 0, RELAY_INIT_CODE, namespaced)
        if not relay_word:
            stage(DeployStage.RELAY_FAIL)
            raise DeploymentFailed("relay address occupied or relay creation failed")
        relay = to_address(relay_word)
        stage(DeployStage.RELAY_OK)
        logger.debug("Relay for %s at %s", format_address(frame.caller), format_address(relay))

        stage(DeployStage.INVOKE_RELAY)
        frame.consume_gas(G_CALL)
        cost, callee_gas = call_gas(frame.remaining_gas, frame.remaining_gas, frame.value > 0, False)
        frame.consume_gas(cost)
        ok, output = env.do_call(frame, relay, frame.value, payload, callee_gas, False)

        stage(DeployStage.VERIFY)
        frame.consume_gas(G_ACCOUNT_ACCESS)
        if not ok or len(output) != WORD_SIZE:
            stage(DeployStage.EMPTY)
            raise DeploymentFailed("relay did not return an address")
        target = to_address(int.from_bytes(output, "big"))
        if target == ZERO_ADDRESS:
            stage(DeployStage.EMPTY)
            raise DeploymentFailed("payload creation failed")
        if not env.state.get_code(target):
            stage(DeployStage.EMPTY)
            raise DeploymentFailed(f"no code at {format_address(target)}")
        stage(DeployStage.NONEMPTY)
        return target
