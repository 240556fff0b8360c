"""
Execution hooks.

Extension points for tracing without touching the VM or the factory.
DefaultHook does nothing; subclass ExecutionHook and override what you need.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from create3.factory import DeployStage
    from create3.vm.call_frame import CallFrame


class ExecutionHook:
    """Base hook interface, every method is a no-op."""

    def before_execution(self, tx_data: dict) -> None:
        """Called before a top-level call begins."""
        pass

    def after_execution(self, tx_data: dict, success: bool, gas_used: int) -> None:
        """Called after a top-level call has committed or rolled back."""
        pass

    def before_call(self, frame: CallFrame) -> None:
        """Called before a frame (CALL or CREATE) starts running."""
        pass

    def after_call(self, frame: CallFrame, success: bool, return_data: bytes) -> None:
        """Called when a frame halts, before its scope is committed or rolled back."""
        pass

    def on_create(self, creator: bytes, address: bytes, success: bool) -> None:
        """Called once per CREATE/CREATE2 attempt, with its final outcome."""
        pass

    def on_balance_change(self, address: bytes, old_balance: int, new_balance: int) -> None:
        pass

    def on_deploy_stage(self, stage: DeployStage) -> None:
        """Called on every state transition of the deployment protocol."""
        pass


class DefaultHook(ExecutionHook):
    pass
